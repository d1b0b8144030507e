"""Tests for request building and execution in streamr_client.client."""

import json
import os
import unittest
from unittest import mock

import httpx

from streamr_client.client import DEFAULT_BASE_URL, StreamrClient
from streamr_client.errors import (
    ApiError,
    DecodeError,
    InvalidURLError,
    SerializationError,
    StreamrError,
    TransportError,
)
from streamr_client.models import Stream

BASE_URL = "http://testserver/api/v1/"


def make_client(handler=None, **kwargs):
    if handler is None:
        handler = lambda request: httpx.Response(200)
    return StreamrClient(
        "secret-key", base_url=BASE_URL, transport=httpx.MockTransport(handler), **kwargs
    )


class TestClientConfig(unittest.TestCase):
    """Tests for StreamrClient construction."""

    def test_defaults(self):
        client = StreamrClient("k")
        self.assertEqual(str(client.base_url), DEFAULT_BASE_URL)
        self.assertEqual(client.api_key, "k")
        self.assertFalse(client._client.follow_redirects)
        self.assertEqual(client._client.timeout, httpx.Timeout(30.0))
        client.close()

    def test_base_url_gets_trailing_slash(self):
        client = StreamrClient("k", base_url="http://testserver/api/v1")
        self.assertEqual(str(client.base_url), "http://testserver/api/v1/")

    def test_invalid_base_url(self):
        with self.assertRaises(InvalidURLError):
            StreamrClient("k", base_url="not a url")
        with self.assertRaises(InvalidURLError):
            StreamrClient("k", base_url="ftp://testserver/")

    def test_timeout_must_be_positive(self):
        with self.assertRaises(ValueError):
            StreamrClient("k", timeout=0)
        with self.assertRaises(ValueError):
            StreamrClient("k", timeout=None)

    def test_context_manager_closes(self):
        with make_client() as client:
            pass
        self.assertTrue(client._client.is_closed)

    def test_from_env(self):
        env = {
            "STREAMR_API_KEY": "env-key",
            "STREAMR_BASE_URL": "http://envserver/api/",
            "STREAMR_TIMEOUT": "5",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            client = StreamrClient.from_env()
        self.assertEqual(client.api_key, "env-key")
        self.assertEqual(str(client.base_url), "http://envserver/api/")
        self.assertEqual(client._client.timeout, httpx.Timeout(5.0))

    def test_from_env_kwargs_take_precedence(self):
        env = {"STREAMR_API_KEY": "env-key", "STREAMR_BASE_URL": "http://envserver/"}
        with mock.patch.dict(os.environ, env, clear=True):
            client = StreamrClient.from_env(base_url=BASE_URL)
        self.assertEqual(str(client.base_url), BASE_URL)

    def test_from_env_requires_key(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(StreamrError):
                StreamrClient.from_env()

    def test_from_env_malformed_timeout(self):
        env = {"STREAMR_API_KEY": "env-key", "STREAMR_TIMEOUT": "soon"}
        with mock.patch.dict(os.environ, env, clear=True):
            with self.assertRaises(StreamrError) as ctx:
                StreamrClient.from_env()
        self.assertIn("STREAMR_TIMEOUT", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, ValueError)


class TestBuildRequest(unittest.TestCase):
    """Tests for StreamrClient.build_request()."""

    def setUp(self):
        self.client = make_client()

    def test_relative_path_joins_base(self):
        request = self.client.build_request("GET", "streams/abc")
        self.assertEqual(str(request.url), "http://testserver/api/v1/streams/abc")
        self.assertEqual(request.method, "GET")

    def test_absolute_path_replaces_base_path(self):
        request = self.client.build_request("GET", "/health")
        self.assertEqual(str(request.url), "http://testserver/health")

    def test_non_http_url_rejected(self):
        with self.assertRaises(InvalidURLError):
            self.client.build_request("GET", "ftp://elsewhere/file")

    def test_auth_and_connection_headers(self):
        request = self.client.build_request("GET", "streams")
        self.assertEqual(request.headers["Authorization"], "Token secret-key")
        self.assertEqual(request.headers["Connection"], "close")

    def test_no_body_no_content_type(self):
        request = self.client.build_request("GET", "streams")
        self.assertNotIn("Content-Type", request.headers)
        self.assertEqual(request.content, b"")

    def test_json_body(self):
        body = {"name": "foobar", "age": 99, "nested": {"list": [1, 2, 3]}}
        request = self.client.build_request("POST", "streams", body)
        self.assertEqual(request.headers["Content-Type"], "application/json")
        self.assertEqual(json.loads(request.content), body)

    def test_html_characters_not_escaped(self):
        request = self.client.build_request("POST", "streams", {"q": "<a> & <b>", "t": "ä"})
        text = request.content.decode("utf-8")
        self.assertIn("<a> & <b>", text)
        self.assertIn("ä", text)

    def test_to_dict_body(self):
        request = self.client.build_request("POST", "streams", Stream(id="a", name="b"))
        self.assertEqual(
            json.loads(request.content), {"id": "a", "name": "b", "description": ""}
        )

    def test_unserializable_body(self):
        with self.assertRaises(SerializationError):
            self.client.build_request("POST", "streams", {"bad": object()})

    def test_non_finite_numbers_rejected(self):
        """NaN and Infinity have no JSON representation."""
        for value in (float("nan"), float("inf"), float("-inf")):
            with self.subTest(value=value):
                with self.assertRaises(SerializationError):
                    self.client.build_request("POST", "streams/x/data", {"v": value})

    def test_query_params(self):
        request = self.client.build_request("GET", "streams", params={"name": "a b", "max": 5})
        self.assertEqual(request.url.params["name"], "a b")
        self.assertEqual(request.url.params["max"], "5")
        self.assertEqual(request.url.path, "/api/v1/streams")


class TestExecute(unittest.TestCase):
    """Tests for StreamrClient.execute() and the Response envelope."""

    def test_success_statuses(self):
        for status in (200, 201, 202, 204, 299):
            with self.subTest(status=status):
                client = make_client(lambda request, s=status: httpx.Response(s, content=b"junk"))
                response = client.execute(client.build_request("GET", "streams"))
                self.assertTrue(response.is_success)
                self.assertEqual(response.status_code, status)

    def test_error_statuses(self):
        for status in (301, 302, 400, 401, 404, 500, 503):
            with self.subTest(status=status):
                client = make_client(lambda request, s=status: httpx.Response(s))
                with self.assertRaises(ApiError) as ctx:
                    client.execute(client.build_request("DELETE", "streams/x"))
                err = ctx.exception
                self.assertEqual(err.status, status)
                self.assertEqual(err.method, "DELETE")
                self.assertEqual(err.url, "http://testserver/api/v1/streams/x")
                self.assertEqual(err.is_retryable(), status >= 500)

    def test_redirect_not_followed(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(302, headers={"Location": "http://testserver/elsewhere"})

        client = make_client(handler)
        with self.assertRaises(ApiError):
            client.execute(client.build_request("GET", "streams"))
        self.assertEqual(calls, ["/api/v1/streams"])

    def test_error_status_skips_decoding(self):
        client = make_client(lambda request: httpx.Response(500, content=b"not json"))
        with self.assertRaises(ApiError):
            client.execute(client.build_request("GET", "streams"), lambda v: v)

    def test_decode(self):
        client = make_client(lambda request: httpx.Response(200, json={"id": "a", "name": "b"}))
        response = client.execute(client.build_request("GET", "streams/a"), Stream.from_dict)
        self.assertEqual(response.data, Stream(id="a", name="b"))

    def test_empty_body_decodes_to_none(self):
        called = []
        client = make_client(lambda request: httpx.Response(204))
        response = client.execute(client.build_request("GET", "streams"), called.append)
        self.assertIsNone(response.data)
        self.assertEqual(called, [])

    def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"{not json"))
        with self.assertRaises(DecodeError):
            client.execute(client.build_request("GET", "streams"), lambda v: v)

    def test_schema_mismatch(self):
        client = make_client(lambda request: httpx.Response(200, json={"name": "no id"}))
        with self.assertRaises(DecodeError):
            client.execute(client.build_request("GET", "streams/a"), Stream.from_dict)

    def test_no_decode_ignores_body(self):
        client = make_client(lambda request: httpx.Response(200, content=b"{not json"))
        response = client.execute(client.build_request("POST", "streams/a/data", {}))
        self.assertIsNone(response.data)
        self.assertEqual(response.content, b"{not json")

    def test_response_is_closed(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        response = client.execute(client.build_request("GET", "streams"), lambda v: v)
        self.assertTrue(response._response.is_closed)

    def test_response_closed_on_error(self):
        seen = []

        def handler(request):
            response = httpx.Response(404)
            seen.append(response)
            return response

        client = make_client(handler)
        with self.assertRaises(ApiError):
            client.execute(client.build_request("GET", "streams/x"))
        self.assertTrue(seen[0].is_closed)

    def test_response_headers(self):
        client = make_client(lambda request: httpx.Response(200, headers={"X-Trace": "abc"}))
        response = client.execute(client.build_request("GET", "streams"))
        self.assertEqual(response.headers["X-Trace"], "abc")
        self.assertEqual(response.method, "GET")
        self.assertEqual(response.url, "http://testserver/api/v1/streams")

    def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with self.assertRaises(TransportError) as ctx:
            client.execute(client.build_request("GET", "streams"))
        self.assertTrue(ctx.exception.is_retryable())
        self.assertIsInstance(ctx.exception.__cause__, httpx.ConnectError)

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = make_client(handler)
        with self.assertRaises(TransportError) as ctx:
            client.execute(client.build_request("GET", "streams"))
        self.assertIn("timed out", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
