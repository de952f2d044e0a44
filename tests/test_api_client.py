#!/usr/bin/env python
"""Tests for the HTTP transport, with requests stubbed out."""
import json
import os
import tempfile
import unittest
from unittest import mock

import requests

from soraql.core.api_client import ApiClient
from soraql.core.errors import (
    AuthenticationError, HTTPStatusError, ResponseFormatError, ServiceError, TransportError
)
from soraql.core.models import Query
from soraql.utils.config import Profile


def _response(status=200, body=b"{}"):
    resp = mock.Mock()
    resp.status_code = status
    resp.content = body
    resp.text = body.decode("utf-8")
    resp.json.side_effect = lambda: json.loads(body)
    return resp


class ApiClientTests(unittest.TestCase):

    def setUp(self):
        self.session = mock.Mock()
        self.client = ApiClient("jp.api.soracom.io", headers={"X-Custom": "1"}, timeout=5, session=self.session)
        self.client.api_key = "key"
        self.client.token = "tok"

    def test_authenticate(self):
        self.session.post.return_value = _response(body=b'{"apiKey": "k", "token": "t"}')
        profile = Profile(name="default", auth_key_id="id", auth_key="secret")
        self.client.authenticate(profile)
        self.assertEqual((self.client.api_key, self.client.token), ("k", "t"))
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "https://jp.api.soracom.io/v1/auth")
        self.assertEqual(json.loads(kwargs["data"]), {"authKeyId": "id", "authKey": "secret"})
        self.assertEqual(kwargs["headers"]["X-Custom"], "1")

    def test_authenticate_failure(self):
        self.session.post.return_value = _response(401, b'{"code": "AUT0001", "message": "bad"}')
        with self.assertRaises(AuthenticationError) as ctx:
            self.client.authenticate(Profile(name="p", email="e", password="pw"))
        self.assertIn("API error [AUT0001]: bad", str(ctx.exception))

    def test_authenticate_missing_token(self):
        self.session.post.return_value = _response(body=b'{"apiKey": "k"}')
        with self.assertRaises(AuthenticationError):
            self.client.authenticate(Profile(name="p", email="e", password="pw"))

    def test_submit_query(self):
        self.session.request.return_value = _response(body=b'{"queryId": "q-42"}')
        query_id = self.client.submit_query(Query("select 1", from_time=1640995200))
        self.assertEqual(query_id, "q-42")
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", "https://jp.api.soracom.io/v1/analysis/queries"))
        self.assertEqual(json.loads(kwargs["data"]), {"sql": "select 1", "from": 1640995200})
        headers = kwargs["headers"]
        self.assertEqual(headers["x-soracom-api-key"], "key")
        self.assertEqual(headers["x-soracom-token"], "tok")
        self.assertEqual(headers["Content-Type"], "application/json")
        self.assertEqual(headers["X-Custom"], "1")

    def test_submit_without_query_id(self):
        self.session.request.return_value = _response(body=b'{}')
        with self.assertRaises(ResponseFormatError):
            self.client.submit_query(Query("select 1"))

    def test_status(self):
        body = b'{"status": "COMPLETED", "url": "https://s3/x.gz", "columnInfo": [{"name": "a", "databaseType": "INT"}]}'
        self.session.request.return_value = _response(body=body)
        status = self.client.get_query_status("q-1")
        self.assertEqual(status.status, "COMPLETED")
        self.assertEqual(status.url, "https://s3/x.gz")
        self.assertEqual(status.column_info[0].database_type, "INT")
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs["params"], {"exportFormat": "jsonl"})

    def test_service_error(self):
        self.session.request.return_value = _response(400, b'{"code": "SEM0001", "message": "syntax error"}')
        with self.assertRaises(ServiceError) as ctx:
            self.client.submit_query(Query("selec"))
        self.assertEqual(str(ctx.exception), "API error [SEM0001]: syntax error")

    def test_http_error(self):
        self.session.request.return_value = _response(502, b'Bad Gateway')
        with self.assertRaises(HTTPStatusError) as ctx:
            self.client.get_schemas()
        self.assertEqual(str(ctx.exception), "HTTP 502 error: Bad Gateway")

    def test_get_schemas(self):
        self.session.request.return_value = _response(body=b'{"tables": [{"name": "SIM_SNAPSHOTS"}]}')
        self.assertEqual(self.client.get_schemas(), {"tables": [{"name": "SIM_SNAPSHOTS"}]})
        self.session.request.return_value = _response(body=b'<html>')
        with self.assertRaises(ResponseFormatError):
            self.client.get_schemas()

    def test_transport_error(self):
        self.session.request.side_effect = requests.ConnectionError("dns failure")
        with self.assertRaises(TransportError):
            self.client.get_schemas()

    def test_invalid_json(self):
        self.session.request.return_value = _response(body=b'not json')
        with self.assertRaises(ResponseFormatError):
            self.client.get_query_status("q-1")

    def test_ask(self):
        body = b'{"id": "1", "sql_query": "SELECT 1", "context": "Counts rows"}'
        self.session.request.return_value = _response(body=body)
        answer = self.client.ask("how many sims?", "select 2")
        self.assertEqual(answer.sql_query, "SELECT 1")
        self.assertEqual(answer.context, "Counts rows")
        args, kwargs = self.session.request.call_args
        self.assertEqual(args[1], "https://jp.api.soracom.io/v1/analysis/sql_assistant")
        self.assertEqual(kwargs["headers"]["x-soracom-dynamicroutes"], "add-sql-helper")
        payload = json.loads(kwargs["data"])
        self.assertEqual(payload["messages"], [{"role": "user", "context": "how many sims?", "agentMode": False}])
        self.assertEqual(payload["timeRange"], {"hours": 2})
        self.assertEqual(payload["existing_query"], "select 2")

    def test_download(self):
        resp = mock.MagicMock()
        resp.status_code = 200
        resp.iter_content.return_value = [b"abc", b"", b"def"]
        resp.__enter__.return_value = resp
        self.session.get.return_value = resp
        with tempfile.TemporaryDirectory() as tmp:
            dest = os.path.join(tmp, "r.gz")
            written = self.client.download("https://s3/r.gz?sig=1", dest)
            with open(dest, "rb") as f:
                self.assertEqual(f.read(), b"abcdef")
        self.assertEqual(written, 6)
        _, kwargs = self.session.get.call_args
        self.assertTrue(kwargs["stream"])
        self.assertNotIn("headers", kwargs)

    def test_download_error(self):
        self.session.get.side_effect = requests.Timeout("slow")
        with self.assertRaises(TransportError) as ctx:
            self.client.download("https://s3/r.gz", os.path.join(tempfile.gettempdir(), "never.gz"))
        self.assertIn("failed to download file", str(ctx.exception))


class ProfileTests(unittest.TestCase):

    def test_host(self):
        self.assertEqual(Profile(name="p").host, "jp.api.soracom.io")
        self.assertEqual(Profile(name="p", coverage_type="g").host, "g.api.soracom.io")
        self.assertEqual(Profile(name="p", endpoint="https://api.example.com/").host, "api.example.com")

    def test_auth_payload(self):
        self.assertEqual(Profile(name="p", email="e", password="pw").auth_payload(),
                         {"email": "e", "password": "pw"})

    def test_from_profile(self):
        client = ApiClient.from_profile(Profile(name="p", coverage_type="g", headers={"A": "b"}))
        self.assertEqual(client.base_url, "https://g.api.soracom.io")
        self.assertEqual(client.custom_headers, {"A": "b"})


if __name__ == "__main__":
    unittest.main()
