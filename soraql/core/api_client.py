"""HTTP transport for the analysis API.

All calls go through ApiClient.request(), which attaches the API key/token
and profile headers and maps failures onto the error taxonomy:
requests exceptions -> TransportError, HTTP >= 400 with {code, message} ->
ServiceError, other HTTP >= 400 -> HTTPStatusError.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from soraql.core.errors import (
    AuthenticationError, HTTPStatusError, ResponseFormatError, ServiceError, TransportError
)
from soraql.core.models import AssistantResponse, Query, StatusResponse
from soraql.utils.config import Profile
from soraql.utils.constants import (
    API_KEY_HEADER, ASSISTANT_TIME_RANGE_HOURS, AUTH_PATH, EXPORT_FORMAT, QUERIES_PATH,
    SCHEMAS_PATH, SQL_ASSISTANT_PATH, SQL_HELPER_HEADERS, TOKEN_HEADER
)

logger = logging.getLogger(__name__)
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _error_from_response(status: int, body: str) -> Exception:
    try:
        data = json.loads(body)
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get('code'):
        return ServiceError(str(data['code']), str(data.get('message', '')))
    return HTTPStatusError(status, body)


def _parse_json(body: bytes, what: str) -> Any:
    try:
        return json.loads(body)
    except ValueError as e:
        raise ResponseFormatError(f"failed to parse {what}: {e}") from e


class ApiClient:
    """Authenticated client for one API host."""

    def __init__(self, host: str, headers: Optional[Mapping[str, str]] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.host = host
        self.base_url = f"https://{host}"
        self.custom_headers: Dict[str, str] = dict(headers or {})
        self.timeout = timeout
        self.session = session or requests.Session()
        self.api_key = ''
        self.token = ''

    @classmethod
    def from_profile(cls, profile: Profile, timeout: Optional[float] = None,
                     session: Optional[requests.Session] = None) -> "ApiClient":
        return cls(profile.host, headers=profile.headers, timeout=timeout, session=session)

    # --- authentication ---

    def authenticate(self, profile: Profile) -> None:
        """Exchange profile credentials for an API key and token."""
        url = self.base_url + AUTH_PATH
        logger.debug("Coverage Type: %s", profile.coverage_type)
        logger.debug("Base URL: %s", self.base_url)
        logger.debug("Auth URL: %s", url)
        headers = {"Content-Type": "application/json"}
        headers.update(self.custom_headers)
        try:
            resp = self.session.post(url, data=json.dumps(profile.auth_payload()),
                                     headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthenticationError(f"auth request failed: {e}") from e
        logger.debug("Auth response status: %d", resp.status_code)
        if resp.status_code >= 400:
            raise AuthenticationError(str(_error_from_response(resp.status_code, resp.text)))
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthenticationError(f"failed to parse auth response: {e}") from e
        if not isinstance(data, dict) or not data.get('apiKey') or not data.get('token'):
            raise AuthenticationError("auth response did not contain apiKey and token")
        self.api_key = data['apiKey']
        self.token = data['token']

    # --- generic request ---

    def request(self, method: str, path: str, payload: Any = None,
                params: Optional[Mapping[str, str]] = None,
                extra_headers: Optional[Mapping[str, str]] = None) -> bytes:
        url = self.base_url + path
        headers = {API_KEY_HEADER: self.api_key, TOKEN_HEADER: self.token}
        headers.update(self.custom_headers)
        if extra_headers:
            headers.update(extra_headers)
        data = None
        if payload is not None:
            data = json.dumps(payload)
            headers["Content-Type"] = "application/json"
            logger.debug("Request payload: %s", data)
        logger.debug("Request: %s %s", method, url)
        try:
            resp = self.session.request(method, url, data=data, params=params,
                                        headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}") from e
        body = resp.content
        logger.debug("Response status: %d", resp.status_code)
        logger.debug("Response body: %s", resp.text)
        if resp.status_code >= 400:
            raise _error_from_response(resp.status_code, resp.text)
        return body

    # --- analysis endpoints ---

    def submit_query(self, query: Query) -> str:
        body = self.request("POST", QUERIES_PATH, payload=query.payload())
        data = _parse_json(body, "query response")
        query_id = data.get('queryId') if isinstance(data, dict) else None
        if not query_id:
            raise ResponseFormatError("query response did not contain a queryId")
        return str(query_id)

    def get_query_status(self, query_id: str) -> StatusResponse:
        body = self.request("GET", f"{QUERIES_PATH}/{query_id}", params={"exportFormat": EXPORT_FORMAT})
        data = _parse_json(body, "status response")
        if not isinstance(data, dict):
            raise ResponseFormatError("failed to parse status response: expected a JSON object")
        return StatusResponse.from_dict(data, raw_body=body.decode('utf-8', errors='replace'))

    def get_schemas(self) -> Any:
        body = self.get_schemas_raw()
        logger.debug("Raw schema response: %s", body.decode('utf-8', errors='replace'))
        return _parse_json(body, "schema response")

    def get_schemas_raw(self) -> bytes:
        return self.request("GET", SCHEMAS_PATH)

    def ask(self, context: str, existing_query: str = '') -> AssistantResponse:
        """Ask the SQL assistant to turn a question into SQL."""
        payload = {
            "messages": [{"role": "user", "context": context, "agentMode": False}],
            "timeRange": {"hours": ASSISTANT_TIME_RANGE_HOURS},
            "existing_query": existing_query,
        }
        body = self.request("POST", SQL_ASSISTANT_PATH, payload=payload, extra_headers=SQL_HELPER_HEADERS)
        data = _parse_json(body, "SQL assistant response")
        if not isinstance(data, dict):
            raise ResponseFormatError("failed to parse SQL assistant response: expected a JSON object")
        return AssistantResponse.from_dict(data)

    def download(self, url: str, dest_path: str) -> int:
        """Stream a presigned result URL to dest_path. Returns bytes written."""
        written = 0
        try:
            # presigned URL: no API headers
            with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                if resp.status_code >= 400:
                    raise HTTPStatusError(resp.status_code, resp.text)
                with open(dest_path, 'wb') as out:
                    for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            out.write(chunk)
                            written += len(chunk)
        except requests.RequestException as e:
            raise TransportError(f"failed to download file: {e}") from e
        return written
