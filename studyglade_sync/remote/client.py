"""
REST client for the StudyGlade API.

JSON bodies, bearer-token auth. Every failure surfaces as TransportError
(or AuthRequiredError for a 401) so the store can decide to fall back.

Endpoints:
    POST /auth/session                  -> {"token", "owner_key", ...}
    GET  /{collection}?filters          -> list of records (optionally wrapped)
    POST /{collection}                  -> created record
    PUT  /{collection}/{id}             -> updated record
    POST /{collection}/{id}/upload      -> {"name", "url", "mimeType"} (multipart)
    POST /{collection}/{id}/increment   -> updated record
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from ..exceptions import AuthRequiredError, TransportError, ValidationError
from ..records import (
    Attachment,
    AttachmentFile,
    Record,
    unwrap_record,
    unwrap_record_list,
)

logger = logging.getLogger(__name__)


class RemoteApiClient:
    """Async client for the REST API.

    The aiohttp session is created on first use and released by close().

    Example:
        >>> client = RemoteApiClient("http://localhost:3001/api", auth_token="...")
        >>> records = await client.list_records("assignments", {"owner_key": "alice"})
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self, json_body: bool = True) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: aiohttp.FormData | None = None,
    ) -> Any:
        """Issue a request and return the decoded JSON body.

        Raises:
            AuthRequiredError: On HTTP 401
            TransportError: On any other failure
        """
        url = f"{self.base_url}{path}"
        endpoint = f"{method} {path}"
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                params=_encode_params(params),
                json=json,
                data=data,
                headers=self._headers(json_body=data is None),
            ) as response:
                if response.status == 401:
                    raise AuthRequiredError(endpoint, await _error_message(response))
                if not 200 <= response.status < 300:
                    raise TransportError(
                        endpoint, status=response.status, reason=await _error_message(response)
                    )
                logger.debug(f"{endpoint} -> {response.status}")
                if response.status == 204:
                    return None
                return await response.json(content_type=None)
        except TransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ValueError covers undecodable JSON bodies
            raise TransportError(endpoint, reason=type(e).__name__, cause=e) from e

    # Identity

    async def authenticate(self, owner_key: str) -> dict[str, Any]:
        """Open a session for owner_key and remember the returned token."""
        body = await self.request("POST", "/auth/session", json={"owner_key": owner_key})
        if not isinstance(body, dict) or not body.get("token"):
            raise TransportError("POST /auth/session", reason="response carried no token")
        self.auth_token = str(body["token"])
        return body

    # Collections

    async def list_records(
        self, collection: str, filters: dict[str, Any] | None = None
    ) -> list[Record]:
        path = f"/{_segment(collection)}"
        body = await self.request("GET", path, params=filters)
        return _decode_records(f"GET {path}", body)

    async def create_record(self, collection: str, data: dict[str, Any]) -> Record:
        path = f"/{_segment(collection)}"
        body = await self.request("POST", path, json=data)
        return _decode_record(f"POST {path}", body)

    async def update_record(self, collection: str, record_id: str, data: dict[str, Any]) -> Record:
        path = f"/{_segment(collection)}/{_segment(record_id)}"
        body = await self.request("PUT", path, json=data)
        return _decode_record(f"PUT {path}", body)

    async def upload_attachment(
        self, collection: str, record_id: str, file: AttachmentFile
    ) -> Attachment:
        path = f"/{_segment(collection)}/{_segment(record_id)}/upload"
        form = aiohttp.FormData()
        form.add_field(
            "file",
            file.content,
            filename=file.name,
            content_type=file.mime_type or "application/octet-stream",
        )
        body = await self.request("POST", path, data=form)
        if isinstance(body, dict) and isinstance(body.get("attachment"), dict):
            body = body["attachment"]
        try:
            return Attachment.from_dict(body)
        except ValidationError as e:
            raise TransportError(f"POST {path}", reason="malformed attachment", cause=e) from e

    async def increment_counter(
        self, collection: str, record_id: str, field: str
    ) -> Record | None:
        path = f"/{_segment(collection)}/{_segment(record_id)}/increment"
        body = await self.request("POST", path, json={"field": field})
        if not body:
            return None
        return _decode_record(f"POST {path}", body)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _encode_params(params: dict[str, Any] | None) -> dict[str, str] | None:
    if not params:
        return None
    encoded: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif hasattr(value, "value"):
            encoded[key] = str(value.value)
        else:
            encoded[key] = str(value)
    return encoded


async def _error_message(response: aiohttp.ClientResponse) -> str | None:
    try:
        body = await response.json(content_type=None)
    except (aiohttp.ClientError, ValueError):
        return response.reason
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason


def _decode_record(endpoint: str, body: Any) -> Record:
    try:
        return Record.from_dict(unwrap_record(body))
    except ValidationError as e:
        raise TransportError(endpoint, reason="malformed record in response", cause=e) from e


def _decode_records(endpoint: str, body: Any) -> list[Record]:
    try:
        return [Record.from_dict(item) for item in unwrap_record_list(body)]
    except ValidationError as e:
        raise TransportError(endpoint, reason="malformed records in response", cause=e) from e
