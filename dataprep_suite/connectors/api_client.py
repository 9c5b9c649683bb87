"""
HTTP client for API connections: authentication, pagination and record
extraction.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ConnectorError

logger = logging.getLogger(__name__)

USER_AGENT = "dataprep-suite-api-connector/1.0"
DEFAULT_API_KEY_HEADER = "X-API-Key"


def extract_path(data: Any, path: Optional[str]) -> Any:
    """Follow a dotted path through nested dicts; None when a step is missing."""
    if not path:
        return data
    current = data
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    return current


def _as_records(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return [r if isinstance(r, dict) else {"value": r} for r in data]
    if isinstance(data, dict):
        return [data]
    return []


class ApiClient:
    """Calls an API connection's endpoint with httpx."""

    def __init__(self, connection: Any, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.connection = connection
        self.transport = transport

    @property
    def pagination(self) -> Dict[str, Any]:
        config = dict(self.connection.pagination_config or {})
        config.setdefault("type", "none")
        config.setdefault("page_param", "page")
        config.setdefault("size_param", "limit")
        config.setdefault("offset_param", "offset")
        config.setdefault("cursor_param", "cursor")
        config.setdefault("page_size", 100)
        config.setdefault("start_page", 1)
        return config

    def build_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            **(self.connection.headers or {}),
        }
        auth = self.connection.auth_config or {}
        auth_type = self.connection.auth_type

        if auth_type == "api-key" and auth.get("api_key"):
            headers[auth.get("header_name") or DEFAULT_API_KEY_HEADER] = auth["api_key"]
        elif auth_type == "bearer" and auth.get("token"):
            headers["Authorization"] = f"Bearer {auth['token']}"
        elif auth_type == "basic" and auth.get("username") and auth.get("password"):
            encoded = base64.b64encode(f"{auth['username']}:{auth['password']}".encode()).decode()
            headers["Authorization"] = f"Basic {encoded}"
        return headers

    async def _request(self, client: httpx.AsyncClient, params: Dict[str, Any]) -> httpx.Response:
        method = (self.connection.method or "GET").upper()
        kwargs: Dict[str, Any] = {"params": params, "headers": self.build_headers()}
        if method == "POST" and self.connection.request_body is not None:
            kwargs["json"] = self.connection.request_body
        return await client.request(method, self.connection.endpoint, **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.connection.timeout or 30.0,
            transport=self.transport,
            follow_redirects=True,
        )

    async def test(self) -> Dict[str, Any]:
        """Issue one request and report the outcome without raising."""
        started = time.perf_counter()
        async with self._client() as client:
            try:
                response = await self._request(client, {})
            except httpx.HTTPError as e:
                logger.warning(f"API connection test failed: {e}")
                return {"success": False, "message": f"Connection failed: {e}", "error": str(e)}

        elapsed = round((time.perf_counter() - started) * 1000, 2)
        if not response.is_success:
            return {
                "success": False,
                "message": f"API returned status {response.status_code}",
                "status_code": response.status_code,
                "response_time_ms": elapsed,
                "error": response.text[:500],
            }

        try:
            body = response.json()
        except ValueError:
            body = None
        records = _as_records(extract_path(body, self.connection.data_path))
        return {
            "success": True,
            "message": "Connection successful",
            "status_code": response.status_code,
            "response_time_ms": elapsed,
            "sample": records[:3],
        }

    async def fetch(self, max_pages: int = 10) -> Dict[str, Any]:
        """Fetch records, following pagination for up to ``max_pages`` requests.

        Paging stops early on an empty or short page, or when a cursor
        response carries no next cursor.
        """
        config = self.pagination
        kind = config["type"]
        page_size = int(config["page_size"])
        records: List[Dict[str, Any]] = []
        pages = 0
        offset = 0
        page = int(config["start_page"])
        cursor: Optional[str] = None

        async with self._client() as client:
            while pages < max_pages:
                params: Dict[str, Any] = {}
                if kind == "offset":
                    params = {config["offset_param"]: offset, config["size_param"]: page_size}
                elif kind == "page":
                    params = {config["page_param"]: page, config["size_param"]: page_size}
                elif kind == "cursor" and cursor:
                    params = {config["cursor_param"]: cursor}

                try:
                    response = await self._request(client, params)
                    response.raise_for_status()
                    body = response.json()
                except httpx.HTTPStatusError as e:
                    raise ConnectorError(
                        f"API returned status {e.response.status_code}",
                        "fetch",
                        {"status_code": e.response.status_code, "page": pages + 1},
                    ) from e
                except httpx.HTTPError as e:
                    raise ConnectorError(str(e), "fetch") from e
                except ValueError as e:
                    raise ConnectorError("Response is not valid JSON", "fetch") from e

                batch = _as_records(extract_path(body, self.connection.data_path))
                records.extend(batch)
                pages += 1

                if kind == "none" or not batch:
                    break
                if kind == "cursor":
                    cursor = extract_path(body, config.get("cursor_path"))
                    if not cursor:
                        break
                    cursor = str(cursor)
                    continue
                if len(batch) < page_size:
                    break
                offset += page_size
                page += 1

        logger.info(f"Fetched {len(records)} records in {pages} page(s) from {self.connection.endpoint}")
        return {"records": records, "pages": pages, "next_cursor": cursor if kind == "cursor" else None}
