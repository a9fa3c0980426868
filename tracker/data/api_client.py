from __future__ import annotations

from typing import Any

import httpx


class StoreError(RuntimeError):
    def __init__(self, status_code: int, reason: str, detail: Any):
        super().__init__(f"API error {status_code} {reason}: {detail}")
        self.status_code = status_code
        self.detail = detail


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = str(base_url or "").rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_enabled(self) -> bool:
        return bool(self._base_url and self._token)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        owner_id: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> Any:
        if not self._base_url:
            raise RuntimeError("API_BASE_URL not configured")
        if not self._token:
            raise RuntimeError("BACKEND_SESSION_SECRET not configured")
        if not owner_id:
            raise RuntimeError("Missing owner id for API request")
        headers = {
            "X-Owner-Id": owner_id,
            "X-Backend-Token": self._token,
        }
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        response = await self._http().request(method, path, params=clean_params, json=json, headers=headers)
        if not response.is_success:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            raise StoreError(response.status_code, response.reason_phrase, detail)
        if response.status_code == 204:
            return None
        return response.json()
