"""Async HTTP client for outbound calls to third-party APIs (email delivery)."""

from typing import Any, Optional

import httpx

from shared.logging import get_logger

log = get_logger(__name__)


class HttpClient:
    """Wrapper around httpx.AsyncClient bound to one external service.

    Transport errors are logged with the service name and re-raised; callers
    decide whether a failed call is fatal.
    """

    def __init__(
        self,
        service: str = "external",
        timeout: float = 10.0,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.service = service
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            log.warning(
                "http_request_failed",
                service=self.service,
                method=method,
                error_type=type(e).__name__,
            )
            raise

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
