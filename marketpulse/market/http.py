"""Thin httpx wrapper shared by the REST adapters.

Translates every transport-level problem into the market-data error
hierarchy so adapters only deal with decoded JSON:
- timeouts, connection errors, other httpx errors -> ProviderUnavailable
- HTTP 404 -> NotFound
- any other non-2xx -> ProviderUnavailable
- undecodable body -> ProviderUnavailable
"""

from __future__ import annotations

from typing import Any, Self

import httpx
import structlog

from marketpulse.config import ProviderConfig
from marketpulse.market.errors import NotFound, ProviderUnavailable

log = structlog.get_logger()


class ProviderHttpClient:
    """Pooled async JSON client for one upstream provider."""

    def __init__(
        self,
        name: str,
        config: ProviderConfig,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            headers=headers,
            transport=transport,
        )

    async def get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        symbol: str = "",
    ) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Args:
            path: Path relative to the provider base URL.
            params: Query parameters.
            symbol: Symbol reported in NotFound on HTTP 404.
        """
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable(self.name, f"timeout on {path}") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(
                self.name, f"{type(exc).__name__} on {path}: {exc}"
            ) from exc

        if response.status_code == 404:
            raise NotFound(self.name, symbol or path)
        if not response.is_success:
            log.warning(
                "provider_http_error",
                provider=self.name,
                path=path,
                status_code=response.status_code,
            )
            raise ProviderUnavailable(self.name, f"HTTP {response.status_code} on {path}")

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailable(self.name, f"malformed JSON on {path}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.aclose()
