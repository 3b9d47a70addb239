"""Outbound HTTP transport for target API calls."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config.settings import settings
from ..exceptions import TransportError
from ..mapping.models import TargetApiConfig

logger = logging.getLogger(__name__)

BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass
class TransportResponse:
    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)
    elapsed_ms: int = 0


def decode_body(response: httpx.Response) -> Any:
    """Parse a JSON reply, falling back to text; empty bodies become ``None``."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _query_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return value


class HttpTransport:
    """Sends one request per ``call``; connection pooling is left to httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds

    async def call(
        self,
        target_api: TargetApiConfig,
        body: Any,
        headers: dict[str, str] | None = None,
    ) -> TransportResponse:
        """Invoke ``target_api`` (url, method and query params already resolved).

        Raises:
            TransportError: On network failure, timeout or a non-2xx status.
        """
        method = target_api.method.upper()
        timeout = target_api.timeout_ms / 1000 if target_api.timeout_ms else self.timeout_seconds
        params = {
            key: _query_value(value)
            for key, value in target_api.query_params.items()
            if value is not None
        }
        request_kwargs: dict[str, Any] = {
            "method": method,
            "url": target_api.url,
            "headers": headers or {},
            "params": params,
            "timeout": timeout,
        }
        if body is not None and method not in BODYLESS_METHODS:
            request_kwargs["json"] = body

        start_time = time.time()
        try:
            if self._client is not None:
                response = await self._client.request(**request_kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(**request_kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Request timeout after {timeout}s", url=target_api.url
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"HTTP request failed: {exc}", url=target_api.url) from exc

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.debug("%s %s - %s (%dms)", method, target_api.url, response.status_code, elapsed_ms)

        payload = decode_body(response)
        if response.status_code >= 400:
            raise TransportError(
                f"Target API responded with HTTP {response.status_code}",
                status_code=response.status_code,
                body=payload,
                url=target_api.url,
            )
        return TransportResponse(
            status_code=response.status_code,
            body=payload,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close an injected HTTP client."""
        if self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
