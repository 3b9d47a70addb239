from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from ..config.settings import settings
from ..exceptions import AuthValidationError
from ..mapping.models import AuthConfig
from .cache import TokenCache

if TYPE_CHECKING:
    from ..engine.context import ExecutionContext


@dataclass
class RequestDraft:
    """Outgoing headers and query params an auth provider may add to."""

    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> "RequestDraft":
        return RequestDraft(headers=dict(self.headers), params=copy.deepcopy(self.params))


class AuthProvider(ABC):
    """Abstract base class for authentication strategies."""

    auth_type: str = "NONE"
    required_fields: tuple[str, ...] = ()

    def __init__(
        self,
        token_cache: TokenCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token_cache = token_cache or TokenCache()
        self.http_client = http_client

    def validate(self, auth_config: AuthConfig) -> None:
        """Check required config fields; raises ``AuthValidationError`` naming the first missing one."""
        self._require(auth_config, *self.required_fields)

    @abstractmethod
    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        """Return a copy of ``draft`` carrying the credentials."""
        pass

    def _require(self, auth_config: AuthConfig, *fields: str) -> None:
        config = auth_config.config or {}
        for name in fields:
            if not config.get(name):
                raise AuthValidationError(self.auth_type, name)

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            return await client.post(url, **kwargs)
