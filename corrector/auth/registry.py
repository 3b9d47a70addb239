"""Resolve an ``authType`` tag to its provider."""

from __future__ import annotations

import logging
from typing import Type

import httpx

from ..mapping.models import AuthConfig, AuthType
from .cache import TokenCache
from .interface import AuthProvider
from .providers import (
    ApiKeyAuthProvider,
    BasicAuthProvider,
    BearerAuthProvider,
    CustomHeadersAuthProvider,
    JwtAuthProvider,
    NoAuthProvider,
    OAuth2ClientCredentialsProvider,
)

logger = logging.getLogger(__name__)


def resolve_auth_type(auth_type: str | AuthType | None) -> AuthType:
    """Map a tag to ``AuthType``; unknown or empty tags fall back to ``NONE``."""
    if isinstance(auth_type, AuthType):
        return auth_type
    if not auth_type:
        return AuthType.NONE
    try:
        return AuthType(str(auth_type).strip().upper())
    except ValueError:
        logger.warning("Unknown auth type '%s', falling back to NONE", auth_type)
        return AuthType.NONE


class AuthStrategyRegistry:
    """Hands out one provider instance per auth type, all sharing a token cache."""

    PROVIDER_MAP: dict[AuthType, Type[AuthProvider]] = {
        AuthType.NONE: NoAuthProvider,
        AuthType.BASIC: BasicAuthProvider,
        AuthType.API_KEY: ApiKeyAuthProvider,
        AuthType.BEARER_TOKEN: BearerAuthProvider,
        AuthType.OAUTH2_CLIENT_CREDENTIALS: OAuth2ClientCredentialsProvider,
        AuthType.CUSTOM: CustomHeadersAuthProvider,
        AuthType.JWT: JwtAuthProvider,
    }

    def __init__(
        self,
        token_cache: TokenCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token_cache = token_cache or TokenCache()
        self.http_client = http_client
        self._providers: dict[AuthType, AuthProvider] = {}

    def get_provider(self, auth_type: str | AuthType | None) -> AuthProvider:
        resolved = resolve_auth_type(auth_type)
        provider = self._providers.get(resolved)
        if provider is None:
            provider_cls = self.PROVIDER_MAP[resolved]
            provider = provider_cls(token_cache=self.token_cache, http_client=self.http_client)
            self._providers[resolved] = provider
        return provider

    def validate(self, auth_config: AuthConfig) -> None:
        self.get_provider(auth_config.auth_type).validate(auth_config)
