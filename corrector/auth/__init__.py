"""Authentication strategies and the registry that dispatches to them."""

from .cache import TokenCache, TokenCacheEntry
from .interface import AuthProvider, RequestDraft
from .providers import (
    TOKEN_EXTRACTION_ORDER,
    TOKEN_EXTRACTION_VERSION,
    ApiKeyAuthProvider,
    BasicAuthProvider,
    BearerAuthProvider,
    CustomHeadersAuthProvider,
    JwtAuthProvider,
    NoAuthProvider,
    OAuth2ClientCredentialsProvider,
    extract_token,
)
from .registry import AuthStrategyRegistry, resolve_auth_type

__all__ = [
    "TokenCache",
    "TokenCacheEntry",
    "AuthProvider",
    "RequestDraft",
    "TOKEN_EXTRACTION_ORDER",
    "TOKEN_EXTRACTION_VERSION",
    "ApiKeyAuthProvider",
    "BasicAuthProvider",
    "BearerAuthProvider",
    "CustomHeadersAuthProvider",
    "JwtAuthProvider",
    "NoAuthProvider",
    "OAuth2ClientCredentialsProvider",
    "extract_token",
    "AuthStrategyRegistry",
    "resolve_auth_type",
]
