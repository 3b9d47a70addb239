"""Authentication strategies, one per supported ``authType``."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import httpx

from ..config.settings import settings
from ..exceptions import AuthValidationError, TokenAcquisitionError
from ..mapping.models import AuthConfig
from ..mapping.pipeline import MISSING, get_value
from .interface import AuthProvider, RequestDraft

if TYPE_CHECKING:
    from ..engine.context import ExecutionContext

logger = logging.getLogger(__name__)

# Where a login reply may carry its token, tried in this order. Changing the
# order or the entries changes which token wins for existing integrations, so
# bump the version together with any edit.
TOKEN_EXTRACTION_VERSION = 1
TOKEN_EXTRACTION_ORDER: tuple[str, ...] = (
    "$",
    "$.accessToken",
    "$.accessToken.accessToken",
    "$.access_token",
    "$.token",
    "$.data.token",
    "$.data.accessToken.accessToken",
)


def extract_token(body: Any) -> str | None:
    """Return the first non-empty string found along ``TOKEN_EXTRACTION_ORDER``."""
    for path in TOKEN_EXTRACTION_ORDER:
        candidate = get_value(body, path, MISSING)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def _expires_in(body: Any) -> float:
    value = get_value(body, "$.expires_in", None) if isinstance(body, dict) else None
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return float(settings.default_token_lifetime_seconds)


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class NoAuthProvider(AuthProvider):
    auth_type = "NONE"

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        return draft.copy()


class BasicAuthProvider(AuthProvider):
    auth_type = "BASIC"
    required_fields = ("username", "password")

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        config = auth_config.config
        credentials = f"{config['username']}:{config['password']}".encode()
        result = draft.copy()
        result.headers["Authorization"] = f"Basic {base64.b64encode(credentials).decode()}"
        return result


class ApiKeyAuthProvider(AuthProvider):
    auth_type = "API_KEY"
    required_fields = ("keyName", "keyValue")
    locations = ("HEADER", "QUERY")

    def validate(self, auth_config: AuthConfig) -> None:
        super().validate(auth_config)
        location = str(auth_config.config.get("location") or "HEADER").upper()
        if location not in self.locations:
            raise AuthValidationError(
                self.auth_type,
                "location",
                f'AuthType API_KEY "location" must be one of {", ".join(self.locations)}',
            )

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        config = auth_config.config
        location = str(config.get("location") or "HEADER").upper()
        result = draft.copy()
        if location == "QUERY":
            result.params[config["keyName"]] = config["keyValue"]
        else:
            result.headers[config["keyName"]] = str(config["keyValue"])
        return result


class BearerAuthProvider(AuthProvider):
    """Static bearer token, or one obtained from a login endpoint and cached."""

    auth_type = "BEARER_TOKEN"

    def validate(self, auth_config: AuthConfig) -> None:
        config = auth_config.config
        if not config.get("token") and not config.get("tokenUrl"):
            raise AuthValidationError(
                self.auth_type,
                "token",
                'AuthType BEARER_TOKEN requires either "token" or "tokenUrl" in config',
            )

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        config = auth_config.config
        token = config.get("token")
        if not token and config.get("tokenUrl"):
            token = await self._dynamic_token(config)
        if not token:
            raise TokenAcquisitionError("Bearer token missing and no tokenUrl configured")

        header_name = config.get("headerName") or "Authorization"
        prefix = config.get("tokenPrefix")
        if prefix is None:
            prefix = "Bearer "
        result = draft.copy()
        result.headers[header_name] = f"{prefix}{token}"
        return result

    async def _dynamic_token(self, config: dict[str, Any]) -> str:
        token_url = config["tokenUrl"]
        cache_key = (token_url, str(config.get("clientId") or ""))
        cached = self.token_cache.get(cache_key)
        if cached:
            return cached

        body = config.get("loginPayload") or config.get("credentials") or {}
        logger.debug("Requesting bearer token from %s", token_url)
        try:
            response = await self._post(token_url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TokenAcquisitionError(f"Failed to generate bearer token: {exc}") from exc

        data = _decode_body(response)
        token = extract_token(data)
        if not token:
            raise TokenAcquisitionError(f"Token not found in response from {token_url}")

        self.token_cache.put(cache_key, token, _expires_in(data))
        return token


class OAuth2ClientCredentialsProvider(AuthProvider):
    auth_type = "OAUTH2_CLIENT_CREDENTIALS"
    required_fields = ("tokenUrl", "clientId", "clientSecret")

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        config = auth_config.config
        cache_key = (config["tokenUrl"], str(config["clientId"]))
        token = self.token_cache.get(cache_key)
        if not token:
            token = await self._fetch_token(config, cache_key)

        result = draft.copy()
        result.headers["Authorization"] = f"Bearer {token}"
        return result

    async def _fetch_token(self, config: dict[str, Any], cache_key: tuple[str, str]) -> str:
        form = {
            "grant_type": "client_credentials",
            "client_id": str(config["clientId"]),
            "client_secret": str(config["clientSecret"]),
        }
        if config.get("scope"):
            form["scope"] = str(config["scope"])

        logger.debug("Requesting client-credentials token from %s", config["tokenUrl"])
        try:
            response = await self._post(
                config["tokenUrl"],
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TokenAcquisitionError(f"Failed to obtain OAuth2 token: {exc}") from exc

        data = _decode_body(response)
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise TokenAcquisitionError(
                f"Failed to obtain OAuth2 token: no access_token in response from {config['tokenUrl']}"
            )
        self.token_cache.put(cache_key, token, _expires_in(data))
        return token


class CustomHeadersAuthProvider(AuthProvider):
    auth_type = "CUSTOM"
    required_fields = ("headers",)

    def validate(self, auth_config: AuthConfig) -> None:
        super().validate(auth_config)
        if not isinstance(auth_config.config["headers"], dict):
            raise AuthValidationError(
                self.auth_type, "headers", 'AuthType CUSTOM requires "headers" object in config'
            )

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        result = draft.copy()
        for name, value in auth_config.config.get("headers", {}).items():
            result.headers[name] = str(value)
        return result


class JwtAuthProvider(AuthProvider):
    """Validates JWT settings; signing is not implemented, so nothing is injected."""

    auth_type = "JWT"
    required_fields = ("issuer", "audience", "privateKeyRef")

    async def inject(
        self,
        draft: RequestDraft,
        auth_config: AuthConfig,
        context: ExecutionContext | None = None,
    ) -> RequestDraft:
        logger.debug("JWT auth is not implemented; request sent without credentials")
        return draft.copy()


