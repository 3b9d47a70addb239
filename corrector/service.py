"""Boundary adapter: turns a connector request into a stable response envelope."""

from __future__ import annotations

import logging
from typing import Any, Dict

from pydantic import Field
from pydantic import ValidationError as RequestValidationError

from .auth import AuthStrategyRegistry, resolve_auth_type
from .config.manager import ConfigManager
from .config.settings import settings
from .engine.audit import LoggerAuditSink
from .engine.context import CallOverrides
from .engine.orchestrator import CorrectorEngine
from .exceptions import (
    AuthMismatchError,
    AuthValidationError,
    ConfigurationError,
    ContractViolation,
    TokenAcquisitionError,
    TransportError,
)
from .mapping.models import AuthConfig, AuthType, CamelModel, MappingConfig

logger = logging.getLogger(__name__)


class ConnectorRequest(CamelModel):
    """Incoming call: which connector to run, with what payload and overrides."""

    connector_key: str | None = Field(None, description="Mapping id or name")
    operation: str | None = Field(None, description="Free-form operation tag for auditing")
    auth_type: str | None = Field(None, description="Call-time auth type override")
    auth_config: Dict[str, Any] | None = Field(None, description="Config for the override")
    header_data: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, Any] = Field(default_factory=dict)
    payload: Any = None


def success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "statusCode": 200, "data": data}


def error_envelope(status_code: int, error_type: str, **extra: Any) -> dict[str, Any]:
    return {"success": False, "statusCode": status_code, "errorType": error_type, **extra}


class CorrectorService:
    """Looks a mapping up, merges call-time auth and runs the engine."""

    def __init__(
        self,
        config_manager: ConfigManager,
        engine: CorrectorEngine | None = None,
        allow_none_auth_override: bool | None = None,
    ) -> None:
        self.config_manager = config_manager
        self.engine = engine or CorrectorEngine(audit_sink=LoggerAuditSink())
        self.allow_none_auth_override = (
            settings.allow_none_auth_override
            if allow_none_auth_override is None
            else allow_none_auth_override
        )

    @classmethod
    def from_config(cls, config_path: str | None = None) -> "CorrectorService":
        return cls(ConfigManager(config_path or settings.config_path))

    @property
    def auth_registry(self) -> AuthStrategyRegistry:
        return self.engine.auth_registry

    async def handle(self, request: ConnectorRequest | dict[str, Any]) -> dict[str, Any]:
        """Execute a connector request.

        Never raises: every failure is reported as a
        ``{success: false, statusCode, errorType, ...}`` envelope.
        """
        try:
            if isinstance(request, dict):
                request = ConnectorRequest.model_validate(request)
            mapping = self._lookup(request.connector_key)
            effective_auth = self.merge_auth(mapping.auth_config, request.auth_type, request.auth_config)
            if effective_auth is not None:
                self.auth_registry.validate(effective_auth)
            mapping = mapping.model_copy(update={"auth_config": effective_auth})

            overrides = CallOverrides(
                query_params=dict(request.query_params),
                headers=dict(request.header_data),
                operation=request.operation,
                incoming_token=_bearer_from_headers(request.header_data),
            )
            result = await self.engine.execute(mapping, request.payload, overrides)
            return success_envelope(result)

        except RequestValidationError as e:
            logger.error("Malformed connector request: %s", e)
            return error_envelope(
                400,
                "FRAMEWORK_ERROR",
                message=f"Invalid connector request: {e.error_count()} validation error(s)",
                details=e.errors(include_url=False, include_context=False),
            )
        except ConfigurationError as e:
            logger.error("Framework error: %s", e)
            return error_envelope(400, "FRAMEWORK_ERROR", message=str(e))
        except AuthMismatchError as e:
            logger.error("%s", e)
            return error_envelope(400, "AUTH_MISMATCH", message=str(e))
        except AuthValidationError as e:
            logger.error("Authentication validation failed: %s", e)
            return error_envelope(
                400, "AUTH_VALIDATION_FAILED", message=f"Authentication Validation Failed: {e}"
            )
        except ContractViolation as e:
            logger.error("%s", e)
            return error_envelope(422, "FRAMEWORK_ERROR", message=str(e), details=e.details)
        except TransportError as e:
            if e.status_code is not None:
                logger.error("Target API Error [%s]: %s", e.status_code, e.body)
                return error_envelope(e.status_code, "TARGET_API_ERROR", targetResponse=e.body)
            logger.error("Target API unreachable: %s", e)
            return error_envelope(502, "TARGET_API_ERROR", message=str(e))
        except TokenAcquisitionError as e:
            logger.error("Token acquisition failed: %s", e)
            return error_envelope(502, "TARGET_API_ERROR", message=str(e))
        except Exception as e:
            logger.exception("Internal corrector error: %s", e)
            return error_envelope(
                500, "INTERNAL_CORRECTOR_ERROR", message=str(e) or "Unknown internal error"
            )

    def _lookup(self, connector_key: str | None) -> MappingConfig:
        if not connector_key:
            raise ConfigurationError("connectorKey is required")
        mapping = self.config_manager.find_mapping(connector_key)
        if mapping is None:
            raise ConfigurationError(f"Invalid mapping configuration for: {connector_key}")
        return mapping

    def merge_auth(
        self,
        stored: AuthConfig | None,
        requested_type: str | None,
        requested_config: dict[str, Any] | None,
    ) -> AuthConfig | None:
        """Combine the stored auth config with a call-time override.

        A stored type other than NONE can only be "overridden" by the same
        type, in which case the call-time config replaces the stored one.
        """
        if not requested_type:
            return stored

        stored_type = resolve_auth_type(stored.auth_type if stored else None)
        requested = resolve_auth_type(requested_type)

        if stored_type == AuthType.NONE:
            if requested != AuthType.NONE and not self.allow_none_auth_override:
                raise AuthMismatchError(stored_type.value, requested.value)
        elif requested != stored_type:
            raise AuthMismatchError(stored_type.value, requested.value)

        if requested_config is None and stored is not None and requested == stored_type:
            config = dict(stored.config)
        else:
            config = dict(requested_config or {})
        return AuthConfig(auth_type=requested.value, config=config)


def _bearer_from_headers(headers: dict[str, str]) -> str | None:
    for name, value in headers.items():
        if name.lower() == "authorization" and isinstance(value, str):
            scheme, _, token = value.partition(" ")
            if scheme.lower() == "bearer" and token:
                return token.strip()
    return None
