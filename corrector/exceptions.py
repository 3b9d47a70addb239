"""Exception taxonomy for the corrector engine."""

from __future__ import annotations

from typing import Any


class CorrectorError(Exception):
    """Base exception for corrector errors."""
    pass


class ConfigurationError(CorrectorError):
    """Raised when a mapping is missing or unusable. Never retried."""
    pass


class ValidationError(CorrectorError):
    """Raised when a configuration or payload fails validation before any network call."""
    pass


class AuthValidationError(ValidationError):
    """Raised when an auth config is missing a required field."""

    def __init__(self, auth_type: str, field: str, message: str | None = None) -> None:
        self.auth_type = auth_type
        self.field = field
        super().__init__(message or f'AuthType {auth_type} requires "{field}" in config')


class AuthMismatchError(CorrectorError):
    """Raised when a call-time auth type does not match the stored one."""

    def __init__(self, stored_type: str, requested_type: str) -> None:
        self.stored_type = stored_type
        self.requested_type = requested_type
        super().__init__(
            f"Auth type mismatch: mapping requires {stored_type}, request provided {requested_type}"
        )


class ContractViolation(ValidationError):
    """Raised when a body does not satisfy its JSON schema."""

    direction = "body"

    def __init__(self, details: list[dict[str, Any]]) -> None:
        self.details = details
        summary = "; ".join(d.get("message", "") for d in details[:3])
        super().__init__(f"{self.direction.capitalize()} contract violated: {summary}")


class RequestContractViolation(ContractViolation):
    direction = "request"


class ResponseContractViolation(ContractViolation):
    direction = "response"


class TokenAcquisitionError(CorrectorError):
    """Raised when a dynamic credential could not be obtained."""
    pass


class TransportError(CorrectorError):
    """Raised for network failures and non-2xx replies from the target API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
        url: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(message)


class ExpressionError(CorrectorError):
    """Raised by the sandboxed expression evaluator."""
    pass
