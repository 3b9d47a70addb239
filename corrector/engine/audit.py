"""Audit records emitted once per invocation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..mapping.models import MappingConfig

logger = logging.getLogger("corrector.audit")


@dataclass
class AuditRecord:
    mapping_id: str
    mapping_name: str | None = None
    source_system: str | None = None
    target_system: str | None = None
    operation: str | None = None
    method: str | None = None
    url: str | None = None
    status_code: int | None = None
    latency_ms: int | None = None
    request_payload: Any = None
    response_payload: Any = None
    error: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_mapping(cls, mapping: MappingConfig, payload: Any, operation: str | None = None) -> "AuditRecord":
        return cls(
            mapping_id=mapping.id,
            mapping_name=mapping.name or mapping.id,
            source_system=mapping.source_system,
            target_system=mapping.target_system,
            operation=operation,
            method=mapping.target_api.method,
            url=mapping.target_api.url,
            request_payload=payload,
        )

    @property
    def succeeded(self) -> bool:
        return self.error is None


class AuditSink(ABC):
    """Destination for audit records. Failures here never affect a correction."""

    @abstractmethod
    async def record(self, record: AuditRecord) -> None:
        pass


class LoggerAuditSink(AuditSink):
    """Writes a one-line summary per invocation to the log."""

    async def record(self, record: AuditRecord) -> None:
        if record.error:
            logger.error(
                "[AUDIT FAIL] %s %s - %sms - Error: %s",
                record.method,
                record.mapping_name,
                record.latency_ms,
                record.error.get("message"),
            )
        else:
            logger.info(
                "[AUDIT SUCCESS] %s %s - %sms - Status: %s",
                record.method,
                record.mapping_name,
                record.latency_ms,
                record.status_code,
            )
