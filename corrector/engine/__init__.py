"""Execution engine: runs a mapping against its target API."""

from .audit import AuditRecord, AuditSink, LoggerAuditSink
from .context import CallOverrides, ExecutionContext, PipelineStage
from .orchestrator import CallResult, CorrectorEngine
from .schema import SchemaValidationResult, SchemaValidator
from .transport import HttpTransport, TransportResponse

__all__ = [
    "AuditRecord",
    "AuditSink",
    "LoggerAuditSink",
    "CallOverrides",
    "ExecutionContext",
    "PipelineStage",
    "CallResult",
    "CorrectorEngine",
    "SchemaValidationResult",
    "SchemaValidator",
    "HttpTransport",
    "TransportResponse",
]
