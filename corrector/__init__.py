"""Mapping Corrector - configuration-driven integration engine."""

__version__ = "0.1.0"

from .engine import CorrectorEngine
from .service import ConnectorRequest, CorrectorService

__all__ = ["__version__", "CorrectorEngine", "ConnectorRequest", "CorrectorService"]
