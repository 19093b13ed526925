"""
STELLAR CVE - Logging

Logging JSON structuré (LOG_001): timestamp ISO 8601 UTC, niveau,
correlation_id par cycle, clé du noeud, message et champs libres.
"""

from .interfaces import (
    LogLevel,
    LogEntry,
    LogConfig,
    IStructuredLogger,
)
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    MissingRequiredFieldError,
)

__all__ = [
    "LogLevel",
    "LogEntry",
    "LogConfig",
    "IStructuredLogger",
    "StructuredLogger",
    "ContextualLogger",
    "MissingRequiredFieldError",
]
