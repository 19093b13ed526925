"""
STELLAR CVE - Logging - Structured Logger

Logger JSON structuré utilisé par le contrôleur de remédiation.

Invariants:
    LOG_001: Logs JSON structurés avec noeud et corrélation
"""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, List, Optional

from .interfaces import IStructuredLogger, LogConfig, LogEntry, LogLevel


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant - LOG_001."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name} - LOG_001")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré.

    Les entrées sont conservées dans un buffer borné (max_entries) et
    envoyées en JSON à output_handler si fourni.

    Example:
        logger = StructuredLogger("rollout-controller")
        node_log = logger.with_context(node="stellar/validator-1")
        node_log.info("Scan terminé", critical=1)
    """

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        output_handler: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Args:
            name: Nom du logger (identifiant composant)
            config: Configuration optionnelle
            output_handler: Sortie JSON (stderr, fichier, tests)

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig()
        self._output_handler = output_handler
        self._entries: Deque[LogEntry] = deque(maxlen=self._config.max_entries)

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> LogConfig:
        return self._config

    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        node: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        LOG_001: Crée un log structuré JSON.

        Raises:
            MissingRequiredFieldError: Si message vide
        """
        if LogLevel.get_priority(level) < LogLevel.get_priority(self._config.min_level):
            return None

        if not message:
            raise MissingRequiredFieldError("message")

        entry = LogEntry(
            timestamp=self._generate_timestamp(),
            level=level,
            correlation_id=correlation_id or str(uuid.uuid4()),
            node=node or self._config.default_node,
            message=message,
            extra=dict(extra) if self._config.include_extra else {},
            logger_name=self._name,
        )
        self._entries.append(entry)

        if self._output_handler:
            self._output_handler(entry.to_json())

        return entry

    def _generate_timestamp(self) -> str:
        """Format: 2024-12-04T14:30:00.123Z"""
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear_entries(self) -> None:
        self._entries.clear()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        return [e for e in self._entries if e.level == level]

    def get_entries_by_node(self, node: str) -> List[LogEntry]:
        """Filtre les entrées d'un noeud (clé namespace/name)."""
        return [e for e in self._entries if e.node == node]

    def get_entries_by_correlation(self, correlation_id: str) -> List[LogEntry]:
        return [e for e in self._entries if e.correlation_id == correlation_id]

    def with_context(
        self,
        node: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> "ContextualLogger":
        """
        Crée un logger lié à un noeud et à un cycle.

        Un correlation_id est généré si absent: toutes les entrées
        d'un même cycle partagent alors le même identifiant.
        """
        return ContextualLogger(
            self,
            node=node or self._config.default_node,
            correlation_id=correlation_id or str(uuid.uuid4()),
        )


class ContextualLogger:
    """
    Logger avec contexte pré-défini.

    Fixe node et correlation_id pour un cycle de contrôle.
    """

    def __init__(self, logger: StructuredLogger, node: str, correlation_id: str) -> None:
        self._logger = logger
        self.node = node
        self.correlation_id = correlation_id

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        return self._logger.log(
            level,
            message,
            correlation_id=self.correlation_id,
            node=self.node,
            **extra,
        )

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)
