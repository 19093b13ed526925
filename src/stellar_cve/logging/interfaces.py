"""
STELLAR CVE - Logging - Interfaces

Interfaces pour logging structuré.

Invariants:
    LOG_001: Logs JSON structurés avec noeud et corrélation
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """
    Niveaux de log standard.

    Ordre de sévérité: DEBUG < INFO < WARN < ERROR < CRITICAL
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def get_priority(cls, level: "LogLevel") -> int:
        """Retourne la priorité du niveau (plus haut = plus sévère)."""
        return list(cls).index(level)


@dataclass
class LogEntry:
    """
    LOG_001: Entrée de log avec champs obligatoires.

    Le champ node porte la clé namespace/name de la ressource
    (ou "fleet" pour le scheduler).
    """

    timestamp: str  # ISO 8601 UTC
    level: LogLevel
    correlation_id: str  # Un par cycle de noeud
    node: str
    message: str
    extra: Dict[str, Any] = field(default_factory=dict)
    logger_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convertit en dictionnaire."""
        result = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "correlation_id": self.correlation_id,
            "node": self.node,
            "message": self.message,
        }
        if self.logger_name:
            result["logger"] = self.logger_name
        if self.extra:
            result["extra"] = self.extra
        return result

    def to_json(self) -> str:
        """LOG_001: Convertit en JSON structuré."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class LogConfig:
    """Configuration du logger structuré."""

    min_level: LogLevel = LogLevel.INFO
    include_extra: bool = True
    default_node: str = "fleet"
    max_entries: int = 10000  # Taille du buffer mémoire


class IStructuredLogger(ABC):
    """Interface logger JSON structuré."""

    @abstractmethod
    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        node: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Crée une entrée structurée.

        Returns:
            LogEntry créé ou None si filtré par min_level
        """
        pass

    @abstractmethod
    def get_entries(self) -> List[LogEntry]:
        """Retourne les entrées capturées."""
        pass
