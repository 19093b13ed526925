"""
STELLAR CVE - Core Interfaces
Contrats et modèles de configuration des ressources StellarNode.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class ValidationSeverity(Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


class ValidationError(BaseModel):
    """Erreur de validation d'une règle de configuration."""

    rule_id: str
    message: str
    location: str
    value: Optional[str] = None
    severity: ValidationSeverity = ValidationSeverity.BLOCKING


class ValidationResult(BaseModel):
    """Résultat de validation d'un manifeste."""

    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    checked_at: datetime


class NodeType(Enum):
    """Type de noeud Stellar."""

    VALIDATOR = "Validator"
    HORIZON = "Horizon"
    SOROBAN_RPC = "SorobanRpc"


class StellarNetwork(Enum):
    """Réseau Stellar ciblé par le noeud."""

    MAINNET = "Mainnet"
    TESTNET = "Testnet"
    FUTURENET = "Futurenet"
    CUSTOM = "Custom"


class CVEHandlingConfig(BaseModel):
    """
    Politique de remédiation CVE déclarée par la ressource.

    CFG_001: Seuils bornés (pass rate en %, ratio santé en fraction).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = True
    scan_interval_secs: int = Field(default=3600, gt=0, alias="scanIntervalSecs")
    critical_only: bool = Field(default=False, alias="criticalOnly")
    canary_test_timeout_secs: int = Field(default=300, gt=0, alias="canaryTestTimeoutSecs")
    canary_pass_rate_threshold: float = Field(
        default=100.0, ge=0.0, le=100.0, alias="canaryPassRateThreshold"
    )
    enable_auto_rollback: bool = Field(default=True, alias="enableAutoRollback")
    consensus_health_threshold: float = Field(
        default=0.95, ge=0.0, le=1.0, alias="consensusHealthThreshold"
    )


@dataclass
class NodeResource:
    """Ressource StellarNode telle que lue depuis le store."""

    name: str
    namespace: str
    node_type: NodeType
    network: StellarNetwork
    image: str  # Image désirée courante
    replicas: List[str]  # Noms des répliques (pods)
    cve_handling: Optional[CVEHandlingConfig] = None
    status: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Identité du noeud: namespace/name."""
        return f"{self.namespace}/{self.name}"


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge les ressources StellarNode depuis leurs manifestes."""

    @abstractmethod
    def load(self, node_key: str) -> NodeResource:
        """
        Charge la ressource d'un noeud.

        Raises:
            ConfigIntegrityError: Si manifeste absent ou invalide
        """
        pass

    @abstractmethod
    def list_keys(self) -> List[str]:
        """Liste les clés namespace/name disponibles."""
        pass


class IConfigValidator(ABC):
    """Valide un manifeste contre les règles de configuration."""

    @abstractmethod
    def validate(self, manifest: dict[str, Any]) -> ValidationResult:
        """
        Valide un manifeste contre TOUTES les règles.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        pass


class ICryptoProvider(ABC):
    """Signature et hachage des événements d'audit."""

    @abstractmethod
    def sign(self, data: bytes, key_id: str) -> bytes:
        """
        Signe des données avec ECDSA-P384.

        Returns:
            Signature DER-encoded
        """
        pass

    @abstractmethod
    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        """Vérifie une signature ECDSA-P384."""
        pass

    @abstractmethod
    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-384.

        Returns:
            Hash hex string (96 caractères)
        """
        pass
