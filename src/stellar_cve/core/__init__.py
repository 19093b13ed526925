"""
STELLAR CVE - Core

Configuration des ressources, validation, cryptographie et taxonomie d'erreurs.

Invariants couverts:
- CFG_001: Seuils de configuration validés avant usage
- CFG_002: Toutes les erreurs de config retournées
- ROLL_010: Configuration lue une fois par cycle
"""

from .interfaces import (
    # Enums
    ValidationSeverity,
    NodeType,
    StellarNetwork,
    # Modèles
    ValidationError,
    ValidationResult,
    CVEHandlingConfig,
    NodeResource,
    # Interfaces
    IConfigLoader,
    IConfigValidator,
    ICryptoProvider,
)
from .errors import (
    ErrorCategory,
    CVERemediationError,
    TransientInfraError,
    FeedUnavailableError,
    ProbeError,
    OrchestrationError,
    PolicyViolationError,
    VerificationFailureError,
    IrrecoverableFailureError,
    InvalidTransitionError,
)
from .config_validator import ConfigValidator
from .config_loader import ConfigLoader, ConfigHolder, ConfigIntegrityError, parse_manifest
from .crypto_provider import CryptoProvider

__all__ = [
    # Enums
    "ValidationSeverity",
    "NodeType",
    "StellarNetwork",
    "ErrorCategory",
    # Modèles
    "ValidationError",
    "ValidationResult",
    "CVEHandlingConfig",
    "NodeResource",
    # Interfaces
    "IConfigLoader",
    "IConfigValidator",
    "ICryptoProvider",
    # Implementations
    "ConfigValidator",
    "ConfigLoader",
    "ConfigHolder",
    "CryptoProvider",
    "parse_manifest",
    # Exceptions
    "CVERemediationError",
    "TransientInfraError",
    "FeedUnavailableError",
    "ProbeError",
    "OrchestrationError",
    "PolicyViolationError",
    "VerificationFailureError",
    "IrrecoverableFailureError",
    "InvalidTransitionError",
    "ConfigIntegrityError",
]
