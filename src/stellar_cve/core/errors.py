"""
STELLAR CVE - Taxonomie des erreurs

Chaque erreur porte sa catégorie pour être reportée dans le status du noeud
plutôt que propagée entre noeuds.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Catégorie d'erreur, visible dans le status du noeud."""

    TRANSIENT_INFRA = "TransientInfra"
    POLICY_VIOLATION = "PolicyViolation"
    VERIFICATION_FAILURE = "VerificationFailure"
    IRRECOVERABLE_FAILURE = "IrrecoverableFailure"


class CVERemediationError(Exception):
    """Erreur de base du contrôleur de remédiation."""

    category: Optional[ErrorCategory] = None


class TransientInfraError(CVERemediationError):
    """Infrastructure indisponible: réessayé au prochain cycle, état inchangé."""

    category = ErrorCategory.TRANSIENT_INFRA


class FeedUnavailableError(TransientInfraError):
    """Feed de vulnérabilités injoignable."""

    pass


class ProbeError(TransientInfraError):
    """Sonde de santé d'une réplique injoignable ou en timeout."""

    pass


class OrchestrationError(TransientInfraError):
    """Erreur de l'API d'orchestration (création canary, mise à jour image)."""

    pass


class PolicyViolationError(CVERemediationError):
    """Aucune action possible (ex: CVE critique sans patch disponible)."""

    category = ErrorCategory.POLICY_VIOLATION


class VerificationFailureError(CVERemediationError):
    """Canary rejeté ou régression de santé pendant l'élargissement."""

    category = ErrorCategory.VERIFICATION_FAILURE


class IrrecoverableFailureError(CVERemediationError):
    """Le rollback n'a pas restauré la santé: intervention manuelle requise."""

    category = ErrorCategory.IRRECOVERABLE_FAILURE


class InvalidTransitionError(CVERemediationError):
    """Couple (état, événement) absent de la table de transitions."""

    def __init__(self, state: str, event: str) -> None:
        self.state = state
        self.event = event
        super().__init__(f"No transition from {state} on {event}")
