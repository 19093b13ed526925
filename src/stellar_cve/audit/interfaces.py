"""
STELLAR CVE - Interfaces Audit

Contrats pour la traçabilité des cycles de remédiation: chaque scan,
transition, canary, gate et rollback produit un événement signé.

Invariants:
    ROLL_004: Chaque transition auditée avec le scan déclencheur
    AUDIT_001: Événements d'audit hachés SHA-384 et signés
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class AuditEventType(Enum):
    """Types d'événements d'audit de remédiation."""
    SCAN_COMPLETED = "scan_completed"
    SCAN_FAILED = "scan_failed"
    POLICY_VIOLATION = "policy_violation"
    ROLLOUT_TRANSITION = "rollout_transition"
    CANARY_FINISHED = "canary_finished"
    HEALTH_GATE = "health_gate"
    ROLLBACK_FINISHED = "rollback_finished"


@dataclass(frozen=True)
class AuditEvent:
    """
    Événement d'audit signé (AUDIT_001).

    Immutable pour garantir intégrité après signature.
    """
    event_id: str
    event_type: AuditEventType
    timestamp: datetime
    node_key: str
    actor: str
    action: str
    metadata: Dict[str, Any]
    signature: Optional[str] = None  # Signature ECDSA-P384 base64
    hash_value: Optional[str] = None  # SHA-384 de l'événement


class IAuditEmitter(ABC):
    """
    Interface émetteur d'événements d'audit.

    Responsabilités:
        - Création et signature des événements (AUDIT_001)
        - Journal consultable par noeud (ROLL_004)
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: AuditEventType,
        node_key: str,
        action: str,
        metadata: Optional[Dict[str, Any]] = None,
        actor: str = "cve-controller",
    ) -> AuditEvent:
        """
        Émet un événement d'audit signé.

        Raises:
            AuditEmitterError: Erreur création/signature
        """
        pass

    @abstractmethod
    def verify_event_signature(self, event: AuditEvent) -> bool:
        """Vérifie la signature d'un événement."""
        pass

    @abstractmethod
    def compute_event_hash(self, event: AuditEvent) -> str:
        """Calcule le hash SHA-384 de la forme canonique."""
        pass

    @abstractmethod
    def get_events(
        self,
        node_key: str,
        event_type: Optional[AuditEventType] = None,
    ) -> List[AuditEvent]:
        """Retourne le journal d'un noeud, filtré par type si fourni."""
        pass
