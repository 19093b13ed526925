"""
STELLAR CVE - Interfaces Rollout

États, événements et enregistrement de rollout par noeud,
contrats du store de ressources et de la mise à jour des répliques.

Invariants:
    ROLL_001: Transitions définies par table explicite (état, événement)
    ROLL_002: Au plus un rollout actif par noeud
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..canary.interfaces import CanaryTestStatus
from ..core.errors import CVERemediationError, ErrorCategory
from ..core.interfaces import NodeResource
from ..cve.interfaces import CVECount, CVEDetectionResult, Vulnerability, VulnerabilitySeverity


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class CVERolloutStatus(Enum):
    """Cycle de vie de la remédiation d'un noeud."""

    IDLE = "Idle"
    CANARY_TESTING = "CanaryTesting"
    ROLLING = "Rolling"
    COMPLETE = "Complete"
    ROLLING_BACK = "RollingBack"
    ROLLED_BACK = "RolledBack"
    FAILED = "Failed"

    def as_str(self) -> str:
        return self.value

    def is_active(self) -> bool:
        """Rollout en vol (ROLL_002)."""
        return self in (
            CVERolloutStatus.CANARY_TESTING,
            CVERolloutStatus.ROLLING,
            CVERolloutStatus.ROLLING_BACK,
        )

    def is_terminal(self) -> bool:
        return self in (
            CVERolloutStatus.COMPLETE,
            CVERolloutStatus.ROLLED_BACK,
            CVERolloutStatus.FAILED,
        )


class RolloutEvent(Enum):
    """Déclencheurs de transition."""

    SCAN_ACTIONABLE = "ScanActionable"  # Finding qualifiant avec patch
    SCAN_CLEAN = "ScanClean"  # Aucun finding actionnable
    CANARY_PASSED = "CanaryPassed"  # Canary Passed ET gate OK
    CANARY_REJECTED = "CanaryRejected"  # Canary Failed/Timeout ou gate KO
    CANARY_ABORTED = "CanaryAborted"  # Erreur infra avant verdict
    ROLLOUT_HEALTHY = "RolloutHealthy"  # Toutes répliques saines, image promue
    HEALTH_REGRESSED = "HealthRegressed"
    ROLLBACK_SUCCEEDED = "RollbackSucceeded"
    ROLLBACK_FAILED = "RollbackFailed"
    FAILURE_ACKNOWLEDGED = "FailureAcknowledged"


class SideEffect(Enum):
    """Actions déclenchées par une transition."""

    START_CANARY = "start_canary"
    WIDEN = "widen"
    ROLLBACK = "rollback"
    REQUIRE_INTERVENTION = "require_intervention"
    RESET_RECORD = "reset_record"


@dataclass(frozen=True)
class Transition:
    """Résultat de la fonction de transition."""

    source: CVERolloutStatus
    event: RolloutEvent
    target: CVERolloutStatus
    effects: Tuple[SideEffect, ...] = ()

    @property
    def changed(self) -> bool:
        return self.source != self.target


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RolloutRecord:
    """
    Enregistrement de rollout d'un noeud.

    Possédé exclusivement par la boucle de contrôle du noeud. Persisté
    dans le status de la ressource via to_status()/from_status().
    """

    node_key: str
    status: CVERolloutStatus = CVERolloutStatus.IDLE
    detection: Optional[CVEDetectionResult] = None  # Scan déclencheur
    last_scan: Optional[CVEDetectionResult] = None
    canary_status: Optional[CanaryTestStatus] = None
    canary_pass_rate: Optional[float] = None
    patched_image: Optional[str] = None
    last_known_good: Optional[str] = None
    state_entered_at: datetime = field(default_factory=_utcnow)
    advanced_replicas: List[str] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)
    last_error: Optional[str] = None
    last_error_category: Optional[ErrorCategory] = None
    manual_intervention_required: bool = False

    def enter(self, status: CVERolloutStatus, now: Optional[datetime] = None) -> None:
        self.status = status
        self.state_entered_at = now or _utcnow()

    def record_error(self, category: ErrorCategory, message: str) -> None:
        self.last_error = message
        self.last_error_category = category

    def record_failure(self, error: CVERemediationError) -> None:
        """Enregistre une erreur typée avec sa catégorie."""
        self.record_error(error.category or ErrorCategory.TRANSIENT_INFRA, str(error))

    def clear_error(self) -> None:
        self.last_error = None
        self.last_error_category = None

    def reset(self) -> None:
        """Remet l'enregistrement à zéro, dernier scan et alertes conservés."""
        self.detection = None
        self.canary_status = None
        self.canary_pass_rate = None
        self.patched_image = None
        self.last_known_good = None
        self.advanced_replicas = []
        self.manual_intervention_required = False
        self.clear_error()

    def to_status(self) -> Dict[str, Any]:
        """Forme sérialisable stockée dans le status de la ressource."""
        return {
            "cveRolloutStatus": self.status.as_str(),
            "stateEnteredAt": self.state_entered_at.isoformat(),
            "detection": detection_to_dict(self.detection),
            "lastScan": detection_to_dict(self.last_scan),
            "canaryStatus": self.canary_status.as_str() if self.canary_status else None,
            "canaryPassRate": self.canary_pass_rate,
            "patchedImage": self.patched_image,
            "lastKnownGood": self.last_known_good,
            "advancedReplicas": list(self.advanced_replicas),
            "alerts": list(self.alerts),
            "lastError": self.last_error,
            "lastErrorCategory": (
                self.last_error_category.value if self.last_error_category else None
            ),
            "manualInterventionRequired": self.manual_intervention_required,
        }

    @classmethod
    def from_status(cls, node_key: str, status: Dict[str, Any]) -> "RolloutRecord":
        """Reconstruit un enregistrement depuis le status persisté."""
        category = status.get("lastErrorCategory")
        canary = status.get("canaryStatus")
        entered = status.get("stateEnteredAt")
        return cls(
            node_key=node_key,
            status=CVERolloutStatus(status.get("cveRolloutStatus", "Idle")),
            detection=detection_from_dict(status.get("detection")),
            last_scan=detection_from_dict(status.get("lastScan")),
            canary_status=CanaryTestStatus(canary) if canary else None,
            canary_pass_rate=status.get("canaryPassRate"),
            patched_image=status.get("patchedImage"),
            last_known_good=status.get("lastKnownGood"),
            state_entered_at=datetime.fromisoformat(entered) if entered else _utcnow(),
            advanced_replicas=list(status.get("advancedReplicas", [])),
            alerts=list(status.get("alerts", [])),
            last_error=status.get("lastError"),
            last_error_category=ErrorCategory(category) if category else None,
            manual_intervention_required=bool(status.get("manualInterventionRequired", False)),
        )


def detection_to_dict(detection: Optional[CVEDetectionResult]) -> Optional[Dict[str, Any]]:
    if detection is None:
        return None
    return {
        "currentImage": detection.current_image,
        "patchedVersion": detection.patched_version,
        "scanTimestamp": detection.scan_timestamp.isoformat(),
        "cveCount": detection.cve_count.to_dict(),
        "hasCritical": detection.has_critical,
        "vulnerabilities": [
            {
                "id": v.cve_id,
                "severity": v.severity.as_str(),
                "package": v.package,
                "installed_version": v.installed_version,
                "fixed_version": v.fixed_version,
                "description": v.description,
            }
            for v in detection.vulnerabilities
        ],
    }


def detection_from_dict(data: Optional[Dict[str, Any]]) -> Optional[CVEDetectionResult]:
    if not data:
        return None
    vulnerabilities = tuple(
        Vulnerability(
            cve_id=v["id"],
            severity=VulnerabilitySeverity(v["severity"]),
            package=v.get("package", ""),
            installed_version=v.get("installed_version", ""),
            fixed_version=v.get("fixed_version"),
            description=v.get("description", ""),
        )
        for v in data.get("vulnerabilities", [])
    )
    count = data.get("cveCount")
    return CVEDetectionResult(
        current_image=data["currentImage"],
        vulnerabilities=vulnerabilities,
        patched_version=data.get("patchedVersion"),
        scan_timestamp=datetime.fromisoformat(data["scanTimestamp"]),
        cve_count=CVECount(**count) if count else None,
    )


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IResourceStore(ABC):
    """Store des ressources StellarNode (lecture + sous-ressource status)."""

    @abstractmethod
    async def get_node(self, node_key: str) -> NodeResource:
        """
        Lit la ressource courante.

        Raises:
            OrchestrationError: API indisponible
        """
        pass

    @abstractmethod
    async def list_keys(self) -> List[str]:
        pass

    @abstractmethod
    async def patch_status(self, node_key: str, status: Dict[str, Any]) -> None:
        """Fusionne des champs dans le status de la ressource."""
        pass

    @abstractmethod
    async def set_desired_image(self, node_key: str, image: str) -> None:
        pass


class IReplicaUpdater(ABC):
    """Mise à jour de l'image d'une réplique."""

    @abstractmethod
    async def set_replica_image(self, node: NodeResource, replica: str, image: str) -> None:
        """
        Raises:
            OrchestrationError: Mise à jour refusée ou API indisponible
        """
        pass


class IRollbackExecutor(ABC):
    """Restauration de la dernière image saine connue."""

    @abstractmethod
    async def rollback(
        self,
        node: NodeResource,
        record: RolloutRecord,
        threshold: Optional[float] = None,
    ) -> CVERolloutStatus:
        """
        Restaure les répliques avancées et revérifie la santé.

        Returns:
            RolledBack si la santé revient, Failed sinon
        """
        pass
