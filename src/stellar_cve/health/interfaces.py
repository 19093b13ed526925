"""
STELLAR CVE - Interfaces Santé Consensus

Contrats de la sonde de santé par réplique et du gate de consensus.

Invariants:
    GATE_001: Ratio = répliques healthy / total des répliques
    GATE_002: Zéro réplique = gate en échec, ratio 0
    GATE_003: Sonde en échec comptée unhealthy, jamais exclue
    GATE_004: Gate passe si ratio >= seuil (borne inclusive)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..core.interfaces import NodeResource
from ..network.interfaces import RetryConfig


@dataclass(frozen=True)
class ReplicaHealth:
    """Réponse de la sonde pour une réplique."""

    healthy: bool
    synced: bool
    ledger_sequence: Optional[int] = None
    message: str = ""


@dataclass
class GateResult:
    """Décision go/no-go du gate de santé consensus."""

    healthy_ratio: float
    passed: bool
    threshold: float
    total_replicas: int
    healthy_replicas: int
    replicas: Dict[str, ReplicaHealth] = field(default_factory=dict)
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_tuple(self) -> Tuple[float, bool]:
        return self.healthy_ratio, self.passed

    def unhealthy_replicas(self) -> List[str]:
        return sorted(name for name, h in self.replicas.items() if not h.healthy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy_ratio": self.healthy_ratio,
            "passed": self.passed,
            "threshold": self.threshold,
            "total_replicas": self.total_replicas,
            "healthy_replicas": self.healthy_replicas,
            "unhealthy": self.unhealthy_replicas(),
            "evaluated_at": self.evaluated_at.isoformat(),
        }


class IHealthProbe(ABC):
    """
    Sonde de santé d'une réplique (rôle check_node_health).

    Interrogation seule; partagée avec l'outil d'inspection.
    """

    @abstractmethod
    async def check(self, node: NodeResource, replica: Optional[str] = None) -> ReplicaHealth:
        """
        Interroge une réplique (ou le noeud si replica est None).

        Raises:
            ProbeError: Réplique injoignable
        """
        pass


class IConsensusHealthGate(ABC):
    """Interface du gate de santé consensus."""

    @abstractmethod
    async def evaluate(self, node: NodeResource, threshold: float) -> GateResult:
        """Évalue toutes les répliques du noeud contre le seuil."""
        pass

    @abstractmethod
    async def wait_for_convergence(
        self,
        node: NodeResource,
        threshold: float,
        retry_config: Optional[RetryConfig] = None,
    ) -> GateResult:
        """
        Réévalue le gate avec backoff jusqu'au succès ou épuisement.

        Returns:
            Premier résultat passant, sinon le dernier évalué
        """
        pass
