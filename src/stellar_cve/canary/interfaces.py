"""
STELLAR CVE - Interfaces Canary

Contrats du déploiement canary et de l'exécution des tests.

Invariants:
    CANARY_001: Canary démarre en Pending puis Running une fois prêt
    CANARY_002: Timeout mesuré depuis l'entrée en Running
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.interfaces import NodeResource


class CanaryTestStatus(Enum):
    """État d'une évaluation canary."""

    PENDING = "Pending"
    RUNNING = "Running"
    PASSED = "Passed"
    FAILED = "Failed"
    TIMEOUT = "Timeout"

    def as_str(self) -> str:
        return self.value

    def is_terminal(self) -> bool:
        return self in (CanaryTestStatus.PASSED, CanaryTestStatus.FAILED, CanaryTestStatus.TIMEOUT)


@dataclass(frozen=True)
class TestRunReport:
    """Échantillon retourné par l'exécuteur de tests."""

    __test__ = False  # Pas une classe de test pytest

    total: int
    passed: int
    complete: bool = True

    @property
    def pass_rate(self) -> float:
        """Pourcentage de tests réussis (0-100); 0 si aucun test."""
        if self.total <= 0:
            return 0.0
        return self.passed * 100.0 / self.total


@dataclass
class CanaryResult:
    """Résultat d'une évaluation canary."""

    status: CanaryTestStatus
    patched_image: str
    pass_rate: Optional[float] = None
    canary_replica: Optional[str] = None
    started_at: Optional[datetime] = None  # Entrée en Running
    finished_at: Optional[datetime] = None
    message: str = ""
    history: List[CanaryTestStatus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.as_str(),
            "patched_image": self.patched_image,
            "pass_rate": self.pass_rate,
            "canary_replica": self.canary_replica,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "message": self.message,
        }


class ICanaryDeployer(ABC):
    """Mécanisme de déploiement d'une réplique canary."""

    @abstractmethod
    async def create_canary(self, node: NodeResource, image: str) -> str:
        """
        Crée une réplique unique sur l'image donnée.

        Returns:
            Nom de la réplique canary

        Raises:
            OrchestrationError: Erreur API d'orchestration
        """
        pass

    @abstractmethod
    async def is_ready(self, node: NodeResource, replica: str) -> bool:
        """Indique si la réplique canary sert le trafic."""
        pass

    @abstractmethod
    async def delete_canary(self, node: NodeResource, replica: str) -> None:
        """Supprime la réplique canary."""
        pass


class ITestExecutor(ABC):
    """Exécuteur de tests comportementaux externe."""

    @abstractmethod
    async def run(self, node: NodeResource, replica: str) -> TestRunReport:
        """
        Exécute (ou échantillonne) les tests contre la réplique.

        Un rapport complete=False signifie que les tests sont en cours.
        """
        pass


class ICanaryTestRunner(ABC):
    """Interface du runner canary."""

    @abstractmethod
    async def run_canary(
        self,
        node: NodeResource,
        patched_image: str,
        timeout: float,
        pass_rate_threshold: float,
    ) -> CanaryResult:
        """
        Déploie et évalue un canary.

        Raises:
            OrchestrationError: Canary jamais créé ou jamais prêt
        """
        pass
