"""
STELLAR CVE - Interfaces CVE

Modèle de sévérité et contrat de l'adaptateur de scan.

Invariants:
    SEV_001: Ordre strict Critical > High > Medium > Low > Unknown
    SEV_002: CVECount.total() égal à la somme des cinq compteurs
    SEV_003: has_critical dérivé de count.critical, jamais fourni
    SCAN_006: Résultat de scan immuable, remplacé par le suivant
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.interfaces import CVEHandlingConfig, NodeResource


class VulnerabilitySeverity(Enum):
    """
    SEV_001: Sévérité totalement ordonnée.

    L'ordre de déclaration donne le rang (Unknown le plus bas).
    """

    UNKNOWN = "Unknown"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __ge__(self, other: "VulnerabilitySeverity") -> bool:
        if not isinstance(other, VulnerabilitySeverity):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: "VulnerabilitySeverity") -> bool:
        if not isinstance(other, VulnerabilitySeverity):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: "VulnerabilitySeverity") -> bool:
        if not isinstance(other, VulnerabilitySeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: "VulnerabilitySeverity") -> bool:
        if not isinstance(other, VulnerabilitySeverity):
            return NotImplemented
        return self.rank < other.rank

    def as_str(self) -> str:
        return self.value


@dataclass(frozen=True)
class Vulnerability:
    """Une vulnérabilité détectée dans une image."""

    cve_id: str  # Ex: CVE-2024-1234
    severity: VulnerabilitySeverity
    package: str
    installed_version: str
    fixed_version: Optional[str]  # None si pas de fix
    description: str

    def is_fixable(self) -> bool:
        return self.fixed_version is not None


@dataclass(frozen=True)
class CVECount:
    """SEV_002: Compteurs par sévérité."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0

    def __post_init__(self) -> None:
        for name in ("critical", "high", "medium", "low", "unknown"):
            if getattr(self, name) < 0:
                raise ValueError(f"CVECount.{name} must be non-negative")

    @classmethod
    def from_vulnerabilities(cls, vulnerabilities: Iterable["Vulnerability"]) -> "CVECount":
        """SEV_002: Compte les vulnérabilités par sévérité."""
        tally = {severity: 0 for severity in VulnerabilitySeverity}
        for vuln in vulnerabilities:
            tally[vuln.severity] += 1
        return cls(
            critical=tally[VulnerabilitySeverity.CRITICAL],
            high=tally[VulnerabilitySeverity.HIGH],
            medium=tally[VulnerabilitySeverity.MEDIUM],
            low=tally[VulnerabilitySeverity.LOW],
            unknown=tally[VulnerabilitySeverity.UNKNOWN],
        )

    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low + self.unknown

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "unknown": self.unknown,
        }


@dataclass(frozen=True)
class CVEDetectionResult:
    """
    Instantané d'un scan (SCAN_006).

    cve_count est dérivé des vulnérabilités s'il n'est pas fourni;
    has_critical est toujours dérivé de cve_count (SEV_003).
    """

    current_image: str
    vulnerabilities: Tuple[Vulnerability, ...] = ()
    patched_version: Optional[str] = None
    scan_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cve_count: Optional[CVECount] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "vulnerabilities", tuple(self.vulnerabilities))
        if self.cve_count is None:
            object.__setattr__(self, "cve_count", CVECount.from_vulnerabilities(self.vulnerabilities))

    @property
    def has_critical(self) -> bool:
        return self.cve_count.critical > 0

    def requires_urgent_patch(self) -> bool:
        """Signal de détection: au moins une CVE critique, patch ou non."""
        return self.has_critical

    def can_patch(self) -> bool:
        """Signal d'action: une image corrigée est disponible."""
        return self.patched_version is not None

    def summary(self) -> Dict[str, Any]:
        """Résumé sérialisable pour status et audit."""
        return {
            "current_image": self.current_image,
            "patched_version": self.patched_version,
            "scan_timestamp": self.scan_timestamp.isoformat(),
            "cve_count": self.cve_count.to_dict(),
            "has_critical": self.has_critical,
            "cve_ids": [v.cve_id for v in self.vulnerabilities],
        }


# Finding brut du feed: {id, severity, package, installed_version, fixed_version?, description}
RawFinding = Dict[str, Any]


class IVulnerabilityFeed(ABC):
    """
    Feed de vulnérabilités externe (interrogation seule).

    Les erreurs d'accès sont levées telles quelles; l'adaptateur les
    convertit en FeedUnavailableError.
    """

    @abstractmethod
    async def scan(self, image_ref: str) -> List[RawFinding]:
        """Retourne les findings bruts pour une image."""
        pass

    @abstractmethod
    async def find_patched_image(self, image_ref: str) -> Optional[str]:
        """Retourne la référence de l'image corrigée, None si inexistante."""
        pass


class ICVEScanner(ABC):
    """Adaptateur de scan produisant un CVEDetectionResult par noeud."""

    @abstractmethod
    async def scan(self, node: NodeResource, config: CVEHandlingConfig) -> CVEDetectionResult:
        """
        Scanne l'image courante du noeud.

        Raises:
            FeedUnavailableError: Feed injoignable (SCAN_004)
        """
        pass

    @abstractmethod
    def qualifying(
        self, vulnerabilities: Iterable[Vulnerability], config: CVEHandlingConfig
    ) -> List[Vulnerability]:
        """SCAN_002: Vulnérabilités prises en compte pour la décision de patch."""
        pass
