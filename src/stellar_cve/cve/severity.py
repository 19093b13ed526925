"""
STELLAR CVE - Modèle de sévérité

Fonctions pures de classement et d'agrégation.

Invariants:
    SEV_001: Ordre strict Critical > High > Medium > Low > Unknown
    SEV_004: Comptage pur, sans effet de bord
"""

from typing import Iterable, List, Optional

from .interfaces import CVECount, Vulnerability, VulnerabilitySeverity

# Alias courants des scanners (Trivy, Grype, NVD)
_SEVERITY_ALIASES = {
    "critical": VulnerabilitySeverity.CRITICAL,
    "high": VulnerabilitySeverity.HIGH,
    "important": VulnerabilitySeverity.HIGH,
    "medium": VulnerabilitySeverity.MEDIUM,
    "moderate": VulnerabilitySeverity.MEDIUM,
    "low": VulnerabilitySeverity.LOW,
    "negligible": VulnerabilitySeverity.LOW,
}


def parse_severity(value: Optional[str]) -> VulnerabilitySeverity:
    """Parse une sévérité brute; toute valeur non reconnue donne Unknown."""
    if not value:
        return VulnerabilitySeverity.UNKNOWN
    return _SEVERITY_ALIASES.get(value.strip().lower(), VulnerabilitySeverity.UNKNOWN)


def count_vulnerabilities(vulnerabilities: Iterable[Vulnerability]) -> CVECount:
    """SEV_002: Compte les vulnérabilités par sévérité."""
    return CVECount.from_vulnerabilities(vulnerabilities)


def sort_by_severity(vulnerabilities: Iterable[Vulnerability]) -> List[Vulnerability]:
    """Trie du plus sévère au moins sévère; ordre stable à sévérité égale."""
    return sorted(vulnerabilities, key=lambda v: v.severity, reverse=True)


def highest_severity(vulnerabilities: Iterable[Vulnerability]) -> Optional[VulnerabilitySeverity]:
    """Sévérité maximale, None si liste vide."""
    return max((v.severity for v in vulnerabilities), default=None)
