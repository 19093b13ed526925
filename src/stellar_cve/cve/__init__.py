"""
STELLAR CVE - Détection CVE

Modèle de sévérité et adaptateur de scan.

Invariants couverts:
- SEV_001-004: Ordre, comptage, has_critical dérivé
- SCAN_001-006: Scan par image, critical_only, patch, erreurs feed
"""

from .interfaces import (
    # Enums
    VulnerabilitySeverity,
    # Data classes
    Vulnerability,
    CVECount,
    CVEDetectionResult,
    RawFinding,
    # Interfaces
    IVulnerabilityFeed,
    ICVEScanner,
)
from .severity import (
    parse_severity,
    count_vulnerabilities,
    sort_by_severity,
    highest_severity,
)
from .scanner import CVEScanner

__all__ = [
    "VulnerabilitySeverity",
    "Vulnerability",
    "CVECount",
    "CVEDetectionResult",
    "RawFinding",
    "IVulnerabilityFeed",
    "ICVEScanner",
    "parse_severity",
    "count_vulnerabilities",
    "sort_by_severity",
    "highest_severity",
    "CVEScanner",
]
