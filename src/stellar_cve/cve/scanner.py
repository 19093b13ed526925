"""
STELLAR CVE - CVE Scanner Adapter

Adaptateur entre le feed de vulnérabilités externe et le modèle de sévérité.

Invariants:
    SCAN_001: Scan interrogé par référence d'image courante
    SCAN_002: critical_only filtre la décision, jamais les findings
    SCAN_003: patched_version présent seulement si un fix qualifiant existe
    SCAN_004: Feed indisponible = échec retryable, aucun résultat partiel
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, List

from ..core.errors import FeedUnavailableError, TransientInfraError
from ..core.interfaces import CVEHandlingConfig, NodeResource
from .interfaces import (
    CVEDetectionResult,
    ICVEScanner,
    IVulnerabilityFeed,
    RawFinding,
    Vulnerability,
    VulnerabilitySeverity,
)
from .severity import parse_severity, sort_by_severity


class CVEScanner(ICVEScanner):
    """
    Scanner CVE par noeud.

    Les findings sont conservés intégralement, triés par sévérité;
    critical_only ne restreint que les findings qualifiants pour la
    recherche de l'image corrigée.
    """

    # Timeout d'un appel au feed
    FEED_TIMEOUT_SECONDS: float = 60.0

    def __init__(self, feed: IVulnerabilityFeed) -> None:
        self._feed = feed

    async def scan(self, node: NodeResource, config: CVEHandlingConfig) -> CVEDetectionResult:
        image_ref = node.image

        raw_findings = await self._call_feed(self._feed.scan(image_ref), image_ref)
        vulnerabilities = self._map_findings(raw_findings, image_ref)

        patched_version = None
        if any(v.is_fixable() for v in self.qualifying(vulnerabilities, config)):
            patched_version = await self._call_feed(self._feed.find_patched_image(image_ref), image_ref)

        return CVEDetectionResult(
            current_image=image_ref,
            vulnerabilities=tuple(sort_by_severity(vulnerabilities)),
            patched_version=patched_version,
            scan_timestamp=datetime.now(timezone.utc),
        )

    def qualifying(
        self, vulnerabilities: Iterable[Vulnerability], config: CVEHandlingConfig
    ) -> List[Vulnerability]:
        if config.critical_only:
            return [v for v in vulnerabilities if v.severity == VulnerabilitySeverity.CRITICAL]
        return list(vulnerabilities)

    async def _call_feed(self, call, image_ref: str):
        """SCAN_004: Toute erreur du feed devient FeedUnavailableError."""
        try:
            return await asyncio.wait_for(call, timeout=self.FEED_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            raise FeedUnavailableError(f"Vulnerability feed timeout for {image_ref}") from e
        except TransientInfraError:
            raise
        except Exception as e:
            raise FeedUnavailableError(f"Vulnerability feed error for {image_ref}: {e}") from e

    def _map_findings(self, raw_findings, image_ref: str) -> List[Vulnerability]:
        """SCAN_004: Une réponse du feed mal formée est traitée comme une panne du feed."""
        try:
            return [self._map_finding(raw, image_ref) for raw in raw_findings]
        except TransientInfraError:
            raise
        except Exception as e:
            raise FeedUnavailableError(f"Malformed feed response for {image_ref}: {e}") from e

    def _map_finding(self, raw: RawFinding, image_ref: str) -> Vulnerability:
        if not isinstance(raw, dict):
            raise FeedUnavailableError(f"Malformed finding for {image_ref}: {raw!r}")
        cve_id = raw.get("id")
        if not cve_id:
            raise FeedUnavailableError(f"Malformed finding without id for {image_ref}: {raw!r}")

        return Vulnerability(
            cve_id=str(cve_id),
            severity=parse_severity(raw.get("severity")),
            package=str(raw.get("package", "")),
            installed_version=str(raw.get("installed_version", "")),
            fixed_version=raw.get("fixed_version") or None,
            description=str(raw.get("description", "")),
        )
