"""
STELLAR CVE - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from pathlib import Path
from typing import Callable, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from stellar_cve.audit.interfaces import IAuditEmitter
from stellar_cve.core.interfaces import CVEHandlingConfig, NodeResource, NodeType, StellarNetwork
from stellar_cve.cve.interfaces import Vulnerability, VulnerabilitySeverity
from stellar_cve.network.interfaces import RetryConfig


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def all_invariants() -> dict:
    """Retourne tous les invariants."""
    from stellar_cve.invariants.rules import ALL_INVARIANTS
    return ALL_INVARIANTS


@pytest.fixture
def make_node() -> Callable[..., NodeResource]:
    """Fabrique de NodeResource (validator mainnet, N répliques)."""

    def _make(
        replicas: int = 3,
        name: str = "validator-1",
        namespace: str = "stellar",
        image: str = "stellar/core:20.0.0",
        config: Optional[CVEHandlingConfig] = None,
        replica_names: Optional[List[str]] = None,
    ) -> NodeResource:
        return NodeResource(
            name=name,
            namespace=namespace,
            node_type=NodeType.VALIDATOR,
            network=StellarNetwork.MAINNET,
            image=image,
            replicas=replica_names if replica_names is not None else [f"{name}-{i}" for i in range(replicas)],
            cve_handling=config,
        )

    return _make


@pytest.fixture
def make_vuln() -> Callable[..., Vulnerability]:
    """Fabrique de Vulnerability."""

    def _make(
        severity: VulnerabilitySeverity = VulnerabilitySeverity.CRITICAL,
        cve_id: str = "CVE-2024-0001",
        fixed_version: Optional[str] = "1.2.4",
    ) -> Vulnerability:
        return Vulnerability(
            cve_id=cve_id,
            severity=severity,
            package="libssl",
            installed_version="1.2.3",
            fixed_version=fixed_version,
            description="test finding",
        )

    return _make


@pytest.fixture
def mock_audit_emitter():
    """AuditEmitter mocké pour tests."""
    emitter = Mock(spec=IAuditEmitter)
    emitter.emit_event = AsyncMock()
    return emitter


@pytest.fixture
def fast_convergence() -> RetryConfig:
    """Convergence sans attente pour les tests."""
    return RetryConfig(max_attempts=2, initial_delay=0.0, max_delay=0.0)
