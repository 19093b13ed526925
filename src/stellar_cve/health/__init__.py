"""
STELLAR CVE - Santé consensus

Invariants couverts:
- GATE_001-004: Calcul du ratio et décision du gate
- GATE_005: Gate jamais contourné (appliqué par le contrôleur)
- GATE_006: Convergence bornée par backoff
"""

from .interfaces import (
    ReplicaHealth,
    GateResult,
    IHealthProbe,
    IConsensusHealthGate,
)
from .consensus_gate import ConsensusHealthGate, HealthNotConvergedError
from .node_health import check_node_health

__all__ = [
    "ReplicaHealth",
    "GateResult",
    "IHealthProbe",
    "IConsensusHealthGate",
    "ConsensusHealthGate",
    "HealthNotConvergedError",
    "check_node_health",
]
