"""
STELLAR CVE - Vue de status par noeud

Vue en lecture seule consommée par l'outil d'inspection; le rendu
(table, JSON, YAML) reste à sa charge.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..core.interfaces import NodeResource
from ..health.interfaces import IHealthProbe
from ..health.node_health import check_node_health
from .interfaces import RolloutRecord


class NodeStatusView(BaseModel):
    """Status d'un noeud, enrichi de l'état de remédiation CVE."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    type: str
    network: str
    phase: str
    healthy: bool
    synced: bool
    ledger_sequence: Optional[int] = None
    message: str = ""
    cve_rollout_status: Optional[str] = None
    canary_status: Optional[str] = None
    last_scan: Optional[Dict[str, Any]] = None
    alerts: list[str] = []


async def build_status_view(
    node: NodeResource,
    probe: IHealthProbe,
    record: Optional[RolloutRecord] = None,
) -> NodeStatusView:
    """Construit la vue avec la même sonde que le gate de santé."""
    health = await check_node_health(node, probe)
    return NodeStatusView(
        name=node.name,
        namespace=node.namespace,
        type=node.node_type.value,
        network=node.network.value,
        phase=str(node.status.get("phase") or "Unknown"),
        healthy=health.healthy,
        synced=health.synced,
        ledger_sequence=health.ledger_sequence,
        message=health.message,
        cve_rollout_status=record.status.as_str() if record else None,
        canary_status=(
            record.canary_status.as_str() if record and record.canary_status else None
        ),
        last_scan=record.last_scan.summary() if record and record.last_scan else None,
        alerts=list(record.alerts) if record else [],
    )
