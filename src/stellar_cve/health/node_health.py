"""
STELLAR CVE - Santé agrégée d'un noeud

Vue synthétique (healthy, synced, ledger_sequence, message) utilisée par
le status du noeud et l'outil d'inspection.
"""

from typing import Optional

from ..core.interfaces import NodeResource
from .interfaces import IHealthProbe, ReplicaHealth


async def check_node_health(
    node: NodeResource,
    probe: IHealthProbe,
    replica: Optional[str] = None,
) -> ReplicaHealth:
    """
    Interroge la sonde pour un noeud ou une réplique.

    Toute erreur de sonde, typée ou non, est rendue comme un état unhealthy avec son
    message, pour que la vue reste affichable.
    """
    try:
        return await probe.check(node, replica)
    except Exception as e:
        return ReplicaHealth(healthy=False, synced=False, message=str(e))
