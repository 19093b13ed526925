"""
STELLAR CVE - Rollout

Machine à états de remédiation, élargissement, rollback et planification.

Invariants couverts:
- ROLL_001-010: Table de transitions, exclusion par noeud, audit
- RBK_001-004: Rollback à tentative unique
"""

from .interfaces import (
    # Enums
    CVERolloutStatus,
    RolloutEvent,
    SideEffect,
    # Dataclasses
    Transition,
    RolloutRecord,
    # Interfaces
    IResourceStore,
    IReplicaUpdater,
    IRollbackExecutor,
)
from .transitions import TRANSITION_TABLE, next_transition
from .record_store import STATUS_KEY, RolloutRecordStore
from .rollback_executor import RollbackExecutor
from .controller import RolloutController
from .scheduler import FleetScheduler
from .status import NodeStatusView, build_status_view
from .resource_store import YamlResourceStore

__all__ = [
    # Enums
    "CVERolloutStatus",
    "RolloutEvent",
    "SideEffect",
    # Dataclasses
    "Transition",
    "RolloutRecord",
    # Interfaces
    "IResourceStore",
    "IReplicaUpdater",
    "IRollbackExecutor",
    # Implémentations
    "TRANSITION_TABLE",
    "next_transition",
    "STATUS_KEY",
    "RolloutRecordStore",
    "RollbackExecutor",
    "RolloutController",
    "FleetScheduler",
    "NodeStatusView",
    "build_status_view",
    "YamlResourceStore",
]
