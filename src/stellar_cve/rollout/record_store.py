"""
STELLAR CVE - Arène des enregistrements de rollout

Invariants:
    ROLL_002: Au plus un rollout actif par noeud
    ROLL_008: Exclusion mutuelle par clé de noeud, pas de verrou global
"""

import asyncio
from typing import Dict, List

from ..core.interfaces import NodeResource
from .interfaces import RolloutRecord

# Clé du status de ressource portant l'enregistrement
STATUS_KEY = "cveRollout"


class RolloutRecordStore:
    """
    Enregistrements de rollout indexés par clé de noeud.

    Un verrou asyncio par clé: deux cycles du même noeud ne
    s'exécutent jamais en même temps, deux noeuds différents jamais
    ne s'attendent.
    """

    def __init__(self) -> None:
        self._records: Dict[str, RolloutRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, node_key: str) -> asyncio.Lock:
        lock = self._locks.get(node_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[node_key] = lock
        return lock

    def is_busy(self, node_key: str) -> bool:
        lock = self._locks.get(node_key)
        return lock is not None and lock.locked()

    def get(self, node_key: str) -> RolloutRecord:
        """Retourne l'enregistrement du noeud, Idle s'il n'existe pas."""
        record = self._records.get(node_key)
        if record is None:
            record = RolloutRecord(node_key=node_key)
            self._records[node_key] = record
        return record

    def get_or_restore(self, node: NodeResource) -> RolloutRecord:
        """
        Retourne l'enregistrement en mémoire, sinon le restaure depuis
        le status persisté de la ressource (reprise après redémarrage).
        """
        record = self._records.get(node.key)
        if record is not None:
            return record
        persisted = node.status.get(STATUS_KEY)
        if persisted:
            record = RolloutRecord.from_status(node.key, persisted)
            self._records[node.key] = record
            return record
        return self.get(node.key)

    def put(self, record: RolloutRecord) -> None:
        self._records[record.node_key] = record

    def keys(self) -> List[str]:
        return sorted(self._records)

    def snapshot(self) -> Dict[str, RolloutRecord]:
        return dict(self._records)
