"""
STELLAR CVE - Fleet Scheduler

Une boucle de contrôle indépendante par noeud, exécutées en parallèle.

Invariants:
    ROLL_008: Exclusion mutuelle par clé de noeud, pas de verrou global
    ROLL_009: Échec d'un noeud ne bloque jamais un autre noeud
"""

import asyncio
from typing import Dict, List, Optional, Union

from ..logging.structured_logger import StructuredLogger
from .controller import RolloutController
from .interfaces import IResourceStore, RolloutRecord

CycleOutcome = Union[RolloutRecord, None, BaseException]


class FleetScheduler:
    """
    Planificateur de la flotte.

    run_once() lance un cycle par noeud et attend la fin de tous;
    run_forever() garde une tâche par noeud, chacune cadencée par le
    scan_interval_secs du noeud.
    """

    def __init__(
        self,
        controller: RolloutController,
        store: IResourceStore,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._controller = controller
        self._store = store
        self._logger = logger or StructuredLogger("fleet-scheduler")
        self._tasks: Dict[str, asyncio.Task] = {}

    async def run_once(self, node_keys: Optional[List[str]] = None) -> Dict[str, CycleOutcome]:
        """
        Exécute un cycle pour chaque noeud en parallèle.

        Returns:
            Résultat par clé: enregistrement, None (cycle déjà en vol)
            ou l'exception levée par le cycle
        """
        keys = node_keys if node_keys is not None else await self._store.list_keys()
        outcomes = await asyncio.gather(
            *(self._controller.run_cycle(key) for key in keys),
            return_exceptions=True,
        )
        results: Dict[str, CycleOutcome] = dict(zip(keys, outcomes))
        for key, outcome in results.items():
            if isinstance(outcome, BaseException):
                self._logger.error(
                    "Cycle en échec",
                    node=key,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
        return results

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        """Boucle jusqu'à stop.set(); une tâche par noeud."""
        stop = stop or asyncio.Event()
        keys = await self._store.list_keys()
        self._logger.info("Démarrage de la flotte", nodes=len(keys))

        self._tasks = {key: asyncio.create_task(self._node_loop(key, stop)) for key in keys}
        try:
            await asyncio.gather(*self._tasks.values())
        finally:
            for task in self._tasks.values():
                task.cancel()
            self._tasks = {}

    async def _node_loop(self, node_key: str, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await self._controller.run_cycle(node_key)
            except Exception as e:
                self._logger.error(
                    "Cycle en échec",
                    node=node_key,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            interval = self._controller.scan_interval_for(node_key)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
