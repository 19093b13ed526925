"""
STELLAR CVE - Rollback Executor

Invariants:
    RBK_001: Rollback vers la dernière image saine connue
    RBK_002: Gate santé réévalué après rollback
    RBK_003: Une seule tentative de rollback, escalade externe
    RBK_004: Rollback sans retour à la santé = Failed manuel
"""

from typing import Optional

from ..core.errors import IrrecoverableFailureError, TransientInfraError
from ..core.interfaces import CVEHandlingConfig, NodeResource
from ..health.interfaces import GateResult, IConsensusHealthGate
from ..network.interfaces import RetryConfig
from .interfaces import CVERolloutStatus, IReplicaUpdater, IRollbackExecutor, RolloutRecord


class RollbackExecutor(IRollbackExecutor):
    """
    Restaure les répliques avancées sur last_known_good.

    Tentative unique: toute erreur de restauration ou un gate toujours
    en échec après convergence donne Failed. Aucune nouvelle tentative
    n'est faite ici.
    """

    def __init__(
        self,
        updater: IReplicaUpdater,
        gate: IConsensusHealthGate,
        convergence_config: Optional[RetryConfig] = None,
    ) -> None:
        self._updater = updater
        self._gate = gate
        self._convergence = convergence_config
        self.last_gate: Optional[GateResult] = None

    async def rollback(
        self,
        node: NodeResource,
        record: RolloutRecord,
        threshold: Optional[float] = None,
    ) -> CVERolloutStatus:
        if threshold is None:
            threshold = (node.cve_handling or CVEHandlingConfig()).consensus_health_threshold
        self.last_gate = None

        try:
            await self._restore(node, record, threshold)
        except IrrecoverableFailureError as e:
            record.record_failure(e)
            return CVERolloutStatus.FAILED
        return CVERolloutStatus.ROLLED_BACK

    async def _restore(self, node: NodeResource, record: RolloutRecord, threshold: float) -> None:
        """
        Raises:
            IrrecoverableFailureError: Restauration impossible ou santé
                non rétablie
        """
        target = record.last_known_good
        if not target:
            raise IrrecoverableFailureError("No last known good image to restore")

        # RBK_001: dernières répliques avancées restaurées en premier
        for replica in reversed(list(record.advanced_replicas)):
            try:
                await self._updater.set_replica_image(node, replica, target)
            except TransientInfraError as e:
                raise IrrecoverableFailureError(
                    f"Rollback of {replica} to {target} failed: {e}"
                ) from e
            record.advanced_replicas.remove(replica)

        # RBK_002: gate toujours réévalué, même sans réplique avancée
        gate = await self._gate.wait_for_convergence(node, threshold, self._convergence)
        self.last_gate = gate
        if not gate.passed:
            raise IrrecoverableFailureError(
                f"Health not restored after rollback: ratio {gate.healthy_ratio:.3f} "
                f"< {threshold:.3f}"
            )
