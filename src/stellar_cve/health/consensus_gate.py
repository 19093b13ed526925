"""
STELLAR CVE - Consensus Health Gate

Agrège la santé des répliques d'un noeud en un signal go/no-go.

Invariants:
    GATE_001: Ratio = répliques healthy / total des répliques
    GATE_002: Zéro réplique = gate en échec, ratio 0
    GATE_003: Sonde en échec comptée unhealthy, jamais exclue
    GATE_004: Gate passe si ratio >= seuil (borne inclusive)
    GATE_006: Convergence bornée par backoff exponentiel
"""

import asyncio
from typing import Dict, List, Optional

from ..core.errors import TransientInfraError
from ..core.interfaces import NodeResource
from ..network.interfaces import IRetryHandler, RetryConfig
from ..network.retry_handler import RetryHandler
from .interfaces import GateResult, IConsensusHealthGate, IHealthProbe, ReplicaHealth


class HealthNotConvergedError(TransientInfraError):
    """Gate toujours sous le seuil (retryable pendant la convergence)."""

    def __init__(self, result: GateResult) -> None:
        self.result = result
        super().__init__(
            f"Healthy ratio {result.healthy_ratio:.3f} below threshold {result.threshold:.3f}"
        )


class ConsensusHealthGate(IConsensusHealthGate):
    """
    Gate de santé consensus.

    Toutes les répliques sont sondées en parallèle, chacune bornée par
    PROBE_TIMEOUT_SECONDS. Une sonde en erreur ou en timeout compte comme
    unhealthy au dénominateur.
    """

    # Timeout d'une sonde de réplique
    PROBE_TIMEOUT_SECONDS: float = 10.0

    # Convergence par défaut: 2s, 4s, 8s, 16s (~30s)
    DEFAULT_CONVERGENCE = RetryConfig(max_attempts=5, initial_delay=2.0, max_delay=16.0)

    def __init__(
        self,
        probe: IHealthProbe,
        retry_handler: Optional[IRetryHandler] = None,
        convergence_config: Optional[RetryConfig] = None,
    ) -> None:
        self._probe = probe
        self._retry = retry_handler or RetryHandler()
        self._convergence = convergence_config or self.DEFAULT_CONVERGENCE

    async def evaluate(self, node: NodeResource, threshold: float) -> GateResult:
        replicas = list(node.replicas)
        if not replicas:
            # GATE_002: jamais de succès par vacuité
            return GateResult(
                healthy_ratio=0.0,
                passed=False,
                threshold=threshold,
                total_replicas=0,
                healthy_replicas=0,
            )

        outcomes = await asyncio.gather(
            *(self._probe_replica(node, replica) for replica in replicas)
        )
        health: Dict[str, ReplicaHealth] = dict(zip(replicas, outcomes))

        healthy = sum(1 for h in outcomes if h.healthy)
        ratio = healthy / len(replicas)
        return GateResult(
            healthy_ratio=ratio,
            passed=ratio >= threshold,
            threshold=threshold,
            total_replicas=len(replicas),
            healthy_replicas=healthy,
            replicas=health,
        )

    async def wait_for_convergence(
        self,
        node: NodeResource,
        threshold: float,
        retry_config: Optional[RetryConfig] = None,
    ) -> GateResult:
        evaluated: List[GateResult] = []

        async def attempt() -> GateResult:
            result = await self.evaluate(node, threshold)
            evaluated.append(result)
            if not result.passed:
                raise HealthNotConvergedError(result)
            return result

        outcome = await self._retry.execute_with_retry(
            attempt, config=retry_config or self._convergence
        )
        if outcome.success:
            return outcome.result
        if not evaluated:
            raise outcome.last_error
        return evaluated[-1]

    async def _probe_replica(self, node: NodeResource, replica: str) -> ReplicaHealth:
        """GATE_003: Toute erreur de sonde devient une réplique unhealthy."""
        try:
            return await asyncio.wait_for(
                self._probe.check(node, replica),
                timeout=self.PROBE_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            return ReplicaHealth(healthy=False, synced=False, message="Probe timeout")
        except Exception as e:
            return ReplicaHealth(healthy=False, synced=False, message=f"Probe error: {e}")
