"""
STELLAR CVE - Canary Test Runner

Évalue une image corrigée sur une réplique canary unique.

Invariants:
    CANARY_001: Canary démarre en Pending puis Running une fois prêt
    CANARY_002: Timeout mesuré depuis l'entrée en Running
    CANARY_003: Pass rate égal au seuil = Passed (borne inclusive)
    CANARY_004: Pass rate sous le seuil = Failed
    CANARY_005: Aucun retry automatique des tests canary
    CANARY_006: Le timeout est la seule annulation forcée du canary
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.errors import OrchestrationError
from ..core.interfaces import NodeResource
from ..logging.structured_logger import StructuredLogger
from .interfaces import (
    CanaryResult,
    CanaryTestStatus,
    ICanaryDeployer,
    ICanaryTestRunner,
    ITestExecutor,
)


class CanaryTestRunner(ICanaryTestRunner):
    """
    Runner canary.

    Pending: réplique créée, attente de disponibilité (bornée par
    readiness_timeout, hors timeout de test). Running: échantillonnage
    de l'exécuteur jusqu'à rapport complet ou expiration du timeout.
    La réplique canary est toujours supprimée en sortie.
    """

    DEFAULT_POLL_INTERVAL: float = 5.0
    DEFAULT_READINESS_TIMEOUT: float = 120.0

    def __init__(
        self,
        deployer: ICanaryDeployer,
        executor: ITestExecutor,
        logger: Optional[StructuredLogger] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        readiness_timeout: float = DEFAULT_READINESS_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._deployer = deployer
        self._executor = executor
        self._logger = logger or StructuredLogger("canary-runner")
        self._poll_interval = poll_interval
        self._readiness_timeout = readiness_timeout
        self._clock = clock

    async def run_canary(
        self,
        node: NodeResource,
        patched_image: str,
        timeout: float,
        pass_rate_threshold: float,
    ) -> CanaryResult:
        result = CanaryResult(
            status=CanaryTestStatus.PENDING,
            patched_image=patched_image,
            history=[CanaryTestStatus.PENDING],
        )

        replica = await self._deployer.create_canary(node, patched_image)
        result.canary_replica = replica
        try:
            await self._wait_ready(node, replica)

            # CANARY_002: l'horloge du timeout démarre ici
            self._enter(result, CanaryTestStatus.RUNNING)
            result.started_at = datetime.now(timezone.utc)
            await self._evaluate(node, replica, timeout, pass_rate_threshold, result)
        finally:
            await self._teardown(node, replica)

        result.finished_at = datetime.now(timezone.utc)
        return result

    async def _wait_ready(self, node: NodeResource, replica: str) -> None:
        deadline = self._clock() + self._readiness_timeout
        while not await self._deployer.is_ready(node, replica):
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise OrchestrationError(
                    f"Canary replica {replica} not ready after {self._readiness_timeout}s"
                )
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def _evaluate(
        self,
        node: NodeResource,
        replica: str,
        timeout: float,
        threshold: float,
        result: CanaryResult,
    ) -> None:
        deadline = self._clock() + timeout

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                self._finish_timeout(result, timeout)
                return

            # CANARY_006: seul le timeout annule une exécution en cours
            try:
                report = await asyncio.wait_for(self._executor.run(node, replica), timeout=remaining)
            except asyncio.TimeoutError:
                self._finish_timeout(result, timeout)
                return
            except Exception as e:
                # CANARY_005: pas de retry, l'appelant décide
                result.message = f"Test execution error: {e}"
                self._enter(result, CanaryTestStatus.FAILED)
                return

            if report.complete:
                result.pass_rate = report.pass_rate
                if report.total <= 0:
                    result.message = "No canary test executed"
                    self._enter(result, CanaryTestStatus.FAILED)
                elif report.pass_rate >= threshold:
                    result.message = f"Pass rate {report.pass_rate:.2f}% >= {threshold:.2f}%"
                    self._enter(result, CanaryTestStatus.PASSED)
                else:
                    result.message = f"Pass rate {report.pass_rate:.2f}% < {threshold:.2f}%"
                    self._enter(result, CanaryTestStatus.FAILED)
                return

            await asyncio.sleep(min(self._poll_interval, max(deadline - self._clock(), 0.0)))

    def _finish_timeout(self, result: CanaryResult, timeout: float) -> None:
        result.message = f"No test result within {timeout}s"
        self._enter(result, CanaryTestStatus.TIMEOUT)

    def _enter(self, result: CanaryResult, status: CanaryTestStatus) -> None:
        result.status = status
        result.history.append(status)

    async def _teardown(self, node: NodeResource, replica: str) -> None:
        try:
            await self._deployer.delete_canary(node, replica)
        except Exception as e:
            # Le verdict canary reste valide; la réplique orpheline est signalée
            self._logger.error(
                "Suppression du canary échouée",
                node=node.key,
                replica=replica,
                error=str(e),
            )
