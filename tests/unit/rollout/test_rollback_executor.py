"""
Tests unitaires RollbackExecutor

Invariants testés:
    RBK_001: Rollback vers la dernière image saine connue
    RBK_002: Gate santé réévalué après rollback
    RBK_003: Une seule tentative de rollback, escalade externe
    RBK_004: Rollback sans retour à la santé = Failed manuel
"""

from unittest.mock import AsyncMock, call

import pytest

from stellar_cve.core.errors import ErrorCategory, OrchestrationError
from stellar_cve.health.interfaces import GateResult, IConsensusHealthGate
from stellar_cve.rollout.interfaces import CVERolloutStatus, IReplicaUpdater, RolloutRecord
from stellar_cve.rollout.rollback_executor import RollbackExecutor


def gate_result(passed: bool) -> GateResult:
    return GateResult(
        healthy_ratio=1.0 if passed else 0.5,
        passed=passed,
        threshold=0.95,
        total_replicas=2,
        healthy_replicas=2 if passed else 1,
    )


@pytest.fixture
def updater():
    return AsyncMock(spec=IReplicaUpdater)


@pytest.fixture
def gate():
    mock = AsyncMock(spec=IConsensusHealthGate)
    mock.wait_for_convergence.return_value = gate_result(True)
    return mock


@pytest.fixture
def executor(updater, gate):
    return RollbackExecutor(updater, gate)


@pytest.fixture
def record():
    return RolloutRecord(
        node_key="stellar/validator-1",
        status=CVERolloutStatus.ROLLING_BACK,
        patched_image="img:2",
        last_known_good="img:1",
        advanced_replicas=["validator-1-0", "validator-1-1"],
    )


class TestRBK001Restore:
    """Tests RBK_001: Restauration de last_known_good."""

    @pytest.mark.asyncio
    async def test_RBK_001_reverts_advanced_replicas(self, executor, updater, record, make_node):
        """RBK_001: Chaque réplique avancée revient à last_known_good."""
        node = make_node(replicas=3)

        status = await executor.rollback(node, record)

        assert status == CVERolloutStatus.ROLLED_BACK
        assert updater.set_replica_image.await_args_list == [
            call(node, "validator-1-1", "img:1"),
            call(node, "validator-1-0", "img:1"),
        ]
        assert record.advanced_replicas == []

    @pytest.mark.asyncio
    async def test_RBK_001_untouched_replicas_ignored(self, executor, updater, record, make_node):
        """RBK_001: Répliques jamais avancées non modifiées."""
        record.advanced_replicas = []

        status = await executor.rollback(make_node(replicas=3), record)

        assert status == CVERolloutStatus.ROLLED_BACK
        updater.set_replica_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_last_known_good_fails(self, executor, gate, record, make_node):
        """Sans image saine connue -> Failed irrécupérable."""
        record.last_known_good = None

        status = await executor.rollback(make_node(), record)

        assert status == CVERolloutStatus.FAILED
        assert record.last_error_category == ErrorCategory.IRRECOVERABLE_FAILURE
        gate.wait_for_convergence.assert_not_awaited()


class TestRBK002HealthRecheck:
    """Tests RBK_002: Gate réévalué."""

    @pytest.mark.asyncio
    async def test_RBK_002_gate_always_evaluated(self, executor, gate, record, make_node):
        """RBK_002: Gate consulté même sans réplique avancée."""
        record.advanced_replicas = []
        node = make_node()

        await executor.rollback(node, record, threshold=0.8)

        gate.wait_for_convergence.assert_awaited_once_with(node, 0.8, None)

    @pytest.mark.asyncio
    async def test_RBK_002_threshold_from_node_config(self, executor, gate, record, make_node):
        """RBK_002: Seuil par défaut lu dans la configuration du noeud."""
        node = make_node()

        await executor.rollback(node, record)

        assert gate.wait_for_convergence.await_args.args[1] == 0.95
        assert executor.last_gate.passed is True


class TestRBK003SingleAttempt:
    """Tests RBK_003/004: Tentative unique."""

    @pytest.mark.asyncio
    async def test_RBK_003_update_error_fails_without_retry(self, executor, updater, gate, record, make_node):
        """RBK_003: Erreur de restauration -> Failed, aucun nouvel essai."""
        updater.set_replica_image.side_effect = OrchestrationError("api down")

        status = await executor.rollback(make_node(), record)

        assert status == CVERolloutStatus.FAILED
        assert updater.set_replica_image.await_count == 1
        assert record.last_error_category == ErrorCategory.IRRECOVERABLE_FAILURE
        gate.wait_for_convergence.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_RBK_004_health_not_restored(self, executor, gate, record, make_node):
        """RBK_004: Santé non rétablie -> Failed avec le ratio observé."""
        gate.wait_for_convergence.return_value = gate_result(False)

        status = await executor.rollback(make_node(), record)

        assert status == CVERolloutStatus.FAILED
        assert record.last_error_category == ErrorCategory.IRRECOVERABLE_FAILURE
        assert "0.500" in record.last_error
        gate.wait_for_convergence.assert_awaited_once()
