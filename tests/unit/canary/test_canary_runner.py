"""
Tests unitaires CanaryTestRunner

Invariants testés:
    CANARY_001: Canary démarre en Pending puis Running une fois prêt
    CANARY_002: Timeout mesuré depuis l'entrée en Running
    CANARY_003: Pass rate égal au seuil = Passed (borne inclusive)
    CANARY_004: Pass rate sous le seuil = Failed
    CANARY_005: Aucun retry automatique des tests canary
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from stellar_cve.canary.canary_runner import CanaryTestRunner
from stellar_cve.canary.interfaces import (
    CanaryTestStatus,
    ICanaryDeployer,
    ICanaryTestRunner,
    ITestExecutor,
    TestRunReport,
)
from stellar_cve.core.errors import OrchestrationError
from stellar_cve.logging.structured_logger import StructuredLogger


# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def deployer():
    """Déploiement canary mocké, prêt immédiatement."""
    mock = AsyncMock(spec=ICanaryDeployer)
    mock.create_canary.return_value = "validator-1-canary"
    mock.is_ready.return_value = True
    return mock


@pytest.fixture
def executor():
    """Exécuteur de tests mocké."""
    mock = AsyncMock(spec=ITestExecutor)
    mock.run.return_value = TestRunReport(total=10, passed=10)
    return mock


@pytest.fixture
def runner(deployer, executor):
    return CanaryTestRunner(deployer, executor, poll_interval=0.001, readiness_timeout=0.05)


# ══════════════════════════════════════════════════════════════════════════════
# TESTS
# ══════════════════════════════════════════════════════════════════════════════


class TestCanaryStatus:
    """Représentation des états canary."""

    def test_as_str(self):
        """as_str() retourne le nom d'état."""
        assert CanaryTestStatus.PENDING.as_str() == "Pending"
        assert CanaryTestStatus.TIMEOUT.as_str() == "Timeout"

    def test_terminal_states(self):
        """Passed, Failed et Timeout sont terminaux."""
        terminal = {s for s in CanaryTestStatus if s.is_terminal()}
        assert terminal == {CanaryTestStatus.PASSED, CanaryTestStatus.FAILED, CanaryTestStatus.TIMEOUT}

    def test_report_pass_rate(self):
        """Pass rate en pourcentage, 0 sans test."""
        assert TestRunReport(total=4, passed=3).pass_rate == 75.0
        assert TestRunReport(total=0, passed=0).pass_rate == 0.0


class TestCANARY001Lifecycle:
    """Tests CANARY_001: Pending -> Running -> terminal."""

    def test_implements_interface(self, runner):
        """CanaryTestRunner implémente ICanaryTestRunner."""
        assert isinstance(runner, ICanaryTestRunner)

    @pytest.mark.asyncio
    async def test_CANARY_001_state_history(self, runner, make_node):
        """CANARY_001: Historique Pending, Running, Passed."""
        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert result.history == [
            CanaryTestStatus.PENDING,
            CanaryTestStatus.RUNNING,
            CanaryTestStatus.PASSED,
        ]
        assert result.started_at is not None
        assert result.finished_at >= result.started_at

    @pytest.mark.asyncio
    async def test_CANARY_001_canary_created_with_patched_image(self, runner, deployer, make_node):
        """CANARY_001: Réplique canary créée sur l'image corrigée."""
        node = make_node()

        result = await runner.run_canary(node, "img:2", timeout=1.0, pass_rate_threshold=100.0)

        deployer.create_canary.assert_awaited_once_with(node, "img:2")
        assert result.canary_replica == "validator-1-canary"

    @pytest.mark.asyncio
    async def test_CANARY_001_waits_for_readiness(self, runner, deployer, executor, make_node):
        """CANARY_001: Tests lancés seulement une fois la réplique prête."""
        deployer.is_ready.side_effect = [False, False, True]

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert deployer.is_ready.await_count == 3
        assert result.status == CanaryTestStatus.PASSED

    @pytest.mark.asyncio
    async def test_never_ready_raises(self, runner, deployer, executor, make_node):
        """Réplique jamais prête: erreur d'orchestration, canary supprimé."""
        deployer.is_ready.return_value = False

        with pytest.raises(OrchestrationError):
            await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        executor.run.assert_not_awaited()
        deployer.delete_canary.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_failure_propagates(self, runner, deployer, make_node):
        """Création refusée: l'erreur remonte, rien à supprimer."""
        deployer.create_canary.side_effect = OrchestrationError("quota")

        with pytest.raises(OrchestrationError):
            await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        deployer.delete_canary.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_canary_always_deleted(self, runner, deployer, executor, make_node):
        """Canary supprimé quel que soit le verdict."""
        executor.run.return_value = TestRunReport(total=10, passed=1)
        node = make_node()

        await runner.run_canary(node, "img:2", timeout=1.0, pass_rate_threshold=100.0)

        deployer.delete_canary.assert_awaited_once_with(node, "validator-1-canary")

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_verdict(self, deployer, executor, make_node):
        """Échec de suppression journalisé, verdict conservé."""
        deployer.delete_canary.side_effect = OrchestrationError("api down")
        logger = StructuredLogger("test")
        runner = CanaryTestRunner(deployer, executor, logger=logger, poll_interval=0.001)

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.PASSED
        assert any("canary" in e.message for e in logger.get_entries())


class TestCANARY002Timeout:
    """Tests CANARY_002: Timeout depuis Running."""

    @pytest.mark.asyncio
    async def test_CANARY_002_incomplete_reports_timeout(self, runner, executor, make_node):
        """CANARY_002: Tests jamais terminés -> Timeout."""
        executor.run.return_value = TestRunReport(total=10, passed=3, complete=False)

        result = await runner.run_canary(make_node(), "img:2", timeout=0.05, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.TIMEOUT
        assert result.pass_rate is None

    @pytest.mark.asyncio
    async def test_CANARY_002_hanging_executor_timeout(self, runner, executor, make_node):
        """CANARY_002: Exécuteur bloqué annulé au timeout."""

        async def hang(node, replica):
            await asyncio.sleep(10)

        executor.run.side_effect = hang

        result = await runner.run_canary(make_node(), "img:2", timeout=0.05, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_CANARY_002_readiness_not_counted(self, deployer, executor, make_node):
        """CANARY_002: L'attente de disponibilité ne consomme pas le timeout."""
        ticks = iter([0.0, 0.0, 100.0, 100.0, 100.0, 100.0, 100.0, 100.0])
        deployer.is_ready.side_effect = [False, True]
        runner = CanaryTestRunner(
            deployer,
            executor,
            poll_interval=0.0,
            readiness_timeout=1000.0,
            clock=lambda: next(ticks),
        )

        result = await runner.run_canary(make_node(), "img:2", timeout=10.0, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.PASSED


class TestCANARY003Threshold:
    """Tests CANARY_003/004: Comparaison au seuil."""

    @pytest.mark.asyncio
    async def test_CANARY_003_equal_threshold_passes(self, runner, executor, make_node):
        """CANARY_003: 100.0 == 100.0 -> Passed."""
        executor.run.return_value = TestRunReport(total=20, passed=20)

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.PASSED
        assert result.pass_rate == 100.0

    @pytest.mark.asyncio
    async def test_CANARY_003_equal_partial_threshold(self, runner, executor, make_node):
        """CANARY_003: 90% contre un seuil de 90% -> Passed."""
        executor.run.return_value = TestRunReport(total=10, passed=9)

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=90.0)

        assert result.status == CanaryTestStatus.PASSED

    @pytest.mark.asyncio
    async def test_CANARY_004_below_threshold_fails(self, runner, executor, make_node):
        """CANARY_004: 95% contre 100% -> Failed."""
        executor.run.return_value = TestRunReport(total=20, passed=19)

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.FAILED
        assert result.pass_rate == 95.0

    @pytest.mark.asyncio
    async def test_zero_tests_fails(self, runner, executor, make_node):
        """Aucun test exécuté -> Failed."""
        executor.run.return_value = TestRunReport(total=0, passed=0)

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=0.0)

        assert result.status == CanaryTestStatus.FAILED

    @pytest.mark.asyncio
    async def test_sampling_until_complete(self, runner, executor, make_node):
        """Échantillonnage répété jusqu'au rapport complet."""
        executor.run.side_effect = [
            TestRunReport(total=10, passed=2, complete=False),
            TestRunReport(total=10, passed=6, complete=False),
            TestRunReport(total=10, passed=10),
        ]

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert executor.run.await_count == 3
        assert result.status == CanaryTestStatus.PASSED


class TestCANARY005NoRetry:
    """Tests CANARY_005: Pas de retry automatique."""

    @pytest.mark.asyncio
    async def test_CANARY_005_executor_error_fails_once(self, runner, executor, make_node):
        """CANARY_005: Erreur de l'exécuteur -> Failed sans nouvel essai."""
        executor.run.side_effect = RuntimeError("runner crashed")

        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert result.status == CanaryTestStatus.FAILED
        assert executor.run.await_count == 1
        assert "runner crashed" in result.message

    @pytest.mark.asyncio
    async def test_CANARY_005_failed_not_rerun(self, runner, executor, make_node):
        """CANARY_005: Un verdict Failed n'est pas réexécuté."""
        executor.run.return_value = TestRunReport(total=10, passed=5)

        await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        assert executor.run.await_count == 1

    @pytest.mark.asyncio
    async def test_result_to_dict(self, runner, make_node):
        """Résultat sérialisable pour l'audit."""
        result = await runner.run_canary(make_node(), "img:2", timeout=1.0, pass_rate_threshold=100.0)

        data = result.to_dict()

        assert data["status"] == "Passed"
        assert data["patched_image"] == "img:2"
        assert data["canary_replica"] == "validator-1-canary"
