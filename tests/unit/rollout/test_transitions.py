"""
Tests unitaires Table de transitions

Invariants testés:
    ROLL_001: Transitions définies par table explicite (état, événement)
    ROLL_003: Détection pendant un rollout actif ignorée
    ROLL_005: Idle vers CanaryTesting seulement si enabled
    ROLL_006: Échec de vérification: enable_auto_rollback choisit la branche
"""

import pytest

from stellar_cve.core.errors import InvalidTransitionError
from stellar_cve.rollout.interfaces import CVERolloutStatus, RolloutEvent, SideEffect
from stellar_cve.rollout.transitions import TRANSITION_TABLE, next_transition

S = CVERolloutStatus
E = RolloutEvent


class TestRolloutStatus:
    """Représentation des états de rollout."""

    def test_as_str(self):
        """as_str() retourne le nom d'état."""
        assert S.CANARY_TESTING.as_str() == "CanaryTesting"
        assert S.ROLLED_BACK.as_str() == "RolledBack"

    def test_active_and_terminal_disjoint(self):
        """Aucun état à la fois actif et terminal."""
        for state in S:
            assert not (state.is_active() and state.is_terminal())

    def test_terminal_states(self):
        """Complete, RolledBack et Failed sont terminaux."""
        assert {s for s in S if s.is_terminal()} == {S.COMPLETE, S.ROLLED_BACK, S.FAILED}


class TestROLL001Table:
    """Tests ROLL_001: Table explicite."""

    def test_ROLL_001_undefined_pair_raises(self):
        """ROLL_001: Couple hors table -> InvalidTransitionError."""
        with pytest.raises(InvalidTransitionError):
            next_transition(S.IDLE, E.CANARY_PASSED)

    def test_ROLL_001_complete_cannot_rollback(self):
        """ROLL_001: Complete ne peut pas recevoir un résultat de rollback."""
        with pytest.raises(InvalidTransitionError):
            next_transition(S.COMPLETE, E.ROLLBACK_SUCCEEDED)

    def test_ROLL_001_every_state_handles_scans(self):
        """ROLL_001: Tout état accepte les deux événements de scan."""
        for state in S:
            assert (state, E.SCAN_ACTIONABLE) in TRANSITION_TABLE
            assert (state, E.SCAN_CLEAN) in TRANSITION_TABLE

    def test_canary_passed_widens(self):
        """Canary validé -> Rolling avec élargissement."""
        t = next_transition(S.CANARY_TESTING, E.CANARY_PASSED)

        assert t.target == S.ROLLING
        assert t.effects == (SideEffect.WIDEN,)

    def test_rollout_healthy_completes(self):
        """Élargissement sain et image déjà promue -> Complete sans effet."""
        t = next_transition(S.ROLLING, E.ROLLOUT_HEALTHY)

        assert t.target == S.COMPLETE
        assert t.effects == ()

    def test_rollback_outcomes(self):
        """Rollback réussi -> RolledBack, échoué -> Failed verrouillé."""
        assert next_transition(S.ROLLING_BACK, E.ROLLBACK_SUCCEEDED).target == S.ROLLED_BACK

        failed = next_transition(S.ROLLING_BACK, E.ROLLBACK_FAILED)
        assert failed.target == S.FAILED
        assert SideEffect.REQUIRE_INTERVENTION in failed.effects

    def test_canary_aborted_returns_idle(self):
        """Canary interrompu par l'infrastructure -> Idle."""
        assert next_transition(S.CANARY_TESTING, E.CANARY_ABORTED).target == S.IDLE


class TestROLL005Enabled:
    """Tests ROLL_005: Garde enabled."""

    def test_ROLL_005_actionable_scan_starts_canary(self):
        """ROLL_005: Scan actionnable + enabled -> CanaryTesting."""
        t = next_transition(S.IDLE, E.SCAN_ACTIONABLE, enabled=True)

        assert t.target == S.CANARY_TESTING
        assert t.effects == (SideEffect.START_CANARY,)

    def test_ROLL_005_disabled_stays_idle(self):
        """ROLL_005: Désactivé -> reste Idle sans effet."""
        t = next_transition(S.IDLE, E.SCAN_ACTIONABLE, enabled=False)

        assert t.target == S.IDLE
        assert t.effects == ()
        assert t.changed is False

    def test_clean_scan_stays_idle(self):
        """Scan sans finding actionnable -> Idle."""
        assert next_transition(S.IDLE, E.SCAN_CLEAN).target == S.IDLE

    @pytest.mark.parametrize("state", [S.COMPLETE, S.ROLLED_BACK, S.FAILED])
    def test_terminal_states_reentrant(self, state):
        """Terminal -> CanaryTesting sur nouveau finding, Idle sinon."""
        assert next_transition(state, E.SCAN_ACTIONABLE).target == S.CANARY_TESTING
        assert next_transition(state, E.SCAN_CLEAN).target == S.IDLE

    def test_failed_manual_hold(self):
        """Failed sous verrou manuel: aucun scan ne relance."""
        for event in (E.SCAN_ACTIONABLE, E.SCAN_CLEAN):
            t = next_transition(S.FAILED, event, manual_hold=True)
            assert t.target == S.FAILED
            assert t.effects == ()

    def test_failure_acknowledged(self):
        """Acquittement opérateur -> Idle remis à zéro."""
        t = next_transition(S.FAILED, E.FAILURE_ACKNOWLEDGED, manual_hold=True)

        assert t.target == S.IDLE
        assert SideEffect.RESET_RECORD in t.effects


class TestROLL003ActiveIgnoresScans:
    """Tests ROLL_003: Un seul rollout actif."""

    @pytest.mark.parametrize("state", [S.CANARY_TESTING, S.ROLLING, S.ROLLING_BACK])
    @pytest.mark.parametrize("event", [E.SCAN_ACTIONABLE, E.SCAN_CLEAN])
    def test_ROLL_003_scan_is_noop(self, state, event):
        """ROLL_003: Scan pendant un rollout actif sans effet."""
        t = next_transition(state, event)

        assert t.target == state
        assert t.effects == ()


class TestROLL006AutoRollback:
    """Tests ROLL_006: Branche choisie par enable_auto_rollback."""

    def test_ROLL_006_canary_rejected_with_auto(self):
        """ROLL_006: Canary rejeté + auto -> RollingBack."""
        t = next_transition(S.CANARY_TESTING, E.CANARY_REJECTED, auto_rollback=True)

        assert t.target == S.ROLLING_BACK
        assert t.effects == (SideEffect.ROLLBACK,)

    def test_ROLL_006_canary_rejected_without_auto(self):
        """ROLL_006: Canary rejeté sans auto -> Failed ré-entrant."""
        t = next_transition(S.CANARY_TESTING, E.CANARY_REJECTED, auto_rollback=False)

        assert t.target == S.FAILED
        assert SideEffect.REQUIRE_INTERVENTION not in t.effects

    def test_ROLL_006_regression_with_auto(self):
        """ROLL_006: Régression + auto -> RollingBack."""
        assert next_transition(S.ROLLING, E.HEALTH_REGRESSED, auto_rollback=True).target == S.ROLLING_BACK

    def test_ROLL_006_regression_without_auto(self):
        """ROLL_006: Régression sans auto -> Failed verrouillé."""
        t = next_transition(S.ROLLING, E.HEALTH_REGRESSED, auto_rollback=False)

        assert t.target == S.FAILED
        assert SideEffect.REQUIRE_INTERVENTION in t.effects
