"""
STELLAR CVE - Table de transitions du rollout

Fonction pure (état, événement, gardes) -> (état cible, effets).
Aucune E/S: testable indépendamment du contrôleur.

Invariants:
    ROLL_001: Transitions définies par table explicite (état, événement)
    ROLL_003: Détection pendant un rollout actif ignorée
    ROLL_005: Idle vers CanaryTesting seulement si enabled
    ROLL_006: Échec de vérification: enable_auto_rollback choisit la branche
"""

from typing import Dict, Optional, Tuple

from ..core.errors import InvalidTransitionError
from .interfaces import CVERolloutStatus, RolloutEvent, SideEffect, Transition

S = CVERolloutStatus
E = RolloutEvent
FX = SideEffect

# (cible, effets)
_Outcome = Tuple[CVERolloutStatus, Tuple[SideEffect, ...]]

# (garde, issue si vraie, issue si fausse); garde None = inconditionnelle
_Rule = Tuple[Optional[str], _Outcome, _Outcome]


def _always(target: CVERolloutStatus, *effects: SideEffect) -> _Rule:
    outcome = (target, tuple(effects))
    return (None, outcome, outcome)


def _stay(state: CVERolloutStatus) -> _Rule:
    return _always(state)


def _rescan(state: CVERolloutStatus, guard: str = "enabled") -> Dict[Tuple[S, E], _Rule]:
    """Terminal ou Idle: un nouveau scan relance ou remet à zéro (ré-entrant)."""
    return {
        (state, E.SCAN_ACTIONABLE): (
            guard,
            (S.CANARY_TESTING, (FX.START_CANARY,)),
            (state, ()),
        ),
        (state, E.SCAN_CLEAN): (
            "released" if state == S.FAILED else None,
            (S.IDLE, (FX.RESET_RECORD,)),
            (state, ()),
        ),
    }


TRANSITION_TABLE: Dict[Tuple[CVERolloutStatus, RolloutEvent], _Rule] = {
    **_rescan(S.IDLE),
    **_rescan(S.COMPLETE),
    **_rescan(S.ROLLED_BACK),
    # Failed sous verrou manuel: aucun scan ne relance
    **_rescan(S.FAILED, guard="enabled_and_released"),
    # ROLL_003: scans ignorés pendant un rollout actif
    (S.CANARY_TESTING, E.SCAN_ACTIONABLE): _stay(S.CANARY_TESTING),
    (S.CANARY_TESTING, E.SCAN_CLEAN): _stay(S.CANARY_TESTING),
    (S.ROLLING, E.SCAN_ACTIONABLE): _stay(S.ROLLING),
    (S.ROLLING, E.SCAN_CLEAN): _stay(S.ROLLING),
    (S.ROLLING_BACK, E.SCAN_ACTIONABLE): _stay(S.ROLLING_BACK),
    (S.ROLLING_BACK, E.SCAN_CLEAN): _stay(S.ROLLING_BACK),
    # Canary
    (S.CANARY_TESTING, E.CANARY_PASSED): _always(S.ROLLING, FX.WIDEN),
    (S.CANARY_TESTING, E.CANARY_REJECTED): (
        "auto_rollback",
        (S.ROLLING_BACK, (FX.ROLLBACK,)),
        (S.FAILED, ()),
    ),
    (S.CANARY_TESTING, E.CANARY_ABORTED): _always(S.IDLE),
    # Élargissement
    # Image désirée déjà promue avant l'événement
    (S.ROLLING, E.ROLLOUT_HEALTHY): _always(S.COMPLETE),
    (S.ROLLING, E.HEALTH_REGRESSED): (
        "auto_rollback",
        (S.ROLLING_BACK, (FX.ROLLBACK,)),
        # Répliques sur images mixtes: intervention requise
        (S.FAILED, (FX.REQUIRE_INTERVENTION,)),
    ),
    # Rollback
    (S.ROLLING_BACK, E.ROLLBACK_SUCCEEDED): _always(S.ROLLED_BACK),
    (S.ROLLING_BACK, E.ROLLBACK_FAILED): _always(S.FAILED, FX.REQUIRE_INTERVENTION),
    (S.FAILED, E.FAILURE_ACKNOWLEDGED): _always(S.IDLE, FX.RESET_RECORD),
}


def next_transition(
    state: CVERolloutStatus,
    event: RolloutEvent,
    *,
    enabled: bool = True,
    auto_rollback: bool = True,
    manual_hold: bool = False,
) -> Transition:
    """
    Calcule la transition pour (state, event).

    Args:
        enabled: Kill switch de la configuration (ROLL_005)
        auto_rollback: enable_auto_rollback (ROLL_006)
        manual_hold: Verrou d'intervention manuelle sur Failed

    Raises:
        InvalidTransitionError: Couple absent de la table
    """
    rule = TRANSITION_TABLE.get((state, event))
    if rule is None:
        raise InvalidTransitionError(state.as_str(), event.value)

    guard, if_true, if_false = rule
    guards = {
        None: True,
        "enabled": enabled,
        "auto_rollback": auto_rollback,
        "released": not manual_hold,
        "enabled_and_released": enabled and not manual_hold,
    }
    target, effects = if_true if guards[guard] else if_false
    return Transition(source=state, event=event, target=target, effects=effects)
