"""
STELLAR CVE - Rollout Controller

Boucle de contrôle d'un noeud: scan -> canary -> gate -> élargissement
ou rollback. Les étapes d'un même noeud sont strictement séquentielles.

Invariants:
    ROLL_002: Au plus un rollout actif par noeud
    ROLL_004: Chaque transition auditée avec le scan déclencheur
    ROLL_005: Idle vers CanaryTesting seulement si enabled
    ROLL_006: Échec de vérification: enable_auto_rollback choisit la branche
    ROLL_007: Désactivation n'interrompt pas le cycle en cours
    ROLL_008: Exclusion mutuelle par clé de noeud, pas de verrou global
    ROLL_010: Configuration lue une fois par cycle, jamais partielle
    GATE_005: Gate jamais contourné, même sans auto-rollback
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..audit.interfaces import AuditEventType, IAuditEmitter
from ..canary.interfaces import CanaryTestStatus, ICanaryTestRunner
from ..core.config_loader import ConfigHolder
from ..core.errors import (
    CVERemediationError,
    ErrorCategory,
    PolicyViolationError,
    TransientInfraError,
    VerificationFailureError,
)
from ..core.interfaces import CVEHandlingConfig, NodeResource
from ..cve.interfaces import CVEDetectionResult, ICVEScanner
from ..health.interfaces import GateResult, IConsensusHealthGate
from ..logging.structured_logger import ContextualLogger, StructuredLogger
from .interfaces import (
    CVERolloutStatus,
    IReplicaUpdater,
    IResourceStore,
    IRollbackExecutor,
    RolloutEvent,
    RolloutRecord,
    SideEffect,
    Transition,
)
from .record_store import STATUS_KEY, RolloutRecordStore
from .transitions import next_transition

# Événement suivant + contexte d'audit
_Step = Tuple[RolloutEvent, Dict[str, Any]]


def _enforce_patch_policy(detection: CVEDetectionResult) -> None:
    """
    Raises:
        PolicyViolationError: CVE critique sans image patchée disponible
    """
    if detection.requires_urgent_patch() and not detection.can_patch():
        raise PolicyViolationError(
            f"{detection.cve_count.critical} critical CVE(s) on "
            f"{detection.current_image} with no patched image available"
        )


class RolloutController:
    """
    Contrôleur de remédiation CVE par noeud.

    run_cycle() est non bloquant par noeud: si un cycle est déjà en vol
    pour la même clé, l'appel retourne None sans rien faire.

    Example:
        controller = RolloutController(store, scanner, canary, gate, updater,
                                       rollback, audit, ConfigHolder())
        record = await controller.run_cycle("stellar/validator-1")
    """

    # Marge ajoutée au timeout canary avant de juger un rollout en vol abandonné
    WIDEN_GRACE_SECONDS: float = 600.0

    # Répliques mises à jour par étape d'élargissement
    DEFAULT_WIDEN_BATCH: int = 1

    def __init__(
        self,
        store: IResourceStore,
        scanner: ICVEScanner,
        canary: ICanaryTestRunner,
        gate: IConsensusHealthGate,
        updater: IReplicaUpdater,
        rollback_executor: IRollbackExecutor,
        audit_emitter: IAuditEmitter,
        config_holder: Optional[ConfigHolder] = None,
        records: Optional[RolloutRecordStore] = None,
        logger: Optional[StructuredLogger] = None,
        widen_batch: int = DEFAULT_WIDEN_BATCH,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if widen_batch < 1:
            raise ValueError("widen_batch must be >= 1")
        self._store = store
        self._scanner = scanner
        self._canary = canary
        self._gate = gate
        self._updater = updater
        self._rollback = rollback_executor
        self._audit = audit_emitter
        self._config = config_holder or ConfigHolder()
        self._records = records or RolloutRecordStore()
        self._logger = logger or StructuredLogger("rollout-controller")
        self._widen_batch = widen_batch
        self._clock = clock
        self._last_config: Dict[str, CVEHandlingConfig] = {}

    @property
    def records(self) -> RolloutRecordStore:
        return self._records

    def get_record(self, node_key: str) -> RolloutRecord:
        return self._records.get(node_key)

    def scan_interval_for(self, node_key: str) -> int:
        """Intervalle du dernier cycle du noeud, sinon celui de la flotte."""
        config = self._last_config.get(node_key) or self._config.current()
        return config.scan_interval_secs

    # ══════════════════════════════════════════════════════════════════════════
    # CYCLE
    # ══════════════════════════════════════════════════════════════════════════

    async def run_cycle(self, node_key: str) -> Optional[RolloutRecord]:
        """
        Exécute un cycle complet pour un noeud.

        Returns:
            Enregistrement après le cycle, None si un cycle est déjà en vol

        Toute exception sortant du cycle est d'abord attachée au status
        du noeud, puis propagée.

        Raises:
            TransientInfraError: Ressource illisible dans le store
        """
        lock = self._records.lock(node_key)
        # ROLL_008: pas d'attente, le cycle en vol reste seul propriétaire
        if lock.locked():
            self._logger.debug("Cycle déjà en cours, ignoré", node=node_key)
            return None

        async with lock:
            try:
                return await self._run_locked(node_key)
            except Exception as e:
                await self._record_cycle_error(node_key, e)
                raise

    async def _record_cycle_error(self, node_key: str, error: Exception) -> None:
        """Erreur hors taxonomie: traitée comme transitoire, état conservé."""
        record = self._records.get(node_key)
        if isinstance(error, CVERemediationError) and error.category is not None:
            record.record_failure(error)
        else:
            record.record_error(
                ErrorCategory.TRANSIENT_INFRA,
                f"Cycle aborted by {type(error).__name__}: {error}",
            )
        log = self._logger.with_context(node=node_key)
        log.error(
            "Cycle interrompu",
            state=record.status.as_str(),
            error=str(error),
            error_type=type(error).__name__,
        )
        await self._persist(node_key, record, log)

    async def _run_locked(self, node_key: str) -> RolloutRecord:
        node = await self._store.get_node(node_key)
        # ROLL_010: instantané unique pour tout le cycle
        config = node.cve_handling or self._config.current()
        self._last_config[node_key] = config

        log = self._logger.with_context(node=node_key)
        record = self._records.get_or_restore(node)

        if record.status.is_active():
            await self._resume_in_flight(node, record, config, log)
            return record

        # ROLL_007: désactivation appliquée au cycle suivant seulement
        if not config.enabled:
            log.info("Remédiation CVE désactivée, cycle ignoré")
            return record

        try:
            detection = await self._scanner.scan(node, config)
        except TransientInfraError as e:
            record.record_error(ErrorCategory.TRANSIENT_INFRA, f"Scan failed: {e}")
            log.warn("Scan en échec, nouvel essai au prochain cycle", error=str(e))
            await self._audit.emit_event(
                AuditEventType.SCAN_FAILED,
                node_key,
                action="scan",
                metadata={"image": node.image, "error": str(e)},
            )
            await self._persist(node_key, record, log)
            return record

        record.last_scan = detection
        if record.last_error_category == ErrorCategory.TRANSIENT_INFRA:
            record.clear_error()
        await self._audit.emit_event(
            AuditEventType.SCAN_COMPLETED,
            node_key,
            action="scan",
            metadata=detection.summary(),
        )
        log.info(
            "Scan terminé",
            image=detection.current_image,
            cve_total=detection.cve_count.total(),
            critical=detection.cve_count.critical,
            patched_version=detection.patched_version,
        )
        actionable = self._is_actionable(detection, config)
        event = RolloutEvent.SCAN_ACTIONABLE if actionable else RolloutEvent.SCAN_CLEAN
        if record.manual_intervention_required:
            log.warn("Intervention manuelle requise, aucun rollout relancé")

        await self._drive(node, record, config, log, (event, {}), detection)
        await self._check_policy(node_key, record, detection, log)
        await self._persist(node_key, record, log)
        return record

    def _is_actionable(self, detection: CVEDetectionResult, config: CVEHandlingConfig) -> bool:
        """Patch disponible pour au moins un finding qualifiant."""
        if not detection.can_patch():
            return False
        return bool(self._scanner.qualifying(detection.vulnerabilities, config))

    async def _check_policy(
        self,
        node_key: str,
        record: RolloutRecord,
        detection: CVEDetectionResult,
        log: ContextualLogger,
    ) -> None:
        """SCAN_005: Exposition critique sans patch: alerte permanente, état inchangé."""
        try:
            _enforce_patch_policy(detection)
        except PolicyViolationError as e:
            alert = str(e)
            record.alerts = [alert]
            # Une erreur de vérification antérieure reste prioritaire
            if record.last_error_category in (None, ErrorCategory.POLICY_VIOLATION):
                record.record_failure(e)
            log.warn("Violation de politique", alert=alert)
            await self._audit.emit_event(
                AuditEventType.POLICY_VIOLATION,
                node_key,
                action="alert",
                metadata={"alert": alert, "detection": detection.summary()},
            )
            return

        record.alerts = []
        if record.last_error_category == ErrorCategory.POLICY_VIOLATION:
            record.clear_error()

    async def _resume_in_flight(
        self,
        node: NodeResource,
        record: RolloutRecord,
        config: CVEHandlingConfig,
        log: ContextualLogger,
    ) -> None:
        """
        Rollout trouvé en vol en début de cycle (worker interrompu ou
        élargissement suspendu par une erreur d'infrastructure).
        """
        stale_after = timedelta(seconds=config.canary_test_timeout_secs + self.WIDEN_GRACE_SECONDS)
        stale = self._clock() - record.state_entered_at > stale_after
        reason = {"stale": stale, "state_entered_at": record.state_entered_at.isoformat()}

        if record.status == CVERolloutStatus.ROLLING_BACK:
            step = await self._do_rollback(node, record, config, log)
        elif stale:
            record.record_error(
                ErrorCategory.VERIFICATION_FAILURE,
                f"{record.status.as_str()} exceeded {stale_after.total_seconds():.0f}s without result",
            )
            log.warn("Rollout en vol abandonné, traité comme timeout", **reason)
            if record.status == CVERolloutStatus.CANARY_TESTING:
                record.canary_status = CanaryTestStatus.TIMEOUT
                step = (RolloutEvent.CANARY_REJECTED, reason)
            else:
                step = (RolloutEvent.HEALTH_REGRESSED, reason)
        elif record.status == CVERolloutStatus.ROLLING:
            log.info("Reprise de l'élargissement", advanced=list(record.advanced_replicas))
            step = await self._widen(node, record, config, log)
        else:
            log.debug("Canary en vol, attente", **reason)
            step = None

        if step is not None:
            await self._drive(node, record, config, log, step, record.detection)
        await self._persist(node.key, record, log)

    # ══════════════════════════════════════════════════════════════════════════
    # MACHINE À ÉTATS
    # ══════════════════════════════════════════════════════════════════════════

    async def _drive(
        self,
        node: NodeResource,
        record: RolloutRecord,
        config: CVEHandlingConfig,
        log: ContextualLogger,
        step: Optional[_Step],
        detection: Optional[CVEDetectionResult],
    ) -> None:
        """Applique les transitions jusqu'à ce qu'aucun événement ne suive."""
        while step is not None:
            event, context = step
            transition = next_transition(
                record.status,
                event,
                enabled=config.enabled,
                auto_rollback=config.enable_auto_rollback,
                manual_hold=record.manual_intervention_required,
            )
            await self._enter(node, record, transition, log, detection, context)
            step = await self._perform(node, record, config, log, transition, detection)

    async def _enter(
        self,
        node: NodeResource,
        record: RolloutRecord,
        transition: Transition,
        log: ContextualLogger,
        detection: Optional[CVEDetectionResult],
        context: Dict[str, Any],
    ) -> None:
        if not transition.changed:
            log.debug(
                "Aucune transition",
                state=transition.source.as_str(),
                trigger=transition.event.value,
            )
            return

        record.enter(transition.target, self._clock())

        # ROLL_004: transition + scan déclencheur + condition d'échec
        metadata: Dict[str, Any] = {
            "from": transition.source.as_str(),
            "to": transition.target.as_str(),
            "trigger": transition.event.value,
            "detection": detection.summary() if detection else None,
            **context,
        }
        if transition.target in (CVERolloutStatus.ROLLING_BACK, CVERolloutStatus.FAILED):
            metadata["error"] = record.last_error
            metadata["error_category"] = (
                record.last_error_category.value if record.last_error_category else None
            )
            log.warn("Transition rollout", **metadata)
        else:
            log.info("Transition rollout", **metadata)

        await self._audit.emit_event(
            AuditEventType.ROLLOUT_TRANSITION,
            node.key,
            action=f"{transition.source.as_str()}->{transition.target.as_str()}",
            metadata=metadata,
        )
        await self._persist(node.key, record, log)

    async def _perform(
        self,
        node: NodeResource,
        record: RolloutRecord,
        config: CVEHandlingConfig,
        log: ContextualLogger,
        transition: Transition,
        detection: Optional[CVEDetectionResult],
    ) -> Optional[_Step]:
        step: Optional[_Step] = None
        for effect in transition.effects:
            if effect == SideEffect.START_CANARY:
                self._prepare_rollout(node, record, detection)
                await self._persist(node.key, record, log)
                step = await self._run_canary(node, record, config, log)
            elif effect == SideEffect.WIDEN:
                step = await self._widen(node, record, config, log)
            elif effect == SideEffect.ROLLBACK:
                step = await self._do_rollback(node, record, config, log)
            elif effect == SideEffect.REQUIRE_INTERVENTION:
                record.manual_intervention_required = True
                log.critical("Intervention manuelle requise", error=record.last_error)
            elif effect == SideEffect.RESET_RECORD:
                record.reset()
        return step

    def _prepare_rollout(
        self,
        node: NodeResource,
        record: RolloutRecord,
        detection: Optional[CVEDetectionResult],
    ) -> None:
        record.reset()
        record.detection = detection
        record.patched_image = detection.patched_version if detection else None
        record.last_known_good = node.image
        record.canary_status = CanaryTestStatus.PENDING

    # ══════════════════════════════════════════════════════════════════════════
    # ÉTAPES
    # ══════════════════════════════════════════════════════════════════════════

    async def _run_canary(
        self,
        node: NodeResource,
        record: RolloutRecord,
        config: CVEHandlingConfig,
        log: ContextualLogger,
    ) -> _Step:
        try:
            result = await self._canary.run_canary(
                node,
                record.patched_image,
                timeout=config.canary_test_timeout_secs,
                pass_rate_threshold=config.canary_pass_rate_threshold,
            )
        except TransientInfraError as e:
            # Retour en Idle: le cycle suivant repart d'une détection fraîche
            record.reset()
            record.record_error(ErrorCategory.TRANSIENT_INFRA, f"Canary aborted: {e}")
            log.warn("Canary interrompu par l'infrastructure", error=str(e))
            return RolloutEvent.CANARY_ABORTED, {"error": str(e)}

        record.canary_status = result.status
        record.canary_pass_rate = result.pass_rate
        await self._audit.emit_event(
            AuditEventType.CANARY_FINISHED,
            node.key,
            action=result.status.as_str(),
            metadata=result.to_dict(),
        )

        canary_context = {
            "canary_status": result.status.as_str(),
            "pass_rate": result.pass_rate,
            "pass_rate_threshold": config.canary_pass_rate_threshold,
        }
        gate: Optional[GateResult] = None
        try:
            if result.status != CanaryTestStatus.PASSED:
                raise VerificationFailureError(f"Canary {result.status.as_str()}: {result.message}")

            # GATE_005: évalué quelle que soit la politique de rollback
            gate = await self._gate.evaluate(node, config.consensus_health_threshold)
            await self._audit_gate(node.key, gate, stage="pre-widen")
            if not gate.passed:
                raise VerificationFailureError(
                    f"Health gate failed before widen: ratio {gate.healthy_ratio:.3f} "
                    f"< {gate.threshold:.3f}"
                )
        except VerificationFailureError as e:
            record.record_failure(e)
            if gate is None:
                return RolloutEvent.CANARY_REJECTED, canary_context
            return RolloutEvent.CANARY_REJECTED, {**canary_context, "gate": gate.to_dict()}

        return RolloutEvent.CANARY_PASSED, {**canary_context, "gate": gate.to_dict()}

    async def _widen(
        self,
        node: NodeResource,
        record: RolloutRecord,
        config: CVEHandlingConfig,
        log: ContextualLogger,
    ) -> Optional[_Step]:
        """
        Élargit par lots, gate après chaque lot.

        Une erreur d'orchestration suspend l'élargissement: l'état reste
        Rolling et le cycle suivant reprend depuis advanced_replicas.
        """
        pending = [r for r in node.replicas if r not in record.advanced_replicas]
        threshold = config.consensus_health_threshold
        gate: Optional[GateResult] = None

        for start in range(0, len(pending), self._widen_batch):
            batch = pending[start:start + self._widen_batch]
            for replica in batch:
                try:
                    await self._updater.set_replica_image(node, replica, record.patched_image)
                except TransientInfraError as e:
                    record.record_error(
                        ErrorCategory.TRANSIENT_INFRA, f"Widen to {replica} failed: {e}"
                    )
                    log.warn("Élargissement suspendu", replica=replica, error=str(e))
                    return None
                record.advanced_replicas.append(replica)
            await self._persist(node.key, record, log)

            gate = await self._gate.wait_for_convergence(node, threshold)
            await self._audit_gate(node.key, gate, stage="widen", batch=batch)
            if not gate.passed:
                return self._regressed(record, gate, batch)

        if gate is None:
            # Aucune réplique restante: vérification post-rollout seule
            gate = await self._gate.wait_for_convergence(node, threshold)
            await self._audit_gate(node.key, gate, stage="post-rollout")
            if not gate.passed:
                return self._regressed(record, gate, [])

        # Complete n'est atteint qu'une fois l'image désirée promue
        if not await self._promote(node, record, log):
            return None
        record.clear_error()
        return RolloutEvent.ROLLOUT_HEALTHY, {"gate": gate.to_dict()}

    def _regressed(self, record: RolloutRecord, gate: GateResult, batch: List[str]) -> _Step:
        error = VerificationFailureError(
            f"Health regressed during widen: ratio {gate.healthy_ratio:.3f} "
            f"< {gate.threshold:.3f}"
        )
        record.record_failure(error)
        return RolloutEvent.HEALTH_REGRESSED, {"gate": gate.to_dict(), "batch": batch}

    async def _do_rollback(
        self,
        node: NodeResource,
        record: RolloutRecord,
        config: CVEHandlingConfig,
        log: ContextualLogger,
    ) -> _Step:
        reverted = list(record.advanced_replicas)
        status = await self._rollback.rollback(node, record, config.consensus_health_threshold)
        metadata = {
            "status": status.as_str(),
            "restored_image": record.last_known_good,
            "replicas": reverted,
            "error": record.last_error,
        }
        await self._audit.emit_event(
            AuditEventType.ROLLBACK_FINISHED,
            node.key,
            action=status.as_str(),
            metadata=metadata,
        )
        if status == CVERolloutStatus.ROLLED_BACK:
            log.info("Rollback terminé", restored_image=record.last_known_good)
            return RolloutEvent.ROLLBACK_SUCCEEDED, metadata
        return RolloutEvent.ROLLBACK_FAILED, metadata

    async def _promote(self, node: NodeResource, record: RolloutRecord, log: ContextualLogger) -> bool:
        """Promeut l'image patchée comme image désirée; échec = reste Rolling."""
        try:
            await self._store.set_desired_image(node.key, record.patched_image)
        except TransientInfraError as e:
            record.record_error(ErrorCategory.TRANSIENT_INFRA, f"Image promotion failed: {e}")
            log.error("Promotion de l'image échouée", image=record.patched_image, error=str(e))
            return False
        log.info("Image désirée promue", image=record.patched_image)
        return True

    async def _audit_gate(self, node_key: str, gate: GateResult, **context: Any) -> None:
        await self._audit.emit_event(
            AuditEventType.HEALTH_GATE,
            node_key,
            action="pass" if gate.passed else "fail",
            metadata={**gate.to_dict(), **context},
        )

    # ══════════════════════════════════════════════════════════════════════════
    # OPÉRATEUR
    # ══════════════════════════════════════════════════════════════════════════

    async def acknowledge_failure(self, node_key: str) -> RolloutRecord:
        """
        Lève le verrou d'intervention manuelle d'un noeud en Failed.

        Raises:
            InvalidTransitionError: Noeud hors de l'état Failed
        """
        async with self._records.lock(node_key):
            node = await self._store.get_node(node_key)
            record = self._records.get_or_restore(node)
            log = self._logger.with_context(node=node_key)
            transition = next_transition(record.status, RolloutEvent.FAILURE_ACKNOWLEDGED)
            await self._enter(node, record, transition, log, record.detection, {"actor": "operator"})
            await self._perform(node, record, self._config.current(), log, transition, None)
            await self._persist(node_key, record, log)
            return record

    async def _persist(self, node_key: str, record: RolloutRecord, log: ContextualLogger) -> None:
        """Écrit l'enregistrement dans le status; l'arène reste la référence."""
        try:
            await self._store.patch_status(node_key, {STATUS_KEY: record.to_status()})
        except TransientInfraError as e:
            log.error("Écriture du status échouée", error=str(e))
