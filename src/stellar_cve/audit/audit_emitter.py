"""
STELLAR CVE - Audit Emitter

Émetteur d'événements d'audit signés, journalisés par noeud.

Invariants:
    ROLL_004: Chaque transition auditée avec le scan déclencheur
    AUDIT_001: Événements d'audit hachés SHA-384 et signés
"""

import base64
import json
import uuid
from collections import defaultdict, deque
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from ..core.interfaces import ICryptoProvider
from .interfaces import AuditEvent, AuditEventType, IAuditEmitter


class AuditEmitterError(Exception):
    """Erreur émission événement audit."""

    pass


class AuditEmitter(IAuditEmitter):
    """
    Émetteur d'événements d'audit avec signature ECDSA-P384.

    Example:
        emitter = AuditEmitter(CryptoProvider())
        await emitter.emit_event(
            AuditEventType.ROLLOUT_TRANSITION,
            "stellar/validator-1",
            "Idle->CanaryTesting",
            {"trigger": "scan_actionable"},
        )
    """

    KEY_ID: str = "rollout-audit"

    # Taille du journal conservé par noeud
    MAX_EVENTS_PER_NODE: int = 500

    def __init__(self, crypto_provider: ICryptoProvider) -> None:
        self._crypto = crypto_provider
        self._journal: Dict[str, Deque[AuditEvent]] = defaultdict(
            lambda: deque(maxlen=self.MAX_EVENTS_PER_NODE)
        )

    async def emit_event(
        self,
        event_type: AuditEventType,
        node_key: str,
        action: str,
        metadata: Optional[Dict[str, Any]] = None,
        actor: str = "cve-controller",
    ) -> AuditEvent:
        if not node_key or not action:
            raise AuditEmitterError("node_key et action sont obligatoires")
        if not isinstance(event_type, AuditEventType):
            raise AuditEmitterError(f"Type événement invalide: {event_type}")

        event = AuditEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            node_key=node_key,
            actor=actor,
            action=action,
            metadata=_jsonable(metadata or {}),
        )

        canonical = self._canonical(event).encode("utf-8")
        try:
            signature = self._crypto.sign(canonical, self.KEY_ID)
        except Exception as e:
            raise AuditEmitterError(f"Erreur signature événement audit: {e}") from e

        signed = replace(
            event,
            signature=base64.b64encode(signature).decode("ascii"),
            hash_value=self._crypto.hash(canonical),
        )
        self._journal[node_key].append(signed)
        return signed

    def verify_event_signature(self, event: AuditEvent) -> bool:
        if not event.signature:
            return False
        try:
            signature = base64.b64decode(event.signature, validate=True)
        except ValueError:
            return False
        return self._crypto.verify_signature(
            self._canonical(event).encode("utf-8"), signature, self.KEY_ID
        )

    def compute_event_hash(self, event: AuditEvent) -> str:
        return self._crypto.hash(self._canonical(event).encode("utf-8"))

    def get_events(
        self,
        node_key: str,
        event_type: Optional[AuditEventType] = None,
    ) -> List[AuditEvent]:
        events = list(self._journal.get(node_key, ()))
        if event_type is not None:
            events = [e for e in events if e.event_type == event_type]
        return events

    def _canonical(self, event: AuditEvent) -> str:
        """Forme canonique hors signature et hash."""
        return json.dumps(
            {
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "timestamp": event.timestamp.isoformat(),
                "node_key": event.node_key,
                "actor": event.actor,
                "action": event.action,
                "metadata": event.metadata,
            },
            sort_keys=True,
            separators=(",", ":"),
        )


def _jsonable(value: Any) -> Any:
    """Normalise les métadonnées (enums, datetimes) en types JSON."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
