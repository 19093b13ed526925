"""
STELLAR CVE - Audit

Invariants couverts:
- ROLL_004 (Transitions auditées)
- AUDIT_001 (Hachage SHA-384 et signature ECDSA-P384)
"""
from .interfaces import (
    IAuditEmitter,
    AuditEvent,
    AuditEventType,
)
from .audit_emitter import AuditEmitter, AuditEmitterError

__all__ = [
    "IAuditEmitter",
    "AuditEvent",
    "AuditEventType",
    "AuditEmitter",
    "AuditEmitterError",
]
