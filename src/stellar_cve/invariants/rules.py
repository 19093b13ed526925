"""
STELLAR CVE - Invariants de remédiation
Ces règles sont IMMUABLES et ne peuvent être modifiées par configuration.
Total: 40 règles
"""

from enum import Enum
from typing import Final


class Severity(Enum):
    """Criticité d'un invariant."""

    BLOCKING = "blocking"
    WARNING = "warning"


class Invariant:
    """Définition d'un invariant de remédiation."""

    def __init__(self, id: str, rule: str, severity: Severity = Severity.BLOCKING):
        self.id = id
        self.rule = rule
        self.severity = severity

    def __repr__(self) -> str:
        return f"Invariant({self.id})"


# ══════════════════════════════════════════════════════════════════════════════
# SÉVÉRITÉ (SEV_001-004) - 4 règles
# ══════════════════════════════════════════════════════════════════════════════

SEV_001 = Invariant("SEV_001", "Ordre strict Critical > High > Medium > Low > Unknown")
SEV_002 = Invariant("SEV_002", "CVECount.total() égal à la somme des cinq compteurs")
SEV_003 = Invariant("SEV_003", "has_critical dérivé de count.critical, jamais fourni")
SEV_004 = Invariant("SEV_004", "Comptage pur, sans effet de bord")

# ══════════════════════════════════════════════════════════════════════════════
# SCAN (SCAN_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

SCAN_001 = Invariant("SCAN_001", "Scan interrogé par référence d'image courante")
SCAN_002 = Invariant("SCAN_002", "critical_only filtre la décision, jamais les findings")
SCAN_003 = Invariant("SCAN_003", "patched_version présent seulement si un fix qualifiant existe")
SCAN_004 = Invariant("SCAN_004", "Feed indisponible = échec retryable, aucun résultat partiel")
SCAN_005 = Invariant("SCAN_005", "Critique sans patch remonté en alerte, jamais ignoré")
SCAN_006 = Invariant("SCAN_006", "Résultat de scan immuable, remplacé par le suivant")

# ══════════════════════════════════════════════════════════════════════════════
# CANARY (CANARY_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

CANARY_001 = Invariant("CANARY_001", "Canary démarre en Pending puis Running une fois prêt")
CANARY_002 = Invariant("CANARY_002", "Timeout mesuré depuis l'entrée en Running")
CANARY_003 = Invariant("CANARY_003", "Pass rate égal au seuil = Passed (borne inclusive)")
CANARY_004 = Invariant("CANARY_004", "Pass rate sous le seuil = Failed")
CANARY_005 = Invariant("CANARY_005", "Aucun retry automatique des tests canary")
CANARY_006 = Invariant("CANARY_006", "Le timeout est la seule annulation forcée du canary")

# ══════════════════════════════════════════════════════════════════════════════
# GATE SANTÉ CONSENSUS (GATE_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

GATE_001 = Invariant("GATE_001", "Ratio = répliques healthy / total des répliques")
GATE_002 = Invariant("GATE_002", "Zéro réplique = gate en échec, ratio 0")
GATE_003 = Invariant("GATE_003", "Sonde en échec comptée unhealthy, jamais exclue")
GATE_004 = Invariant("GATE_004", "Gate passe si ratio >= seuil (borne inclusive)")
GATE_005 = Invariant("GATE_005", "Gate jamais contourné, même sans auto-rollback")
GATE_006 = Invariant("GATE_006", "Convergence bornée par backoff exponentiel")

# ══════════════════════════════════════════════════════════════════════════════
# ROLLOUT (ROLL_001-010) - 10 règles
# ══════════════════════════════════════════════════════════════════════════════

ROLL_001 = Invariant("ROLL_001", "Transitions définies par table explicite (état, événement)")
ROLL_002 = Invariant("ROLL_002", "Au plus un rollout actif par noeud")
ROLL_003 = Invariant("ROLL_003", "Détection pendant un rollout actif ignorée")
ROLL_004 = Invariant("ROLL_004", "Chaque transition auditée avec le scan déclencheur")
ROLL_005 = Invariant("ROLL_005", "Idle vers CanaryTesting seulement si enabled")
ROLL_006 = Invariant("ROLL_006", "Échec de vérification: enable_auto_rollback choisit la branche")
ROLL_007 = Invariant("ROLL_007", "Désactivation n'interrompt pas le cycle en cours")
ROLL_008 = Invariant("ROLL_008", "Exclusion mutuelle par clé de noeud, pas de verrou global")
ROLL_009 = Invariant("ROLL_009", "Échec d'un noeud ne bloque jamais un autre noeud")
ROLL_010 = Invariant("ROLL_010", "Configuration lue une fois par cycle, jamais partielle")

# ══════════════════════════════════════════════════════════════════════════════
# ROLLBACK (RBK_001-004) - 4 règles
# ══════════════════════════════════════════════════════════════════════════════

RBK_001 = Invariant("RBK_001", "Rollback vers la dernière image saine connue")
RBK_002 = Invariant("RBK_002", "Gate santé réévalué après rollback")
RBK_003 = Invariant("RBK_003", "Une seule tentative de rollback, escalade externe")
RBK_004 = Invariant("RBK_004", "Rollback sans retour à la santé = Failed manuel")

# ══════════════════════════════════════════════════════════════════════════════
# TRANSVERSE (CFG, LOG, AUDIT) - 4 règles
# ══════════════════════════════════════════════════════════════════════════════

CFG_001 = Invariant("CFG_001", "Seuils de configuration validés avant usage")
CFG_002 = Invariant("CFG_002", "Toutes les erreurs de config retournées (pas fail-fast)")
LOG_001 = Invariant("LOG_001", "Logs JSON structurés avec noeud et corrélation")
AUDIT_001 = Invariant("AUDIT_001", "Événements d'audit hachés SHA-384 et signés")


# ══════════════════════════════════════════════════════════════════════════════
# REGISTRE
# ══════════════════════════════════════════════════════════════════════════════

ALL_INVARIANTS: Final[dict[str, Invariant]] = {
    # SEV (4)
    "SEV_001": SEV_001,
    "SEV_002": SEV_002,
    "SEV_003": SEV_003,
    "SEV_004": SEV_004,
    # SCAN (6)
    "SCAN_001": SCAN_001,
    "SCAN_002": SCAN_002,
    "SCAN_003": SCAN_003,
    "SCAN_004": SCAN_004,
    "SCAN_005": SCAN_005,
    "SCAN_006": SCAN_006,
    # CANARY (6)
    "CANARY_001": CANARY_001,
    "CANARY_002": CANARY_002,
    "CANARY_003": CANARY_003,
    "CANARY_004": CANARY_004,
    "CANARY_005": CANARY_005,
    "CANARY_006": CANARY_006,
    # GATE (6)
    "GATE_001": GATE_001,
    "GATE_002": GATE_002,
    "GATE_003": GATE_003,
    "GATE_004": GATE_004,
    "GATE_005": GATE_005,
    "GATE_006": GATE_006,
    # ROLL (10)
    "ROLL_001": ROLL_001,
    "ROLL_002": ROLL_002,
    "ROLL_003": ROLL_003,
    "ROLL_004": ROLL_004,
    "ROLL_005": ROLL_005,
    "ROLL_006": ROLL_006,
    "ROLL_007": ROLL_007,
    "ROLL_008": ROLL_008,
    "ROLL_009": ROLL_009,
    "ROLL_010": ROLL_010,
    # RBK (4)
    "RBK_001": RBK_001,
    "RBK_002": RBK_002,
    "RBK_003": RBK_003,
    "RBK_004": RBK_004,
    # Transverse (4)
    "CFG_001": CFG_001,
    "CFG_002": CFG_002,
    "LOG_001": LOG_001,
    "AUDIT_001": AUDIT_001,
}

# Comptage attendu par section
EXPECTED_COUNTS: Final[dict[str, int]] = {
    "SEV": 4,
    "SCAN": 6,
    "CANARY": 6,
    "GATE": 6,
    "ROLL": 10,
    "RBK": 4,
    "CFG": 2,
    "LOG": 1,
    "AUDIT": 1,
}

TOTAL_INVARIANTS: Final[int] = len(ALL_INVARIANTS)
