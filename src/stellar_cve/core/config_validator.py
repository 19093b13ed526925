"""
STELLAR CVE - Config Validator
Valide un manifeste StellarNode avant construction de la ressource.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from pydantic import ValidationError as PydanticValidationError

from .interfaces import (
    CVEHandlingConfig,
    IConfigValidator,
    NodeType,
    StellarNetwork,
    ValidationError,
    ValidationResult,
    ValidationSeverity,
)

ManifestCheck = Callable[[Dict[str, Any]], List[ValidationError]]


class ConfigValidator(IConfigValidator):
    """Validation des manifestes contre les règles CFG_001-002."""

    def __init__(self) -> None:
        self._checks: List[ManifestCheck] = [
            self._check_metadata,
            self._check_spec,
            self._check_replicas,
            self._check_cve_handling,
        ]

    def validate(self, manifest: Dict[str, Any]) -> ValidationResult:
        """
        CFG_002: Exécute toutes les vérifications, sans s'arrêter
        à la première erreur.
        """
        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []

        for check in self._checks:
            for error in check(manifest):
                if error.severity == ValidationSeverity.BLOCKING:
                    errors.append(error)
                elif error.severity == ValidationSeverity.WARNING:
                    warnings.append(error)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            checked_at=datetime.now(timezone.utc),
        )

    def _check_metadata(self, manifest: Dict[str, Any]) -> List[ValidationError]:
        metadata = manifest.get("metadata")
        if not isinstance(metadata, dict):
            return [_error("metadata manquant ou invalide", "metadata")]

        errors = []
        for key in ("name", "namespace"):
            value = metadata.get(key)
            if key == "namespace" and value is None:
                continue  # namespace "default" implicite
            if not isinstance(value, str) or not value.strip():
                errors.append(_error(f"metadata.{key} doit être une chaîne non vide", f"metadata.{key}", value))
        return errors

    def _check_spec(self, manifest: Dict[str, Any]) -> List[ValidationError]:
        spec = manifest.get("spec")
        if not isinstance(spec, dict):
            return [_error("spec manquant ou invalide", "spec")]

        errors = []
        image = spec.get("image")
        if not isinstance(image, str) or not image.strip():
            errors.append(_error("spec.image doit être une référence d'image", "spec.image", image))

        node_type = spec.get("nodeType")
        if node_type not in {t.value for t in NodeType}:
            errors.append(_error(f"nodeType inconnu: {node_type}", "spec.nodeType", node_type))

        network = spec.get("network")
        if network not in {n.value for n in StellarNetwork}:
            errors.append(_error(f"network inconnu: {network}", "spec.network", network))
        return errors

    def _check_replicas(self, manifest: Dict[str, Any]) -> List[ValidationError]:
        spec = manifest.get("spec")
        if not isinstance(spec, dict):
            return []

        replicas = spec.get("replicas", 1)
        if isinstance(replicas, bool) or not isinstance(replicas, (int, list)):
            return [_error("spec.replicas doit être un entier ou une liste de noms", "spec.replicas", replicas)]
        if isinstance(replicas, int) and replicas < 0:
            return [_error("spec.replicas ne peut être négatif", "spec.replicas", replicas)]
        if isinstance(replicas, list) and not all(isinstance(r, str) and r for r in replicas):
            return [_error("spec.replicas contient un nom invalide", "spec.replicas", replicas)]

        count = replicas if isinstance(replicas, int) else len(replicas)
        if count == 0:
            # GATE_002: le gate échouera systématiquement
            return [
                ValidationError(
                    rule_id="GATE_002",
                    message="Aucune réplique: le gate de santé échouera toujours",
                    location="spec.replicas",
                    value="0",
                    severity=ValidationSeverity.WARNING,
                )
            ]
        return []

    def _check_cve_handling(self, manifest: Dict[str, Any]) -> List[ValidationError]:
        """CFG_001: Bornes des seuils, déléguées au modèle pydantic."""
        spec = manifest.get("spec")
        if not isinstance(spec, dict) or spec.get("cveHandling") is None:
            return []

        raw = spec["cveHandling"]
        if not isinstance(raw, dict):
            return [_error("cveHandling doit être un objet", "spec.cveHandling")]

        try:
            CVEHandlingConfig.model_validate(raw)
        except PydanticValidationError as e:
            return [
                _error(
                    err["msg"],
                    "spec.cveHandling." + ".".join(str(part) for part in err["loc"]),
                    err.get("input"),
                )
                for err in e.errors()
            ]
        return []


def _error(message: str, location: str, value: Any = None) -> ValidationError:
    return ValidationError(
        rule_id="CFG_001",
        message=message,
        location=location,
        value=None if value is None else str(value),
        severity=ValidationSeverity.BLOCKING,
    )
