"""
STELLAR CVE - Config Loader
Charge les manifestes StellarNode YAML et la politique CVE par défaut de la flotte.
"""

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config_validator import ConfigValidator
from .interfaces import (
    CVEHandlingConfig,
    IConfigLoader,
    IConfigValidator,
    NodeResource,
    NodeType,
    StellarNetwork,
)


class ConfigIntegrityError(Exception):
    """Manifeste introuvable, illisible ou invalide."""

    pass


def parse_manifest(manifest: Dict[str, Any], validator: Optional[IConfigValidator] = None) -> NodeResource:
    """
    Construit une NodeResource depuis un manifeste déjà parsé.

    Raises:
        ConfigIntegrityError: Si le manifeste viole une règle bloquante
    """
    result = (validator or ConfigValidator()).validate(manifest)
    if not result.valid:
        details = "; ".join(f"{e.location}: {e.message}" for e in result.errors)
        raise ConfigIntegrityError(f"Manifeste invalide: {details}")

    metadata = manifest["metadata"]
    spec = manifest["spec"]
    name = metadata["name"]

    # Un entier suit le nommage StatefulSet <name>-<ordinal>
    replicas = spec.get("replicas", 1)
    if isinstance(replicas, int):
        replica_names = [f"{name}-{i}" for i in range(replicas)]
    else:
        replica_names = list(replicas)

    raw_cve = spec.get("cveHandling")
    return NodeResource(
        name=name,
        namespace=metadata.get("namespace") or "default",
        node_type=NodeType(spec["nodeType"]),
        network=StellarNetwork(spec["network"]),
        image=spec["image"],
        replicas=replica_names,
        cve_handling=CVEHandlingConfig.model_validate(raw_cve) if raw_cve is not None else None,
        status=dict(manifest.get("status") or {}),
    )


def read_yaml(path: Path) -> Dict[str, Any]:
    """Lit un fichier YAML contenant un objet."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigIntegrityError(f"Erreur de parsing YAML {path}: {e}")
    except OSError as e:
        raise ConfigIntegrityError(f"Erreur de lecture fichier {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigIntegrityError(f"{path} doit contenir un objet YAML")
    return data


class ConfigLoader(IConfigLoader):
    """
    Chargement des ressources depuis un répertoire de manifestes YAML.

    Chaque fichier *.yaml (récursivement) décrit une ressource StellarNode.
    """

    def __init__(self, manifests_path: str, validator: Optional[IConfigValidator] = None) -> None:
        self.manifests_path = Path(manifests_path)
        self._validator = validator or ConfigValidator()

    def _index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for path in sorted(self.manifests_path.rglob("*.yaml")):
            metadata = read_yaml(path).get("metadata") or {}
            name = metadata.get("name")
            if not name:
                raise ConfigIntegrityError(f"metadata.name manquant: {path}")
            index[f"{metadata.get('namespace') or 'default'}/{name}"] = path
        return index

    def list_keys(self) -> List[str]:
        if not self.manifests_path.is_dir():
            raise ConfigIntegrityError(f"Répertoire de manifestes introuvable: {self.manifests_path}")
        return sorted(self._index())

    def load(self, node_key: str) -> NodeResource:
        path = self._index().get(node_key)
        if path is None:
            raise ConfigIntegrityError(f"Ressource non trouvée: {node_key}")
        return parse_manifest(read_yaml(path), self._validator)


class ConfigHolder:
    """
    Politique CVE par défaut de la flotte, partagée en lecture seule.

    ROLL_010: reload() remplace la référence d'un bloc; un cycle lit
    current() une seule fois et ne voit jamais de mise à jour partielle.
    """

    def __init__(self, config: Optional[CVEHandlingConfig] = None) -> None:
        self._config = config or CVEHandlingConfig()
        self._version = 1
        self._lock = threading.Lock()

    def current(self) -> CVEHandlingConfig:
        return self._config

    @property
    def version(self) -> int:
        return self._version

    def reload(self, config: CVEHandlingConfig) -> int:
        """Remplace la configuration; retourne la nouvelle version."""
        with self._lock:
            self._config = config
            self._version += 1
            return self._version

    def reload_from_file(self, path: str) -> int:
        """
        Recharge depuis un fichier YAML (clés camelCase ou snake_case).

        Raises:
            ConfigIntegrityError: Si le fichier est invalide; la configuration
                courante reste alors en place.
        """
        raw = read_yaml(Path(path))
        try:
            config = CVEHandlingConfig.model_validate(raw)
        except ValueError as e:
            raise ConfigIntegrityError(f"Politique CVE invalide: {e}")
        return self.reload(config)
