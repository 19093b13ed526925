"""
STELLAR CVE - Store de ressources YAML

Store local au-dessus d'un répertoire de manifestes: lecture via
ConfigLoader, status et image désirée gardés en mémoire.
"""

import copy
from typing import Any, Dict, List, Optional

from ..core.config_loader import ConfigIntegrityError, ConfigLoader
from ..core.errors import OrchestrationError
from ..core.interfaces import NodeResource
from .interfaces import IResourceStore


class YamlResourceStore(IResourceStore):
    """
    IResourceStore sur manifestes YAML.

    Les patchs de status sont fusionnés au premier niveau et réappliqués
    à chaque lecture; les fichiers ne sont jamais réécrits.
    """

    def __init__(self, loader: ConfigLoader) -> None:
        self._loader = loader
        self._status: Dict[str, Dict[str, Any]] = {}
        self._images: Dict[str, str] = {}

    async def get_node(self, node_key: str) -> NodeResource:
        try:
            node = self._loader.load(node_key)
        except ConfigIntegrityError as e:
            raise OrchestrationError(f"Cannot read {node_key}: {e}")
        if node_key in self._images:
            node.image = self._images[node_key]
        node.status.update(copy.deepcopy(self._status.get(node_key, {})))
        return node

    async def list_keys(self) -> List[str]:
        try:
            return self._loader.list_keys()
        except ConfigIntegrityError as e:
            raise OrchestrationError(f"Cannot list node resources: {e}")

    async def patch_status(self, node_key: str, status: Dict[str, Any]) -> None:
        self._status.setdefault(node_key, {}).update(copy.deepcopy(status))

    async def set_desired_image(self, node_key: str, image: str) -> None:
        self._images[node_key] = image

    def get_status(self, node_key: str) -> Dict[str, Any]:
        return copy.deepcopy(self._status.get(node_key, {}))

    def desired_image(self, node_key: str) -> Optional[str]:
        return self._images.get(node_key)
