"""
STELLAR CVE - Crypto Provider
Signature ECDSA-P384 et hachage SHA-384 des événements d'audit de rollout.
"""

import hashlib
from typing import Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .interfaces import ICryptoProvider


class CryptoProvider(ICryptoProvider):
    """
    Clés de signature indexées par key_id.

    Une clé absente est générée à la première signature; une clé
    persistée peut être rechargée via load_private_key() pour que les
    événements restent vérifiables après redémarrage du contrôleur.
    """

    def __init__(self) -> None:
        self._keys: Dict[str, ec.EllipticCurvePrivateKey] = {}

    def _key(self, key_id: str) -> ec.EllipticCurvePrivateKey:
        key = self._keys.get(key_id)
        if key is None:
            key = ec.generate_private_key(ec.SECP384R1())
            self._keys[key_id] = key
        return key

    def load_private_key(self, key_id: str, pem: bytes, password: Optional[bytes] = None) -> None:
        """
        Charge une clé privée PEM.

        Raises:
            ValueError: Si la clé n'est pas une clé EC P-384
        """
        key = serialization.load_pem_private_key(pem, password=password)
        if not isinstance(key, ec.EllipticCurvePrivateKey) or key.curve.name != "secp384r1":
            raise ValueError(f"Key {key_id} is not an ECDSA P-384 private key")
        self._keys[key_id] = key

    def export_public_key(self, key_id: str) -> bytes:
        """Exporte la clé publique (PEM) pour vérification externe."""
        return self._key(key_id).public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def sign(self, data: bytes, key_id: str) -> bytes:
        return self._key(key_id).sign(data, ec.ECDSA(hashes.SHA384()))

    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        if key_id not in self._keys:
            return False
        try:
            self._keys[key_id].public_key().verify(signature, data, ec.ECDSA(hashes.SHA384()))
        except InvalidSignature:
            return False
        return True

    def hash(self, data: bytes) -> str:
        return hashlib.sha384(data).hexdigest()
