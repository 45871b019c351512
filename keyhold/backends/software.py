"""Software key provider backed by PEM files on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..exceptions import ConfigurationError, KeyNotFoundError
from ..models import PublicKey
from .base import KeyBackend, KeyProvider
from .memory import decrypt_with, public_key_of

logger = logging.getLogger(__name__)


class PemKeyBackend(KeyBackend):
    """Reads ``<key_dir>/<key_id>.pem`` for every operation.

    The private key is never kept beyond a single call.
    """

    def __init__(self, key_id: str, path: Path, password: Optional[bytes] = None) -> None:
        super().__init__(key_id)
        self.path = path
        self._password = password

    def _load(self) -> rsa.RSAPrivateKey:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as exc:
            raise KeyNotFoundError(key_id=self.key_id, detail=f"no key file at {self.path}") from exc

        try:
            key = serialization.load_pem_private_key(data, password=self._password)
        except (ValueError, TypeError) as exc:
            logger.error(f"Key file {self.path} could not be loaded: {exc}")
            raise KeyNotFoundError(key_id=self.key_id, detail="key file is unreadable") from exc

        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyNotFoundError(key_id=self.key_id, detail="key file does not hold an RSA key")
        return key

    def _export_public_key(self) -> PublicKey:
        return public_key_of(self._load())

    def _decrypt(self, ciphertext: bytes) -> bytes:
        return decrypt_with(self._load(), ciphertext)


class PemKeyProvider(KeyProvider):
    """Provider for keys kept as PKCS#8 or traditional PEM files in one directory."""

    def __init__(
        self,
        key_dir: Union[str, Path],
        password: Optional[bytes] = None,
        name: str = "software",
    ) -> None:
        self.name = name
        self.key_dir = Path(key_dir)
        self._password = password

    def backend_for(self, key_id: str) -> PemKeyBackend:
        if not key_id or Path(key_id).name != key_id or key_id in (".", ".."):
            raise ConfigurationError(f"Key id {key_id!r} is not a valid file name")
        return PemKeyBackend(key_id, self.key_dir / f"{key_id}.pem", self._password)
