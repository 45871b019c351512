"""In-memory key provider for testing."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..exceptions import DecryptionError, KeyNotFoundError
from ..models import PublicKey
from .base import KeyBackend, KeyProvider

logger = logging.getLogger(__name__)


def oaep_sha256() -> padding.OAEP:
    """OAEP padding with SHA-256 for both the digest and MGF1."""
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def public_key_of(private_key: rsa.RSAPrivateKey) -> PublicKey:
    numbers = private_key.public_key().public_numbers()
    return PublicKey.from_numbers(numbers.n, numbers.e)


def decrypt_with(private_key: rsa.RSAPrivateKey, ciphertext: bytes) -> bytes:
    """Decrypt with a ``cryptography`` key, hiding the failure reason."""
    try:
        return private_key.decrypt(ciphertext, oaep_sha256())
    except ValueError as exc:
        raise DecryptionError() from exc


class InMemoryKeyBackend(KeyBackend):
    """Backend resolving its key from an :class:`InMemoryKeyProvider`."""

    def __init__(self, key_id: str, provider: "InMemoryKeyProvider") -> None:
        super().__init__(key_id)
        self._provider = provider

    def _private_key(self) -> rsa.RSAPrivateKey:
        key = self._provider.private_key(self.key_id)
        if key is None:
            raise KeyNotFoundError(
                key_id=self.key_id, detail=f"not held by provider {self._provider.name}"
            )
        return key

    def _export_public_key(self) -> PublicKey:
        return public_key_of(self._private_key())

    def _decrypt(self, ciphertext: bytes) -> bytes:
        return decrypt_with(self._private_key(), ciphertext)


class InMemoryKeyProvider(KeyProvider):
    """Holds RSA private keys directly in process memory.

    Useful for tests. Keys may be added after backends were handed out;
    a backend whose key is absent fails at operation time.
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._keys: Dict[str, rsa.RSAPrivateKey] = {}

    def add_key(self, key_id: str, private_key: rsa.RSAPrivateKey) -> None:
        self._keys[key_id] = private_key
        logger.debug(f"Added key {key_id} to in-memory provider {self.name}")

    def private_key(self, key_id: str) -> Optional[rsa.RSAPrivateKey]:
        return self._keys.get(key_id)

    def backend_for(self, key_id: str) -> InMemoryKeyBackend:
        return InMemoryKeyBackend(key_id, self)
