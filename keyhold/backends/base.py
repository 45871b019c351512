"""Key backend interface shared by hardware and software providers."""

from __future__ import annotations

import abc
import threading
from typing import Optional

from ..models import PublicKey


class KeyBackend(metaclass=abc.ABCMeta):
    """One physical RSA key held by a provider.

    Constructing a backend never contacts the provider. ``get_public_key``
    exports the public half once and caches it; ``decrypt`` performs
    RSA-OAEP with SHA-256 and may block on the provider. Implementations must
    release every provider handle they open before returning.
    """

    def __init__(self, key_id: str) -> None:
        self.key_id = key_id
        self._public_key: Optional[PublicKey] = None
        self._public_key_lock = threading.Lock()

    def get_public_key(self) -> PublicKey:
        """Return the public key, exporting it from the provider on first use."""
        cached = self._public_key
        if cached is not None:
            return cached
        with self._public_key_lock:
            if self._public_key is None:
                self._public_key = self._export_public_key()
            return self._public_key

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt OAEP-SHA256 ``ciphertext`` with the private key."""
        return self._decrypt(ciphertext)

    @abc.abstractmethod
    def _export_public_key(self) -> PublicKey:
        """Read the public key from the provider.

        Raises:
            KeyNotFoundError: If the key handle does not exist.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def _decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt with the provider.

        Raises:
            KeyNotFoundError: If the key handle does not exist.
            DecryptionError: If the ciphertext or its padding is invalid.
        """
        raise NotImplementedError

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}(key_id={self.key_id!r})"


class KeyProvider(metaclass=abc.ABCMeta):
    """Creates backends for keys stored in one provider."""

    name: str = ""

    @abc.abstractmethod
    def backend_for(self, key_id: str) -> KeyBackend:
        """Return a lazy backend handle for ``key_id``."""
        raise NotImplementedError
