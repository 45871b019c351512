"""Request-facing operations on top of the key registry."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .exceptions import AuthorizationError, DecryptionError
from .registry import KeyRecord, KeyRegistry
from .security.identity import CallerIdentity

logger = logging.getLogger(__name__)


class PublicKeyResponse(BaseModel):
    """Public key document returned to clients that wrap data keys."""

    kty: str
    n: str = Field(..., description="Base64 encoded modulus")
    e: int = Field(..., description="Public exponent")
    alg: str
    kid: str = Field(..., description="<name>/<key id>")
    cache_expires_at: Optional[datetime] = None


class KeyService:
    """Resolves keys for callers and enforces their authorizers.

    Public keys are served to anyone; decryption requires the caller to pass
    the key's authorizer. Lookups that fail surface as
    :class:`~keyhold.exceptions.KeyNotFoundError` and callers should answer
    them with a plain "not found".
    """

    def __init__(self, registry: KeyRegistry) -> None:
        self.registry = registry

    def resolve(self, name: str, key_id: Optional[str] = None) -> KeyRecord:
        """Return the record for ``key_id``, or the active one when omitted."""
        if key_id is None:
            return self.registry.get_active_key(name)
        return self.registry.get_key(name, key_id)

    def get_public_key(self, name: str, key_id: Optional[str] = None) -> PublicKeyResponse:
        record = self.resolve(name, key_id)
        public_key = record.backend.get_public_key()
        return PublicKeyResponse(
            kty=record.key_type,
            n=public_key.modulus,
            e=public_key.exponent,
            alg=record.algorithm,
            kid=f"{name}/{record.key_id}",
            cache_expires_at=record.cache_expires_at(),
        )

    def decrypt(
        self,
        name: str,
        key_id: Optional[str],
        ciphertext: bytes,
        identity: CallerIdentity,
    ) -> bytes:
        """Decrypt ``ciphertext`` for ``identity``.

        Raises:
            KeyNotFoundError: Unknown name or key id, or the provider lost the key.
            AuthorizationError: The caller failed the key's authorizer.
            DecryptionError: The ciphertext is invalid.
        """

        record = self.resolve(name, key_id)
        if not record.authorizer.is_authorized(identity):
            logger.warning(
                f"Denied decrypt on {name}/{record.key_id} for principal {identity.principal}"
            )
            raise AuthorizationError(name)

        try:
            plaintext = record.backend.decrypt(ciphertext)
        except DecryptionError:
            logger.warning(f"Decryption failed on {name}/{record.key_id}")
            raise
        logger.info(f"Decrypted with {name}/{record.key_id} for principal {identity.principal}")
        return plaintext

    def decrypt_base64(
        self,
        name: str,
        key_id: Optional[str],
        value: str,
        identity: CallerIdentity,
    ) -> str:
        """Same as :meth:`decrypt` for base64 encoded input and output."""
        try:
            ciphertext = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError() from exc
        plaintext = self.decrypt(name, key_id, ciphertext, identity)
        return base64.b64encode(plaintext).decode("ascii")
