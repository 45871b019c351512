"""Pydantic models describing key definitions and public key material."""

from __future__ import annotations

import base64
from typing import List, Optional

from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

KEY_TYPE = "RSA"
ALGORITHM = "RS256"

MAX_EXPONENT = 0xFFFFFFFF


class KeyDefinition(BaseModel):
    """One entry of the ``keys`` configuration section.

    Field names follow the configuration file (``Name``, ``Id``, ``Backend``
    ...) but the snake_case names are accepted as well. ``name``, ``id`` and
    ``backend`` are declared optional here; the registry is responsible for
    rejecting definitions that omit them so the error can name the field.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("Name", "name")
    )
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("Id", "id"))
    backend: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("Backend", "KSP", "backend"),
        description="Name of the key provider holding the key",
    )
    authorized_roles: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("AuthorizedRoles", "authorized_roles"),
    )
    authorized_emails: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("AuthorizedEmailAddress", "authorized_emails"),
    )
    cache_expiration_days: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("CacheExpirationInDays", "cache_expiration_days"),
    )

    @field_validator("authorized_roles", "authorized_emails")
    @classmethod
    def _empty_as_absent(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return v or None


class PublicKey(BaseModel):
    """Public half of an RSA key.

    ``modulus`` is the base64 encoding of the big-endian modulus bytes and
    ``exponent`` is limited to 32 bits.
    """

    model_config = ConfigDict(frozen=True)

    modulus: str
    exponent: int = Field(..., gt=0, le=MAX_EXPONENT)

    @classmethod
    def from_numbers(cls, modulus: int, exponent: int) -> "PublicKey":
        """Build from the integer modulus and exponent."""
        raw = modulus.to_bytes((modulus.bit_length() + 7) // 8, "big")
        return cls(modulus=base64.b64encode(raw).decode("ascii"), exponent=exponent)

    @classmethod
    def from_bytes(cls, modulus: bytes, exponent: bytes) -> "PublicKey":
        """Build from big-endian byte strings as returned by PKCS#11 tokens."""
        return cls.from_numbers(
            int.from_bytes(modulus, "big"), int.from_bytes(exponent, "big")
        )

    @property
    def modulus_int(self) -> int:
        return int.from_bytes(base64.b64decode(self.modulus), "big")

    def to_cryptography(self) -> rsa.RSAPublicKey:
        """Return a ``cryptography`` public key usable for OAEP encryption."""
        return rsa.RSAPublicNumbers(self.exponent, self.modulus_int).public_key()
