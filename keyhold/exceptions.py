"""Error hierarchy for keyhold.

None of these derive from :class:`ValueError`, so raising them inside pydantic
validators propagates them unchanged instead of being folded into a
``ValidationError``.
"""

from __future__ import annotations

from typing import Optional


class KeyholdError(Exception):
    """Base class for all keyhold errors."""


class ConfigurationError(KeyholdError):
    """Key definitions or provider settings are missing or contradictory."""


class KeyNotFoundError(KeyholdError):
    """A logical name, key version or provider handle could not be resolved.

    Backends only know the key id and leave ``name`` unset.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        key_id: Optional[str] = None,
        detail: str = "",
    ) -> None:
        self.name = name
        self.key_id = key_id
        label = "-".join(part for part in (name, key_id) if part is not None)
        message = f"Key {label} not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DecryptionError(KeyholdError):
    """Ciphertext failed validation. The reason is deliberately not exposed."""

    def __init__(self, message: str = "Decryption failed") -> None:
        super().__init__(message)


class ProviderUnavailableError(KeyholdError):
    """The key provider could not be reached (token missing, login failed)."""


class AuthorizationError(KeyholdError):
    """The caller is not permitted to use the requested key."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Caller is not authorized to use key {name}")


__all__ = [
    "KeyholdError",
    "ConfigurationError",
    "KeyNotFoundError",
    "DecryptionError",
    "ProviderUnavailableError",
    "AuthorizationError",
]
