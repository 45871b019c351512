"""Key record bundling a backend with its per-key policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..backends.base import KeyBackend
from ..exceptions import ConfigurationError
from ..models import ALGORITHM, KEY_TYPE
from ..security.authorizers import Authorizer


@dataclass(frozen=True)
class KeyRecord:
    """One version of a logical key."""

    backend: KeyBackend
    key_id: str
    authorizer: Authorizer
    key_type: str = KEY_TYPE
    algorithm: str = ALGORITHM
    cache_expiration_days: Optional[int] = None

    def __post_init__(self) -> None:
        if self.authorizer is None:
            raise ConfigurationError(
                f"Key {self.key_id} has no authorizer; configure AuthorizedRoles "
                "or AuthorizedEmailAddress"
            )

    def cache_expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Time after which clients must fetch the public key again."""
        if self.cache_expiration_days is None:
            return None
        now = now or datetime.now(timezone.utc)
        return now + timedelta(days=self.cache_expiration_days)
