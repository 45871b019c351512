"""Key registry resolving logical names to key versions."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..backends import KeyProvider, build_providers
from ..config import KeyholdConfig
from ..exceptions import ConfigurationError, KeyNotFoundError
from ..models import KeyDefinition
from ..security.authorizers import build_authorizer
from .models import KeyRecord

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = (("name", "Name"), ("id", "Id"), ("backend", "Backend"))


class KeyRegistry:
    """Read-only index of key records built once from key definitions.

    Several definitions may share a logical name. The first one listed is the
    active key for that name; the others stay addressable by key id so that
    data encrypted under a rolled key can still be decrypted. Rotation is a
    configuration change followed by a reload, never a runtime mutation.
    """

    def __init__(
        self,
        records: Mapping[Tuple[str, str], KeyRecord],
        active: Mapping[str, str],
    ) -> None:
        self._records = MappingProxyType(dict(records))
        self._active = MappingProxyType(dict(active))

    @classmethod
    def load(
        cls,
        definitions: Optional[Iterable[KeyDefinition]],
        providers: Mapping[str, KeyProvider],
    ) -> "KeyRegistry":
        """Build a registry from ``definitions`` in order.

        Raises:
            ConfigurationError: If there are no definitions, or any of them is
                incomplete, contradictory or names an unknown provider.
        """

        definitions = list(definitions or [])
        if not definitions:
            raise ConfigurationError("no key definitions")

        records: Dict[Tuple[str, str], KeyRecord] = {}
        active: Dict[str, str] = {}

        for definition in definitions:
            authorizer = build_authorizer(definition)

            for field, label in _REQUIRED_FIELDS:
                if not getattr(definition, field):
                    raise ConfigurationError(f"The key must have a {label}")

            name, key_id = definition.name, definition.id
            provider = providers.get(definition.backend)
            if provider is None:
                raise ConfigurationError(
                    f"Key {name}/{key_id} refers to unknown backend {definition.backend}"
                )
            if (name, key_id) in records:
                raise ConfigurationError(f"Key {name}/{key_id} is defined more than once")

            records[(name, key_id)] = KeyRecord(
                backend=provider.backend_for(key_id),
                key_id=key_id,
                authorizer=authorizer,
                cache_expiration_days=definition.cache_expiration_days,
            )

            # First definition for a name is active, later ones are rolled keys.
            if name not in active:
                active[name] = key_id
                logger.info(f"Registered active key {name}/{key_id} on {definition.backend}")
            else:
                logger.info(f"Registered rolled key {name}/{key_id} on {definition.backend}")

        return cls(records, active)

    def get_active_key(self, name: str) -> KeyRecord:
        """Return the active record for ``name``."""
        key_id = self._active.get(name)
        if key_id is None:
            raise KeyNotFoundError(name)
        record = self._records.get((name, key_id))
        if record is None:
            logger.error(f"Active key {name}/{key_id} has no record")
            raise KeyNotFoundError(name)
        return record

    def get_key(self, name: str, key_id: str) -> KeyRecord:
        """Return the record for a specific version of ``name``."""
        record = self._records.get((name, key_id))
        if record is None:
            raise KeyNotFoundError(name, key_id)
        return record

    def active_key_id(self, name: str) -> str:
        return self.get_active_key(name).key_id

    def names(self) -> List[str]:
        """Logical names in definition order."""
        return list(self._active)

    def versions(self, name: str) -> List[str]:
        """Key ids registered under ``name`` in definition order."""
        if name not in self._active:
            raise KeyNotFoundError(name)
        return [key_id for (n, key_id) in self._records if n == name]

    def __contains__(self, name: object) -> bool:
        return name in self._active

    def __len__(self) -> int:
        return len(self._records)


def load_registry(
    config: KeyholdConfig, providers: Optional[Mapping[str, KeyProvider]] = None
) -> KeyRegistry:
    """Build the providers declared in ``config`` and load its key definitions."""

    providers = providers if providers is not None else build_providers(config)
    return KeyRegistry.load(config.keys, providers)


__all__ = ["KeyRecord", "KeyRegistry", "load_registry"]
