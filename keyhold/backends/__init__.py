"""Key provider factory and initialization."""

from __future__ import annotations

from typing import Dict, Mapping

from ..config import (
    KeyholdConfig,
    Pkcs11ProviderSettings,
    ProviderSettings,
    SoftwareProviderSettings,
)
from ..exceptions import ConfigurationError
from .base import KeyBackend, KeyProvider
from .memory import InMemoryKeyBackend, InMemoryKeyProvider
from .software import PemKeyBackend, PemKeyProvider


def get_provider(name: str, settings: ProviderSettings) -> KeyProvider:
    """Factory function to build the provider described by ``settings``."""

    if isinstance(settings, SoftwareProviderSettings):
        return PemKeyProvider(settings.key_dir, password=settings.password(), name=name)
    elif isinstance(settings, Pkcs11ProviderSettings):
        if settings.token_label is None and settings.slot is None:
            raise ConfigurationError(
                f"Provider {name} must set either token_label or slot"
            )
        try:
            from .pkcs11 import Pkcs11KeyProvider
        except ImportError as exc:
            raise ConfigurationError(
                f"Provider {name} requires python-pkcs11 (install keyhold[hsm])"
            ) from exc

        return Pkcs11KeyProvider(
            settings.module_path,
            token_label=settings.token_label,
            slot=settings.slot,
            user_pin=settings.user_pin(),
            name=name,
        )
    else:
        raise ConfigurationError(f"Unsupported key provider for {name}: {settings!r}")


def build_providers(config: KeyholdConfig) -> Mapping[str, KeyProvider]:
    """Build every provider declared in ``config``."""

    providers: Dict[str, KeyProvider] = {}
    for name, settings in config.providers.items():
        providers[name] = get_provider(name, settings)
    return providers


__all__ = [
    "KeyBackend",
    "KeyProvider",
    "InMemoryKeyBackend",
    "InMemoryKeyProvider",
    "PemKeyBackend",
    "PemKeyProvider",
    "build_providers",
    "get_provider",
]
