"""keyhold: key registry with per-key authorization and rotation."""

from .backends import InMemoryKeyProvider, KeyBackend, KeyProvider, PemKeyProvider
from .config import KeyholdConfig, load_config
from .exceptions import (
    AuthorizationError,
    ConfigurationError,
    DecryptionError,
    KeyholdError,
    KeyNotFoundError,
    ProviderUnavailableError,
)
from .models import ALGORITHM, KEY_TYPE, KeyDefinition, PublicKey
from .registry import KeyRecord, KeyRegistry, load_registry
from .security import CallerIdentity, EmailAuthorizer, RoleAuthorizer
from .service import KeyService, PublicKeyResponse

__version__ = "0.1.0"
__all__ = [
    "ALGORITHM",
    "KEY_TYPE",
    "AuthorizationError",
    "CallerIdentity",
    "ConfigurationError",
    "DecryptionError",
    "EmailAuthorizer",
    "InMemoryKeyProvider",
    "KeyBackend",
    "KeyDefinition",
    "KeyholdConfig",
    "KeyholdError",
    "KeyNotFoundError",
    "KeyProvider",
    "KeyRecord",
    "KeyRegistry",
    "KeyService",
    "PemKeyProvider",
    "ProviderUnavailableError",
    "PublicKey",
    "PublicKeyResponse",
    "RoleAuthorizer",
    "load_config",
    "load_registry",
]
