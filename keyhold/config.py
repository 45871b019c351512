from __future__ import annotations

import os
from typing import Annotated, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .models import KeyDefinition


class Pkcs11ProviderSettings(BaseModel):
    """Settings for a PKCS#11 (hardware) key provider."""

    type: Literal["pkcs11"] = "pkcs11"
    module_path: str
    token_label: Optional[str] = None
    slot: Optional[int] = None
    user_pin_env: Optional[str] = Field(
        default=None, description="Environment variable holding the user PIN"
    )

    def user_pin(self) -> Optional[str]:
        return os.getenv(self.user_pin_env) if self.user_pin_env else None


class SoftwareProviderSettings(BaseModel):
    """Settings for a provider reading PEM key files from a directory."""

    type: Literal["software"] = "software"
    key_dir: str
    password_env: Optional[str] = Field(
        default=None, description="Environment variable holding the PEM password"
    )

    def password(self) -> Optional[bytes]:
        value = os.getenv(self.password_env) if self.password_env else None
        return value.encode() if value else None


ProviderSettings = Annotated[
    Union[Pkcs11ProviderSettings, SoftwareProviderSettings],
    Field(discriminator="type"),
]


class TokenSettings(BaseModel):
    """Bearer token validation settings."""

    jwks_url: str
    audience: str = ""
    issuer: str = ""
    leeway: int = 30
    role_claim: str = "roles"


class KeyholdConfig(BaseModel):
    """Top-level configuration model.

    ``keys`` stays ``None`` when the section is missing so the registry can
    refuse to start.
    """

    providers: Dict[str, ProviderSettings] = Field(default_factory=dict)
    keys: Optional[List[KeyDefinition]] = None
    token: Optional[TokenSettings] = None


def load_config(path: Optional[str] = None) -> KeyholdConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to KEYHOLD_CONFIG env
            variable or 'keyhold.yaml' in the current directory.

    Raises:
        ConfigurationError: If an explicitly given ``path`` does not exist, or
            the file is not valid YAML or does not match the configuration
            schema.
    """

    config_path = path or os.getenv("KEYHOLD_CONFIG", "keyhold.yaml")
    if not os.path.exists(config_path):
        if path:
            raise ConfigurationError(f"Config file {path} not found")
        return KeyholdConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")

    try:
        return KeyholdConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc
