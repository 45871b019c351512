"""Tests for configuration loading and provider construction."""

import pytest

from keyhold.backends import PemKeyProvider, build_providers, get_provider
from keyhold.config import (
    Pkcs11ProviderSettings,
    SoftwareProviderSettings,
    load_config,
)
from keyhold.exceptions import ConfigurationError
from keyhold.registry import load_registry

CONFIG = """
providers:
  local:
    type: software
    key_dir: {key_dir}
    password_env: TEST_PEM_PASSWORD
  hsm:
    type: pkcs11
    module_path: /usr/lib/softhsm/libsofthsm2.so
    token_label: keyhold
    user_pin_env: TEST_HSM_PIN
keys:
  - Name: ContosoKey
    Id: key-2024
    Backend: local
    AuthorizedRoles: [KeyUsers, Admins]
    CacheExpirationInDays: 7
  - Name: ContosoKey
    Id: key-2023
    Backend: local
    AuthorizedRoles: [KeyUsers]
  - Name: PersonalKey
    Id: alice-1
    Backend: hsm
    AuthorizedEmailAddress:
      - alice@example.com
token:
  jwks_url: https://login.example.com/keys
  audience: keyhold
"""


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "keyhold.yaml"
    config_path.write_text(CONFIG.format(key_dir=tmp_path))
    monkeypatch.setenv("KEYHOLD_CONFIG", str(config_path))

    config = load_config()
    assert isinstance(config.providers["local"], SoftwareProviderSettings)
    assert isinstance(config.providers["hsm"], Pkcs11ProviderSettings)
    assert config.providers["hsm"].token_label == "keyhold"
    assert [k.id for k in config.keys] == ["key-2024", "key-2023", "alice-1"]
    assert config.keys[0].authorized_roles == ["KeyUsers", "Admins"]
    assert config.keys[0].cache_expiration_days == 7
    assert config.keys[2].authorized_emails == ["alice@example.com"]
    assert config.token.audience == "keyhold"


def test_missing_default_file_gives_empty_config(tmp_path, monkeypatch):
    monkeypatch.delenv("KEYHOLD_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert config.keys is None
    assert config.providers == {}


def test_missing_explicit_file_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(str(tmp_path / "absent.yaml"))


def test_numeric_key_ids_load_from_yaml(tmp_path):
    config_path = tmp_path / "keyhold.yaml"
    config_path.write_text("keys:\n  - Name: ContosoKey\n    Id: 2024\n    Backend: local\n")
    assert load_config(str(config_path)).keys[0].id == "2024"


def test_missing_keys_section_fails_registry_load(tmp_path):
    config_path = tmp_path / "keyhold.yaml"
    config_path.write_text("providers: {}\n")
    with pytest.raises(ConfigurationError, match="no key definitions"):
        load_registry(load_config(str(config_path)))


def test_invalid_yaml_is_a_configuration_error(tmp_path):
    config_path = tmp_path / "keyhold.yaml"
    config_path.write_text("keys: [unterminated\n")
    with pytest.raises(ConfigurationError):
        load_config(str(config_path))


def test_schema_errors_are_configuration_errors(tmp_path):
    config_path = tmp_path / "keyhold.yaml"
    config_path.write_text("providers:\n  x:\n    type: cloud\n")
    with pytest.raises(ConfigurationError):
        load_config(str(config_path))


def test_secrets_come_from_environment(monkeypatch):
    monkeypatch.setenv("TEST_HSM_PIN", "0000")
    monkeypatch.setenv("TEST_PEM_PASSWORD", "pw")
    hsm = Pkcs11ProviderSettings(module_path="/x.so", token_label="t", user_pin_env="TEST_HSM_PIN")
    local = SoftwareProviderSettings(key_dir="/keys", password_env="TEST_PEM_PASSWORD")
    assert hsm.user_pin() == "0000"
    assert local.password() == b"pw"
    assert SoftwareProviderSettings(key_dir="/keys").password() is None


def test_get_provider_builds_software_provider(tmp_path):
    provider = get_provider("local", SoftwareProviderSettings(key_dir=str(tmp_path)))
    assert isinstance(provider, PemKeyProvider)
    assert provider.name == "local"
    assert provider.key_dir == tmp_path


def test_pkcs11_provider_needs_token_selector():
    with pytest.raises(ConfigurationError, match="token_label or slot"):
        get_provider("hsm", Pkcs11ProviderSettings(module_path="/x.so"))


def test_load_registry_from_config(tmp_path, monkeypatch):
    pytest.importorskip("pkcs11")
    config_path = tmp_path / "keyhold.yaml"
    config_path.write_text(CONFIG.format(key_dir=tmp_path))

    config = load_config(str(config_path))
    providers = build_providers(config)
    registry = load_registry(config, providers)

    assert set(providers) == {"local", "hsm"}
    assert registry.names() == ["ContosoKey", "PersonalKey"]
    assert registry.active_key_id("ContosoKey") == "key-2024"
    assert registry.get_key("ContosoKey", "key-2023").key_id == "key-2023"
