import base64
import json

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from typer.testing import CliRunner

from keyhold.cli import app

CONFIG = """
providers:
  local:
    type: software
    key_dir: {key_dir}
keys:
  - Name: ContosoKey
    Id: key-2024
    Backend: local
    AuthorizedRoles: [KeyUsers]
    CacheExpirationInDays: 7
  - Name: ContosoKey
    Id: key-2023
    Backend: local
    AuthorizedRoles: [KeyUsers]
"""


@pytest.fixture
def config_path(tmp_path, rsa_keys):
    for key_id, key in zip(["key-2024", "key-2023"], rsa_keys):
        (tmp_path / f"{key_id}.pem").write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
    path = tmp_path / "keyhold.yaml"
    path.write_text(CONFIG.format(key_dir=tmp_path))
    return str(path)


def test_keys_list_shows_active_and_rolled(config_path):
    runner = CliRunner()
    result = runner.invoke(app, ["--config", config_path, "keys", "list"])
    assert result.exit_code == 0, result.stdout
    assert "ContosoKey\tactive=key-2024\trolled=key-2023" in result.stdout


def test_keys_show_prints_public_key(config_path, rsa_keys):
    runner = CliRunner()
    result = runner.invoke(app, ["--config", config_path, "keys", "show", "ContosoKey", "--key-id", "key-2023"])
    assert result.exit_code == 0, result.stdout

    document = json.loads(result.stdout)
    assert document["kid"] == "ContosoKey/key-2023"
    assert document["kty"] == "RSA"
    assert document["alg"] == "RS256"
    assert int.from_bytes(base64.b64decode(document["n"]), "big") == (
        rsa_keys[1].public_key().public_numbers().n
    )


def test_keys_show_unknown_key(config_path):
    runner = CliRunner()
    result = runner.invoke(app, ["--config", config_path, "keys", "show", "Missing"])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_decrypt_command(config_path, rsa_keys, oaep_encrypt):
    value = base64.b64encode(oaep_encrypt(rsa_keys[0].public_key(), b"hello")).decode()
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["--config", config_path, "decrypt", "ContosoKey", value, "--principal", "bob", "--role", "KeyUsers"],
    )
    assert result.exit_code == 0, result.stdout
    assert base64.b64decode(result.stdout.strip()) == b"hello"


def test_decrypt_command_denies_unauthorized_caller(config_path, rsa_keys, oaep_encrypt):
    value = base64.b64encode(oaep_encrypt(rsa_keys[0].public_key(), b"hello")).decode()
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["--config", config_path, "decrypt", "ContosoKey", value, "--principal", "eve", "--role", "Guests"],
    )
    assert result.exit_code == 1
    assert "not authorized" in result.stdout


def test_configuration_errors_exit_nonzero(tmp_path):
    path = tmp_path / "keyhold.yaml"
    path.write_text("providers: {}\n")
    runner = CliRunner()
    result = runner.invoke(app, ["--config", str(path), "keys", "list"])
    assert result.exit_code == 1
    assert "no key definitions" in result.stdout


def test_missing_config_file_exits_nonzero(tmp_path):
    runner = CliRunner()
    result = runner.invoke(app, ["--config", str(tmp_path / "missing.yaml"), "keys", "list"])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_decrypt_command_needs_a_caller(config_path):
    runner = CliRunner()
    result = runner.invoke(app, ["--config", config_path, "decrypt", "ContosoKey", "AAAA"])
    assert result.exit_code == 1
    assert "--token or --principal" in result.stdout


@pytest.fixture
def token_config_path(config_path, monkeypatch):
    signer = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(signer.public_key()))
    jwk["kid"] = "cli"

    class Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return {"keys": [jwk]}

    monkeypatch.setattr("requests.get", lambda url, timeout=5: Resp())
    with open(config_path, "a") as f:
        f.write("token:\n  jwks_url: http://idp/jwks\n  audience: keyhold\n")

    def issue(claims):
        return jwt.encode(claims, signer, algorithm="RS256", headers={"kid": "cli"})

    return config_path, issue


def test_decrypt_command_with_token(token_config_path, rsa_keys, oaep_encrypt):
    config_path, issue = token_config_path
    token = issue({"sub": "bob", "aud": "keyhold", "roles": ["KeyUsers"]})
    value = base64.b64encode(oaep_encrypt(rsa_keys[0].public_key(), b"hello")).decode()

    runner = CliRunner()
    result = runner.invoke(
        app, ["--config", config_path, "decrypt", "ContosoKey", value, "--token", token]
    )
    assert result.exit_code == 0, result.stdout
    assert base64.b64decode(result.stdout.strip()) == b"hello"


def test_decrypt_command_rejects_invalid_token(token_config_path, rsa_keys, oaep_encrypt):
    config_path, issue = token_config_path
    token = issue({"sub": "bob", "aud": "someone-else", "roles": ["KeyUsers"]})
    value = base64.b64encode(oaep_encrypt(rsa_keys[0].public_key(), b"hello")).decode()

    runner = CliRunner()
    result = runner.invoke(
        app, ["--config", config_path, "decrypt", "ContosoKey", value, "--token", token]
    )
    assert result.exit_code == 1
    assert "Invalid token" in result.stdout
