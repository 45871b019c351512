"""Command line interface for inspecting and exercising a key registry."""

from __future__ import annotations

import logging
from typing import List, Optional

import jwt
import requests
import typer

from keyhold.config import KeyholdConfig, load_config
from keyhold.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DecryptionError,
    KeyNotFoundError,
    ProviderUnavailableError,
)
from keyhold.registry import load_registry
from keyhold.security.identity import CallerIdentity
from keyhold.security.tokens import TokenConfig, TokenVerifier
from keyhold.service import KeyService

app = typer.Typer(help="CLI for keyhold key registries")

keys_app = typer.Typer(help="Commands for inspecting configured keys")

app.add_typer(keys_app, name="keys")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to the YAML configuration (default: $KEYHOLD_CONFIG)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
) -> None:
    """keyhold CLI entry point."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    ctx.obj = {"config": config}


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _load_config(ctx: typer.Context) -> KeyholdConfig:
    try:
        return load_config((ctx.obj or {}).get("config"))
    except ConfigurationError as exc:
        _fail(f"Configuration error: {exc}")


def _build_service(config: KeyholdConfig) -> KeyService:
    try:
        registry = load_registry(config)
    except ConfigurationError as exc:
        _fail(f"Configuration error: {exc}")
    return KeyService(registry)


def _load_service(ctx: typer.Context) -> KeyService:
    return _build_service(_load_config(ctx))


def _token_identity(config: KeyholdConfig, token: str) -> CallerIdentity:
    token_config = (
        TokenConfig.from_settings(config.token) if config.token else TokenConfig.from_env()
    )
    if not token_config.jwks_url:
        _fail("Configuration error: no jwks_url configured for token validation")
    try:
        return TokenVerifier(token_config).identity(token)
    except (jwt.PyJWTError, requests.RequestException, ValueError) as exc:
        _fail(f"Invalid token: {exc}")


@keys_app.command("list")
def keys_list(ctx: typer.Context) -> None:
    """
    List logical key names with their active and rolled versions.

    Example:
        keyhold keys list
        # Output: ContosoKey    active=key-2024    rolled=key-2023
    """
    registry = _load_service(ctx).registry
    for name in registry.names():
        active = registry.active_key_id(name)
        rolled = [key_id for key_id in registry.versions(name) if key_id != active]
        line = f"{name}\tactive={active}"
        if rolled:
            line += f"\trolled={','.join(rolled)}"
        typer.echo(line)


@keys_app.command("show")
def keys_show(
    ctx: typer.Context,
    name: str,
    key_id: Optional[str] = typer.Option(None, "--key-id", help="Specific key version"),
) -> None:
    """
    Print the public key of a logical key as JSON.

    Uses the active version unless --key-id is given.

    Example:
        keyhold keys show ContosoKey
        keyhold keys show ContosoKey --key-id key-2023
    """
    service = _load_service(ctx)
    try:
        response = service.get_public_key(name, key_id)
    except KeyNotFoundError as exc:
        _fail(str(exc))
    except ProviderUnavailableError as exc:
        _fail(f"Provider unavailable: {exc}")
    typer.echo(response.model_dump_json(indent=2, exclude_none=True))


@app.command("decrypt")
def decrypt(
    ctx: typer.Context,
    name: str,
    value: str = typer.Argument(..., help="Base64 encoded ciphertext"),
    key_id: Optional[str] = typer.Option(None, "--key-id", help="Specific key version"),
    token: Optional[str] = typer.Option(
        None, "--token", help="Bearer token identifying the caller"
    ),
    principal: Optional[str] = typer.Option(None, "--principal", help="Caller principal"),
    role: List[str] = typer.Option([], "--role", help="Caller role claim (repeatable)"),
    email: Optional[str] = typer.Option(None, "--email", help="Caller e-mail claim"),
) -> None:
    """
    Decrypt a base64 value as the given caller and print the base64 plaintext.

    The caller is checked against the key's authorizer exactly as a request would be.
    With --token the caller comes from a validated JWT, otherwise from
    --principal/--role/--email.

    Example:
        keyhold decrypt ContosoKey <b64> --principal alice --role KeyUsers
        keyhold decrypt ContosoKey <b64> --token "$ACCESS_TOKEN"
    """
    if token is None and principal is None:
        _fail("Either --token or --principal is required")
    config = _load_config(ctx)
    service = _build_service(config)
    if token is not None:
        identity = _token_identity(config, token)
    else:
        identity = CallerIdentity(principal=principal, roles=frozenset(role), email=email)
    try:
        typer.echo(service.decrypt_base64(name, key_id, value, identity))
    except KeyNotFoundError as exc:
        _fail(str(exc))
    except AuthorizationError as exc:
        _fail(str(exc))
    except DecryptionError:
        _fail("Decryption failed")
    except ProviderUnavailableError as exc:
        _fail(f"Provider unavailable: {exc}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
