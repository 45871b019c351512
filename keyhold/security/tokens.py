"""Bearer token validation producing caller identities."""

from __future__ import annotations

import logging
import os
import time
from typing import List, Mapping, Optional

import jwt
import requests

from ..config import TokenSettings
from .identity import CallerIdentity

logger = logging.getLogger(__name__)

ALLOWED_ALGORITHMS = ("RS256", "RS384", "RS512")
JWKS_CACHE_SECONDS = 300


class TokenConfig:
    def __init__(
        self,
        jwks_url: str,
        audience: str = "",
        issuer: str = "",
        leeway: int = 0,
        role_claim: str = "roles",
    ) -> None:
        self.jwks_url = jwks_url
        self.audience = audience
        self.issuer = issuer
        self.leeway = leeway
        self.role_claim = role_claim

    @classmethod
    def from_env(cls) -> "TokenConfig":
        return cls(
            jwks_url=os.getenv("KEYHOLD_JWKS_URL", ""),
            audience=os.getenv("KEYHOLD_AUDIENCE", ""),
            issuer=os.getenv("KEYHOLD_ISSUER", ""),
            leeway=int(os.getenv("KEYHOLD_LEEWAY", "30")),
            role_claim=os.getenv("KEYHOLD_ROLE_CLAIM", "roles"),
        )

    @classmethod
    def from_settings(cls, settings: TokenSettings) -> "TokenConfig":
        return cls(
            jwks_url=settings.jwks_url,
            audience=settings.audience,
            issuer=settings.issuer,
            leeway=settings.leeway,
            role_claim=settings.role_claim,
        )


class TokenVerifier:
    """Validates RS256 bearer tokens against a JWKS endpoint."""

    def __init__(self, config: Optional[TokenConfig] = None) -> None:
        self.config = config or TokenConfig.from_env()
        if not self.config.audience:
            logger.warning("No token audience configured; the aud claim is not checked")
        self._jwks_cache: List[Mapping] = []
        self._last_fetch: float = 0

    def _fetch_jwks(self) -> None:
        resp = requests.get(self.config.jwks_url, timeout=5)
        resp.raise_for_status()
        self._jwks_cache = resp.json().get("keys", [])
        self._last_fetch = time.time()
        logger.debug(f"Fetched {len(self._jwks_cache)} signing keys from {self.config.jwks_url}")

    def verify_token(self, token: str) -> Mapping:
        """Validate ``token`` and return its claims."""
        now = time.time()
        if not self._jwks_cache or now - self._last_fetch > JWKS_CACHE_SECONDS:
            self._fetch_jwks()

        header = jwt.get_unverified_header(token)
        alg = header.get("alg", "RS256")
        if alg not in ALLOWED_ALGORITHMS:
            raise jwt.exceptions.InvalidAlgorithmError(f"Algorithm {alg} is not allowed")

        for key in self._jwks_cache:
            if key.get("kid") == header.get("kid"):
                return jwt.decode(
                    token,
                    jwt.algorithms.RSAAlgorithm.from_jwk(key),
                    audience=self.config.audience or None,
                    options={"verify_aud": bool(self.config.audience)},
                    issuer=self.config.issuer or None,
                    leeway=self.config.leeway,
                    algorithms=[alg],
                )
        raise jwt.exceptions.InvalidSignatureError("No matching JWK found.")

    def identity(self, token: str) -> CallerIdentity:
        """Validate ``token`` and return the caller identity it asserts."""
        claims = self.verify_token(token)
        return CallerIdentity.from_claims(claims, role_claim=self.config.role_claim)
