"""Caller identity carried with every key request."""

from __future__ import annotations

from typing import Any, FrozenSet, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CallerIdentity(BaseModel):
    """Authenticated caller presented to an :class:`~keyhold.security.authorizers.Authorizer`.

    The identity is derived from an already validated token. ``principal`` is
    the subject of the token, ``roles`` the role claims it carries and
    ``email`` the optional e-mail or UPN claim.
    """

    model_config = ConfigDict(frozen=True)

    principal: str = Field(..., description="Authenticated principal identifier")
    roles: FrozenSet[str] = Field(default_factory=frozenset, description="Role claims")
    email: Optional[str] = Field(default=None, description="E-mail claim")

    @field_validator("principal")
    @classmethod
    def _ensure_principal(cls, v: str) -> str:
        if not v:
            raise ValueError("principal must be a non-empty string")
        return v

    @classmethod
    def from_claims(
        cls,
        claims: Mapping[str, Any],
        role_claim: str = "roles",
        email_claims: Iterable[str] = ("email", "upn"),
    ) -> "CallerIdentity":
        """Build an identity from verified token claims.

        Roles may be a list or a space separated string (as in ``scp``).
        The first non-empty claim of ``email_claims`` is used as the e-mail.
        """

        principal = claims.get("sub") or claims.get("oid") or ""
        raw_roles = claims.get(role_claim) or []
        if isinstance(raw_roles, str):
            raw_roles = raw_roles.split()
        email = next((claims[c] for c in email_claims if claims.get(c)), None)
        return cls(principal=principal, roles=frozenset(raw_roles), email=email)
