"""Caller identity, authorization policies and token validation."""

from __future__ import annotations

from .authorizers import Authorizer, EmailAuthorizer, RoleAuthorizer, build_authorizer
from .identity import CallerIdentity

__all__ = [
    "Authorizer",
    "CallerIdentity",
    "EmailAuthorizer",
    "RoleAuthorizer",
    "build_authorizer",
]
