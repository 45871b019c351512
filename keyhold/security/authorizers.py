"""Per-key authorization policies."""

from __future__ import annotations

import abc
import logging
from typing import Optional, Set

from ..exceptions import ConfigurationError
from ..models import KeyDefinition
from .identity import CallerIdentity

logger = logging.getLogger(__name__)


class Authorizer(metaclass=abc.ABCMeta):
    """Decides whether a caller may use a key."""

    @abc.abstractmethod
    def is_authorized(self, identity: CallerIdentity) -> bool:
        """Return ``True`` if ``identity`` may use the key."""
        raise NotImplementedError


class RoleAuthorizer(Authorizer):
    """Grants access when the caller holds any of the authorized roles.

    Role names are compared exactly.
    """

    def __init__(self) -> None:
        self._roles: Set[str] = set()

    @property
    def roles(self) -> frozenset[str]:
        return frozenset(self._roles)

    def add_role(self, role: str) -> None:
        self._roles.add(role)

    def is_authorized(self, identity: CallerIdentity) -> bool:
        return not self._roles.isdisjoint(identity.roles)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"RoleAuthorizer(roles={sorted(self._roles)!r})"


class EmailAuthorizer(Authorizer):
    """Grants access when the caller's e-mail is one of the authorized addresses.

    Addresses are compared case-insensitively, ignoring surrounding whitespace.
    """

    def __init__(self) -> None:
        self._emails: Set[str] = set()

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().casefold()

    @property
    def emails(self) -> frozenset[str]:
        return frozenset(self._emails)

    def add_email(self, email: str) -> None:
        self._emails.add(self._normalize(email))

    def is_authorized(self, identity: CallerIdentity) -> bool:
        if not identity.email:
            return False
        return self._normalize(identity.email) in self._emails

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"EmailAuthorizer(emails={sorted(self._emails)!r})"


def build_authorizer(definition: KeyDefinition) -> Optional[Authorizer]:
    """Create a fresh authorizer for ``definition``.

    Returns ``None`` when the definition lists neither roles nor e-mails; the
    key record rejects that case.
    """

    roles = definition.authorized_roles
    emails = definition.authorized_emails
    if roles and emails:
        raise ConfigurationError(
            "both role and email authorizers cannot be used on the same key"
        )

    if roles:
        role_auth = RoleAuthorizer()
        for role in roles:
            role_auth.add_role(role)
        return role_auth

    if emails:
        email_auth = EmailAuthorizer()
        for email in emails:
            email_auth.add_email(email)
        return email_auth

    logger.debug(f"No authorizer configured for key {definition.name}/{definition.id}")
    return None
