"""Current-user lookup for error notifications.

Authentication belongs to the host application. It exposes the signed-in
user to hippo as a single normalized ``UserIdentity`` stored on
``request.state.identity`` (or through a custom resolver), so the monitor
never has to know which authentication scheme produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from fastapi import Request

IDENTITY_STATE_ATTR = "identity"


@dataclass(frozen=True)
class UserIdentity:
    """Authenticated user as seen by the monitor."""

    username: str
    roles: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, username: str, roles: Iterable[str] = ()) -> UserIdentity:
        return cls(username=username, roles=frozenset(roles))

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)


IdentityResolver = Callable[[Request], "UserIdentity | None"]


def state_identity_resolver(request: Request) -> UserIdentity | None:
    """Read the identity the host's auth layer stored on the request."""

    identity = getattr(request.state, IDENTITY_STATE_ATTR, None)
    return identity if isinstance(identity, UserIdentity) else None


def set_identity(request: Request, identity: UserIdentity | None) -> None:
    """Helper for host auth dependencies."""

    setattr(request.state, IDENTITY_STATE_ATTR, identity)
