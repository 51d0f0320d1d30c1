"""
Identity providers

Resolve a user id into the acting user's current role. The authorization gate
asks on every check, so a deleted user or a changed roster takes effect
immediately instead of relying on whatever role a session started with.
"""
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

from scribeflow.services.entities import Actor, Role


class IdentityProvider(ABC):
    @abstractmethod
    async def resolve(self, user_id: str) -> Optional[Actor]:
        """Return the actor for user_id, or None if the user does not exist."""
        pass


class DirectoryIdentityProvider(IdentityProvider):
    """In-memory roster, used by tests and by scripted setups."""

    def __init__(self, roles: Optional[Dict[str, Role]] = None):
        self._roles: Dict[str, Role] = dict(roles or {})

    def add(self, user_id: str, role: Role | str) -> None:
        self._roles[user_id] = Role(role)

    def remove(self, user_id: str) -> None:
        self._roles.pop(user_id, None)

    async def resolve(self, user_id: str) -> Optional[Actor]:
        role = self._roles.get(user_id)
        if role is None:
            return None
        return Actor(id=user_id, role=role)


class TortoiseIdentityProvider(IdentityProvider):
    """Reads the role from the users table on every call."""

    async def resolve(self, user_id: str) -> Optional[Actor]:
        from scribeflow.models.user import User

        try:
            uuid.UUID(str(user_id))
        except ValueError:
            return None
        user = await User.get_or_none(id=user_id)
        if user is None:
            return None
        try:
            return Actor(id=str(user.id), role=Role(user.role))
        except ValueError:
            return None
