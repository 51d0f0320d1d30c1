"""
Authorization gate

Single permission table for the whole service. Route dependencies, the
workflow engine and the review/export services all ask this module; nothing
else compares role strings.
"""
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from scribeflow.core.errors import AuthorizationError
from scribeflow.services.entities import Action, Actor, Role
from scribeflow.services.identity import IdentityProvider

logger = logging.getLogger(__name__)

_WORKER_ACTIONS = frozenset({
    Action.VIEW_DASHBOARD,
    Action.EDIT_SEGMENT,
    Action.VIEW_GUIDELINES,
})

_ADMIN_ACTIONS = frozenset({
    Action.VIEW_REVIEW_QUEUE,
    Action.APPROVE_OR_DENY,
    Action.UPLOAD_BATCH,
    Action.EXPORT,
    Action.VIEW_GUIDELINES,
})

PERMISSIONS: Dict[Role, FrozenSet[Action]] = {
    Role.WORKER: _WORKER_ACTIONS,
    Role.ADMIN: _ADMIN_ACTIONS,
    Role.SUPER_ADMIN: frozenset(Action),
}


def can_perform(role: Role | str, action: Action | str) -> bool:
    """
    Check whether a role may perform an action.

    Unknown roles and unknown actions are never permitted; the function does
    not raise for them.
    """
    try:
        role = Role(role)
        action = Action(action)
    except ValueError:
        return False
    return action in PERMISSIONS[role]


@dataclass
class AuthorizationResult:
    allowed: bool
    actor: Optional[Actor] = None
    reason: Optional[str] = None


class AuthorizationGate:
    """
    Resolves the acting user's current role and checks it against PERMISSIONS.

    check() returns a result so callers can redirect; require() raises
    AuthorizationError for code paths about to mutate state.
    """

    def __init__(self, identity: IdentityProvider):
        self._identity = identity

    can_perform = staticmethod(can_perform)

    async def check(self, user_id: Optional[str], action: Action | str) -> AuthorizationResult:
        if not user_id:
            return AuthorizationResult(False, reason="AUTH_REQUIRED")
        actor = await self._identity.resolve(user_id)
        if actor is None:
            return AuthorizationResult(False, reason="USER_NOT_FOUND")
        if not can_perform(actor.role, action):
            return AuthorizationResult(False, actor=actor, reason="ACTION_NOT_PERMITTED")
        return AuthorizationResult(True, actor=actor)

    async def require(self, user_id: Optional[str], action: Action | str) -> Actor:
        result = await self.check(user_id, action)
        if not result.allowed:
            action_value = action.value if isinstance(action, Action) else action
            logger.info("[authz] denied user=%s action=%s reason=%s", user_id, action_value, result.reason)
            raise AuthorizationError(
                f"User {user_id} may not perform {action_value} ({result.reason})"
            )
        return result.actor
