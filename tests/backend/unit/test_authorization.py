"""
Unit tests for services.authorization.
Tests the permission table and the gate's per-call role resolution.
"""
import pytest

from scribeflow.core.errors import AuthorizationError
from scribeflow.services.authorization import AuthorizationGate, PERMISSIONS, can_perform
from scribeflow.services.entities import Action, Role
from scribeflow.services.identity import DirectoryIdentityProvider


class TestPermissionTable:
    """Tests for the static role -> action table."""

    @pytest.mark.parametrize("action", [Action.VIEW_DASHBOARD, Action.EDIT_SEGMENT, Action.VIEW_GUIDELINES])
    def test_worker_allowed_actions(self, action):
        assert can_perform(Role.WORKER, action) is True

    @pytest.mark.parametrize("action", [
        Action.VIEW_REVIEW_QUEUE,
        Action.APPROVE_OR_DENY,
        Action.UPLOAD_BATCH,
        Action.EXPORT,
        Action.MANAGE_USERS,
        Action.VIEW_ANALYTICS,
    ])
    def test_worker_denied_actions(self, action):
        assert can_perform(Role.WORKER, action) is False

    def test_admin_reviews_but_does_not_edit(self):
        assert can_perform(Role.ADMIN, Action.APPROVE_OR_DENY) is True
        assert can_perform(Role.ADMIN, Action.EXPORT) is True
        assert can_perform(Role.ADMIN, Action.EDIT_SEGMENT) is False
        assert can_perform(Role.ADMIN, Action.VIEW_DASHBOARD) is False
        assert can_perform(Role.ADMIN, Action.MANAGE_USERS) is False

    def test_super_admin_can_do_everything(self):
        assert PERMISSIONS[Role.SUPER_ADMIN] == frozenset(Action)
        for action in Action:
            assert can_perform(Role.SUPER_ADMIN, action) is True

    def test_accepts_wire_strings(self):
        assert can_perform("worker", "edit-segment") is True
        assert can_perform("admin", "edit-segment") is False

    def test_unknown_values_are_denied_without_raising(self):
        assert can_perform("guest", Action.VIEW_GUIDELINES) is False
        assert can_perform(Role.SUPER_ADMIN, "launch-rockets") is False

    def test_gate_exposes_same_table(self):
        assert AuthorizationGate.can_perform(Role.WORKER, Action.EDIT_SEGMENT) is True


class TestAuthorizationGate:
    """Tests for check() / require() against a live roster."""

    @pytest.mark.asyncio
    async def test_check_allows_permitted_action(self):
        gate = AuthorizationGate(DirectoryIdentityProvider({"w1": Role.WORKER}))
        result = await gate.check("w1", Action.EDIT_SEGMENT)
        assert result.allowed is True
        assert result.actor.id == "w1"
        assert result.actor.role == Role.WORKER

    @pytest.mark.asyncio
    async def test_check_reports_reason(self):
        gate = AuthorizationGate(DirectoryIdentityProvider({"w1": Role.WORKER}))
        assert (await gate.check(None, Action.EDIT_SEGMENT)).reason == "AUTH_REQUIRED"
        assert (await gate.check("ghost", Action.EDIT_SEGMENT)).reason == "USER_NOT_FOUND"
        denied = await gate.check("w1", Action.EXPORT)
        assert denied.allowed is False
        assert denied.reason == "ACTION_NOT_PERMITTED"

    @pytest.mark.asyncio
    async def test_require_raises_authorization_error(self):
        gate = AuthorizationGate(DirectoryIdentityProvider({"a1": Role.ADMIN}))
        with pytest.raises(AuthorizationError) as exc:
            await gate.require("a1", Action.EDIT_SEGMENT)
        assert exc.value.code == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_role_is_resolved_on_every_call(self):
        """Removing a user mid-session revokes access on the next check."""
        roster = DirectoryIdentityProvider({"w1": Role.WORKER})
        gate = AuthorizationGate(roster)
        assert (await gate.require("w1", Action.EDIT_SEGMENT)).id == "w1"

        roster.remove("w1")
        with pytest.raises(AuthorizationError):
            await gate.require("w1", Action.EDIT_SEGMENT)
