"""Tests for role-based authorization."""

import pytest

from kasa.auth import (
    UNAUTHORIZED_MESSAGE,
    Permission,
    capability_allows,
    has_permission,
    require_permission,
)
from kasa.models.audit import AuditEventType
from kasa.models.finance import ROLE_CAPABILITIES, Profile, Role
from kasa.services.backend import AuthorizationError


EXPECTED = {
    Role.BASE_USER: set(),
    Role.REGIONAL_EDITOR: {Permission.CHOOSE_EXPENSE_REGION},
    Role.SUPER_ADMIN: set(Permission),
}


class TestPermissionTable:

    @pytest.mark.parametrize("role", list(Role))
    def test_every_permission_is_decided_for_every_role(self, role):
        capabilities = ROLE_CAPABILITIES[role]
        granted = {p for p in Permission if capability_allows(capabilities, p)}
        assert granted == EXPECTED[role]

    def test_anonymous_has_no_permissions(self):
        assert not any(has_permission(None, p) for p in Permission)

    def test_require_permission_raises_with_message(self):
        profile = Profile(id="u1", role=Role.REGIONAL_EDITOR)
        with pytest.raises(AuthorizationError) as exc_info:
            require_permission(profile, Permission.ADMINISTER, "create_region")
        assert str(exc_info.value) == UNAUTHORIZED_MESSAGE
        assert exc_info.value.action == "create_region"


class TestAuthorizer:

    async def test_allowed_returns_none(self, authorizer, admin, audit):
        assert await authorizer.check(admin, Permission.ADMINISTER, "create_user") is None
        assert audit.events == []

    async def test_denied_is_audited(self, authorizer, base_user, audit):
        result = await authorizer.check(base_user, Permission.MODIFY_TRANSACTIONS, "delete_transaction")
        assert result.success is False
        assert result.message == UNAUTHORIZED_MESSAGE
        assert audit.event_types == [AuditEventType.AUTHORIZATION_DENIED]
        assert audit.events[0].actor_id == base_user.id

    async def test_anonymous_denied(self, authorizer, audit):
        result = await authorizer.check(None, Permission.ADMINISTER, "send_notification")
        assert result.success is False
        assert audit.events[0].actor_id is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
