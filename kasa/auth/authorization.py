"""
Role-based authorization.

Every permission maps to one field of RoleCapabilities, so the same table
drives what the UI offers and what the flows allow. Checks happen before
any backend call: a rejected action never reaches the data store.
"""

from enum import Enum
from typing import Optional

from kasa.audit import AuditLogger
from kasa.models.finance import ActionResult, Profile, RoleCapabilities
from kasa.services.backend.interface import AuthorizationError


UNAUTHORIZED_MESSAGE = "Bu işlemi yapmaya yetkiniz yok."


class Permission(str, Enum):
    SEE_ALL_REGIONS = "see_all_regions"
    CHOOSE_EXPENSE_REGION = "choose_expense_region"
    MODIFY_TRANSACTIONS = "modify_transactions"
    ADMINISTER = "administer"


_PERMISSION_CHECKS = {
    Permission.SEE_ALL_REGIONS: lambda c: c.sees_all_regions,
    Permission.CHOOSE_EXPENSE_REGION: lambda c: c.can_choose_expense_region,
    Permission.MODIFY_TRANSACTIONS: lambda c: c.can_modify_transactions,
    Permission.ADMINISTER: lambda c: c.can_administer,
}


def capability_allows(capabilities: RoleCapabilities, permission: Permission) -> bool:
    return bool(_PERMISSION_CHECKS[permission](capabilities))


def has_permission(actor: Optional[Profile], permission: Permission) -> bool:
    """An anonymous actor has no permissions."""
    if actor is None:
        return False
    return capability_allows(actor.capabilities, permission)


def require_permission(
    actor: Optional[Profile],
    permission: Permission,
    action: str,
) -> None:
    """
    Raise if the actor may not perform the action.

    Raises:
        AuthorizationError: With the user-facing rejection message
    """
    if not has_permission(actor, permission):
        raise AuthorizationError(UNAUTHORIZED_MESSAGE, action=action)


class Authorizer:
    """Checks permissions and records every denial."""

    def __init__(self, audit: Optional[AuditLogger] = None):
        self._audit = audit or AuditLogger()

    async def check(
        self,
        actor: Optional[Profile],
        permission: Permission,
        action: str,
    ) -> Optional[ActionResult]:
        """
        Return None when allowed, or the failed ActionResult to hand back
        to the user when denied.
        """
        try:
            require_permission(actor, permission, action)
        except AuthorizationError as e:
            await self._audit.log_authorization_denied(
                actor.id if actor else None,
                e.action,
            )
            return ActionResult.fail(str(e))
        return None
