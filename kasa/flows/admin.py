"""
Administration flows: users and regions.

CRITICAL: Every mutation checks the actor's role first. A rejected call
returns the rejection message and makes no backend call at all.

Creating a user is two steps against two services (auth user, then
profile row). If the profile insert fails the auth user is deleted again,
so no login exists without a profile.
"""

from typing import Optional

from kasa.audit import AuditLogger
from kasa.auth import Authorizer, Permission, UNAUTHORIZED_MESSAGE
from kasa.models.audit import AuditEventType
from kasa.models.finance import ActionResult, Profile, Region, Role
from kasa.services.backend.interface import (
    AuthorizationError,
    BackendError,
    ProfileStorage,
    RegionStorage,
    StorageError,
    UserAdministration,
)
from kasa.validation import FormValidator


class UserAdminFlow:
    """Create, update, delete and list users."""

    def __init__(
        self,
        profiles: ProfileStorage,
        admin: UserAdministration,
        validator: Optional[FormValidator] = None,
        authorizer: Optional[Authorizer] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._profiles = profiles
        self._admin = admin
        self._validator = validator or FormValidator()
        self._audit = audit or AuditLogger()
        self._authorizer = authorizer or Authorizer(self._audit)

    async def list_users(self, actor: Optional[Profile]) -> list[Profile]:
        """
        Raises:
            AuthorizationError: If the actor may not administer users
            StorageError: If the query fails
        """
        if await self._authorizer.check(actor, Permission.ADMINISTER, "list_users"):
            raise AuthorizationError(UNAUTHORIZED_MESSAGE, action="list_users")
        return await self._profiles.list_profiles()

    async def create_user(
        self,
        actor: Optional[Profile],
        full_name: str,
        email: str,
        password: str,
        role: Optional[Role],
        region_id: Optional[str] = None,
    ) -> ActionResult:
        denied = await self._authorizer.check(actor, Permission.ADMINISTER, "create_user")
        if denied:
            return denied

        validation = self._validator.validate_new_user(full_name, email, password, role)
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        full_name = full_name.strip()
        email = email.strip()
        region_id = region_id or None

        try:
            user_id = await self._admin.create_user(email, password, full_name)
        except BackendError as e:
            return ActionResult.fail(f"Kullanıcı oluşturma hatası: {e}")

        try:
            await self._admin.insert_profile(user_id, full_name, role, region_id)
        except BackendError as e:
            await self._roll_back_user(user_id, actor, str(e))
            return ActionResult.fail(f"Profil oluşturma hatası: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.USER_CREATED,
            entity_type="user",
            entity_id=user_id,
            actor_id=actor.id,
            description=f"User created: {email}",
            details={"role": role.value, "region_id": region_id},
        )
        return ActionResult.ok("Kullanıcı başarıyla oluşturuldu.", entity_id=user_id)

    async def _roll_back_user(
        self,
        user_id: str,
        actor: Profile,
        reason: str,
    ) -> None:
        """Delete an auth user whose profile could not be created."""
        try:
            await self._admin.delete_user(user_id)
        except BackendError as e:
            await self._audit.log_error(
                error_type="user_rollback_failed",
                error_message=str(e),
                details={"user_id": user_id},
            )
            return
        await self._audit.log_user_creation_rolled_back(user_id, actor.id, reason)

    async def update_user(
        self,
        actor: Optional[Profile],
        user_id: str,
        full_name: str,
        role: Optional[Role],
        region_id: Optional[str] = None,
    ) -> ActionResult:
        denied = await self._authorizer.check(actor, Permission.ADMINISTER, "update_user")
        if denied:
            return denied

        validation = self._validator.validate_user_update(user_id, full_name, role)
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        try:
            await self._profiles.update_profile(
                user_id,
                full_name.strip(),
                role,
                region_id or None,
            )
        except StorageError as e:
            return ActionResult.fail(f"Kullanıcı güncellenemedi: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=user_id,
            actor_id=actor.id,
            description="User profile updated",
            details={"role": role.value, "region_id": region_id or None},
        )
        return ActionResult.ok("Kullanıcı başarıyla güncellendi!", entity_id=user_id)

    async def delete_user(self, actor: Optional[Profile], user_id: str) -> ActionResult:
        denied = await self._authorizer.check(actor, Permission.ADMINISTER, "delete_user")
        if denied:
            return denied

        validation = self._validator.validate_user_id(user_id)
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        try:
            await self._admin.delete_user(user_id)
        except BackendError as e:
            return ActionResult.fail(f"Kullanıcı silinemedi: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.USER_DELETED,
            entity_type="user",
            entity_id=user_id,
            actor_id=actor.id,
            description="User deleted",
        )
        return ActionResult.ok("Kullanıcı başarıyla silindi.", entity_id=user_id)


class RegionAdminFlow:
    """List, create and delete regions."""

    def __init__(
        self,
        regions: RegionStorage,
        validator: Optional[FormValidator] = None,
        authorizer: Optional[Authorizer] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._regions = regions
        self._validator = validator or FormValidator()
        self._audit = audit or AuditLogger()
        self._authorizer = authorizer or Authorizer(self._audit)

    async def list_regions(self) -> list[Region]:
        """
        All regions ordered by name. Every role needs them for forms.

        Raises:
            StorageError: If the query fails
        """
        return await self._regions.list_regions()

    async def create_region(self, actor: Optional[Profile], name: str) -> ActionResult:
        denied = await self._authorizer.check(actor, Permission.ADMINISTER, "create_region")
        if denied:
            return denied

        validation = self._validator.validate_region_name(name)
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        try:
            region = await self._regions.create_region(name.strip())
        except StorageError as e:
            return ActionResult.fail(f"Bölge oluşturma hatası: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.REGION_CREATED,
            entity_type="region",
            entity_id=region.id,
            actor_id=actor.id,
            description=f"Region created: {region.name}",
        )
        return ActionResult.ok("Bölge başarıyla oluşturuldu.", entity_id=region.id)

    async def delete_region(self, actor: Optional[Profile], region_id: str) -> ActionResult:
        denied = await self._authorizer.check(actor, Permission.ADMINISTER, "delete_region")
        if denied:
            return denied

        try:
            await self._regions.delete_region(region_id)
        except StorageError as e:
            return ActionResult.fail(f"Bölge silme hatası: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.REGION_DELETED,
            entity_type="region",
            entity_id=region_id,
            actor_id=actor.id,
            description="Region deleted",
        )
        return ActionResult.ok("Bölge başarıyla silindi.", entity_id=region_id)
