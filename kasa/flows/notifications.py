"""
Notification flows.

Administrators broadcast messages to every user. Each user can dismiss a
notification for themselves; an administrator deactivating it hides it
for everyone.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from kasa.audit import AuditLogger
from kasa.auth import Authorizer, Permission, UNAUTHORIZED_MESSAGE
from kasa.config import AppSettings, get_settings
from kasa.models.audit import AuditEventType
from kasa.models.finance import (
    ActionResult,
    AudienceMember,
    Notification,
    NotificationAudience,
    NotificationStatus,
    Profile,
)
from kasa.services.backend.interface import (
    AuthorizationError,
    NotificationStorage,
    ProfileStorage,
    StorageError,
)
from kasa.validation import FormValidator


UNKNOWN_CREATOR = "Bilinmeyen Kullanıcı"


class NotificationOverview(BaseModel):
    """Admin view: active notifications and the most recent inactive ones."""

    active: list[Notification] = Field(default_factory=list)
    past: list[Notification] = Field(default_factory=list)


class NotificationFlow:
    def __init__(
        self,
        notifications: NotificationStorage,
        profiles: ProfileStorage,
        validator: Optional[FormValidator] = None,
        authorizer: Optional[Authorizer] = None,
        audit: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._notifications = notifications
        self._profiles = profiles
        self._settings = settings or get_settings().app
        self._validator = validator or FormValidator(self._settings)
        self._audit = audit or AuditLogger()
        self._authorizer = authorizer or Authorizer(self._audit)

    async def _require_admin(self, actor: Optional[Profile], action: str) -> None:
        if await self._authorizer.check(actor, Permission.ADMINISTER, action):
            raise AuthorizationError(UNAUTHORIZED_MESSAGE, action=action)

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    async def send(self, actor: Optional[Profile], message: str) -> ActionResult:
        denied = await self._authorizer.check(actor, Permission.ADMINISTER, "send_notification")
        if denied:
            return denied

        validation = self._validator.validate_notification_message(message)
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        try:
            notification = await self._notifications.create_notification(
                message.strip(),
                created_by=actor.id,
            )
        except StorageError as e:
            return ActionResult.fail(f"Bildirim gönderilemedi: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.NOTIFICATION_SENT,
            entity_type="notification",
            entity_id=notification.id,
            actor_id=actor.id,
            description="Notification broadcast to all users",
        )
        return ActionResult.ok(
            "Bildirim başarıyla tüm kullanıcılara gönderildi!",
            entity_id=notification.id,
        )

    async def deactivate(
        self,
        actor: Optional[Profile],
        notification_id: str,
    ) -> ActionResult:
        denied = await self._authorizer.check(
            actor, Permission.ADMINISTER, "deactivate_notification"
        )
        if denied:
            return denied

        try:
            await self._notifications.deactivate(notification_id)
        except StorageError as e:
            return ActionResult.fail(f"Bildirim devre dışı bırakılamadı: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.NOTIFICATION_DEACTIVATED,
            entity_type="notification",
            entity_id=notification_id,
            actor_id=actor.id,
            description="Notification deactivated",
        )
        return ActionResult.ok("Bildirim devre dışı bırakıldı.", entity_id=notification_id)

    async def overview(self, actor: Optional[Profile]) -> NotificationOverview:
        """
        Active notifications and the most recent inactive ones, with
        creator names resolved.

        Raises:
            AuthorizationError: If the actor is not an administrator
            StorageError: If a query fails
        """
        await self._require_admin(actor, "list_notifications")

        names = {p.id: p.full_name for p in await self._profiles.list_profiles()}
        notifications = await self._notifications.list_notifications()

        enriched = [
            n.model_copy(update={
                "creator_name": names.get(n.created_by or "") or UNKNOWN_CREATOR,
            })
            for n in notifications
        ]
        return NotificationOverview(
            active=[n for n in enriched if n.is_active],
            past=[n for n in enriched if not n.is_active][: self._settings.past_notification_count],
        )

    async def audience(
        self,
        actor: Optional[Profile],
        notification_id: str,
    ) -> NotificationAudience:
        """
        Who has dismissed the notification, and who has not.

        Raises:
            AuthorizationError: If the actor is not an administrator
            StorageError: If a query fails
        """
        await self._require_admin(actor, "notification_audience")

        profiles = await self._profiles.list_profiles()
        dismissals = {
            status.user_id: status.dismissed_at
            for status in await self._notifications.list_dismissals(notification_id)
        }

        audience = NotificationAudience()
        for profile in profiles:
            if profile.id in dismissals:
                audience.dismissed.append(AudienceMember(
                    user_id=profile.id,
                    full_name=profile.full_name,
                    dismissed_at=dismissals[profile.id],
                ))
            else:
                audience.not_dismissed.append(AudienceMember(
                    user_id=profile.id,
                    full_name=profile.full_name,
                ))
        return audience

    # ------------------------------------------------------------------
    # User side
    # ------------------------------------------------------------------

    async def visible_for(self, user_id: str) -> list[Notification]:
        """
        Active notifications the user has not dismissed.

        Raises:
            StorageError: If a query fails
        """
        active = await self._notifications.list_active()
        dismissed = await self._notifications.list_dismissed_ids(user_id)
        return [n for n in active if n.id not in dismissed]

    async def dismiss(self, user_id: str, notification_id: str) -> ActionResult:
        status = NotificationStatus(
            user_id=user_id,
            notification_id=notification_id,
            is_dismissed=True,
            dismissed_at=datetime.now(timezone.utc),
        )
        try:
            await self._notifications.dismiss(status)
        except StorageError as e:
            return ActionResult.fail(f"Bildirim kapatılamadı: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.NOTIFICATION_DISMISSED,
            entity_type="notification",
            entity_id=notification_id,
            actor_id=user_id,
            description="Notification dismissed",
        )
        return ActionResult.ok("Bildirim kapatıldı.", entity_id=notification_id)
