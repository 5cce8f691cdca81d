"""Tests for notification flows."""

from datetime import datetime, timezone

import pytest

from kasa.auth import UNAUTHORIZED_MESSAGE
from kasa.flows import UNKNOWN_CREATOR, NotificationFlow
from kasa.models.audit import AuditEventType
from kasa.models.finance import Notification, NotificationStatus
from kasa.services.backend import AuthorizationError, StorageError
from tests.conftest import FakeNotificationStorage, FakeProfileStorage


@pytest.fixture
def store(admin):
    return FakeNotificationStorage([
        Notification(id="n1", message="Toplantı cuma günü", created_by=admin.id),
        Notification(id="n2", message="Eski duyuru", created_by="gone", is_active=False),
    ])


@pytest.fixture
def flow(store, admin, editor, base_user, validator, authorizer, audit, settings):
    return NotificationFlow(
        store,
        FakeProfileStorage([admin, editor, base_user]),
        validator=validator,
        authorizer=authorizer,
        audit=audit,
        settings=settings,
    )


class TestSend:

    async def test_admin_sends(self, flow, admin, store, audit):
        result = await flow.send(admin, "  Yeni dönem başlıyor  ")
        assert result.message == "Bildirim başarıyla tüm kullanıcılara gönderildi!"
        assert store.notifications[0].message == "Yeni dönem başlıyor"
        assert store.notifications[0].created_by == admin.id
        assert AuditEventType.NOTIFICATION_SENT in audit.event_types

    async def test_empty_message(self, flow, admin, store):
        result = await flow.send(admin, "   ")
        assert result.message == "Mesaj boş olamaz."
        assert "create_notification" not in store.calls

    async def test_non_admin_cannot_send(self, flow, editor, store):
        result = await flow.send(editor, "Merhaba")
        assert result.message == UNAUTHORIZED_MESSAGE
        assert store.calls == []

    async def test_send_failure(self, flow, admin, store):
        store.fail_with = StorageError("insert failed")
        result = await flow.send(admin, "Merhaba")
        assert result.message == "Bildirim gönderilemedi: insert failed"


class TestAdminViews:

    async def test_deactivate(self, flow, admin, store):
        result = await flow.deactivate(admin, "n1")
        assert result.message == "Bildirim devre dışı bırakıldı."
        assert not any(n.is_active for n in store.notifications)

    async def test_deactivate_failure(self, flow, admin, store):
        store.fail_with = StorageError("timeout")
        result = await flow.deactivate(admin, "n1")
        assert result.message == "Bildirim devre dışı bırakılamadı: timeout"

    async def test_overview_resolves_creators(self, flow, admin):
        overview = await flow.overview(admin)
        assert [n.id for n in overview.active] == ["n1"]
        assert overview.active[0].creator_name == "Ayşe Yönetici"
        assert [n.id for n in overview.past] == ["n2"]
        assert overview.past[0].creator_name == UNKNOWN_CREATOR

    async def test_past_is_capped(self, store, admin, validator, authorizer, audit, settings):
        store.notifications = [
            Notification(id=str(i), message=f"m{i}", is_active=False) for i in range(30)
        ]
        flow = NotificationFlow(
            store, FakeProfileStorage([admin]),
            validator=validator, authorizer=authorizer, audit=audit, settings=settings,
        )
        overview = await flow.overview(admin)
        assert len(overview.past) == settings.past_notification_count

    async def test_overview_is_admin_only(self, flow, base_user):
        with pytest.raises(AuthorizationError):
            await flow.overview(base_user)

    async def test_audience(self, flow, admin, store, editor):
        store.statuses[(editor.id, "n1")] = NotificationStatus(
            user_id=editor.id,
            notification_id="n1",
            dismissed_at=datetime(2024, 3, 2, 10, 0, 0),
        )
        audience = await flow.audience(admin, "n1")
        assert [m.full_name for m in audience.dismissed] == ["Mehmet Editör"]
        assert audience.dismissed[0].dismissed_at == datetime(2024, 3, 2, 10, 0, 0)
        assert {m.full_name for m in audience.not_dismissed} == {"Ali Kullanıcı", "Ayşe Yönetici"}


class TestUserSide:

    async def test_visible_excludes_dismissed(self, flow, base_user):
        assert [n.id for n in await flow.visible_for(base_user.id)] == ["n1"]
        result = await flow.dismiss(base_user.id, "n1")
        assert result.success is True
        assert await flow.visible_for(base_user.id) == []

    async def test_dismiss_is_per_user(self, flow, base_user, editor):
        await flow.dismiss(base_user.id, "n1")
        assert [n.id for n in await flow.visible_for(editor.id)] == ["n1"]

    async def test_dismissal_time_is_utc(self, flow, base_user, store):
        await flow.dismiss(base_user.id, "n1")
        status = store.statuses[(base_user.id, "n1")]
        assert status.is_dismissed is True
        assert status.dismissed_at.tzinfo is not None
        assert status.dismissed_at.utcoffset().total_seconds() == 0
        assert abs(datetime.now(timezone.utc) - status.dismissed_at).total_seconds() < 60

    async def test_dismiss_twice_keeps_one_status(self, flow, base_user, store):
        await flow.dismiss(base_user.id, "n1")
        await flow.dismiss(base_user.id, "n1")
        assert len(store.statuses) == 1

    async def test_deactivated_hidden_for_everyone(self, flow, admin, editor):
        await flow.deactivate(admin, "n1")
        assert await flow.visible_for(editor.id) == []

    async def test_dismiss_failure(self, flow, base_user, store):
        store.fail_with = StorageError("conflict")
        result = await flow.dismiss(base_user.id, "n1")
        assert result.success is False
        assert result.message == "Bildirim kapatılamadı: conflict"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
