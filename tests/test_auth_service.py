"""Tests for sign-in, password recovery and the email-link callback."""

import pytest

from kasa.auth import (
    CALLBACK_FAILED_REDIRECT,
    LOGIN_FAILED_MESSAGE,
    AuthService,
    safe_redirect_target,
)
from kasa.models.audit import AuditEventType
from kasa.models.finance import AuthUser, Role
from kasa.services.backend import AuthenticationError
from tests.conftest import FakeAuthGateway, FakeProfileStorage


@pytest.fixture
def gateway(base_user):
    return FakeAuthGateway({"ali@example.com": ("gizli123", base_user.id)})


@pytest.fixture
def auth(gateway, base_user, validator, audit, settings):
    return AuthService(
        gateway,
        FakeProfileStorage([base_user]),
        validator=validator,
        audit=audit,
        settings=settings,
    )


class TestSignIn:

    async def test_success(self, auth, audit, base_user):
        result = await auth.sign_in(" ali@example.com ", "gizli123")
        assert result.success is True
        assert result.entity_id == base_user.id
        assert audit.event_types == [AuditEventType.SIGN_IN_SUCCEEDED]

    async def test_wrong_password(self, auth, audit):
        result = await auth.sign_in("ali@example.com", "yanlis")
        assert result.success is False
        assert result.message == LOGIN_FAILED_MESSAGE
        assert audit.event_types == [AuditEventType.SIGN_IN_FAILED]

    async def test_current_profile(self, auth, base_user):
        assert await auth.current_profile() is None
        await auth.sign_in("ali@example.com", "gizli123")
        profile = await auth.current_profile()
        assert profile.id == base_user.id
        assert profile.region_id == "r1"

    async def test_missing_profile_is_base_user(self, auth, gateway):
        gateway.current = AuthUser(id="orphan")
        profile = await auth.current_profile()
        assert profile.id == "orphan"
        assert profile.role == Role.BASE_USER
        assert profile.region_id is None

    async def test_sign_out(self, auth, gateway, audit, base_user):
        await auth.sign_in("ali@example.com", "gizli123")
        result = await auth.sign_out(base_user.id)
        assert result.success is True
        assert gateway.current is None
        assert AuditEventType.SIGNED_OUT in audit.event_types


class TestPasswordReset:

    async def test_request_uses_reset_redirect(self, auth, gateway, settings):
        result = await auth.request_password_reset("ali@example.com")
        assert result.success is True
        assert gateway.reset_requests == [("ali@example.com", f"{settings.site_url}/reset-password")]

    async def test_request_failure(self, auth, gateway):
        gateway.fail_reset = AuthenticationError("rate limit")
        result = await auth.request_password_reset("ali@example.com")
        assert result.success is False
        assert result.message.startswith("Şifre sıfırlama linki gönderilemedi")

    async def test_empty_email(self, auth, gateway):
        result = await auth.request_password_reset("  ")
        assert result.success is False
        assert gateway.reset_requests == []

    async def test_mismatch_reported_first(self, auth, gateway):
        result = await auth.update_password("abc", "abd")
        assert result.message == "Girdiğiniz şifreler uyuşmuyor."
        assert gateway.new_password is None

    async def test_too_short(self, auth, gateway):
        result = await auth.update_password("abc", "abc")
        assert result.message == "Şifre en az 6 karakter olmalıdır."
        assert gateway.new_password is None

    async def test_update(self, auth, gateway, audit):
        result = await auth.update_password("yenisifre", "yenisifre")
        assert result.success is True
        assert gateway.new_password == "yenisifre"
        assert AuditEventType.PASSWORD_UPDATED in audit.event_types

    async def test_update_failure_mentions_session(self, auth, gateway):
        gateway.fail_update = AuthenticationError("Auth session missing!")
        result = await auth.update_password("yenisifre", "yenisifre")
        assert result.message == (
            "Şifre güncellenemedi: Auth session missing!. Oturumunuzun süresi dolmuş olabilir."
        )


class TestAuthCallback:

    async def test_valid_code_redirects_to_next(self, auth, gateway, base_user):
        gateway.valid_codes["abc"] = AuthUser(id=base_user.id)
        assert await auth.complete_auth_callback("abc", "/reset-password") == "/reset-password"
        assert gateway.current.id == base_user.id

    async def test_default_target(self, auth, gateway, base_user):
        gateway.valid_codes["abc"] = AuthUser(id=base_user.id)
        assert await auth.complete_auth_callback("abc") == "/"

    async def test_invalid_code(self, auth, audit):
        assert await auth.complete_auth_callback("bogus", "/reset-password") == CALLBACK_FAILED_REDIRECT
        assert AuditEventType.AUTH_CALLBACK_FAILED in audit.event_types

    async def test_missing_code(self, auth):
        assert await auth.complete_auth_callback(None) == CALLBACK_FAILED_REDIRECT

    @pytest.mark.parametrize("target", ["https://evil.example.com", "//evil.example.com", "reset"])
    def test_open_redirects_are_rejected(self, target):
        assert safe_redirect_target(target) == "/"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
