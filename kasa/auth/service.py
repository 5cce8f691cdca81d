"""
Authentication flows.

Sign-in, sign-out, password recovery and the email-link callback. The auth
service itself is external; this module turns its answers into messages
users can read and records every outcome in the audit log.
"""

from typing import Optional

from kasa.audit import AuditLogger
from kasa.config import AppSettings, get_settings
from kasa.models.audit import AuditEventType
from kasa.models.finance import ActionResult, AuthUser, Profile
from kasa.services.backend.interface import (
    AuthenticationError,
    AuthGateway,
    BackendError,
    ProfileStorage,
)
from kasa.validation import FormValidator


LOGIN_FAILED_MESSAGE = "Giriş bilgileri hatalı veya kullanıcı bulunamadı."
RESET_LINK_FAILED_MESSAGE = (
    "Şifre sıfırlama linki gönderilemedi. Lütfen e-posta adresinizi kontrol edin."
)
RESET_LINK_SENT_MESSAGE = (
    "E-posta adresinize bir şifre sıfırlama linki gönderildi. "
    "Lütfen gelen kutunuzu kontrol edin."
)
PASSWORD_UPDATED_MESSAGE = (
    "Şifreniz başarıyla güncellendi! Giriş sayfasına yönlendiriliyorsunuz..."
)
CALLBACK_FAILED_REDIRECT = "/login?error=sifre_sifirlama_basarisiz"
DEFAULT_REDIRECT = "/"


def safe_redirect_target(next_path: Optional[str]) -> str:
    """
    Keep redirects on this site.

    Only absolute paths are accepted; anything else (including
    protocol-relative "//host" URLs) falls back to the home page.
    """
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return DEFAULT_REDIRECT
    return next_path


class AuthService:
    """
    User-facing authentication operations.

    Every operation returns an ActionResult (or a redirect path for the
    callback); auth errors never propagate to the UI as exceptions.
    """

    def __init__(
        self,
        gateway: AuthGateway,
        profiles: ProfileStorage,
        validator: Optional[FormValidator] = None,
        audit: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._gateway = gateway
        self._profiles = profiles
        self._settings = settings or get_settings().app
        self._validator = validator or FormValidator(self._settings)
        self._audit = audit or AuditLogger()

    async def sign_in(self, email: str, password: str) -> ActionResult:
        email = (email or "").strip()
        try:
            user = await self._gateway.sign_in_with_password(email, password or "")
        except AuthenticationError as e:
            await self._audit.log_sign_in(email, succeeded=False, error_message=str(e))
            return ActionResult.fail(LOGIN_FAILED_MESSAGE)

        await self._audit.log_sign_in(email, succeeded=True)
        return ActionResult.ok("Giriş başarılı.", entity_id=user.id)

    async def sign_out(self, actor_id: Optional[str] = None) -> ActionResult:
        try:
            await self._gateway.sign_out()
        except AuthenticationError as e:
            return ActionResult.fail(f"Çıkış yapılamadı: {e}")

        await self._audit.log_auth_event(
            AuditEventType.SIGNED_OUT,
            "User signed out",
            actor_id=actor_id,
        )
        return ActionResult.ok("Çıkış yapıldı.")

    async def current_user(self) -> Optional[AuthUser]:
        return await self._gateway.get_current_user()

    async def current_profile(self) -> Optional[Profile]:
        """
        Profile of the signed-in user, or None without a session.

        A signed-in user whose profile row is missing is treated as a
        base user with no region.

        Raises:
            StorageError: If the profile query fails
        """
        user = await self._gateway.get_current_user()
        if user is None:
            return None
        profile = await self._profiles.get_profile(user.id)
        if profile is None:
            return Profile(id=user.id)
        return profile

    async def request_password_reset(self, email: str) -> ActionResult:
        email = (email or "").strip()
        if not email:
            return ActionResult.fail(RESET_LINK_FAILED_MESSAGE)

        try:
            await self._gateway.request_password_reset(
                email,
                redirect_to=self._settings.password_reset_redirect,
            )
        except AuthenticationError as e:
            await self._audit.log_auth_event(
                AuditEventType.PASSWORD_RESET_REQUESTED,
                f"Password reset request failed for {email}",
                error_message=str(e),
            )
            return ActionResult.fail(RESET_LINK_FAILED_MESSAGE)

        await self._audit.log_auth_event(
            AuditEventType.PASSWORD_RESET_REQUESTED,
            f"Password reset link sent to {email}",
        )
        return ActionResult.ok(RESET_LINK_SENT_MESSAGE)

    async def update_password(self, password: str, confirmation: str) -> ActionResult:
        """Set a new password for the signed-in (recovering) user."""
        validation = self._validator.validate_password_change(password, confirmation)
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        try:
            await self._gateway.update_password(password)
        except AuthenticationError as e:
            return ActionResult.fail(
                f"Şifre güncellenemedi: {e}. Oturumunuzun süresi dolmuş olabilir."
            )

        await self._audit.log_auth_event(
            AuditEventType.PASSWORD_UPDATED,
            "Password updated",
        )
        return ActionResult.ok(PASSWORD_UPDATED_MESSAGE)

    async def complete_auth_callback(
        self,
        code: Optional[str],
        next_path: Optional[str] = None,
    ) -> str:
        """
        Exchange an email-link code for a session.

        Returns:
            The path to send the user to: ``next_path`` on success,
            the login page with an error marker otherwise
        """
        if not code:
            await self._audit.log_auth_event(
                AuditEventType.AUTH_CALLBACK_FAILED,
                "Auth callback without a code",
            )
            return CALLBACK_FAILED_REDIRECT

        try:
            user = await self._gateway.exchange_code_for_session(code)
        except BackendError as e:
            await self._audit.log_auth_event(
                AuditEventType.AUTH_CALLBACK_FAILED,
                "Auth code exchange failed",
                error_message=str(e),
            )
            return CALLBACK_FAILED_REDIRECT

        await self._audit.log_auth_event(
            AuditEventType.SIGN_IN_SUCCEEDED,
            "Session established from email link",
            actor_id=user.id,
        )
        return safe_redirect_target(next_path)
