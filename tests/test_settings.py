"""Tests for configuration loading."""

import pytest

from kasa.config import AppSettings, SupabaseSettings, get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run without the developer's .env file and with a clean settings cache."""
    monkeypatch.chdir(tmp_path)
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:

    def test_app_defaults(self):
        settings = AppSettings()
        assert settings.supported_formats_list == ["jpg", "jpeg", "png", "webp"]
        assert settings.max_upload_size_bytes == 10 * 1024 * 1024
        assert settings.min_password_length == 6
        assert settings.password_reset_redirect == "http://localhost:8501/reset-password"

    def test_site_url_from_env(self, monkeypatch):
        monkeypatch.setenv("KASA_SITE_URL", "https://kasa.example.com/")
        assert AppSettings().password_reset_redirect == "https://kasa.example.com/reset-password"

    def test_supabase_settings(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://xyz.supabase.co/")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        settings = SupabaseSettings()
        assert settings.url == "https://xyz.supabase.co"
        assert settings.receipts_bucket == "islem-gorselleri"
        assert settings.has_admin_access is False

    def test_validate_all_without_backend(self):
        status = validate_all_settings()
        assert status["supabase"] is False
        assert "supabase_error" in status
        assert status["app"] is True

    def test_validate_all_without_service_key(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://xyz.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        status = validate_all_settings()
        assert status["supabase"] is True
        assert status["supabase_admin"] is False
        assert status["supabase_admin_error"] == "SUPABASE_SERVICE_ROLE_KEY is not set"
