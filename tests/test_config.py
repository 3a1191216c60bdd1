from pathlib import Path

import pytest

from cursor_usage.config import MIN_REFRESH_INTERVAL, UsageSettings
from cursor_usage.core.constants import (
    DEFAULT_API_BASE,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
)
from cursor_usage.utils.paths import get_config_base_dir, get_state_db_path


@pytest.fixture(autouse=True)
def _isolated_env(clean_env):
    yield


class TestUsageSettings:
    def test_defaults(self):
        settings = UsageSettings.from_env()
        assert settings.api_base == DEFAULT_API_BASE
        assert settings.state_db_path is None
        assert settings.refresh_interval == DEFAULT_REFRESH_INTERVAL
        assert settings.page_size == DEFAULT_PAGE_SIZE
        assert settings.max_pages == DEFAULT_MAX_PAGES
        assert settings.request_timeout == DEFAULT_REQUEST_TIMEOUT
        assert settings.dashboard_url == "https://cursor.com/dashboard?tab=usage"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CURSOR_API_BASE", "http://localhost:8080/")
        monkeypatch.setenv("CURSOR_STATE_DB", "/data/state.vscdb")
        monkeypatch.setenv("CURSOR_USAGE_REFRESH_INTERVAL", "120")
        monkeypatch.setenv("CURSOR_USAGE_PAGE_SIZE", "250")
        monkeypatch.setenv("CURSOR_USAGE_MAX_PAGES", "1")
        monkeypatch.setenv("CURSOR_USAGE_TIMEOUT", "7.5")

        settings = UsageSettings.from_env()

        assert settings.api_base == "http://localhost:8080"
        assert settings.state_db_path == Path("/data/state.vscdb")
        assert settings.resolve_state_db_path() == Path("/data/state.vscdb")
        assert settings.refresh_interval == 120
        assert settings.page_size == 250
        assert settings.max_pages == 1
        assert settings.request_timeout == 7.5
        assert settings.dashboard_url == "http://localhost:8080/dashboard?tab=usage"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("CURSOR_USAGE_PAGE_SIZE", "lots")
        monkeypatch.setenv("CURSOR_USAGE_TIMEOUT", "-3")

        settings = UsageSettings.from_env()

        assert settings.page_size == DEFAULT_PAGE_SIZE
        assert settings.request_timeout == DEFAULT_REQUEST_TIMEOUT

    def test_refresh_interval_is_clamped(self, monkeypatch):
        monkeypatch.setenv("CURSOR_USAGE_REFRESH_INTERVAL", "1")
        assert UsageSettings.from_env().refresh_interval == MIN_REFRESH_INTERVAL

    def test_env_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text(
            "CURSOR_USAGE_MAX_PAGES=3\nCURSOR_USAGE_PAGE_SIZE=50\n"
        )
        monkeypatch.setenv("CURSOR_USAGE_PAGE_SIZE", "75")

        settings = UsageSettings.from_env(env_file)

        assert settings.max_pages == 3
        assert settings.page_size == 75

    def test_dotenv_in_working_directory(self, tmp_path):
        (tmp_path / ".env").write_text("CURSOR_USAGE_MAX_PAGES=4\n")
        assert UsageSettings.from_env().max_pages == 4


class TestPaths:
    def test_macos(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_state_db_path("darwin") == (
            tmp_path / "Library" / "Application Support" / "Cursor" / "User"
            / "globalStorage" / "state.vscdb"
        )

    def test_windows_appdata(self, monkeypatch, tmp_path):
        monkeypatch.setenv("APPDATA", str(tmp_path / "Roaming"))
        assert get_config_base_dir("win32") == tmp_path / "Roaming"

    def test_windows_without_appdata(self, monkeypatch, tmp_path):
        monkeypatch.delenv("APPDATA", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_config_base_dir("win32") == tmp_path / "AppData" / "Roaming"

    def test_linux_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert get_state_db_path("linux") == (
            tmp_path / "xdg" / "Cursor" / "User" / "globalStorage" / "state.vscdb"
        )

    def test_linux_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_config_base_dir("linux") == tmp_path / ".config"
