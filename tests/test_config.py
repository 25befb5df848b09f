"""Tests for settings loading."""
from pathlib import Path

import pytest

from stagecraft.config import SettingsManager, get_settings, reset_settings
from stagecraft.exceptions import ConfigurationError


@pytest.fixture
def paths(tmp_path):
    return tmp_path / "home" / "config.yaml", tmp_path / "project" / ".stagecraft.yaml"


def make_manager(paths, environ=None):
    user, project = paths
    return SettingsManager(user_config_path=user, project_config_path=project, environ=environ or {})


def write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestSettingsManager:
    """Tests for SettingsManager.load."""

    def test_defaults(self, paths):
        """Test built-in defaults apply with no files."""
        settings = make_manager(paths).load()

        assert settings.cloud_base_url == "https://api.stagecraft.dev"
        assert settings.cloud_token is None
        assert settings.cloud_timeout == 30.0
        assert settings.sync_debounce_seconds == 1.0
        assert settings.local_cache_path == Path.home() / ".stagecraft" / "cache.db"
        assert settings.log_level == "INFO"

    def test_user_file(self, paths):
        """Test the user file overrides defaults."""
        write(paths[0], "cloud:\n  base_url: https://user.test\n  timeout: 10\n")
        settings = make_manager(paths).load()
        assert settings.cloud_base_url == "https://user.test"
        assert settings.cloud_timeout == 10.0

    def test_project_overrides_user(self, paths):
        """Test the project file wins over the user file, key by key."""
        write(paths[0], "cloud:\n  base_url: https://user.test\n  timeout: 10\n")
        write(paths[1], "cloud:\n  base_url: https://project.test\n")
        settings = make_manager(paths).load()
        assert settings.cloud_base_url == "https://project.test"
        assert settings.cloud_timeout == 10.0

    def test_environment_overrides_files(self, paths, tmp_path):
        """Test environment variables win over every file."""
        write(paths[1], "cloud:\n  token: from-file\n")
        environ = {
            "STAGECRAFT_CLOUD_TOKEN": "from-env",
            "STAGECRAFT_LOCAL_CACHE": str(tmp_path / "c.db"),
            "STAGECRAFT_LOG_LEVEL": "debug",
        }
        settings = make_manager(paths, environ).load()
        assert settings.cloud_token == "from-env"
        assert settings.local_cache_path == tmp_path / "c.db"
        assert settings.log_level == "DEBUG"

    def test_empty_environment_value_is_ignored(self, paths):
        """Test empty variables do not override."""
        settings = make_manager(paths, {"STAGECRAFT_CLOUD_BASE_URL": ""}).load()
        assert settings.cloud_base_url == "https://api.stagecraft.dev"

    def test_invalid_choice(self, paths):
        """Test an unknown log format is rejected."""
        write(paths[0], "logging:\n  format: xml\n")
        with pytest.raises(ConfigurationError) as exc_info:
            make_manager(paths).load()
        assert exc_info.value.details["config_key"] == "logging.format"

    def test_invalid_type(self, paths):
        """Test a non-numeric timeout is rejected."""
        write(paths[0], "cloud:\n  timeout: soon\n")
        with pytest.raises(ConfigurationError):
            make_manager(paths).load()

    def test_out_of_range(self, paths):
        """Test a negative debounce window is rejected."""
        write(paths[0], "sync:\n  debounce_seconds: -1\n")
        with pytest.raises(ConfigurationError):
            make_manager(paths).load()

    def test_invalid_yaml(self, paths):
        """Test unparsable YAML is reported as ConfigurationError."""
        write(paths[0], "cloud: [unclosed\n")
        with pytest.raises(ConfigurationError):
            make_manager(paths).load()

    def test_non_mapping_file(self, paths):
        """Test a YAML file that is not a mapping is rejected."""
        write(paths[0], "- a\n- b\n")
        with pytest.raises(ConfigurationError):
            make_manager(paths).load()

    def test_required_value_cleared(self, paths):
        """Test clearing a required value is rejected."""
        write(paths[0], "cloud:\n  base_url: null\n")
        with pytest.raises(ConfigurationError):
            make_manager(paths).load()

    def test_init_config_template_loads(self, paths):
        """Test the written template is a valid config."""
        manager = make_manager(paths)
        written = manager.init_config("user")

        assert written == paths[0]
        assert manager.config_exists()
        assert manager.sources() == [paths[0]]
        settings = manager.load()
        assert settings.cloud_timeout == 30.0

    def test_init_project_config(self, paths):
        """Test init_config can target the project file."""
        manager = make_manager(paths)
        assert manager.init_config("project") == paths[1]
        assert paths[1].exists()


class TestSettings:
    """Tests for Settings helpers."""

    def test_to_log_config(self, paths):
        """Test logging settings convert to a LogConfig."""
        write(paths[0], "logging:\n  level: WARNING\n  format: json\n")
        log_config = make_manager(paths).load().to_log_config()
        assert log_config.log_level == "WARNING"
        assert log_config.log_format == "json"

    def test_to_dict_masks_token(self, paths):
        """Test the token is never shown."""
        settings = make_manager(paths, {"STAGECRAFT_CLOUD_TOKEN": "secret"}).load()
        assert settings.to_dict()["cloud"]["token"] == "***"

    def test_get_settings_is_cached(self, monkeypatch, tmp_path):
        """Test get_settings loads once until reset."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("STAGECRAFT_CLOUD_BASE_URL", "https://env.test")
        reset_settings()

        first = get_settings()
        monkeypatch.setenv("STAGECRAFT_CLOUD_BASE_URL", "https://changed.test")

        assert get_settings() is first
        assert first.cloud_base_url == "https://env.test"
        reset_settings()
        assert get_settings().cloud_base_url == "https://changed.test"
