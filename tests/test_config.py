"""Unit tests for configuration handling."""

import stat

import pytest

from pybun.config import DEFAULT_API_URL, Config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove pybun variables from the environment."""
    for name in ("BUN_KEY", "BUN_ZONE", "BUN_API_URL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Tests for Config."""

    def test_nothing_configured(self, clean_env, tmp_path):
        """Without file or environment nothing is configured."""
        config = Config(tmp_path / "config")
        assert config.api_key is None
        assert config.zone is None
        assert config.api_url == DEFAULT_API_URL
        assert not config.is_configured()

    def test_environment(self, clean_env, tmp_path):
        """Environment variables provide key, zone and URL."""
        clean_env.setenv("BUN_KEY", "envkey")
        clean_env.setenv("BUN_ZONE", "envzone")
        clean_env.setenv("BUN_API_URL", "https://example.com")

        config = Config(tmp_path / "config")

        assert config.api_key == "envkey"
        assert config.zone == "envzone"
        assert config.api_url == "https://example.com"
        assert config.is_configured()

    def test_file_values(self, clean_env, tmp_path):
        """The config file is used when the environment is empty."""
        path = tmp_path / "config"
        path.write_text("# comment\nBUN_KEY = filekey\nBUN_ZONE=filezone\n\n")

        config = Config(path)

        assert config.api_key == "filekey"
        assert config.zone == "filezone"

    def test_environment_overrides_file(self, clean_env, tmp_path):
        """Environment variables win over the file."""
        path = tmp_path / "config"
        path.write_text("BUN_KEY=filekey\nBUN_ZONE=filezone\n")
        clean_env.setenv("BUN_ZONE", "envzone")

        config = Config(path)

        assert config.api_key == "filekey"
        assert config.zone == "envzone"

    def test_save(self, clean_env, tmp_path):
        """save writes both values with owner-only permissions."""
        path = tmp_path / "nested" / "config"
        config = Config(path)

        config.save(api_key="k", zone="z")

        assert config.api_key == "k"
        assert config.zone == "z"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_save_keeps_other_values(self, clean_env, tmp_path):
        """Unrelated entries of an existing file are preserved."""
        path = tmp_path / "config"
        path.write_text("BUN_API_URL=https://example.com\n")

        Config(path).save(api_key="k", zone="z")

        assert "BUN_API_URL=https://example.com" in path.read_text()
