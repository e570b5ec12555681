"""
Tests for configuration loading: Config and EngineSettings.
"""

import pytest
from pydantic import ValidationError

from common.toolkit import Config, substitute_env
from engine.settings import DEFAULT_BASE_URL, EngineSettings, load_settings

# =============================================================================
# TEST ENV SUBSTITUTION
# =============================================================================


class TestSubstituteEnv:
    """Tests for ${VAR} / ${VAR:default} substitution."""

    def test_variable_set(self, monkeypatch):
        monkeypatch.setenv("FAKEREST_TEST_VAR", "value")
        assert substitute_env("x: ${FAKEREST_TEST_VAR}") == "x: value"

    def test_default_used(self, monkeypatch):
        monkeypatch.delenv("FAKEREST_TEST_VAR", raising=False)
        assert substitute_env("x: ${FAKEREST_TEST_VAR:fallback}") == "x: fallback"

    def test_default_with_colon(self, monkeypatch):
        monkeypatch.delenv("FAKEREST_TEST_URL", raising=False)
        assert substitute_env("${FAKEREST_TEST_URL:https://a.test}") == "https://a.test"

    def test_unset_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("FAKEREST_TEST_VAR", raising=False)
        assert substitute_env("x: ${FAKEREST_TEST_VAR}") == "x: "


# =============================================================================
# TEST CONFIG
# =============================================================================


class TestConfig:
    """Tests for Config loader."""

    def test_missing_file_is_empty(self, tmp_path):
        assert Config(tmp_path).load("engine") == {}

    def test_dotted_get(self, tmp_path):
        (tmp_path / "engine.yaml").write_text("engine:\n  base_url: http://x\n", encoding="utf-8")
        config = Config(tmp_path)

        assert config.get("engine.engine.base_url") == "http://x"
        assert config.get("engine.engine.missing", "d") == "d"

    def test_yml_extension(self, tmp_path):
        (tmp_path / "engine.yml").write_text("a: 1\n", encoding="utf-8")
        assert Config(tmp_path).load("engine") == {"a": 1}

    def test_cached(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("a: 1\n", encoding="utf-8")
        config = Config(tmp_path)
        config.load("engine")
        path.write_text("a: 2\n", encoding="utf-8")

        assert config.load("engine") == {"a": 1}


# =============================================================================
# TEST ENGINE SETTINGS
# =============================================================================


class TestEngineSettings:
    """Tests for EngineSettings and load_settings()."""

    def test_defaults(self, tmp_path):
        settings = load_settings(Config(tmp_path))

        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.timeout_millis == 30_000
        assert settings.default_headers == {"Accept": "application/json"}

    def test_bundled_config(self, project_root, monkeypatch):
        monkeypatch.delenv("FAKEREST_BASE_URL", raising=False)
        monkeypatch.delenv("FAKEREST_TIMEOUT_MS", raising=False)

        settings = load_settings(Config(project_root / "config"))

        assert settings.base_url == "https://fakerestapi.azurewebsites.net"
        assert settings.timeout_millis == 30000

    def test_environment_overrides(self, project_root, monkeypatch):
        monkeypatch.setenv("FAKEREST_BASE_URL", "http://localhost:5000/")
        monkeypatch.setenv("FAKEREST_TIMEOUT_MS", "1500")

        settings = load_settings(Config(project_root / "config"))

        assert settings.base_url == "http://localhost:5000"
        assert settings.timeout_millis == 1500

    def test_keyword_overrides_win(self, tmp_path):
        settings = load_settings(Config(tmp_path), base_url="http://o.test", timeout_millis=None)

        assert settings.base_url == "http://o.test"
        assert settings.timeout_millis == 30_000

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            EngineSettings(timeout_millis=0)

    def test_settings_frozen(self):
        settings = EngineSettings()
        with pytest.raises(ValidationError):
            settings.base_url = "http://other"
