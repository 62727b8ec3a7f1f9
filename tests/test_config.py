"""
Tests for configuration loading and validation.

Tests cover:
- Defaults class and SpeakServiceConfig defaults
- YAML loading, empty sections, missing file
- Environment overrides
- Validation errors
"""
import pytest

from speak_proxy.core.config import (
    ConfigValidationError,
    Defaults,
    Settings,
    SpeakServiceConfig,
    apply_env_overrides,
    load_settings,
    load_settings_or_defaults,
)


def _config(raw):
    return SpeakServiceConfig.from_settings(Settings(raw=raw))


class TestDefaults:
    """Built-in policy values."""

    def test_reference_policy(self):
        config = _config({})
        assert config.normalizer.max_text_chars == 300
        assert config.normalizer.voices == ("alena", "oksana", "jane", "filipp", "ermil", "zahar")
        assert config.normalizer.emotions == ("neutral", "good", "evil")
        assert (config.normalizer.min_speed, config.normalizer.max_speed) == (0.5, 1.5)
        assert config.rate_limit.max_requests == 20
        assert config.rate_limit.window_seconds == 60.0
        assert config.gateway.url == Defaults.GATEWAY_URL
        assert config.gateway.timeout_s == 30.0
        assert config.server.port == 3000

    def test_settings_properties(self):
        settings = Settings(raw={})
        assert settings.provider_url == Defaults.GATEWAY_URL
        assert settings.api_key is None
        assert settings.port == 3000

    def test_empty_sections(self):
        """A YAML section with no body loads as None and means defaults."""
        config = _config({"gateway": None, "rate_limit": None, "normalizer": None})
        assert config.rate_limit.max_requests == 20
        assert Settings(raw={"gateway": None}).provider_url == Defaults.GATEWAY_URL


class TestYamlLoading:
    """load_settings() / load_settings_or_defaults()."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "rate_limit:\n  max_requests: 5\n  window_seconds: 10\n"
            "gateway:\n  lang: kk-KK\n",
            encoding="utf-8",
        )
        config = load_settings(str(path)).get_service_config()
        assert config.rate_limit.max_requests == 5
        assert config.rate_limit.window_seconds == 10.0
        assert config.gateway.lang == "kk-KK"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(str(path)).raw == {}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_missing_file_falls_back(self, tmp_path):
        settings = load_settings_or_defaults(str(tmp_path / "nope.yaml"))
        assert settings.get_service_config().rate_limit.max_requests == 20

    def test_settings_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("server:\n  port: 9000\n", encoding="utf-8")
        monkeypatch.setenv("SPEAK_PROXY_SETTINGS", str(path))
        assert load_settings_or_defaults().port == 9000

    def test_shipped_settings_valid(self):
        """config/settings.yaml matches the built-in defaults."""
        from pathlib import Path

        path = Path(__file__).parent.parent / "config" / "settings.yaml"
        assert load_settings(str(path)).get_service_config() == _config({})


class TestEnvOverrides:
    """apply_env_overrides()."""

    def test_api_key(self, monkeypatch):
        monkeypatch.setenv("YANDEX_API_KEY", "abc")
        settings = Settings(raw=apply_env_overrides({}))
        assert settings.api_key == "abc"
        assert settings.get_service_config().gateway.api_key == "abc"

    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("server:\n  port: 9000\nrate_limit:\n  max_requests: 5\n", encoding="utf-8")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("SPEAK_PROXY_RATE_LIMIT", "50")
        monkeypatch.setenv("SPEAK_PROXY_RATE_WINDOW", "30")

        settings = load_settings(str(path))
        config = settings.get_service_config()
        assert settings.port == 8080
        assert config.rate_limit.max_requests == 50
        assert config.rate_limit.window_seconds == 30.0

    def test_provider_url_and_host(self, monkeypatch):
        monkeypatch.setenv("SPEAK_PROXY_PROVIDER_URL", "http://localhost:9999/tts")
        monkeypatch.setenv("HOST", "127.0.0.1")
        settings = Settings(raw=apply_env_overrides({"gateway": None}))
        assert settings.provider_url == "http://localhost:9999/tts"
        assert settings.host == "127.0.0.1"


class TestValidation:
    """ConfigValidationError cases."""

    @pytest.mark.parametrize("raw", [
        {"rate_limit": {"max_requests": 0}},
        {"rate_limit": {"window_seconds": -1}},
        {"normalizer": {"max_text_chars": 0}},
        {"normalizer": {"default_speed": 2.0}},
        {"normalizer": {"default_voice": "robot"}},
        {"normalizer": {"default_emotion": "sad"}},
        {"gateway": {"url": "ftp://example.com"}},
        {"gateway": {"timeout_s": 0}},
        {"logging": {"level": 7}},
        {"server": {"port": 70000}},
    ])
    def test_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            _config(raw)

    def test_string_log_level(self):
        assert _config({"logging": {"level": "verbose"}}).logging.level == 3
        assert _config({"logging": {"level": "4"}}).logging.level == 4
