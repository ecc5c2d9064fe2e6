"""Tests for environment-driven configuration."""

from settings import DEFAULT_API_URL, DEFAULT_MODEL, load_ai_config, load_server_settings, validate_ai_config


class TestLoadAIConfig:
    def test_defaults(self):
        config = load_ai_config()
        assert config.api_key == ""
        assert config.base_url == DEFAULT_API_URL
        assert config.model == DEFAULT_MODEL
        assert config.max_tokens == 2000
        assert config.temperature == 0.2
        assert config.top_p == 0.9
        assert config.timeout == 30.0
        assert config.seed is None
        assert config.enable_retries is True
        assert config.max_retries == 3

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("AI_API_KEY", "sk-123")
        monkeypatch.setenv("AI_API_URL", "https://example.test/v1")
        monkeypatch.setenv("AI_MODEL", "gpt-test")
        monkeypatch.setenv("AI_TIMEOUT", "45000")
        monkeypatch.setenv("AI_SEED", "42")
        monkeypatch.setenv("AI_ENABLE_RETRIES", "false")
        config = load_ai_config()
        assert config.api_key == "sk-123"
        assert config.base_url == "https://example.test/v1"
        assert config.model == "gpt-test"
        assert config.timeout == 45.0
        assert config.seed == 42
        assert config.enable_retries is False

    def test_out_of_range_values_are_clamped(self, monkeypatch):
        monkeypatch.setenv("AI_TIMEOUT", "500")
        monkeypatch.setenv("AI_TEMPERATURE", "5")
        monkeypatch.setenv("AI_MAX_TOKENS", "10")
        config = load_ai_config()
        assert config.timeout == 1.0
        assert config.temperature == 2.0
        assert config.max_tokens == 100

    def test_garbage_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("AI_TOP_P", "high")
        monkeypatch.setenv("AI_SEED", "abc")
        config = load_ai_config()
        assert config.top_p == 0.9
        assert config.seed is None


class TestServerSettings:
    def test_defaults(self):
        settings = load_server_settings()
        assert settings.port == 3001
        assert settings.cors_origin == "http://localhost:3000"
        assert settings.log_level == "info"
        assert settings.enable_logging is True

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ENABLE_LOGGING", "false")
        settings = load_server_settings()
        assert settings.port == 8080
        assert settings.log_level == "debug"
        assert settings.enable_logging is False


class TestValidateAIConfig:
    def test_missing_required(self):
        valid, errors = validate_ai_config()
        assert not valid
        assert errors == ["AI_API_KEY is required", "AI_API_URL is required", "AI_MODEL is required"]

    def test_valid(self, monkeypatch):
        monkeypatch.setenv("AI_API_KEY", "sk-123")
        monkeypatch.setenv("AI_API_URL", "https://example.test/v1")
        monkeypatch.setenv("AI_MODEL", "gpt-test")
        monkeypatch.setenv("AI_TIMEOUT", "30000")
        assert validate_ai_config() == (True, [])

    def test_range_errors(self, monkeypatch):
        monkeypatch.setenv("AI_API_KEY", "sk-123")
        monkeypatch.setenv("AI_API_URL", "https://example.test/v1")
        monkeypatch.setenv("AI_MODEL", "gpt-test")
        monkeypatch.setenv("AI_TIMEOUT", "500")
        monkeypatch.setenv("AI_TOP_P", "1.5")
        monkeypatch.setenv("AI_MAX_TOKENS", "lots")
        valid, errors = validate_ai_config()
        assert not valid
        assert errors == [
            "AI_MAX_TOKENS must be between 100 and 32000",
            "AI_TOP_P must be between 0 and 1",
            "AI_TIMEOUT must be between 1000 and 120000 milliseconds",
        ]
