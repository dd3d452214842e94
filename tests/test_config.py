import pytest
from pydantic import ValidationError

from ato.core.config import DEFAULT_API_URL, Settings, get_settings, normalize_api_url


class TestApiUrl:
    def test_default(self) -> None:
        assert Settings().api_url == DEFAULT_API_URL

    def test_trailing_slash_stripped(self) -> None:
        assert Settings(api_url=" https://ato.example.com/api/v1/ ").api_url == "https://ato.example.com/api/v1"

    @pytest.mark.parametrize("value", ["", "   ", "ftp://ato.example.com", "ato.example.com/api"])
    def test_invalid_values_rejected(self, value: str) -> None:
        with pytest.raises(ValidationError):
            Settings(api_url=value)

    def test_normalize_helper_matches_settings(self) -> None:
        assert normalize_api_url("http://localhost:8080/") == "http://localhost:8080"
        with pytest.raises(ValueError):
            normalize_api_url("localhost:8080")


class TestPolling:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.discovery_poll_interval_seconds == 2.0
        assert settings.execution_poll_interval_seconds == 3.0
        assert settings.poll_max_attempts is None

    def test_empty_max_attempts_env_means_unbounded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ATO_POLL_MAX_ATTEMPTS", "")
        assert Settings().poll_max_attempts is None

    def test_max_attempts_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ATO_POLL_MAX_ATTEMPTS", "25")
        assert Settings().poll_max_attempts == 25

    @pytest.mark.parametrize("value", ["0", "-3"])
    def test_non_positive_max_attempts_rejected(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("ATO_POLL_MAX_ATTEMPTS", value)
        with pytest.raises(ValidationError):
            Settings()

    def test_non_positive_interval_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(execution_poll_interval_seconds=0)

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf"])
    def test_non_finite_interval_rejected(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("ATO_DISCOVERY_POLL_INTERVAL_SECONDS", value)
        with pytest.raises(ValidationError):
            Settings()


class TestLoggingSettings:
    def test_level_and_format_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ATO_LOG_LEVEL", "debug")
        monkeypatch.setenv("ATO_LOG_FORMAT", "JSON")
        settings = Settings()
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_format="xml")

    def test_redact_fields_comma_separated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ATO_REDACT_FIELDS", "Password, apiKey ,,")
        assert Settings().redact_fields == ["password", "apikey"]

    def test_blank_placeholder_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(redaction_placeholder="  ")


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATO_API_URL", "https://first.example.com")
    first = get_settings()
    monkeypatch.setenv("ATO_API_URL", "https://second.example.com")

    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().api_url == "https://second.example.com"


def test_env_file_is_read(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("ATO_API_URL=https://from-dotenv.example.com/\nATO_VERIFY_SSL=false\n")
    monkeypatch.chdir(tmp_path)

    settings = Settings()

    assert settings.api_url == "https://from-dotenv.example.com"
    assert settings.verify_ssl is False
