"""
Unit tests for configuration loading and validation.
"""

import pytest

from proskill_auth.config import Config, TwilioConfig, parse_duration, load_config
from proskill_auth.errors import ConfigurationError


class TestParseDuration:

    @pytest.mark.unit
    @pytest.mark.parametrize("value,seconds", [
        ("7d", 604800),
        ("12h", 43200),
        ("30m", 1800),
        ("45s", 45),
        ("3600", 3600),
    ])
    def test_valid(self, value, seconds):
        assert parse_duration(value) == seconds

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["", "7w", "abc", "-1d"])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_duration(value)


class TestConfig:
    """Tests for Config loading from the environment."""

    @pytest.mark.unit
    def test_loads_from_env(self, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRES_IN", "12h")
        monkeypatch.setenv("OTP_TTL_SECONDS", "300")
        monkeypatch.setenv("FLOWLINE_COLLECTION", "learners")

        config = load_config()

        assert config.jwt.secret_key
        assert config.jwt.expires_in == 43200
        assert config.otp.ttl_seconds == 300
        assert config.roster.collection == "learners"
        assert config.default_country_code == "+91"

    @pytest.mark.unit
    def test_validate_ok(self):
        Config().validate()

    @pytest.mark.unit
    def test_missing_secret_fails(self, monkeypatch):
        """Test the service refuses to start without a signing secret."""
        monkeypatch.delenv("JWT_SECRET", raising=False)

        with pytest.raises(ConfigurationError, match="JWT_SECRET"):
            Config().validate()

    @pytest.mark.unit
    def test_fixed_otp_refused_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("OTP_FIXED_CODE", "123456")

        config = Config()

        assert config.is_production is True
        with pytest.raises(ConfigurationError, match="OTP_FIXED_CODE"):
            config.validate()

    @pytest.mark.unit
    def test_fixed_otp_allowed_in_development(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("OTP_FIXED_CODE", "123456")

        Config().validate()

    @pytest.mark.unit
    def test_fixed_otp_wrong_length(self, monkeypatch):
        monkeypatch.setenv("OTP_FIXED_CODE", "1234")

        with pytest.raises(ConfigurationError):
            Config().validate()

    @pytest.mark.unit
    @pytest.mark.parametrize("sid,configured", [
        ("AC123", True),
        ("", False),
        ("XX123", False),
    ])
    def test_twilio_is_configured(self, sid, configured):
        twilio = TwilioConfig(account_sid=sid, auth_token="token", from_number="+15550001111")

        assert twilio.is_configured() is configured
