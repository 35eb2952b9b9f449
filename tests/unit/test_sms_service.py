"""
Unit tests for SMS Service.

Twilio is mocked; nothing leaves the process.
"""

import pytest
from unittest.mock import patch, MagicMock

from proskill_auth.config import TwilioConfig
from proskill_auth.services import SMSService


@pytest.fixture
def twilio_config():
    return TwilioConfig(
        account_sid="AC00000000000000000000000000000000",
        auth_token="token",
        from_number="+15550001111",
        brand="Proskill"
    )


class TestSMSService:
    """Tests for SMSService class."""

    @pytest.mark.unit
    def test_send_otp(self, twilio_config):
        """Test an OTP message is sent through Twilio."""
        with patch("proskill_auth.services.sms_service.Client") as mock_client_cls:
            mock_client_cls.return_value.messages.create.return_value = MagicMock(sid="SM123")
            service = SMSService(twilio_config)

            result = service.send_otp("+919876543210", "482913", 10)

        assert result.success is True
        assert result.sid == "SM123"
        kwargs = mock_client_cls.return_value.messages.create.call_args.kwargs
        assert kwargs["to"] == "+919876543210"
        assert kwargs["from_"] == "+15550001111"
        assert "482913" in kwargs["body"]
        assert "10 minutes" in kwargs["body"]
        assert "Proskill" in kwargs["body"]

    @pytest.mark.unit
    def test_send_failure(self, twilio_config):
        """Test Twilio errors become a failed result."""
        with patch("proskill_auth.services.sms_service.Client") as mock_client_cls:
            mock_client_cls.return_value.messages.create.side_effect = RuntimeError("rejected")
            service = SMSService(twilio_config)

            result = service.send("+919876543210", "hello")

        assert result.success is False
        assert "rejected" in result.error

    @pytest.mark.unit
    def test_send_welcome(self, twilio_config):
        with patch("proskill_auth.services.sms_service.Client") as mock_client_cls:
            service = SMSService(twilio_config)
            service.send_welcome("+919876543210", "Asha")

        body = mock_client_cls.return_value.messages.create.call_args.kwargs["body"]
        assert body.startswith("Welcome to Proskill, Asha!")

    @pytest.mark.unit
    def test_unconfigured_fails(self):
        """Test sending without credentials fails unless mocking is allowed."""
        service = SMSService(TwilioConfig(account_sid="", auth_token="", from_number=""))

        result = service.send("+919876543210", "hello")

        assert service.is_configured() is False
        assert result.success is False

    @pytest.mark.unit
    def test_mock_mode(self):
        """Test messages are only logged in mock mode."""
        service = SMSService(
            TwilioConfig(account_sid="", auth_token="", from_number=""),
            allow_mock=True
        )

        result = service.send_otp("+919876543210", "123456")

        assert result.success is True
        assert result.sid == "mock-message-sid"
        assert result.to_dict() == {"success": True, "sid": "mock-message-sid"}
