"""
SMS Service using Twilio.

Delivers OTP codes and welcome messages.
"""

import logging
from typing import Optional
from dataclasses import dataclass

from twilio.rest import Client

from ..config import TwilioConfig
from ..phone import mask_phone

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """Outcome of one outbound message."""
    success: bool
    sid: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.sid:
            result["sid"] = self.sid
        if self.error:
            result["error"] = self.error
        return result


class SMSService:
    """Service for sending SMS notifications via Twilio."""

    def __init__(self, config: Optional[TwilioConfig] = None, allow_mock: bool = False):
        """
        Args:
            config: Twilio credentials (loads from env if not provided)
            allow_mock: When Twilio isn't configured, log messages instead of
                        failing. Dev/test only.
        """
        self.config = config or TwilioConfig()
        self.allow_mock = allow_mock
        self._client: Optional[Client] = None

        if self.config.is_configured():
            try:
                self._client = Client(self.config.account_sid, self.config.auth_token)
                logger.info("Twilio SMS service initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Twilio: {e}")
        elif allow_mock:
            logger.warning("Twilio not configured, SMS messages will only be logged")

    def is_configured(self) -> bool:
        """Check if Twilio is properly configured."""
        return self._client is not None

    def send(self, to_phone: str, message: str) -> SendResult:
        """
        Send one SMS.

        Args:
            to_phone: Destination number in E.164 format
            message: Message body

        Returns:
            SendResult with the message SID or error
        """
        if not self.is_configured():
            if self.allow_mock:
                logger.info(f"[MOCK SMS] to {mask_phone(to_phone)}: {message}")
                return SendResult(success=True, sid="mock-message-sid")
            logger.error("Twilio client not initialized, cannot send SMS")
            return SendResult(success=False, error="Twilio not configured")

        try:
            msg = self._client.messages.create(
                body=message,
                from_=self.config.from_number,
                to=to_phone
            )
            logger.info(f"SMS sent to {mask_phone(to_phone)}: {msg.sid}")
            return SendResult(success=True, sid=msg.sid)
        except Exception as e:
            logger.error(f"SMS send failed to {mask_phone(to_phone)}: {e}")
            return SendResult(success=False, error=str(e))

    def send_otp(self, to_phone: str, code: str, ttl_minutes: int = 10) -> SendResult:
        """Send a verification code."""
        message = (
            f"Your {self.config.brand} verification code is: {code}. "
            f"This code will expire in {ttl_minutes} minutes."
        )
        return self.send(to_phone, message)

    def send_welcome(self, to_phone: str, name: str = "User") -> SendResult:
        """Send the post-registration welcome message."""
        message = (
            f"Welcome to {self.config.brand}, {name}! Your account has been successfully created. "
            "Start your learning journey today!"
        )
        return self.send(to_phone, message)
