"""
Services layer for Proskill auth.

Business logic consumed by the HTTP API (or any other interface).
"""

from .base import AuthContext
from .sms_service import SMSService, SendResult
from .otp_auth_service import OtpAuthService, OperationResult

__all__ = [
    "AuthContext",
    "SMSService",
    "SendResult",
    "OtpAuthService",
    "OperationResult",
]
