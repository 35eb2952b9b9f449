"""
Authentication module for Proskill.

Phone + OTP login with JWT session tokens and per-account token versions.
"""

from .accounts import Account, AccountStore, Profile, Preferences
from .jwt_handler import JWTHandler, TokenClaims
from .otp import OtpHandler, OtpState
from .token_guard import TokenVersionGuard

__all__ = [
    "Account",
    "AccountStore",
    "Profile",
    "Preferences",
    "JWTHandler",
    "TokenClaims",
    "OtpHandler",
    "OtpState",
    "TokenVersionGuard",
]
