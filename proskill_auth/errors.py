"""
Error taxonomy for the authentication core.

Core components raise these; the service layer turns them into
OperationResult values, and only ConfigurationError escalates.
"""


class AuthError(Exception):
    """Base class for recoverable authentication errors."""

    error_kind = "AUTH_ERROR"
    public_message = "Authentication failed"

    def __init__(self, message: str = ""):
        super().__init__(message or self.public_message)


class ConfigurationError(RuntimeError):
    """Missing or unsafe configuration. Never recovered into a result."""


class StorageCorrupted(RuntimeError):
    """The account store can't be read. Nothing is written over it."""


# Phone input

class InvalidPhoneNumber(AuthError):
    error_kind = "INVALID_PHONE_NUMBER"
    public_message = "Invalid phone number format"


# OTP challenge

class ChallengeError(AuthError):
    """Any OTP failure. Reported uniformly so callers can't enumerate accounts."""

    error_kind = "INVALID_OTP"
    public_message = "Invalid or expired OTP"


class ChallengeNotFound(ChallengeError):
    pass


class ChallengeExpired(ChallengeError):
    pass


class ChallengeMismatch(ChallengeError):
    pass


# Accounts

class AccountNotFound(AuthError):
    error_kind = "ACCOUNT_NOT_FOUND"
    public_message = "Account not found"


class AccountDeactivated(AuthError):
    error_kind = "ACCOUNT_DEACTIVATED"
    public_message = "Account is deactivated. Please contact support."


# Session tokens

class SessionError(AuthError):
    """Any reason a session token is not accepted."""

    error_kind = "INVALID_SESSION"
    public_message = "Please login again"


class MalformedToken(SessionError):
    error_kind = "MALFORMED_TOKEN"


class TokenExpired(SessionError):
    error_kind = "TOKEN_EXPIRED"


class InvalidSignature(SessionError):
    error_kind = "INVALID_SIGNATURE"


class SessionRevoked(SessionError):
    error_kind = "SESSION_REVOKED"


# External roster

class ExternalLookupUnavailable(AuthError):
    error_kind = "EXTERNAL_LOOKUP_UNAVAILABLE"
    public_message = "Student roster unavailable"


# Notifications

class NotificationFailed(AuthError):
    error_kind = "SMS_SEND_FAILED"
    public_message = "Failed to send OTP. Please try again."
