"""
OTP authentication service.

The inbound operations of the auth core: request/resend/verify a phone
challenge, complete registration, log out, force logout and deactivate.
Each one returns an OperationResult; only configuration errors escape as
exceptions.
"""

import logging
import functools
from datetime import datetime
from typing import Optional, Any
from dataclasses import dataclass

from .base import AuthContext
from ..auth import Account, OtpState
from ..errors import (
    AuthError,
    AccountNotFound,
    AccountDeactivated,
    ChallengeError,
    ChallengeExpired,
    ChallengeMismatch,
    ConfigurationError,
    NotificationFailed,
    SessionError,
)
from ..phone import NormalizedPhone, normalize, mask_phone
from ..roster import StudentRecord
from ..sanitize import escape_html, sanitize_name, sanitize_email, sanitize_place

logger = logging.getLogger(__name__)

MIN_ROSTER_NAME_LENGTH = 2


@dataclass
class OperationResult:
    """Result of an inbound operation."""
    ok: bool
    payload: Optional[dict] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, payload: Optional[dict] = None, message: Optional[str] = None) -> "OperationResult":
        return cls(ok=True, payload=payload or {}, message=message)

    @classmethod
    def failure(cls, error_kind: str, message: str) -> "OperationResult":
        return cls(ok=False, error_kind=error_kind, message=message)

    @classmethod
    def from_error(cls, error: AuthError) -> "OperationResult":
        # Session errors all read the same to the client; the kind stays precise
        if isinstance(error, SessionError):
            return cls.failure(error.error_kind, SessionError.public_message)
        return cls.failure(error.error_kind, error.public_message)

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"ok": self.ok}
        if self.message:
            result["message"] = self.message
        if self.ok:
            result["payload"] = self.payload
        else:
            result["error_kind"] = self.error_kind
        return result


def _recover(operation: str):
    """Turn AuthErrors into failure results; let configuration errors escalate."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> OperationResult:
            try:
                return func(*args, **kwargs)
            except AuthError as e:
                logger.debug(f"{operation} rejected: {type(e).__name__}: {e}")
                return OperationResult.from_error(e)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error(f"{operation} failed: {e}", exc_info=True)
                return OperationResult.failure(
                    "INTERNAL_SERVER_ERROR",
                    "An unexpected error occurred. Please try again."
                )
        return wrapper
    return decorator


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


class OtpAuthService:
    """
    Service for phone + OTP authentication.

    Handles:
    - Requesting and resending a challenge
    - Verifying a challenge (login, or registration on first verify)
    - Completing the profile of a signed-in account
    - Logout, forced logout of all sessions, account deactivation
    - Resolving a session token to the current account
    """

    def __init__(self, context: AuthContext):
        self.context = context

    @property
    def accounts(self):
        return self.context.accounts

    @property
    def otp(self):
        return self.context.otp

    @property
    def guard(self):
        return self.context.guard

    @property
    def resolver(self):
        return self.context.resolver

    @property
    def sms(self):
        return self.context.sms

    def _normalize(self, raw_phone: str, country_code: Optional[str]) -> NormalizedPhone:
        return normalize(raw_phone, country_code or self.context.config.default_country_code)

    def _ttl_minutes(self) -> int:
        return max(1, self.otp.ttl_seconds // 60)

    def _issue_and_send(self, account: Account):
        """
        Start a fresh challenge on the stored account and deliver it.

        Raises:
            NotificationFailed: If the SMS could not be sent
        """
        # Hash outside the store lock; only the assignment happens under it
        code, otp_hash, expires_at = self.otp.new_challenge()

        def start_challenge(acc: Account):
            acc.otp_hash = otp_hash
            acc.otp_expires_at = expires_at

        self.accounts.update(account.account_id, start_challenge)

        result = self.sms.send_otp(account.full_phone_number, code, self._ttl_minutes())
        if not result.success:
            logger.error(f"OTP delivery failed for {mask_phone(account.full_phone_number)}: {result.error}")
            raise NotificationFailed()

    def _challenge_payload(self, phone: NormalizedPhone) -> dict:
        return {
            "phone_number": phone.national_number,
            "country_code": phone.country_code,
            "expires_in": f"{self._ttl_minutes()} minutes",
        }

    @_recover("Request OTP")
    def request_challenge(self, raw_phone: str, country_code: Optional[str] = None) -> OperationResult:
        """
        Send an OTP, creating the account on first contact.

        Args:
            raw_phone: Phone number as entered
            country_code: Calling code hint (default: configured default)

        Returns:
            OperationResult; payload may include the roster student's name
        """
        phone = self._normalize(raw_phone, country_code)

        account, created = self.accounts.get_or_create(phone)
        if not account.is_active:
            return OperationResult.failure(
                "ACCOUNT_DEACTIVATED",
                "Account is deactivated. Please contact support."
            )

        pending = self.resolver.submit(phone)
        self._issue_and_send(account)
        record = self.resolver.join(pending)

        payload = self._challenge_payload(phone)
        if record and record.display_name:
            payload["name"] = escape_html(record.display_name)

        logger.info(f"OTP sent to {mask_phone(phone.e164)} (new account: {created})")
        return OperationResult.success(payload, "OTP sent successfully")

    @_recover("Resend OTP")
    def resend_challenge(self, raw_phone: str, country_code: Optional[str] = None) -> OperationResult:
        """
        Send a new OTP to an existing active account.

        The previous code stops working.
        """
        phone = self._normalize(raw_phone, country_code)

        account = self.accounts.get_by_phone(phone.e164)
        if account is None or not account.is_active:
            return OperationResult.failure(
                AccountNotFound.error_kind,
                "User not found. Please register first."
            )

        self._issue_and_send(account)

        logger.info(f"OTP resent to {mask_phone(phone.e164)}")
        return OperationResult.success(self._challenge_payload(phone), "OTP resent successfully")

    @_recover("Verify OTP")
    def verify_challenge(
        self,
        raw_phone: str,
        country_code: Optional[str],
        code: str
    ) -> OperationResult:
        """
        Verify an OTP and start a session.

        Unknown accounts, wrong codes and expired codes all fail the same way.

        Returns:
            OperationResult with token, first-login and roster flags, account view
        """
        phone = self._normalize(raw_phone, country_code)

        if not code or len(code) != self.otp.length or not code.isdigit():
            return OperationResult.failure(
                "INVALID_OTP_FORMAT",
                f"OTP must be {self.otp.length} digits"
            )

        pending = self.resolver.submit(phone)

        account = self.accounts.get_by_phone(phone.e164)
        if account is None or not account.is_active:
            raise ChallengeError()

        # bcrypt runs on the snapshot, outside the store lock
        self.otp.check(account, code)
        checked_hash = account.otp_hash

        login = {}

        def complete_challenge(acc: Account):
            # The challenge must not have been replaced or used meanwhile
            if not acc.is_active or acc.otp_hash != checked_hash:
                raise ChallengeMismatch()
            if self.otp.state(acc) is not OtpState.PENDING:
                raise ChallengeExpired()
            login["first_time"] = not acc.is_verified
            acc.is_verified = True
            self.otp.clear(acc)
            acc.last_login = _now_iso()

        account = self.accounts.update(account.account_id, complete_challenge)
        first_time = login["first_time"]

        record = self.resolver.join(pending)
        account = self._apply_registration(account, record, first_time)

        token = self.guard.issue_for(account)

        if first_time:
            self._send_welcome(account)
            logger.info(f"New account registered: {mask_phone(phone.e164)}")
        else:
            logger.info(f"Account logged in: {mask_phone(phone.e164)}")

        is_roster_student = record is not None
        return OperationResult.success(
            {
                "token": token,
                "is_first_time_login": first_time,
                "is_roster_student": is_roster_student,
                "requires_registration": not is_roster_student,
                "user": self._public_account(account),
            },
            "Registration successful" if first_time else "Login successful"
        )

    def _apply_registration(
        self,
        account: Account,
        record: Optional[StudentRecord],
        first_time: bool
    ) -> Account:
        """Fill in the display name (and defaults on first login) from the roster."""
        roster_name = record.display_name if record else None

        if first_time:
            def register(acc: Account):
                if roster_name:
                    acc.profile.first_name = roster_name
                elif not acc.profile.first_name:
                    acc.profile.first_name = "User"
                acc.preferences.language = "en"
                acc.preferences.notifications = True
                acc.registered_at = _now_iso()

            return self.accounts.update(account.account_id, register)

        if roster_name and len(roster_name) >= MIN_ROSTER_NAME_LENGTH and not account.profile.first_name:
            def backfill_name(acc: Account):
                if not acc.profile.first_name:
                    acc.profile.first_name = roster_name

            return self.accounts.update(account.account_id, backfill_name)

        return account

    def _send_welcome(self, account: Account):
        """Welcome SMS is best-effort; failures never affect the login."""
        try:
            result = self.sms.send_welcome(account.full_phone_number, account.display_name)
            if not result.success:
                logger.warning(f"Welcome message failed but login succeeded: {result.error}")
        except Exception as e:
            logger.error(f"Error sending welcome message (non-critical): {e}")

    def _public_account(self, account: Account) -> dict:
        data = account.to_public_dict()
        data["profile"] = {
            k: escape_html(v) if isinstance(v, str) else v
            for k, v in data["profile"].items()
        }
        return data

    def _registration_error(self, message: str) -> OperationResult:
        return OperationResult.failure("INVALID_REGISTRATION_DATA", message)

    @_recover("Register")
    def complete_registration(
        self,
        account_id: str,
        name: Optional[str],
        email: Optional[str],
        place: Optional[str] = None
    ) -> OperationResult:
        """
        Fill in the profile of a signed-in account and issue a fresh token.

        Args:
            account_id: The authenticated account
            name: Full name; the first word becomes the first name
            email: Contact email, unique across accounts
            place: Optional town or city

        Returns:
            OperationResult shaped like a verify result
        """
        clean_name = sanitize_name(name)
        clean_email = sanitize_email(email)
        clean_place = sanitize_place(place) if place else ""

        if len(clean_name) < 2:
            return self._registration_error(
                "Name is too short after sanitization. Please provide a valid name."
            )
        if not clean_email:
            return self._registration_error("Please provide a valid email address")

        first_name, _, last_name = clean_name.partition(" ")
        if len(first_name) < 2:
            return self._registration_error("First name must contain at least 2 characters")
        if last_name and len(last_name) < 2:
            return self._registration_error(
                "Last name must contain at least 2 characters if provided"
            )

        owner = self.accounts.get_by_email(clean_email)
        if owner is not None and owner.account_id != account_id:
            return OperationResult.failure(
                "EMAIL_ALREADY_REGISTERED",
                "This email is already associated with another account"
            )

        def register(acc: Account):
            if not acc.is_active:
                raise AccountDeactivated()
            acc.profile.first_name = first_name
            if last_name:
                acc.profile.last_name = last_name
            acc.profile.email = clean_email
            if len(clean_place) >= 2:
                acc.profile.place = clean_place
            acc.is_verified = True
            if not acc.registered_at:
                acc.registered_at = _now_iso()
            acc.last_login = _now_iso()

        account = self.accounts.update(account_id, register)
        token = self.guard.issue_for(account)

        logger.info(f"Account registered: {mask_phone(account.full_phone_number)}")
        return OperationResult.success(
            {
                "token": token,
                "is_first_time_login": False,
                "is_roster_student": False,
                "requires_registration": False,
                "user": self._public_account(account),
            },
            "Registration successful"
        )

    @_recover("Logout")
    def logout(self, account_id: str) -> OperationResult:
        """End the session: every token issued so far stops working."""
        def sign_out(acc: Account):
            acc.last_logout = _now_iso()
            acc.last_login = None
            acc.token_version += 1

        account = self.accounts.update(account_id, sign_out)
        logger.info(f"Account {account_id} logged out (token version {account.token_version})")
        return OperationResult.success(message="Logout successful")

    @_recover("Force logout")
    def force_logout(self, account_id: str) -> OperationResult:
        """Invalidate all sessions of the account on every device."""
        new_version = self.guard.revoke_all_sessions(account_id)
        return OperationResult.success(
            {"token_version": new_version},
            "All sessions have been invalidated. Please login again."
        )

    @_recover("Deactivate account")
    def deactivate_account(self, account_id: str) -> OperationResult:
        """Soft-delete the account and end all of its sessions."""
        def deactivate(acc: Account):
            acc.is_active = False
            acc.last_logout = _now_iso()
            acc.last_login = None
            acc.token_version += 1

        self.accounts.update(account_id, deactivate)
        logger.info(f"Account {account_id} deactivated")
        return OperationResult.success(message="Account deactivated successfully")

    def authorize(self, token: str) -> Account:
        """
        Resolve a session token to its account.

        Raises:
            SessionError, AccountNotFound, AccountDeactivated
        """
        return self.guard.authorize(token)

    @_recover("Get current account")
    def get_current_account(self, account_id: str) -> OperationResult:
        """Return the escaped public view of a signed-in account."""
        account = self.accounts.get_by_id(account_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return OperationResult.success({"user": self._public_account(account)})
