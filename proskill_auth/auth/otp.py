"""
One-time passcode handling.

Codes are stored only as bcrypt hashes together with an expiry, embedded
in the account record. One challenge per account; issuing replaces it.
"""

import time
import secrets
import logging
from enum import Enum
from typing import Callable, Optional, Tuple

import bcrypt

from .accounts import Account
from ..errors import ChallengeNotFound, ChallengeExpired, ChallengeMismatch, ChallengeError
from ..phone import mask_phone

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_TTL_SECONDS = 600  # 10 minutes
# bcrypt work factor; the code space is small, so the hash has to be slow
OTP_BCRYPT_ROUNDS = 10


class OtpState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    EXPIRED = "expired"


class OtpHandler:
    """
    Issues and checks OTP challenges on Account objects.

    Persisting the mutated account is the caller's job.

    Usage:
        handler = OtpHandler()
        code = handler.issue(account)
        handler.verify(account, code)  # True
        handler.clear(account)
    """

    def __init__(
        self,
        length: int = OTP_LENGTH,
        ttl_seconds: int = OTP_TTL_SECONDS,
        rounds: int = OTP_BCRYPT_ROUNDS,
        fixed_code: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize OTP handler.

        Args:
            length: Number of digits in a code
            ttl_seconds: Lifetime of an issued code
            rounds: bcrypt work factor
            fixed_code: Constant code for dev/test builds only
            clock: Returns the current epoch time in seconds
        """
        if fixed_code is not None and (len(fixed_code) != length or not fixed_code.isdigit()):
            raise ValueError(f"Fixed OTP must be {length} digits")

        self.length = length
        self.ttl_seconds = ttl_seconds
        self.rounds = rounds
        self.fixed_code = fixed_code
        self.clock = clock

        if fixed_code is not None:
            logger.warning("Using a fixed OTP code. Never enable this in production!")

    def generate_code(self) -> str:
        """Return a new numeric code."""
        if self.fixed_code is not None:
            return self.fixed_code
        return "".join(secrets.choice("0123456789") for _ in range(self.length))

    def hash_code(self, code: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(code.encode("utf-8"), salt).decode("utf-8")

    def new_challenge(self) -> Tuple[str, str, float]:
        """
        Generate a code, its hash and its expiry without touching any account.

        Returns:
            (code, otp_hash, expires_at)
        """
        code = self.generate_code()
        return code, self.hash_code(code), self.clock() + self.ttl_seconds

    def issue(self, account: Account) -> str:
        """
        Start a new challenge, replacing any pending one.

        Returns:
            The plaintext code, for out-of-band delivery only
        """
        code, account.otp_hash, account.otp_expires_at = self.new_challenge()

        logger.debug(f"Issued OTP for {mask_phone(account.full_phone_number)}")
        return code

    def state(self, account: Account) -> OtpState:
        if not account.otp_hash or account.otp_expires_at is None:
            return OtpState.NONE
        if self.clock() >= account.otp_expires_at:
            return OtpState.EXPIRED
        return OtpState.PENDING

    def check(self, account: Account, code: str):
        """
        Check a supplied code.

        Raises:
            ChallengeNotFound: No challenge pending
            ChallengeExpired: Challenge past its expiry
            ChallengeMismatch: Wrong code
        """
        state = self.state(account)
        if state is OtpState.NONE:
            raise ChallengeNotFound()
        if state is OtpState.EXPIRED:
            raise ChallengeExpired()

        if not code or len(code) != self.length or not code.isdigit():
            raise ChallengeMismatch()

        if not self.code_matches(code, account.otp_hash):
            raise ChallengeMismatch()

    def code_matches(self, code: str, otp_hash: str) -> bool:
        """Constant-time bcrypt comparison; an unreadable hash never matches."""
        try:
            return bcrypt.checkpw(code.encode("utf-8"), otp_hash.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Stored OTP hash is unreadable: {e}")
            return False

    def verify(self, account: Account, code: str) -> bool:
        """
        Verify a supplied code. Fails closed; does not clear the challenge.

        Returns:
            True if a pending, unexpired challenge matches the code
        """
        try:
            self.check(account, code)
        except ChallengeError as e:
            logger.debug(f"OTP rejected for {mask_phone(account.full_phone_number)}: {type(e).__name__}")
            return False
        return True

    def clear(self, account: Account):
        """Remove any challenge."""
        account.otp_hash = None
        account.otp_expires_at = None
