"""Configuration module for the Proskill auth service."""

import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

DEFAULT_ACCOUNTS_FILE = Path(__file__).parent.parent / "data" / "accounts.json"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> int:
    """
    Parse a duration such as "7d", "12h", "30m", "45s" or "3600" into seconds.

    Raises:
        ConfigurationError: If the value is not a duration
    """
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


@dataclass
class JWTConfig:
    """Session token signing configuration."""
    secret_key: Optional[str] = field(default_factory=lambda: os.getenv("JWT_SECRET") or None)
    expires_in: int = field(default_factory=lambda: parse_duration(os.getenv("JWT_EXPIRES_IN", "7d")))


@dataclass
class OtpConfig:
    """One-time passcode policy."""
    length: int = field(default_factory=lambda: int(os.getenv("OTP_LENGTH", "6")))
    ttl_seconds: int = field(default_factory=lambda: int(os.getenv("OTP_TTL_SECONDS", "600")))
    bcrypt_rounds: int = field(default_factory=lambda: int(os.getenv("OTP_BCRYPT_ROUNDS", "10")))
    # Dev/test only. Refused in production by Config.validate().
    fixed_code: Optional[str] = field(default_factory=lambda: os.getenv("OTP_FIXED_CODE") or None)


@dataclass
class TwilioConfig:
    """Twilio SMS credentials."""
    account_sid: str = field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID", ""))
    auth_token: str = field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN", ""))
    from_number: str = field(default_factory=lambda: os.getenv("TWILIO_PHONE_NUMBER", ""))
    brand: str = field(default_factory=lambda: os.getenv("SMS_BRAND", "Proskill"))

    def is_configured(self) -> bool:
        return bool(
            self.account_sid.startswith("AC")
            and self.auth_token
            and self.from_number
        )


@dataclass
class RosterConfig:
    """External student roster (Flowline MongoDB) connection."""
    mongodb_uri: str = field(default_factory=lambda: os.getenv("FLOWLINE_MONGODB_URI", ""))
    database: str = field(default_factory=lambda: os.getenv("FLOWLINE_DB_NAME", ""))
    collection: str = field(default_factory=lambda: os.getenv("FLOWLINE_COLLECTION", "students"))
    lookup_timeout: float = field(default_factory=lambda: float(os.getenv("ROSTER_LOOKUP_TIMEOUT", "3.0")))
    # Offline roster export (JSON list of student documents), used when no URI is set
    json_file: str = field(default_factory=lambda: os.getenv("FLOWLINE_ROSTER_FILE", ""))


@dataclass
class StorageConfig:
    """Account storage location."""
    accounts_file: Path = field(
        default_factory=lambda: Path(os.getenv("ACCOUNTS_FILE", str(DEFAULT_ACCOUNTS_FILE)))
    )


@dataclass
class Config:
    """Main configuration container."""
    jwt: JWTConfig = field(default_factory=JWTConfig)
    otp: OtpConfig = field(default_factory=OtpConfig)
    twilio: TwilioConfig = field(default_factory=TwilioConfig)
    roster: RosterConfig = field(default_factory=RosterConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    default_country_code: str = field(default_factory=lambda: os.getenv("DEFAULT_COUNTRY_CODE", "+91"))

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate(self):
        """
        Fail loudly on configuration the service must not start with.

        Raises:
            ConfigurationError: Missing signing secret, or a fixed OTP in production
        """
        if not self.jwt.secret_key:
            raise ConfigurationError("JWT_SECRET is not configured")
        if self.otp.fixed_code and self.is_production:
            raise ConfigurationError("OTP_FIXED_CODE must not be set in production")
        if self.otp.fixed_code and (
            len(self.otp.fixed_code) != self.otp.length or not self.otp.fixed_code.isdigit()
        ):
            raise ConfigurationError(
                f"OTP_FIXED_CODE must be {self.otp.length} digits"
            )


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config()
