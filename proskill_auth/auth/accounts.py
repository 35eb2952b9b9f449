"""
Account storage and management.

Stores accounts in a JSON file keyed by full phone number.
Every mutation is a read-modify-write under one lock, so token version
increments cannot be lost between concurrent requests in this process.
"""

import os
import json
import secrets
import logging
import tempfile
import threading
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Callable, Tuple
from dataclasses import dataclass, asdict, field

from ..errors import AccountNotFound, StorageCorrupted
from ..phone import NormalizedPhone, mask_phone
from ..config import DEFAULT_ACCOUNTS_FILE

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "email", "place", "avatar")


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def new_account_id() -> str:
    """24 lowercase hex chars, the same shape as a MongoDB ObjectId."""
    return secrets.token_hex(12)


@dataclass
class Profile:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    place: Optional[str] = None
    avatar: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Profile":
        data = data or {}
        return cls(**{k: data.get(k) for k in PROFILE_FIELDS})


@dataclass
class Preferences:
    language: str = "en"
    notifications: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Preferences":
        data = data or {}
        return cls(
            language=data.get("language", "en"),
            notifications=data.get("notifications", True)
        )


@dataclass
class Account:
    """Account data model."""
    account_id: str
    full_phone_number: str  # E.164, unique
    phone_number: str  # National number
    country_code: str
    is_verified: bool = False
    is_active: bool = True
    otp_hash: Optional[str] = None
    otp_expires_at: Optional[float] = None  # Epoch seconds
    token_version: int = 0
    profile: Profile = field(default_factory=Profile)
    preferences: Preferences = field(default_factory=Preferences)
    last_login: Optional[str] = None
    last_logout: Optional[str] = None
    registered_at: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["profile"] = self.profile.to_dict()
        data["preferences"] = self.preferences.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        return cls(
            account_id=data["account_id"],
            full_phone_number=data["full_phone_number"],
            phone_number=data.get("phone_number", ""),
            country_code=data.get("country_code", ""),
            is_verified=data.get("is_verified", False),
            is_active=data.get("is_active", True),
            otp_hash=data.get("otp_hash"),
            otp_expires_at=data.get("otp_expires_at"),
            token_version=data.get("token_version", 0) or 0,
            profile=Profile.from_dict(data.get("profile")),
            preferences=Preferences.from_dict(data.get("preferences")),
            last_login=data.get("last_login"),
            last_logout=data.get("last_logout"),
            registered_at=data.get("registered_at"),
            created_at=data.get("created_at", _now_iso()),
            updated_at=data.get("updated_at", _now_iso())
        )

    @property
    def display_name(self) -> str:
        if self.profile.first_name and self.profile.last_name:
            return f"{self.profile.first_name} {self.profile.last_name}"
        return self.profile.first_name or "User"

    def to_public_dict(self) -> dict:
        """Account view safe to return to clients (no OTP state)."""
        return {
            "id": self.account_id,
            "phone_number": self.phone_number,
            "country_code": self.country_code,
            "full_phone_number": self.full_phone_number,
            "is_verified": self.is_verified,
            "profile": self.profile.to_dict(),
            "preferences": self.preferences.to_dict(),
            "last_login": self.last_login,
            "registered_at": self.registered_at,
            "created_at": self.created_at,
        }


class AccountStore:
    """
    JSON-based account storage.

    Accounts are indexed by full phone number (primary key).
    """

    def __init__(self, file_path: Optional[Path] = None):
        """
        Initialize account store.

        Args:
            file_path: Path to accounts JSON file (default: data/accounts.json)
        """
        self.file_path = Path(file_path or DEFAULT_ACCOUNTS_FILE)
        self._lock = threading.RLock()
        self._ensure_file()

    def _ensure_file(self):
        """Ensure the storage file and directory exist."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self._save_all({})

    def _load_all(self) -> dict[str, dict]:
        """
        Load all accounts from file.

        Raises:
            StorageCorrupted: If the file exists but isn't a JSON object
        """
        try:
            with open(self.file_path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            logger.error(f"Account file {self.file_path} is unreadable: {e}")
            raise StorageCorrupted(f"Account file is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StorageCorrupted("Account file must contain a JSON object")
        return data

    def _save_all(self, accounts: dict[str, dict]):
        """Save all accounts to file, replacing it in one step."""
        fd, tmp_path = tempfile.mkstemp(
            dir=self.file_path.parent,
            prefix=f".{self.file_path.name}.",
            suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(accounts, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _find_key(self, accounts: dict[str, dict], account_id: str) -> Optional[str]:
        for key, data in accounts.items():
            if data.get("account_id") == account_id:
                return key
        return None

    def create_account(self, phone: NormalizedPhone) -> Account:
        """
        Create a new unverified account.

        Raises:
            ValueError: If an account already exists for the number
        """
        with self._lock:
            accounts = self._load_all()

            if phone.e164 in accounts:
                raise ValueError(f"Account with phone {mask_phone(phone.e164)} already exists")

            account = Account(
                account_id=new_account_id(),
                full_phone_number=phone.e164,
                phone_number=phone.national_number,
                country_code=phone.country_code
            )

            accounts[phone.e164] = account.to_dict()
            self._save_all(accounts)

        logger.info(f"Created account: {mask_phone(phone.e164)}")
        return account

    def get_or_create(self, phone: NormalizedPhone) -> Tuple[Account, bool]:
        """Return (account, created)."""
        with self._lock:
            account = self.get_by_phone(phone.e164)
            if account:
                return account, False
            return self.create_account(phone), True

    def get_by_phone(self, e164: str) -> Optional[Account]:
        """Get account by E.164 phone number."""
        with self._lock:
            data = self._load_all().get(e164)
        return Account.from_dict(data) if data else None

    def get_by_id(self, account_id: str) -> Optional[Account]:
        """Get account by account ID."""
        with self._lock:
            accounts = self._load_all()
        for data in accounts.values():
            if data.get("account_id") == account_id:
                return Account.from_dict(data)
        return None

    def get_by_email(self, email: str) -> Optional[Account]:
        """Get account by profile email (case-insensitive)."""
        if not email:
            return None
        wanted = email.lower()
        with self._lock:
            accounts = self._load_all()
        for data in accounts.values():
            stored = (data.get("profile") or {}).get("email")
            if stored and stored.lower() == wanted:
                return Account.from_dict(data)
        return None

    def update(self, account_id: str, mutate: Callable[[Account], None]) -> Account:
        """
        Apply a mutation to the freshly loaded account and persist it.

        The load, mutation and save happen under the store lock.

        Raises:
            AccountNotFound: If the account doesn't exist
        """
        with self._lock:
            accounts = self._load_all()
            key = self._find_key(accounts, account_id)
            if key is None:
                raise AccountNotFound(f"Account {account_id} not found")

            account = Account.from_dict(accounts[key])
            mutate(account)
            account.updated_at = _now_iso()
            accounts[key] = account.to_dict()
            self._save_all(accounts)

        return account

    def save(self, account: Account) -> Account:
        """
        Overwrite the stored record with this account (last writer wins).

        Raises:
            AccountNotFound: If the account doesn't exist
        """
        with self._lock:
            accounts = self._load_all()
            if account.full_phone_number not in accounts:
                raise AccountNotFound(f"Account {account.account_id} not found")

            account.updated_at = _now_iso()
            accounts[account.full_phone_number] = account.to_dict()
            self._save_all(accounts)

        logger.debug(f"Saved account: {mask_phone(account.full_phone_number)}")
        return account

    def increment_token_version(self, account_id: str) -> int:
        """Atomically bump and return the account's token version."""
        def bump(account: Account):
            account.token_version += 1

        return self.update(account_id, bump).token_version

    def list_accounts(self, active_only: bool = True) -> List[Account]:
        """List all accounts."""
        with self._lock:
            accounts = self._load_all()
        result = [Account.from_dict(data) for data in accounts.values()]
        if active_only:
            result = [a for a in result if a.is_active]
        return result

