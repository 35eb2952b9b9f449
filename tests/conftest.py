"""
Pytest configuration and shared fixtures.

This module provides common fixtures for testing:
- Session tokens and OTP handling
- Account storage
- Roster lookup
- Services and API client
"""

import os
import sys
import json
import tempfile
from pathlib import Path
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before imports
os.environ["JWT_SECRET"] = "test_jwt_secret_key_for_testing_only_32bytes!"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("FLOWLINE_MONGODB_URI", None)
os.environ.pop("FLOWLINE_ROSTER_FILE", None)
os.environ.pop("OTP_FIXED_CODE", None)

from proskill_auth.config import Config, TwilioConfig
from proskill_auth.auth import AccountStore, Account, JWTHandler, OtpHandler, TokenVersionGuard
from proskill_auth.phone import normalize
from proskill_auth.roster import IdentityResolver, InMemoryRosterSource
from proskill_auth.services import AuthContext, OtpAuthService, SMSService, SendResult


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture(scope="session")
def test_config():
    """Test configuration values."""
    return {
        "jwt_secret": "test_jwt_secret_key_for_testing_only_32bytes!",
        "test_phone": "+919876543210",
        "test_local_phone": "9876543210",
        "test_country_code": "+91",
        "student_name": "Asha Rao",
    }


class FakeClock:
    """Controllable epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Token / OTP Fixtures
# =============================================================================

@pytest.fixture
def jwt_handler(test_config) -> JWTHandler:
    """Create a JWTHandler with test secret."""
    return JWTHandler(secret_key=test_config["jwt_secret"])


@pytest.fixture
def otp_handler(clock) -> OtpHandler:
    """OTP handler with the cheapest bcrypt cost and a fake clock."""
    return OtpHandler(rounds=4, clock=clock)


# =============================================================================
# Account Store Fixtures
# =============================================================================

@pytest.fixture
def temp_account_file() -> Generator[Path, None, None]:
    """Create a temporary file for account storage."""
    with tempfile.NamedTemporaryFile(
        mode='w', suffix='.json', delete=False
    ) as f:
        json.dump({}, f)
        temp_path = Path(f.name)

    yield temp_path

    # Cleanup
    if temp_path.exists():
        temp_path.unlink()


@pytest.fixture
def account_store(temp_account_file) -> AccountStore:
    """Create an AccountStore with temporary file."""
    return AccountStore(file_path=temp_account_file)


@pytest.fixture
def sample_account(account_store, test_config) -> Account:
    """Create a sample account in the store."""
    return account_store.create_account(normalize(test_config["test_phone"]))


@pytest.fixture
def token_guard(jwt_handler, account_store) -> TokenVersionGuard:
    return TokenVersionGuard(jwt_handler, account_store)


# =============================================================================
# Roster Fixtures
# =============================================================================

@pytest.fixture
def roster_documents(test_config) -> List[dict]:
    """Roster entries stored in assorted third-party formats."""
    return [
        {
            "_id": "r1",
            "fullName": "Vikram <b>Singh</b>",
            "phone": "91234 56789",
            "updatedAt": "2024-01-01T00:00:00",
        },
        {
            "_id": "r2",
            "fullName": test_config["student_name"],
            "phoneRaw": "098765-43210",
            "updatedAt": "2024-03-01T00:00:00",
        },
        {
            "_id": "r3",
            "fullName": "Hans Weber",
            "phoneE164": "+4915112345678",
            "phoneDigits": "4915112345678",
        },
    ]


@pytest.fixture
def roster_source(roster_documents) -> InMemoryRosterSource:
    return InMemoryRosterSource(roster_documents)


@pytest.fixture
def resolver(roster_source) -> Generator[IdentityResolver, None, None]:
    resolver = IdentityResolver(roster_source, timeout=2.0)
    yield resolver
    resolver.close()


# =============================================================================
# Notification Fixtures
# =============================================================================

class RecordingSMSService(SMSService):
    """SMS service that records messages instead of sending them."""

    def __init__(self):
        super().__init__(TwilioConfig(account_sid="", auth_token="", from_number=""), allow_mock=True)
        self.sent: List[tuple] = []
        self.fail_otp = False
        self.fail_welcome = False
        self.raise_on_welcome = False

    def send(self, to_phone: str, message: str) -> SendResult:
        is_welcome = message.startswith("Welcome")
        if is_welcome and self.raise_on_welcome:
            raise RuntimeError("SMS gateway exploded")
        if (is_welcome and self.fail_welcome) or (not is_welcome and self.fail_otp):
            return SendResult(success=False, error="gateway unavailable")

        self.sent.append((to_phone, message))
        return SendResult(success=True, sid=f"SM{len(self.sent)}")

    def last_code(self) -> Optional[str]:
        """Extract the code from the most recent OTP message."""
        for _, message in reversed(self.sent):
            if "verification code is:" in message:
                return message.split("verification code is: ")[1][:6]
        return None


@pytest.fixture
def sms() -> RecordingSMSService:
    return RecordingSMSService()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def auth_context(account_store, jwt_handler, otp_handler, token_guard, resolver, sms) -> AuthContext:
    """AuthContext wired with test doubles."""
    return AuthContext(
        config=Config(),
        accounts=account_store,
        jwt=jwt_handler,
        otp=otp_handler,
        guard=token_guard,
        resolver=resolver,
        sms=sms
    )


@pytest.fixture
def otp_auth(auth_context) -> OtpAuthService:
    return OtpAuthService(auth_context)


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_services(auth_context, otp_auth):
    """Services container for the API layer."""
    from api.deps import Services
    return Services(config=auth_context.config, context=auth_context, otp_auth=otp_auth)


@pytest.fixture
def api_app():
    """Create FastAPI app for testing."""
    from api.main import app
    return app


@pytest.fixture
def api_client(api_app) -> TestClient:
    """Create synchronous test client for API."""
    return TestClient(api_app)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as API endpoint test"
    )
