"""
Unit tests for OTP Handler.

Tests code issuing, hashing, expiry and verification.
"""

import pytest
from unittest.mock import patch

from proskill_auth.auth import Account, OtpHandler, OtpState
from proskill_auth.auth.accounts import new_account_id
from proskill_auth.errors import ChallengeNotFound, ChallengeExpired, ChallengeMismatch


@pytest.fixture
def account():
    return Account(
        account_id=new_account_id(),
        full_phone_number="+919876543210",
        phone_number="9876543210",
        country_code="+91"
    )


class TestOtpHandler:
    """Tests for OtpHandler class."""

    @pytest.mark.unit
    def test_generate_code_format(self, otp_handler):
        """Test generated codes are six digits."""
        for _ in range(20):
            code = otp_handler.generate_code()
            assert len(code) == 6
            assert code.isdigit()

    @pytest.mark.unit
    def test_issue_stores_hash_and_expiry(self, otp_handler, account, clock):
        """Test issuing stores a bcrypt hash, never the code."""
        code = otp_handler.issue(account)

        assert account.otp_hash is not None
        assert account.otp_hash != code
        assert account.otp_hash.startswith("$2")
        assert account.otp_expires_at == clock.now + 600
        assert otp_handler.state(account) is OtpState.PENDING

    @pytest.mark.unit
    def test_new_challenge_leaves_accounts_alone(self, otp_handler, clock):
        """Test a challenge can be prepared before any account is touched."""
        code, otp_hash, expires_at = otp_handler.new_challenge()

        assert otp_handler.code_matches(code, otp_hash) is True
        wrong = "111111" if code == "000000" else "000000"
        assert otp_handler.code_matches(wrong, otp_hash) is False
        assert expires_at == clock.now + 600

    @pytest.mark.unit
    def test_verify_correct_code(self, otp_handler, account):
        """Test verifying the issued code."""
        code = otp_handler.issue(account)

        assert otp_handler.verify(account, code) is True

    @pytest.mark.unit
    def test_verify_does_not_clear(self, otp_handler, account):
        """Test verification leaves the challenge in place."""
        code = otp_handler.issue(account)
        otp_handler.verify(account, code)

        assert otp_handler.state(account) is OtpState.PENDING

    @pytest.mark.unit
    def test_verify_wrong_code(self, otp_handler, account):
        """Test a wrong code is rejected."""
        with patch.object(otp_handler, "generate_code", return_value="123456"):
            otp_handler.issue(account)

        assert otp_handler.verify(account, "654321") is False
        with pytest.raises(ChallengeMismatch):
            otp_handler.check(account, "654321")

    @pytest.mark.unit
    @pytest.mark.parametrize("code", ["", "12345", "1234567", "12a456"])
    def test_verify_malformed_code(self, otp_handler, account, code):
        """Test malformed codes never match."""
        otp_handler.issue(account)

        assert otp_handler.verify(account, code) is False

    @pytest.mark.unit
    def test_expired_code_rejected(self, otp_handler, account, clock):
        """Test a correct code stops working once the TTL elapses."""
        code = otp_handler.issue(account)
        clock.advance(599)
        assert otp_handler.verify(account, code) is True

        clock.advance(1)
        assert otp_handler.state(account) is OtpState.EXPIRED
        assert otp_handler.verify(account, code) is False
        with pytest.raises(ChallengeExpired):
            otp_handler.check(account, code)

    @pytest.mark.unit
    def test_no_challenge(self, otp_handler, account):
        """Test verifying without an issued challenge."""
        assert otp_handler.state(account) is OtpState.NONE
        assert otp_handler.verify(account, "123456") is False
        with pytest.raises(ChallengeNotFound):
            otp_handler.check(account, "123456")

    @pytest.mark.unit
    def test_clear(self, otp_handler, account):
        """Test clearing removes the challenge."""
        code = otp_handler.issue(account)
        otp_handler.clear(account)

        assert account.otp_hash is None
        assert account.otp_expires_at is None
        assert otp_handler.verify(account, code) is False

    @pytest.mark.unit
    def test_reissue_replaces_previous_code(self, otp_handler, account):
        """Test only the newest code is accepted."""
        with patch.object(otp_handler, "generate_code", side_effect=["111111", "222222"]):
            otp_handler.issue(account)
            otp_handler.issue(account)

        assert otp_handler.verify(account, "111111") is False
        assert otp_handler.verify(account, "222222") is True

    @pytest.mark.unit
    def test_unreadable_hash_fails_closed(self, otp_handler, account):
        """Test a corrupted stored hash is treated as a mismatch."""
        otp_handler.issue(account)
        account.otp_hash = "not-a-bcrypt-hash"

        assert otp_handler.verify(account, "123456") is False

    @pytest.mark.unit
    def test_fixed_code(self, clock):
        """Test the dev-only fixed code."""
        handler = OtpHandler(rounds=4, fixed_code="000000", clock=clock)
        account = Account(
            account_id=new_account_id(),
            full_phone_number="+919876543210",
            phone_number="9876543210",
            country_code="+91"
        )

        assert handler.issue(account) == "000000"
        assert handler.verify(account, "000000") is True

    @pytest.mark.unit
    @pytest.mark.parametrize("fixed_code", ["12345", "abcdef", "1234567"])
    def test_fixed_code_must_match_length(self, fixed_code):
        with pytest.raises(ValueError):
            OtpHandler(fixed_code=fixed_code)
