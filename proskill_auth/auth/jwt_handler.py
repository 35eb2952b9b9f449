"""
Session token handler.

Mints and verifies signed JWT session tokens. Each token embeds the account
id and the account's token version at mint time; comparing that version with
the account's current one is TokenVersionGuard's job, not this module's.
"""

import os
import re
import time
import logging
from typing import Optional
from dataclasses import dataclass, asdict

from jose import jwt, JWTError, ExpiredSignatureError
from jose.exceptions import JWTClaimsError

from ..errors import ConfigurationError, MalformedToken, TokenExpired, InvalidSignature

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TOKEN_EXPIRE_SECONDS = 86400 * 7  # 7 days

_ACCOUNT_ID_RE = re.compile(r"^[0-9a-f]{24}$")


@dataclass
class TokenClaims:
    """Verified session token claims."""
    account_id: str
    token_version: int
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp

    def to_dict(self) -> dict:
        return asdict(self)


class JWTHandler:
    """
    Handles session token minting and verification.

    There is no built-in fallback secret: minting or verifying without one
    raises ConfigurationError.
    """

    def __init__(self, secret_key: Optional[str] = None, expires_in: Optional[int] = None):
        """
        Initialize JWT handler.

        Args:
            secret_key: Secret key for signing tokens.
                       Falls back to the JWT_SECRET env var.
            expires_in: Default token lifetime in seconds (default: 7 days)
        """
        self.secret_key = secret_key or os.getenv("JWT_SECRET") or None
        self.expires_in = expires_in or DEFAULT_TOKEN_EXPIRE_SECONDS

        if not self.secret_key:
            logger.error("JWT_SECRET is not configured; session tokens cannot be issued")

    def require_secret(self) -> str:
        """
        Raises:
            ConfigurationError: If no signing secret is configured
        """
        if not self.secret_key:
            raise ConfigurationError("JWT_SECRET is not configured")
        return self.secret_key

    def mint(self, account_id: str, token_version: int, ttl: Optional[int] = None) -> str:
        """
        Create a session token.

        Args:
            account_id: Account identifier
            token_version: Account's token version at mint time
            ttl: Custom lifetime in seconds (default: handler's expires_in)

        Returns:
            Encoded JWT token string
        """
        secret = self.require_secret()

        now = int(time.time())
        exp = now + (self.expires_in if ttl is None else ttl)

        claims = {
            "sub": account_id,
            "token_version": int(token_version),
            "iat": now,
            "exp": exp,
        }

        token = jwt.encode(claims, secret, algorithm=ALGORITHM)
        logger.debug(f"Minted session token for account {account_id} (v{token_version}), expires in {exp - now}s")
        return token

    def verify(self, token: str) -> TokenClaims:
        """
        Verify and decode a session token.

        Returns:
            TokenClaims

        Raises:
            MalformedToken: Not a well-formed token or missing required claims
            TokenExpired: Past its expiry
            InvalidSignature: Signature doesn't verify against our secret
            ConfigurationError: No signing secret configured
        """
        secret = self.require_secret()

        if not token or not isinstance(token, str) or token.count(".") != 2:
            raise MalformedToken("Invalid token format")

        try:
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedToken(f"Token could not be decoded: {e}")

        try:
            data = jwt.decode(token, secret, algorithms=[ALGORITHM], options={"verify_sub": False})
        except ExpiredSignatureError:
            raise TokenExpired("Token has expired")
        except JWTClaimsError as e:
            raise MalformedToken(f"Invalid token claims: {e}")
        except JWTError as e:
            logger.debug(f"Token signature verification failed: {e}")
            raise InvalidSignature("Token signature is invalid")

        return self._claims_from(data)

    def _claims_from(self, data: dict) -> TokenClaims:
        account_id = data.get("sub")
        if not isinstance(account_id, str) or not _ACCOUNT_ID_RE.match(account_id):
            raise MalformedToken("Token contains invalid account identifier")

        # Tokens minted before versioning carry no version; treat as 0
        token_version = data.get("token_version", 0)
        if isinstance(token_version, bool) or not isinstance(token_version, int) or token_version < 0:
            raise MalformedToken("Token contains invalid token version")

        exp = data.get("exp")
        if not isinstance(exp, int):
            raise MalformedToken("Token is missing expiry")

        # jose allows exp == now; we don't
        if exp <= int(time.time()):
            raise TokenExpired("Token has expired")

        return TokenClaims(
            account_id=account_id,
            token_version=token_version,
            exp=exp,
            iat=data.get("iat", 0)
        )
