"""
Session revocation by token version.

Every account carries a counter. A token is accepted only while the version
it was minted with equals the account's current version, so bumping the
counter revokes every earlier token at once without a blocklist.
"""

import logging

from .accounts import Account, AccountStore
from .jwt_handler import JWTHandler
from ..errors import AccountNotFound, AccountDeactivated, SessionRevoked

logger = logging.getLogger(__name__)


class TokenVersionGuard:
    """Authorizes session tokens against the account store."""

    def __init__(self, jwt_handler: JWTHandler, accounts: AccountStore):
        self.jwt = jwt_handler
        self.accounts = accounts

    def authorize(self, token: str) -> Account:
        """
        Resolve a session token to its account.

        The account is re-read on every call; nothing is cached.

        Raises:
            MalformedToken, TokenExpired, InvalidSignature: From the token itself
            AccountNotFound: Account no longer exists
            AccountDeactivated: Account is inactive
            SessionRevoked: Token version is stale
        """
        claims = self.jwt.verify(token)

        account = self.accounts.get_by_id(claims.account_id)
        if account is None:
            raise AccountNotFound("Token is not valid. Account not found.")

        if not account.is_active:
            raise AccountDeactivated()

        if claims.token_version != account.token_version:
            logger.debug(
                f"Rejected stale token for {account.account_id}: "
                f"v{claims.token_version} != v{account.token_version}"
            )
            raise SessionRevoked("Token has been invalidated. Please login again.")

        return account

    def issue_for(self, account: Account) -> str:
        """Mint a token stamped with the account's current version."""
        return self.jwt.mint(account.account_id, account.token_version)

    def revoke_all_sessions(self, account_id: str) -> int:
        """
        Invalidate every token issued so far for the account.

        Returns:
            The new token version
        """
        new_version = self.accounts.increment_token_version(account_id)
        logger.info(f"Revoked all sessions for {account_id}, token version now {new_version}")
        return new_version
