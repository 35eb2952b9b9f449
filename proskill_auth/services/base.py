"""
Base service context.

The AuthContext holds every shared dependency the auth services need, so the
API layer and tests can build one container and hand it around.
"""

import logging
from typing import Optional
from dataclasses import dataclass

from ..config import Config, load_config
from ..auth import AccountStore, JWTHandler, OtpHandler, TokenVersionGuard
from ..roster import IdentityResolver, create_roster_source
from .sms_service import SMSService

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """Shared context for the auth services."""
    config: Config
    accounts: AccountStore
    jwt: JWTHandler
    otp: OtpHandler
    guard: TokenVersionGuard
    resolver: IdentityResolver
    sms: SMSService

    @classmethod
    def create(cls, config: Optional[Config] = None) -> "AuthContext":
        """
        Factory method to create an AuthContext with all dependencies.

        Raises:
            ConfigurationError: If the configuration is unusable
        """
        cfg = config or load_config()
        cfg.validate()

        accounts = AccountStore(cfg.storage.accounts_file)
        jwt = JWTHandler(secret_key=cfg.jwt.secret_key, expires_in=cfg.jwt.expires_in)
        otp = OtpHandler(
            length=cfg.otp.length,
            ttl_seconds=cfg.otp.ttl_seconds,
            rounds=cfg.otp.bcrypt_rounds,
            fixed_code=cfg.otp.fixed_code
        )
        resolver = IdentityResolver(
            create_roster_source(cfg.roster),
            timeout=cfg.roster.lookup_timeout
        )
        sms = SMSService(cfg.twilio, allow_mock=not cfg.is_production)

        logger.info(f"Auth context created ({cfg.environment})")
        return cls(
            config=cfg,
            accounts=accounts,
            jwt=jwt,
            otp=otp,
            guard=TokenVersionGuard(jwt, accounts),
            resolver=resolver,
            sms=sms
        )

    def close(self):
        """Clean up resources."""
        self.resolver.close()
