"""
API dependencies.

Provides dependency injection for services and session authentication.
"""

import logging
from typing import Optional, Annotated
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from proskill_auth.config import load_config, Config
from proskill_auth.services import AuthContext, OtpAuthService, OperationResult
from proskill_auth.auth import Account
from proskill_auth.errors import (
    AuthError,
    AccountDeactivated,
    SessionError,
    MalformedToken,
    TokenExpired,
    InvalidSignature,
    SessionRevoked,
)

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

SESSION_ERROR_KINDS = {
    SessionError.error_kind,
    MalformedToken.error_kind,
    TokenExpired.error_kind,
    InvalidSignature.error_kind,
    SessionRevoked.error_kind,
}


@dataclass
class Services:
    """Container for all services."""
    config: Config
    context: AuthContext
    otp_auth: OtpAuthService


# Global services instance (singleton)
_services: Optional[Services] = None


def get_services() -> Services:
    """
    Get or create the services singleton.

    Raises:
        ConfigurationError: If the service must not start (e.g. no JWT secret)
    """
    global _services

    if _services is None:
        logger.info("Initializing services...")

        config = load_config()
        context = AuthContext.create(config=config)

        _services = Services(
            config=config,
            context=context,
            otp_auth=OtpAuthService(context)
        )

        logger.info("Services initialized successfully")

    return _services


def close_services():
    """Close and cleanup services."""
    global _services
    if _services:
        _services.context.close()
        _services = None
        logger.info("Services closed")


# Dependency for getting services
def services_dep() -> Services:
    """FastAPI dependency for services."""
    return get_services()


ServicesDep = Annotated[Services, Depends(services_dep)]


# Authentication dependencies

def get_current_account(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    services: ServicesDep
) -> Account:
    """
    Get current account from the session token (required).

    Raises 401 for any token or account problem.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided.",
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        return services.otp_auth.authorize(credentials.credentials)
    except SessionError as e:
        logger.debug(f"Session rejected: {e.error_kind}")
        detail = SessionError.public_message
    except AccountDeactivated:
        detail = "User account is deactivated."
    except AuthError as e:
        logger.debug(f"Session rejected: {e.error_kind}")
        detail = SessionError.public_message

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


# Type aliases for dependencies
CurrentAccount = Annotated[Account, Depends(get_current_account)]


# Result mapping

ERROR_STATUS = {
    "INVALID_PHONE_NUMBER": status.HTTP_400_BAD_REQUEST,
    "INVALID_OTP": status.HTTP_400_BAD_REQUEST,
    "INVALID_OTP_FORMAT": status.HTTP_400_BAD_REQUEST,
    "INVALID_REGISTRATION_DATA": status.HTTP_400_BAD_REQUEST,
    "EMAIL_ALREADY_REGISTERED": status.HTTP_400_BAD_REQUEST,
    "ACCOUNT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ACCOUNT_DEACTIVATED": status.HTTP_403_FORBIDDEN,
    "SMS_SEND_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Raise an HTTPException for a failed OperationResult, else return it."""
    if result.ok:
        return result

    if result.error_kind in ERROR_STATUS:
        code = ERROR_STATUS[result.error_kind]
    elif result.error_kind in SESSION_ERROR_KINDS:
        code = status.HTTP_401_UNAUTHORIZED
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    raise HTTPException(
        status_code=code,
        detail={"message": result.message, "error_kind": result.error_kind}
    )
