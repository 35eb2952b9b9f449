"""
Account endpoints.

Forced logout across devices and account deactivation.
"""

import logging

from fastapi import APIRouter

from ..deps import ServicesDep, CurrentAccount, raise_for_result
from .auth import OperationResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/force-logout", response_model=OperationResponse)
def force_logout(current_account: CurrentAccount, services: ServicesDep):
    """Invalidate all sessions of the current account, on every device."""
    result = services.otp_auth.force_logout(current_account.account_id)
    raise_for_result(result)
    return OperationResponse(message=result.message, payload=result.payload)


@router.delete("/account", response_model=OperationResponse)
def deactivate_account(current_account: CurrentAccount, services: ServicesDep):
    """Deactivate the current account and end all of its sessions."""
    result = services.otp_auth.deactivate_account(current_account.account_id)
    raise_for_result(result)
    return OperationResponse(message=result.message)
