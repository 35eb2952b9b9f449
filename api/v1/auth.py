"""
Authentication endpoints.

Handles OTP request/verification, registration, logout and the current session.
"""

import logging
from typing import Optional, Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..deps import ServicesDep, CurrentAccount, raise_for_result

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response models

class SendOtpRequest(BaseModel):
    """OTP request."""
    phone_number: str = Field(..., min_length=1, description="Phone number (e.g., 98765 43210)")
    country_code: Optional[str] = Field(None, description="Calling code hint (default: +91)")


class VerifyOtpRequest(BaseModel):
    """OTP verification request."""
    phone_number: str = Field(..., min_length=1, description="Phone number")
    country_code: Optional[str] = Field(None, description="Calling code hint (default: +91)")
    otp: str = Field(..., description="6-digit code")


class RegisterRequest(BaseModel):
    """Profile completion request."""
    name: str = Field(..., min_length=1, description="Full name")
    email: str = Field(..., min_length=1, description="Email address")
    place: Optional[str] = Field(None, description="Town or city")


class OperationResponse(BaseModel):
    """Successful operation response."""
    ok: bool = True
    message: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


# Endpoints

@router.post("/send-otp", response_model=OperationResponse)
def send_otp(request: SendOtpRequest, services: ServicesDep):
    """
    Send an OTP to a phone number.

    Creates the account on first contact.
    """
    result = services.otp_auth.request_challenge(request.phone_number, request.country_code)
    raise_for_result(result)
    return OperationResponse(message=result.message, payload=result.payload)


@router.post("/resend-otp", response_model=OperationResponse)
def resend_otp(request: SendOtpRequest, services: ServicesDep):
    """Resend an OTP to an existing account. The previous code stops working."""
    result = services.otp_auth.resend_challenge(request.phone_number, request.country_code)
    raise_for_result(result)
    return OperationResponse(message=result.message, payload=result.payload)


@router.post("/verify-otp", response_model=OperationResponse)
def verify_otp(request: VerifyOtpRequest, services: ServicesDep):
    """
    Verify an OTP and return a session token.

    Also reports whether the number belongs to a known roster student,
    in which case registration can be skipped.
    """
    result = services.otp_auth.verify_challenge(
        request.phone_number,
        request.country_code,
        request.otp
    )
    raise_for_result(result)
    return OperationResponse(message=result.message, payload=result.payload)


@router.post("/register", response_model=OperationResponse)
def register(request: RegisterRequest, current_account: CurrentAccount, services: ServicesDep):
    """
    Complete the profile of the signed-in account.

    Returns a fresh session token.
    """
    result = services.otp_auth.complete_registration(
        current_account.account_id,
        request.name,
        request.email,
        request.place
    )
    raise_for_result(result)
    return OperationResponse(message=result.message, payload=result.payload)


@router.post("/logout", response_model=OperationResponse)
def logout(current_account: CurrentAccount, services: ServicesDep):
    """
    Log out.

    Invalidates every session token issued so far for this account.
    """
    result = services.otp_auth.logout(current_account.account_id)
    raise_for_result(result)
    return OperationResponse(message=result.message)


@router.get("/me", response_model=OperationResponse)
def get_me(current_account: CurrentAccount, services: ServicesDep):
    """
    Get current authenticated account info.

    Requires valid session token.
    """
    result = services.otp_auth.get_current_account(current_account.account_id)
    raise_for_result(result)
    return OperationResponse(payload=result.payload)
