"""
app/api/auth.py

Purpose: Authentication endpoints

- Registration and login
- Phone verification request / confirm
- Protected profile, token refresh and dashboard routes
- Service health
"""

from fastapi import APIRouter, Depends

from app.api.deps import (
    enforce_client_rate_limit,
    get_auth_service,
    get_current_account,
    get_sms_transport,
    require_verified_account,
)
from app.core.logging import get_logger
from app.models.account import Account
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    VerificationCodeRequest,
    VerificationConfirmRequest,
)
from app.schemas.response import format_api_response
from app.services.auth_service import AuthService
from app.services.sms_service import SMSTransport
from utils.constants import NEXT_STEP_DASHBOARD, NEXT_STEP_PHONE_VERIFICATION
from utils.time_utils import format_timestamp

logger = get_logger(__name__)
router = APIRouter()


@router.post("/register", status_code=201, dependencies=[Depends(enforce_client_rate_limit)])
async def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """
    Registers a new account with a phone number and optional password.
    """
    session = await service.register(payload.phone_number, payload.password)
    account = session.account

    return format_api_response(
        "User registered successfully. Please verify your phone number.",
        {
            "user": {
                "id": account.id,
                "phone_number": account.phone_number,
                "is_phone_verified": account.is_phone_verified,
                "created_at": format_timestamp(account.created_at),
            },
            "token": session.token,
            "next_step": NEXT_STEP_PHONE_VERIFICATION,
        }
    )


@router.post("/login", dependencies=[Depends(enforce_client_rate_limit)])
async def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """
    Logs in with a phone number and, if the account has one, a password.
    """
    session = await service.login(payload.phone_number, payload.password)
    account = session.account

    return format_api_response(
        "Login successful",
        {
            "user": {
                "id": account.id,
                "phone_number": account.phone_number,
                "is_phone_verified": account.is_phone_verified,
                "last_login_at": format_timestamp(account.last_login_at),
            },
            "token": session.token,
            "next_step": NEXT_STEP_DASHBOARD if account.is_phone_verified else NEXT_STEP_PHONE_VERIFICATION,
        }
    )


@router.post("/verify-phone/request", dependencies=[Depends(enforce_client_rate_limit)])
async def request_phone_verification(
    payload: VerificationCodeRequest,
    service: AuthService = Depends(get_auth_service)
):
    """
    Sends a verification code by SMS. In mock mode the code is returned.
    """
    dispatch = await service.request_verification_code(payload.phone_number)

    data = {
        "phone_number": dispatch.account.phone_number,
        "message": dispatch.sms.message,
        "expires_in": dispatch.expires_in_seconds,
        "attempts_remaining": dispatch.attempts_remaining,
    }

    if dispatch.sms.mock_mode:
        data["verification_code"] = dispatch.sms.verification_code
        data["mock_mode"] = True

    return format_api_response("Verification code sent successfully", data)


@router.post("/verify-phone/confirm", dependencies=[Depends(enforce_client_rate_limit)])
async def confirm_phone_verification(
    payload: VerificationConfirmRequest,
    service: AuthService = Depends(get_auth_service)
):
    """
    Confirms a verification code and returns a token for the verified account.
    """
    session = await service.confirm_verification_code(payload.phone_number, payload.verification_code)
    account = session.account

    return format_api_response(
        "Phone number verified successfully",
        {
            "user": {
                "id": account.id,
                "phone_number": account.phone_number,
                "is_phone_verified": account.is_phone_verified,
                "verified_at": format_timestamp(account.updated_at),
            },
            "token": session.token,
            "next_step": NEXT_STEP_DASHBOARD,
        }
    )


@router.get("/profile")
async def get_profile(account: Account = Depends(get_current_account)):
    return format_api_response(
        "User profile retrieved successfully",
        {"user": account.public_profile()}
    )


@router.post("/refresh-token")
async def refresh_token(
    account: Account = Depends(get_current_account),
    service: AuthService = Depends(get_auth_service)
):
    return format_api_response(
        "Token refreshed successfully",
        {
            "token": service.refresh_token(account),
            "expires_in": service.issuer.expires_in_seconds,
        }
    )


@router.get("/dashboard")
async def dashboard(account: Account = Depends(require_verified_account)):
    """
    Only reachable with a verified phone number.
    """
    return format_api_response(
        "Welcome to your dashboard!",
        {
            "user": {
                "id": account.id,
                "phone_number": account.phone_number,
                "is_phone_verified": account.is_phone_verified,
                "member_since": format_timestamp(account.created_at),
                "last_login": format_timestamp(account.last_login_at),
            },
            "features": [
                "Phone verification completed",
                "Secure API access enabled",
                "Full account features available",
            ],
        }
    )


@router.get("/health")
async def auth_health(transport: SMSTransport = Depends(get_sms_transport)):
    return format_api_response(
        "Authentication service is running",
        {
            "service": "Phone Verification API",
            "version": "1.0.0",
            "status": "healthy",
            "sms": transport.status(),
            "endpoints": {
                "public": [
                    "POST /register",
                    "POST /login",
                    "POST /verify-phone/request",
                    "POST /verify-phone/confirm",
                ],
                "protected": [
                    "GET /profile",
                    "POST /refresh-token",
                    "GET /dashboard",
                ],
            },
        }
    )
