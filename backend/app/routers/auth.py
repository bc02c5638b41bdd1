"""
Auth Router
===========
POST /api/v1/auth/register  Create an account and sign in.
POST /api/v1/auth/login     Exchange email + password for tokens.
POST /api/v1/auth/refresh   Exchange a refresh token for a new pair.
POST /api/v1/auth/logout    Revoke the caller's session (best effort).

Accounts live in Supabase Auth. Sign-in and refresh run on a throwaway
anon-key client so the user's session is never attached to the shared
service-role client.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, status

from app.auth import bearer_token, get_authenticated_user
from app.db.supabase import create_auth_client, get_supabase_client
from app.errors import AuthInvalidError, EmailAlreadyExistsError
from app.models.user import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserProfile,
    UserRole,
)
from app.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new patient account",
    responses={409: {"description": "Email already in use"}},
)
async def register(body: RegisterRequest) -> AuthResponse:
    users = UserService(get_supabase_client())

    if users.email_taken(body.email):
        raise EmailAlreadyExistsError(body.email)

    user_id = users.create_account(body.email, body.password, UserRole.PATIENT)
    profile = users.create_profile(
        user_id,
        body.email,
        role=UserRole.PATIENT,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    logger.info("Registered user %s", user_id)

    session = users.sign_in(create_auth_client(), body.email, body.password)
    return AuthResponse(
        token=session.access_token,
        refresh_token=session.refresh_token,
        user=UserProfile(**profile),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Sign in with email and password",
    responses={401: {"description": "Invalid email or password"}},
)
async def login(body: LoginRequest) -> AuthResponse:
    db = get_supabase_client()
    users = UserService(db)

    session = users.sign_in(create_auth_client(), body.email, body.password)
    profile = users.get(session.user.id)
    if profile is None:
        # Auth account without a profile row: recreate the profile
        profile = users.create_profile(session.user.id, body.email)

    logger.info("User %s signed in", profile["id"])
    return AuthResponse(
        token=session.access_token,
        refresh_token=session.refresh_token,
        user=UserProfile(**profile),
    )


@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh an access token",
    responses={401: {"description": "Refresh token invalid or expired"}},
)
async def refresh(body: RefreshRequest) -> TokenPair:
    try:
        response = create_auth_client().auth.refresh_session(body.refresh_token)
    except Exception as exc:
        logger.info("Token refresh rejected: %s", exc)
        raise AuthInvalidError("Invalid or expired refresh token") from exc

    if not response or not response.session:
        raise AuthInvalidError("Invalid or expired refresh token")

    return TokenPair(
        token=response.session.access_token,
        refresh_token=response.session.refresh_token,
    )


@router.post("/logout", response_model=MessageResponse, summary="Sign out")
async def logout(
    authorization: Optional[str] = Header(default=None, description="Bearer token from Supabase Auth"),
) -> MessageResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)

    try:
        db.auth.admin.sign_out(bearer_token(authorization))
    except Exception:
        # The access token still expires on its own
        logger.warning("Session revoke failed for user %s", user["id"], exc_info=True)

    return MessageResponse(message="Logged out")
