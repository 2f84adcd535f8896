"""
PetServices Backend — Authentication Routes
============================================

Endpoints:
    POST /register        create an account              201 {success, message, user}
    POST /auth/register   create an account + token      201 {success, user, token}
    POST /login           credentials → token            200 {success, token, user}
    POST /auth/login      same as /login
    GET  /me              decode the caller's token      200 {success, user}

/me is not behind ProtectedRoute: an invalid token there is a 401, not
the 403 the protected routers answer.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petservices.database import get_db_session
from petservices.dependencies import extract_bearer_token, get_auth_service
from petservices.exceptions import ForbiddenError, UnauthorizedError
from petservices.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    UserPublic,
)
from petservices.schemas.common import ErrorResponse
from petservices.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.post(
    "/register",
    status_code=201,
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    responses={400: {"description": "Invalid input or email taken", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    user = await auth_service.register(db, body.name, body.email, body.password)
    return RegisterResponse(user=UserPublic.model_validate(user))


@router.post(
    "/auth/register",
    status_code=201,
    response_model=RegisterResponse,
    responses={400: {"description": "Invalid input or email taken", "model": ErrorResponse}},
    summary="Create an account and sign in",
)
async def register_and_sign_in(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    user = await auth_service.register(db, body.name, body.email, body.password)
    return RegisterResponse(
        message="Account created",
        user=UserPublic.model_validate(user),
        token=auth_service.issue_token(user),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"description": "Incorrect email or password", "model": ErrorResponse}},
    summary="Sign in",
)
@router.post("/auth/login", response_model=LoginResponse, include_in_schema=False)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    user, token = await auth_service.login(db, body.email, body.password)
    return LoginResponse(token=token, user=UserPublic.model_validate(user))


@router.get(
    "/me",
    response_model=MeResponse,
    responses={401: {"description": "Missing, invalid or expired token", "model": ErrorResponse}},
    summary="Decode the current session token",
)
async def me(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        claims = auth_service.verify_token(token)
    except ForbiddenError as e:
        raise UnauthorizedError(message=e.message)
    return MeResponse(user=claims)
