"""Registration, login and session routes."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AuthUser, clear_session_cookie, current_user, login_limiter, set_session_cookie
from ..config import settings
from ..database import get_db
from ..errors import AuthenticationError, NotFoundError, RateLimitedError
from ..schemas.auth import LoginRequest, RegisterRequest, UserResponse
from ..services import auth_svc

router = APIRouter(prefix="/api", tags=["auth"])


def _client_addr(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "").split(",", 1)[0].strip()
    if forwarded:
        return forwarded[:64]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _login_key(request: Request, username: str) -> str:
    return f"login:{(username or '').strip().lower()}:{_client_addr(request)}"


@router.post("/register", status_code=201, response_model=UserResponse)
async def register(data: RegisterRequest, response: Response, db: AsyncSession = Depends(get_db)):
    user = await auth_svc.register_user(
        db, data.username, data.password, admin_code=data.admin_code
    )
    set_session_cookie(response, auth_svc.to_auth_user(user))
    return user


@router.post("/login", response_model=UserResponse)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    key = _login_key(request, data.username)
    now = time.time()
    retry_after = login_limiter.blocked_for(key, now)
    if retry_after:
        raise RateLimitedError(retry_after=retry_after)

    user = await auth_svc.authenticate_user(db, data.username, data.password)
    if not user:
        blocked = login_limiter.add_failure(
            key=key,
            now=now,
            window_seconds=settings.auth_rate_limit_window_seconds,
            max_attempts=settings.auth_rate_limit_max_attempts,
            block_seconds=settings.auth_rate_limit_block_seconds,
        )
        if blocked:
            raise RateLimitedError(retry_after=settings.auth_rate_limit_block_seconds)
        raise AuthenticationError("Invalid credentials")

    login_limiter.clear(key)
    set_session_cookie(response, auth_svc.to_auth_user(user))
    return user


@router.post("/logout", status_code=204)
async def logout():
    response = Response(status_code=204)
    clear_session_cookie(response)
    return response


@router.get("/user", response_model=UserResponse)
async def me(user: AuthUser = Depends(current_user), db: AsyncSession = Depends(get_db)):
    account = await auth_svc.get_user(db, user.id)
    if account is None:
        raise NotFoundError("User not found")
    return account
