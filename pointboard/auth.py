"""Session auth primitives: password hashing, signed session tokens, role checks."""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
import uuid
from collections import deque
from dataclasses import dataclass, field

from fastapi import Request, Response
from starlette.requests import HTTPConnection

from .config import settings
from .errors import AuthenticationError, AuthorizationError
from .models.user import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: uuid.UUID
    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass
class _FailureWindow:
    failures: deque[float] = field(default_factory=deque)
    blocked_until: float = 0.0

    def prune(self, cutoff: float) -> None:
        while self.failures and self.failures[0] < cutoff:
            self.failures.popleft()


class AttemptLimiter:
    """Per-key failure counter: `max_attempts` failures inside the window block the key."""

    def __init__(self):
        self._windows: dict[str, _FailureWindow] = {}

    def blocked_for(self, key: str, now: float) -> int:
        """Seconds until `key` is unblocked (0 when not blocked)."""
        window = self._windows.get(key)
        if window is None:
            return 0
        if window.blocked_until > now:
            return max(1, int(window.blocked_until - now))
        if window.blocked_until and not window.failures:
            del self._windows[key]
        return 0

    def add_failure(
        self,
        *,
        key: str,
        now: float,
        window_seconds: int,
        max_attempts: int,
        block_seconds: int,
    ) -> bool:
        """Record a failure; True when the key is (now) blocked."""
        if max_attempts <= 0:
            return False
        window = self._windows.setdefault(key, _FailureWindow())
        if window.blocked_until > now:
            return True

        window.prune(now - max(1, window_seconds))
        window.failures.append(now)
        if len(window.failures) < max_attempts:
            return False
        window.failures.clear()
        window.blocked_until = now + max(1, block_seconds)
        logger.warning("Blocking %s for %ds after %d failures", key, block_seconds, max_attempts)
        return True

    def clear(self, key: str) -> None:
        self._windows.pop(key, None)


login_limiter = AttemptLimiter()


def normalize_role(role: str | Role | None) -> Role:
    try:
        return Role((role.value if isinstance(role, Role) else role or "").strip().lower())
    except ValueError:
        return Role.USER


def require_role(actor, role: Role) -> None:
    """Raise `AuthorizationError` unless `actor` holds `role`."""
    if normalize_role(getattr(actor, "role", None)) is not role:
        raise AuthorizationError()


PASSWORD_SCHEME = "pbkdf2_sha256"
PASSWORD_ITERATIONS = 200_000


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, iterations: int = PASSWORD_ITERATIONS) -> str:
    """Return `pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>`."""
    if not password:
        raise ValueError("Password is required")
    salt = secrets.token_bytes(16)
    return "$".join(
        [PASSWORD_SCHEME, str(iterations), salt.hex(), _pbkdf2(password, salt, iterations).hex()]
    )


def verify_password(password: str, stored_hash: str) -> bool:
    if not password or not stored_hash:
        return False
    parts = stored_hash.split("$")
    if len(parts) != 4 or parts[0] != PASSWORD_SCHEME:
        return False
    try:
        iterations = int(parts[1])
        salt = bytes.fromhex(parts[2])
        expected = bytes.fromhex(parts[3])
    except ValueError:
        return False
    return hmac.compare_digest(_pbkdf2(password, salt, iterations), expected)


async def hash_password_async(password: str) -> str:
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(password: str, stored_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, password, stored_hash)


def _encode_body(payload: dict) -> str:
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _decode_body(body: str) -> object:
    raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    return json.loads(raw)


def _secret() -> str:
    secret = settings.auth_secret.strip()
    if secret:
        return secret
    if settings.is_production:
        raise RuntimeError("PB_AUTH_SECRET is required in production")
    # Development fallback: sessions do not survive a restart.
    settings.auth_secret = secrets.token_urlsafe(32)
    logger.warning("PB_AUTH_SECRET not set; using an ephemeral session secret")
    return settings.auth_secret


def _ttl_seconds() -> int:
    return max(60, int(settings.auth_session_ttl_seconds))


def issue_session_token(user: AuthUser) -> str:
    now = int(time.time())
    payload = {
        "sub": str(user.id),
        "name": user.username,
        "role": user.role.value,
        "iat": now,
        "exp": now + _ttl_seconds(),
    }
    body = _encode_body(payload)
    return f"{body}.{_sign(body)}"


def _sign(body: str) -> str:
    return hmac.new(_secret().encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def decode_session_token(token: str) -> AuthUser | None:
    """The session's user, or None for a forged, malformed or expired token."""
    body, _, signature = (token or "").partition(".")
    if not body or not signature:
        return None
    if not hmac.compare_digest(signature.encode("utf-8"), _sign(body).encode("utf-8")):
        return None

    try:
        payload = _decode_body(body)
    except (ValueError, binascii.Error):
        return None
    if not isinstance(payload, dict):
        return None

    expires = payload.get("exp")
    if not isinstance(expires, int) or expires <= int(time.time()):
        return None
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None
    return AuthUser(
        id=user_id,
        username=str(payload.get("name") or ""),
        role=normalize_role(str(payload.get("role"))),
    )


def _extract_token(conn: HTTPConnection) -> str:
    cookie_token = conn.cookies.get(settings.auth_cookie_name, "")
    if cookie_token:
        return cookie_token

    auth = conn.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return ""


def user_from_connection(conn: HTTPConnection, *, allow_query_token: bool = False) -> AuthUser | None:
    """Decode the session of an HTTP request or WebSocket handshake."""
    token = _extract_token(conn)
    if not token and allow_query_token:
        token = conn.query_params.get("token", "")
    return decode_session_token(token)


def set_session_cookie(response: Response, user: AuthUser) -> str:
    token = issue_session_token(user)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=_ttl_seconds(),
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path="/",
    )
    return token


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.auth_cookie_name, path="/")


async def current_user(request: Request) -> AuthUser:
    """FastAPI dependency: the authenticated caller, or 401."""
    user = user_from_connection(request)
    if not user:
        raise AuthenticationError()
    request.state.auth_user = user
    return user


async def current_admin(request: Request) -> AuthUser:
    """FastAPI dependency: an authenticated admin, 401 / 403 otherwise."""
    user = await current_user(request)
    require_role(user, Role.ADMIN)
    return user
