"""
Authentication and Security Utilities
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import calendar
import hashlib
import secrets
import threading
import time

from ..config import settings
from ..dependencies import get_resolver, get_store
from ..services.config_resolver import AUTH, ConfigResolver
from ..services.repository import SettingsService
from ..services.store import KVStore

# JWT Bearer token (optional: auth may be disabled)
security = HTTPBearer(auto_error=False)

# ─── Rate Limiter (in-memory, per-IP) ────────────────────────────────────────
_rate_lock = threading.Lock()
_login_attempts: dict[str, list[float]] = {}  # ip -> [timestamps]

RATE_LIMIT_WINDOW = 60   # seconds
RATE_LIMIT_MAX    = 10   # max attempts per window


def check_rate_limit(ip: str):
    """Raise 429 if IP exceeded login attempts."""
    now = time.time()
    window_start = now - RATE_LIMIT_WINDOW
    with _rate_lock:
        attempts = [t for t in _login_attempts.get(ip, []) if t > window_start]
        attempts.append(now)
        _login_attempts[ip] = attempts
        if len(attempts) > RATE_LIMIT_MAX:
            raise HTTPException(
                status_code=429,
                detail=f"Too many login attempts. Try again in {RATE_LIMIT_WINDOW} seconds.",
                headers={"Retry-After": str(RATE_LIMIT_WINDOW)},
            )


def reset_rate_limit():
    with _rate_lock:
        _login_attempts.clear()


def verify_password(plain_password: str, expected_password: str) -> bool:
    """Constant-time comparison against the effective password"""
    if not expected_password:
        return False
    return secrets.compare_digest(plain_password.encode(), expected_password.encode())


def password_fingerprint(password: str) -> str:
    """Salted hash bound into tokens so a password change revokes them"""
    digest = hashlib.sha256(f"{settings.SECRET_KEY}:{password}".encode()).hexdigest()
    return digest[:16]


def create_access_token(password: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token with Unix timestamp iat/exp claims."""
    issued = datetime.now(timezone.utc)
    expire_dt = issued + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": "operator",
        "iat": calendar.timegm(issued.utctimetuple()),
        "exp": calendar.timegm(expire_dt.utctimetuple()),
        "pwh": password_fingerprint(password),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def auth_state(store: KVStore, resolver: ConfigResolver) -> Tuple[bool, str]:
    """(enforced, effective password). Auth needs both the flag and a password."""
    settings_service = SettingsService(store)
    await settings_service.sync_external_config(resolver)
    app_settings = await settings_service.get()

    password = resolver.resolve(AUTH, "password", app_settings)
    enforced = resolver.effective_enabled(AUTH, app_settings) and bool(password)
    return enforced, password


async def get_current_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver),
) -> str:
    """Pass when auth is off; otherwise require a valid bearer token"""
    enforced, password = await auth_state(store, resolver)
    if not enforced:
        return "anonymous"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if payload.get("pwh") != password_fingerprint(password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked. Please log in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload.get("sub", "operator")
