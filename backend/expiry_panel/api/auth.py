"""
Authentication API Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request
from pydantic import BaseModel

from ..dependencies import get_resolver, get_store
from ..services.config_resolver import AUTH, ConfigResolver
from ..services.store import KVStore
from ..utils.security import (
    auth_state,
    check_rate_limit,
    create_access_token,
    verify_password,
)

router = APIRouter()


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    password: str


@router.post("/login", response_model=Token)
async def login(
    request: Request,
    login_data: LoginRequest,
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver)
):
    """
    Exchange the panel password for a JWT.
    Rate-limited to 10 attempts per minute per IP.
    """
    client_ip = request.client.host if request.client else "unknown"
    check_rate_limit(client_ip)

    enforced, password = await auth_state(store, resolver)
    if not enforced:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password protection is disabled"
        )

    if not verify_password(login_data.password, password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "access_token": create_access_token(password),
        "token_type": "bearer"
    }


@router.get("/status")
async def auth_status(
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver)
):
    """Whether the panel requires a login"""
    enforced, _ = await auth_state(store, resolver)
    external = resolver.has_external(AUTH)
    return {
        "enabled": enforced,
        "hasExternal": external.has_external,
        "source": external.source.value,
    }
