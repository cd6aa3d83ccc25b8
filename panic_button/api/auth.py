"""Session endpoints: sign in against the alert backend, inspect, sign out."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from panic_button.core.deps import get_token_store
from panic_button.core.errors import PanicAlertError, UnauthenticatedError
from panic_button.schemas.auth import CredentialsStatus, LoginRequest
from panic_button.services.auth_service import TokenStore

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=CredentialsStatus)
async def login(data: LoginRequest, tokens: TokenStore = Depends(get_token_store)):
    try:
        await tokens.login(data)
    except UnauthenticatedError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except PanicAlertError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return tokens.status()


@router.get("/status", response_model=CredentialsStatus)
def get_status(tokens: TokenStore = Depends(get_token_store)):
    return tokens.status()


@router.post("/logout", response_model=CredentialsStatus)
def logout(tokens: TokenStore = Depends(get_token_store)):
    tokens.clear()
    return tokens.status()
