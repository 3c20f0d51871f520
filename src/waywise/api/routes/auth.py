"""Registration and login endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...container import Container
from ...schemas.auth import LoginRequest, RegisterRequest
from ...services.outputs.serializers import public_user_json
from ..deps import get_container

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, container: Container = Depends(get_container)) -> dict:
    user = container.auth.register(payload.email, payload.password, payload.name)
    return public_user_json(user)


@router.post("/login", status_code=status.HTTP_200_OK)
def login(payload: LoginRequest, container: Container = Depends(get_container)) -> dict:
    user, token = container.auth.login(payload.email, payload.password)
    return {
        "access_token": token.access_token,
        "token_type": token.token_type,
        "expires_in": token.expires_in,
        "user": public_user_json(user),
    }
