"""Request-scoped dependencies."""

from __future__ import annotations

from fastapi import Depends, Request

from ..auth import TokenClaims
from ..container import Container
from ..errors import Unauthorized


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_current_user(
    request: Request,
    container: Container = Depends(get_container),
) -> TokenClaims:
    """Resolve the caller from ``Authorization: Bearer <token>``."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    claims = container.tokens.verify(token.strip())
    request.state.user_id = claims.user_id
    return claims
