"""
quluub/api/deps.py

Purpose: Shared FastAPI dependencies

- Service container lookup from app state
- AuthContext: the acting user, resolved by the upstream auth layer
  and forwarded in the X-User-Id header
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from quluub.core.container import ServiceContainer


@dataclass(frozen=True)
class AuthContext:
    user_id: str


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return container


def get_auth_context(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> AuthContext:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return AuthContext(user_id=x_user_id.strip())


def get_current_user_id(auth: AuthContext = Depends(get_auth_context)) -> str:
    return auth.user_id
