"""Authentication dependencies for API routes."""

from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status

from app.core.config import settings
from app.core.security import decode_access_token
from app.db.session import DbSession
from app.services.backend_client import BackendClient, BackendSession, session_store
from app.services.entity_fetcher import EntityFetcher
from app.services.entity_sources import DatabaseEntitySource, RestEntitySource


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: Staff id (database mode) or backend user id / username (REST mode).
        username: Login name.
        role: Staff role as stored by the hotel (admin, manager, front_desk, ...).
        session_id: Key of the server-side BackendSession, REST mode only.
        payload: The raw claims, kept for logout.
    """

    def __init__(self, user_id: str, username: str, role: str,
                 session_id: Optional[str] = None, payload: Optional[Dict[str, Any]] = None):
        self.user_id = user_id
        self.username = username
        self.role = role
        self.session_id = session_id
        self.payload = payload or {}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request) -> TokenData:
    """Get the current authenticated user from JWT token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie (HttpOnly)
    """
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        cookie_token = request.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    if payload is None:
        raise _unauthorized("Not authenticated")

    user_id = payload.get("sub")
    username = payload.get("username")
    if user_id is None or username is None:
        raise _unauthorized("Invalid token payload")

    return TokenData(
        user_id=str(user_id),
        username=username,
        role=payload.get("role") or "staff",
        session_id=payload.get("sid"),
        payload=payload,
    )


CurrentUser = Annotated[TokenData, Depends(get_current_user)]


_backend_client = BackendClient()


def get_backend_client() -> BackendClient:
    return _backend_client


BackendClientDep = Annotated[BackendClient, Depends(get_backend_client)]


def get_backend_session(current_user: CurrentUser) -> Optional[BackendSession]:
    """The user's backend session; 401 once it has been cleared. None in database mode."""
    if settings.entity_source == "database":
        return None
    session = session_store.get(current_user.session_id)
    if session is None:
        raise _unauthorized("Backend session expired, please log in again")
    return session


def get_entity_fetcher(
    db: DbSession,
    client: BackendClientDep,
    session: Annotated[Optional[BackendSession], Depends(get_backend_session)],
) -> EntityFetcher:
    """Entity fetcher over the configured source for this request."""
    if settings.entity_source == "database":
        return EntityFetcher(DatabaseEntitySource(db))
    return EntityFetcher(RestEntitySource(client, session))


Fetcher = Annotated[EntityFetcher, Depends(get_entity_fetcher)]
