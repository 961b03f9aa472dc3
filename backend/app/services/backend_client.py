"""Client for the hotel REST backend.

The upstream token lives in an explicit BackendSession that is passed to
every call. A session is set on login and cleared on logout or when the
backend answers 401.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.observability import CORRELATION_HEADER, get_correlation_id

logger = logging.getLogger(__name__)


class FetchFailure(Exception):
    """An upstream entity source was unreachable or answered with an error."""


class BackendUnavailableError(FetchFailure):
    """Network error or timeout talking to the backend."""


class BackendResponseError(FetchFailure):
    """The backend answered with a non-success status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class BackendAuthError(BackendResponseError):
    """The backend rejected the session token or the credentials (401)."""

    def __init__(self, message: str = "Backend session is not authenticated"):
        super().__init__(message, 401)


class PartialCollectionError(FetchFailure):
    """Only part of a collection could be read; carries the records that were."""

    def __init__(self, message: str, records: List[Dict[str, Any]]):
        super().__init__(message)
        self.records = records


class BackendSession:
    """Authentication state for one dashboard user against the backend."""

    def __init__(
        self,
        username: str,
        token: Optional[str] = None,
        user: Optional[Dict[str, Any]] = None,
        expires_at: Optional[datetime] = None,
    ):
        self.id = secrets.token_urlsafe(16)
        self.username = username
        self.token = token
        self.user = user or {}
        self.created_at = datetime.now(timezone.utc)
        # Matches the exp of the JWT carrying this session's id
        self.expires_at = expires_at

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def clear(self) -> None:
        self.token = None

    def __repr__(self) -> str:
        return f"<BackendSession {self.username} authenticated={self.is_authenticated}>"


class SessionStore:
    """In-memory registry of backend sessions keyed by session id.

    Sessions leave the store on logout, once cleared by a 401, or once
    past their expiry (swept on every add and lookup).
    """

    def __init__(self):
        self._sessions: Dict[str, BackendSession] = {}

    def add(self, session: BackendSession) -> str:
        self.sweep()
        self._sessions[session.id] = session
        return session.id

    def get(self, session_id: Optional[str]) -> Optional[BackendSession]:
        self.sweep()
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is not None and not session.is_authenticated:
            # Cleared by a 401 since the last request
            self._sessions.pop(session_id, None)
            return None
        return session

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop expired sessions and their upstream tokens. Returns how many were dropped."""
        now = now or datetime.now(timezone.utc)
        expired = [sid for sid, session in self._sessions.items() if session.is_expired(now)]
        for sid in expired:
            self._sessions.pop(sid).clear()
        if expired:
            logger.info(f"Evicted {len(expired)} expired backend session(s)")
        return len(expired)

    def remove(self, session_id: Optional[str]) -> Optional[BackendSession]:
        """Forget a session. Clearing its token is the caller's job (see BackendClient.logout)."""
        if not session_id:
            return None
        return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


session_store = SessionStore()


class BackendClient:
    """Thin async wrapper over the backend's JSON API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        root_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.backend_api_url).rstrip("/")
        self.root_url = (root_url or settings.backend_root_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.backend_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _headers(self, session: Optional[BackendSession] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if session is not None and session.token:
            headers["Authorization"] = f"Token {session.token}"
        correlation_id = get_correlation_id()
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id
        return headers

    async def login(self, username: str, password: str) -> BackendSession:
        """Exchange credentials for a backend token."""
        url = f"{self.root_url}{settings.backend_login_path}"
        try:
            async with self._client() as client:
                resp = await client.post(
                    url,
                    headers=self._headers(),
                    json={"username": username, "password": password},
                )
        except httpx.RequestError as e:
            raise BackendUnavailableError(f"Backend login failed: {e}") from e

        if resp.status_code in (400, 401, 403):
            raise BackendAuthError("Invalid credentials")
        if resp.is_error:
            raise BackendResponseError(f"Backend login returned HTTP {resp.status_code}", resp.status_code)

        data = resp.json()
        token = data.get("token") or data.get("key") or data.get("access")
        if not token:
            raise BackendAuthError("Backend login response did not include a token")

        logger.info(f"Backend session opened for {username}")
        return BackendSession(username=username, token=token, user=data.get("user") or {})

    async def logout(self, session: BackendSession) -> None:
        """Best-effort upstream logout; the session is cleared regardless."""
        if not session.is_authenticated:
            return
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}{settings.backend_logout_path}",
                    headers=self._headers(session),
                )
            if resp.is_error:
                logger.warning(f"Backend logout returned HTTP {resp.status_code}, clearing session locally")
        except httpx.RequestError as e:
            logger.warning(f"Backend logout failed, clearing session locally: {e}")
        finally:
            session.clear()

    async def get_json(
        self,
        path: str,
        session: BackendSession,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """GET a backend resource and return the decoded JSON body.

        ``path`` is relative to the API root, or an absolute URL such as a
        paginated response's ``next`` link.
        """
        if not session.is_authenticated:
            raise BackendAuthError()

        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                resp = await client.get(url, headers=self._headers(session), params=params)
        except httpx.TimeoutException as e:
            raise BackendUnavailableError(f"Timed out fetching {path}") from e
        except httpx.RequestError as e:
            raise BackendUnavailableError(f"Network error fetching {path}: {e}") from e

        if resp.status_code == 401:
            logger.warning(f"Backend rejected session for {session.username}, clearing it")
            session.clear()
            raise BackendAuthError()
        if resp.is_error:
            raise BackendResponseError(f"Backend returned HTTP {resp.status_code} for {path}", resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise BackendResponseError(f"Backend returned invalid JSON for {path}", resp.status_code) from e
