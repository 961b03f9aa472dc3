"""Authentication routes."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, HTTPException, Request, status

from app.core.config import settings
from app.core.rate_limit import limiter
from app.core.rbac import BackendClientDep, CurrentUser
from app.core.security import create_access_token, revoke_token, verify_password
from app.db.session import DbSession
from app.models.hotel import Staff
from app.schemas.auth import LoginRequest, TokenResponse, UserInfo
from app.services.backend_client import BackendAuthError, FetchFailure, session_store

logger = logging.getLogger("auth")

router = APIRouter()


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid username or password",
    )


def _login_with_database(login_request: LoginRequest, db, client_ip: str) -> TokenResponse:
    staff = db.query(Staff).filter(Staff.username == login_request.username).first()
    if not staff or not verify_password(login_request.password, staff.password_hash):
        logger.warning(f"Failed login attempt for {login_request.username} from IP: {client_ip}")
        raise _invalid_credentials()
    if not staff.is_active:
        logger.warning(f"Login attempt for inactive staff: {staff.username} (ID: {staff.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Staff account is inactive",
        )

    staff.last_login = datetime.now(timezone.utc)
    db.commit()

    logger.info(f"Successful login: {staff.username} (ID: {staff.id}, role: {staff.role}) from IP: {client_ip}")
    token = create_access_token(
        data={"sub": str(staff.id), "username": staff.username, "role": staff.role}
    )
    return TokenResponse(
        access_token=token,
        user=UserInfo(
            id=staff.id,
            username=staff.username,
            name=f"{staff.first_name} {staff.last_name}",
            email=staff.email,
            role=staff.role,
            department=staff.department,
        ),
    )


async def _login_with_backend(login_request: LoginRequest, client, client_ip: str) -> TokenResponse:
    try:
        session = await client.login(login_request.username, login_request.password)
    except BackendAuthError:
        logger.warning(f"Backend rejected login for {login_request.username} from IP: {client_ip}")
        raise _invalid_credentials()
    except FetchFailure as e:
        logger.error(f"Backend login unavailable for {login_request.username}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Hotel backend is unavailable",
        )

    # The session lives exactly as long as the JWT that references it
    lifetime = timedelta(minutes=settings.access_token_expire_minutes)
    session.expires_at = datetime.now(timezone.utc) + lifetime
    session_id = session_store.add(session)
    user = session.user
    raw_id = user.get("id")
    role = user.get("role") or "staff"
    name = " ".join(p for p in (user.get("first_name"), user.get("last_name")) if p) or None

    logger.info(f"Successful backend login: {session.username} from IP: {client_ip}")
    token = create_access_token(
        data={
            "sub": str(raw_id if raw_id is not None else session.username),
            "username": session.username,
            "role": role,
            "sid": session_id,
        },
        expires_delta=lifetime,
    )
    return TokenResponse(
        access_token=token,
        user=UserInfo(
            id=raw_id if isinstance(raw_id, int) else None,
            username=session.username,
            name=name,
            email=user.get("email"),
            role=role,
            department=user.get("department"),
        ),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def login(request: Request, login_request: LoginRequest, db: DbSession, client: BackendClientDep):
    """Authenticate staff and return a JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    if settings.entity_source == "database":
        return _login_with_database(login_request, db, client_ip)
    return await _login_with_backend(login_request, client, client_ip)


@router.post("/logout")
@limiter.limit("30/minute")
async def logout(request: Request, current_user: CurrentUser, client: BackendClientDep):
    """Revoke the current JWT and close the backend session, if any."""
    session = session_store.remove(current_user.session_id)
    if session is not None:
        await client.logout(session)
    revoke_token(current_user.payload)
    logger.info(f"User logged out: {current_user.username} (ID: {current_user.user_id})")
    return {"message": "Logged out successfully"}
