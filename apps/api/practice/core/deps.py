"""FastAPI dependencies for authentication, office scoping, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from practice.core.access_policy import OfficeScope, resolve_effective_office_filter
from practice.core.security import decode_session_token
from practice.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "practice_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    import jwt

    from practice.db.models import User

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def get_office_scope(
    office_id: UUID | None = Query(None, description="Office filter (cross-office users only)"),
    user=Depends(get_current_user),
) -> OfficeScope:
    """
    Effective office filter for list/detail queries.

    Restricted users are pinned to their own office whatever they request.
    """
    return resolve_effective_office_filter(user, office_id)


def require_office_admin(user=Depends(get_current_user)):
    """Office administration is limited to cross-office (head office) users."""
    if not user.can_view_all_offices:
        raise HTTPException(status_code=403, detail="Head office access required")
    return user


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
