"""Shared API dependencies."""
from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.security import InvalidTokenError, decode_token
from app.db.models.member import Member
from app.db.session import SessionLocal
from app.schemas import TokenPayload
from app.services.push.store import SubscriptionStore
from app.utils.exceptions import AuthorizationError, handle_authorization_error

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)


def get_db() -> Session:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_member(
    token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Member:
    """Resolve the authenticated member from the Authorization header."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise InvalidTokenError("Token must be an access token")
        token_data = TokenPayload.model_validate(payload)
    except (InvalidTokenError, ValidationError, ValueError, KeyError) as exc:
        raise credentials_exception from exc

    member = db.get(Member, token_data.sub)
    if not member or member.status != "active":
        raise credentials_exception
    return member


def require_staff(current_member: Member = Depends(get_current_member)) -> Member:
    """Allow only members holding one of the configured staff roles."""

    if not current_member.has_any_role(settings.PUSH_STAFF_ROLES):
        raise handle_authorization_error(AuthorizationError("Staff role required"))
    return current_member


def get_subscription_store(db: Session = Depends(get_db)) -> SubscriptionStore:
    return SubscriptionStore(db)
