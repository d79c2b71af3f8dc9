import logging
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import delete
from sqlmodel import Session, select
from uuid import uuid4
from storefront.config import settings
from storefront.database import get_session
from storefront.models.user import User
from storefront.models.token_blacklist import TokenBlacklist
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()

    expire = utcnow() + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.access_token_expire_minutes)
    )

    to_encode.update({"exp": expire, "iat": utcnow(), "jti": uuid4().hex})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )
    return encoded_jwt


def decode_access_token(token: str):
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
        return payload
    except JWTError:
        return None


def is_token_blacklisted(session: Session, token: str) -> bool:
    entry = session.exec(
        select(TokenBlacklist).where(TokenBlacklist.token == token)
    ).first()
    return entry is not None


def blacklist_token(session: Session, token: str, payload: dict) -> TokenBlacklist:
    """
    Revoke a token until its natural expiry and drop rows that already expired.
    """
    now = utcnow()
    session.execute(delete(TokenBlacklist).where(TokenBlacklist.expires_at < now))

    user_id = payload.get("user_id") or payload.get("sub")
    entry = TokenBlacklist(
        token=token,
        user_id=int(user_id) if user_id is not None else None,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
    session.add(entry)
    session.commit()
    session.refresh(entry)
    logger.info(f"Token revoked for user {entry.user_id}")
    return entry


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session)
) -> User:
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if is_token_blacklisted(session, token):
        raise credentials_error

    payload = decode_access_token(token)

    if payload is None:
        raise credentials_error

    user_id = payload.get("user_id") or payload.get("sub")

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    user = session.get(User, int(user_id))

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.can_login:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    return user
