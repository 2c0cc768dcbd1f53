from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Cookie, Depends, HTTPException, status
from sqlalchemy.orm import Session

from newsdesk.config import settings
from newsdesk.database import get_db
from newsdesk.models.user import User

_fernet = Fernet(settings.SESSION_KEY.encode())


def issue_session_token(user_id: int) -> str:
    return _fernet.encrypt(str(user_id).encode()).decode()


def read_session_token(token: str) -> int | None:
    """Return the user id sealed in ``token``, or None if it is not ours."""
    try:
        return int(_fernet.decrypt(token.encode()).decode())
    except (InvalidToken, ValueError):
        return None


def current_user(
    session_token: str | None = Cookie(default=None, alias=settings.SESSION_COOKIE_NAME),
    db: Session = Depends(get_db),
) -> User:
    user_id = read_session_token(session_token) if session_token else None
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def current_admin(user: User = Depends(current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
