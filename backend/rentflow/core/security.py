"""Caller identity for the commission routes.

Authentication proper (tokens, sessions) happens upstream; by the time a
request reaches these routes the gateway has put the caller's user id in the
``X-User-Id`` header.
"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from rentflow.core.database import get_db
from rentflow.models.user import User, UserRole

ADMIN_ROLES = (UserRole.SUPER_ADMIN.value, UserRole.ADMIN.value)


def get_current_user(
    x_user_id: Optional[int] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.id == x_user_id, User.is_active == True).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user"
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role.lower() not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def require_agent(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role.lower() != UserRole.AGENT.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent access required"
        )
    return current_user
