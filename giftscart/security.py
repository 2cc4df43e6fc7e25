"""Session-cookie authentication and role gates."""
from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import g, session

from giftscart.database import get_db
from giftscart.errors import AuthenticationError, PermissionDenied
from giftscart.models import User

SUPER_ADMIN = "SUPER_ADMIN"
ADMIN_ROLES = ("ADMIN", SUPER_ADMIN, "ACCOUNTANT", "CITY_MANAGER", "OPERATIONS")


def load_current_user() -> None:
    """Resolve the signed session cookie into ``g.user`` (or None)."""
    g.user = None
    user_id = session.get("user_id")
    if user_id is None:
        return
    user = get_db().query(User).filter_by(userID=user_id).first()
    if user is None:
        session.clear()
        return
    g.user = user


def current_user() -> Optional[User]:
    return getattr(g, "user", None)


def login_user(user: User) -> None:
    session.clear()
    session.permanent = True
    session["user_id"] = user.userID
    session["role"] = user.role
    g.user = user


def logout_user() -> None:
    session.clear()
    g.user = None


def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN", "SUPER_ADMIN")
    SUPER_ADMIN passes every gate.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                raise AuthenticationError()
            if user.role != SUPER_ADMIN and user.role not in role_names:
                raise PermissionDenied()
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def require_admin(fn):
    return require_roles(*ADMIN_ROLES)(fn)
