from __future__ import annotations

import logging

from flask import Blueprint

from giftscart.blueprints import json_body, ok
from giftscart.database import get_db
from giftscart.errors import AuthenticationError, ValidationError
from giftscart.models import User
from giftscart.observability import increment_counter
from giftscart.security import current_user, login_user, logout_user

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/api/auth/login", methods=["POST"])
def login():
    payload = json_body()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = get_db().query(User).filter(User.email == email).first()
    if user is None or not user.check_password(password):
        increment_counter("auth_login_failures_total")
        logger.warning("Failed login attempt for %s", email)
        raise AuthenticationError("Invalid email or password")

    login_user(user)
    logger.info("User %s logged in", user.userID)
    return ok(user.to_session_dict())


@auth_bp.route("/api/auth/logout", methods=["POST"])
def logout():
    logout_user()
    return ok(None)


@auth_bp.route("/api/auth/me", methods=["GET"])
def me():
    user = current_user()
    if user is None:
        raise AuthenticationError()
    return ok(user.to_session_dict())
