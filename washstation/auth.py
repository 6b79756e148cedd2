# washstation/auth.py
"""
Authentication and user management.

- Bearer session tokens (stored, revocable, expiring)
- Rate-limited login
- Strong password policy on register / password change
- Admin-only user creation, listing and deletion
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from .cache import cached_json, invalidate
from .errors import DuplicateUsername, MissingRequiredFields, UserNotFound, ValidationError
from .extensions import db, limiter, login_manager
from .models import User, UserSession, utcnow_naive
from .services import unit_of_work
from .services.reference import get_station
from .utils.guards import admin_required, is_admin
from .utils.parsers import parse_int
from .utils.passwords import hash_password, validate_password, verify_password

auth = Blueprint("auth", __name__, url_prefix="/api/auth")

ROLES = ("SUPER_ADMIN", "ADMIN", "MANAGER", "SUPERVISOR", "OPERATIONS", "CWS_MANAGER")
USERS_ALL_KEY = "users:all"


def users_me_key(user_id) -> str:
    return f"users:me:{user_id}"


def _normalize_role(value) -> str:
    role = (value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {value}")
    return role


# =========================================================
# Identity resolution (Flask-Login)
# =========================================================
def _bearer_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@login_manager.request_loader
def load_user_from_request(req):
    token = _bearer_token()
    if not token:
        return None
    user_session = UserSession.query.filter_by(token=token).first()
    if user_session is None or not user_session.is_valid():
        return None
    return user_session.user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Access denied"}), 401


# =========================================================
# Login / Logout
# =========================================================
@auth.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        raise MissingRequiredFields(message="Username and password are required")

    user = User.query.filter_by(username=username).first()
    if not user or not verify_password(user.password_hash, password):
        current_app.logger.info("Failed login for %s", username)
        return jsonify({"error": "Invalid username or password"}), 401

    user_session = UserSession.issue(user, hours=current_app.config.get("SESSION_TOKEN_HOURS", 24))
    with unit_of_work("Login"):
        db.session.add(user_session)

    return jsonify(
        {
            "token": user_session.token,
            "expiresAt": user_session.expires_at.isoformat(),
            "user": {
                "id": user.id,
                "username": user.username,
                "role": user.role,
                "cwsId": user.cws_id,
            },
            "cws": user.cws.to_dict() if user.cws else None,
        }
    )


@auth.route("/logout", methods=["POST"])
@login_required
def logout():
    token = _bearer_token()
    user_session = UserSession.query.filter_by(token=token).first()
    if user_session is not None:
        with unit_of_work("Logout"):
            user_session.revoked_at = utcnow_naive()
    return jsonify({"message": "Logged out"})


# =========================================================
# Current user
# =========================================================
@auth.route("/me", methods=["GET"])
@login_required
def me():
    user_id = current_user.id
    return jsonify(cached_json(users_me_key(user_id), lambda: current_user.to_dict()))


# =========================================================
# Admin: users
# =========================================================
@auth.route("/users", methods=["GET"])
@admin_required
def list_users():
    def load():
        return [u.to_dict() for u in User.query.order_by(User.created_at.desc(), User.id.desc()).all()]

    return jsonify(cached_json(USERS_ALL_KEY, load))


@auth.route("/register", methods=["POST"])
@admin_required
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    missing = [f for f, v in (("username", username), ("password", password), ("role", data.get("role"))) if not v]
    if missing:
        raise MissingRequiredFields(missing)

    role = _normalize_role(data.get("role"))
    ok, msg = validate_password(password)
    if not ok:
        raise ValidationError(msg)

    cws_id = parse_int(data.get("cwsId"))
    if cws_id is not None:
        get_station(cws_id)

    if User.query.filter_by(username=username).first() is not None:
        raise DuplicateUsername()

    user = User(
        username=username,
        role=role,
        cws_id=cws_id,
        password_hash=hash_password(password),
    )
    with unit_of_work("Register user"):
        db.session.add(user)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise DuplicateUsername() from exc

    invalidate(USERS_ALL_KEY)
    current_app.logger.info("User %s registered with role %s", user.username, user.role)
    return jsonify(user.to_dict()), 201


@auth.route("/users/<int:user_id>", methods=["PUT"])
@login_required
def update_user(user_id):
    if current_user.id != user_id and not is_admin():
        return jsonify({"error": "Not authorized to update this user"}), 403

    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFound()

    data = request.get_json(silent=True) or {}

    username = (data.get("username") or "").strip()
    if username and username != user.username:
        if User.query.filter_by(username=username).first() is not None:
            raise DuplicateUsername()

    password = data.get("password") or ""
    if password:
        ok, msg = validate_password(password)
        if not ok:
            raise ValidationError(msg)

    # Only admins change role or station.
    role = _normalize_role(data["role"]) if data.get("role") and is_admin() else None
    change_cws = "cwsId" in data and is_admin()
    cws_id = parse_int(data.get("cwsId")) if change_cws else None
    if cws_id is not None:
        get_station(cws_id)

    with unit_of_work("Update user"):
        if username:
            user.username = username
        if password:
            user.password_hash = hash_password(password)
        if role:
            user.role = role
        if change_cws:
            user.cws_id = cws_id
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise DuplicateUsername() from exc

    invalidate(USERS_ALL_KEY, users_me_key(user_id))
    return jsonify(user.to_dict())


@auth.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFound()

    with unit_of_work("Delete user"):
        db.session.delete(user)

    invalidate(USERS_ALL_KEY, users_me_key(user_id))
    return jsonify({"message": "User deleted successfully", "deletedUserId": user_id})
