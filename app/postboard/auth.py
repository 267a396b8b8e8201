from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.postboard.access import login_required
from app.postboard.audit import record_event
from app.postboard.db import db_session
from app.postboard.errors import ConflictError, FieldError, InvalidCredentials, TooManyAttempts, ValidationError
from app.postboard.models import User
from app.postboard.utils import check_email, check_length, clean_str, request_payload

bp = Blueprint("auth", __name__)

NAME_MIN, NAME_MAX = 3, 50
PASSWORD_MIN, PASSWORD_MAX = 6, 20


def _attempts() -> dict[str, list[datetime]]:
    return current_app.extensions.setdefault("login_attempts", {})


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=current_app.config["LOGIN_RATE_WINDOW"])
    attempts = _attempts()
    # Prune every address, not just this one, so idle IPs do not pile up.
    for key in list(attempts):
        recent = [t for t in attempts[key] if t > cutoff]
        if recent:
            attempts[key] = recent
        else:
            del attempts[key]
    return len(attempts.get(ip, [])) >= current_app.config["LOGIN_RATE_LIMIT"]


def _record_attempt(ip: str) -> None:
    _attempts().setdefault(ip, []).append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


def current_identity() -> User | None:
    return getattr(g, "current_user", None)


def login_user(user: User) -> None:
    # Fresh session on privilege change (drops the old CSRF token too).
    session.clear()
    session["user_id"] = user.id
    g.current_user = user


def logout_user() -> None:
    session.clear()
    g.current_user = None


def validate_registration(name: str, email: str, password: str) -> list[FieldError]:
    errors: list[FieldError] = []
    errors += check_length("name", name, label="Name", min_len=NAME_MIN, max_len=NAME_MAX)
    errors += check_email("email", email)
    errors += check_length("password", password, label="Password", min_len=PASSWORD_MIN, max_len=PASSWORD_MAX)
    return errors


def _registration_conflicts(s: Session, name: str, email: str) -> list[FieldError]:
    conflicts: list[FieldError] = []
    if s.execute(select(User.id).where(User.name == name)).first():
        conflicts.append(FieldError("name", "The name has already been taken."))
    if s.execute(select(User.id).where(func.lower(User.email) == email)).first():
        conflicts.append(FieldError("email", "The email has already been taken."))
    return conflicts


def register_user(s: Session, name: str, email: str, password: str) -> User:
    """Create an account. Raises ValidationError, or ConflictError on a taken name/email."""
    name = clean_str(name)
    email = clean_str(email).lower()
    password = password or ""

    errors = validate_registration(name, email, password)
    if errors:
        raise ValidationError(errors)

    conflicts = _registration_conflicts(s, name, email)
    if conflicts:
        raise ConflictError(conflicts)

    user = User(name=name, email=email, password_hash=generate_password_hash(password), is_active=True)
    s.add(user)
    try:
        s.flush()
    except IntegrityError:
        # A concurrent registration took the name or email after the check above.
        s.rollback()
        conflicts = _registration_conflicts(s, name, email)
        if not conflicts:
            raise
        raise ConflictError(conflicts)
    return user


def authenticate(s: Session, loginname: str, loginpassword: str) -> User:
    """Resolve credentials to an active user. Wrong name and wrong password fail identically."""
    loginname = clean_str(loginname)
    loginpassword = loginpassword or ""

    errors: list[FieldError] = []
    if not loginname:
        errors.append(FieldError("loginname", "Name is required."))
    if not loginpassword:
        errors.append(FieldError("loginpassword", "Password is required."))
    if errors:
        raise ValidationError(errors)

    user = s.execute(select(User).where(User.name == loginname)).scalar_one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, loginpassword):
        raise InvalidCredentials()
    return user


def _user_dict(user: User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email}


@bp.post("/register")
def register():
    data = request_payload(request)
    s = db_session()
    user = register_user(s, data.get("name"), data.get("email"), data.get("password"))
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    s.commit()
    login_user(user)
    current_app.logger.info("Registered user %s (request_id=%s)", user.id, g.request_id)
    return {"message": "User registered successfully!", "user": _user_dict(user)}, 201


@bp.post("/login")
def login():
    data = request_payload(request)
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise TooManyAttempts()
    _record_attempt(ip)

    s = db_session()
    loginname = clean_str(data.get("loginname"))
    try:
        user = authenticate(s, loginname, data.get("loginpassword"))
    except InvalidCredentials:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=loginname,
            metadata={"loginname": loginname},
        )
        s.commit()
        raise

    _attempts().pop(ip, None)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    login_user(user)
    return {"message": "Logged in successfully!", "user": _user_dict(user)}


@bp.post("/logout")
@login_required
def logout():
    s = db_session()
    user = current_identity()
    record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
    s.commit()
    logout_user()
    return {"message": "Logged out successfully!"}
