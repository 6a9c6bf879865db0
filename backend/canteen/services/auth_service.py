# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and the caller identity handed to every core service.

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special character required
- Session tokens managed separately (see session_service.py)
- Managers must be bound to a canteen; admins are not
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import bcrypt
from flask import current_app, has_app_context

from ..errors import Forbidden, InvalidInput, NotFound
from ..extensions import db
from ..models import Canteen, User
from ..models.auth import ADMIN_ROLES, ROLE_MANAGER, ROLES
from canteen.time_utils import utcnow


class PasswordValidationError(InvalidInput):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


@dataclass(frozen=True)
class AuthContext:
    """
    Who is calling. Produced by the auth layer, consumed by services.

    assigned_canteen_id is the manager's canteen; None for admins.
    """
    actor_id: int
    role: str
    assigned_canteen_id: int | None = None
    username: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    @classmethod
    def for_user(cls, user: User) -> "AuthContext":
        return cls(
            actor_id=user.id,
            role=user.role,
            assigned_canteen_id=user.canteen_id,
            username=user.username,
        )


def require_admin(actor: AuthContext, action: str) -> None:
    if not actor.is_admin:
        raise Forbidden(f"Only admins can {action}", {"role": actor.role})


def require_canteen_scope(actor: AuthContext, canteen_id: int) -> None:
    """Managers may only act on their assigned canteen."""
    if actor.is_manager and actor.assigned_canteen_id != canteen_id:
        raise Forbidden(
            "Managers can only act on their assigned canteen",
            {"canteen_id": canteen_id, "assigned_canteen_id": actor.assigned_canteen_id},
        )


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return current_app.config.get("BCRYPT_ROUNDS", 12)
    return 12


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength first."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    *,
    name: str | None = None,
    role: str = ROLE_MANAGER,
    canteen_id: int | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises InvalidInput for an unknown role, a manager without a canteen or a
    duplicate username/email, NotFound for an unknown canteen, and
    PasswordValidationError for a weak password.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise InvalidInput("username and email are required")
    if role not in ROLES:
        raise InvalidInput(f"role must be one of {', '.join(ROLES)}", {"role": role})
    if role == ROLE_MANAGER and canteen_id is None:
        raise InvalidInput("Managers must be assigned to a canteen")

    if canteen_id is not None and db.session.get(Canteen, canteen_id) is None:
        raise NotFound(f"Canteen {canteen_id} not found", {"canteen_id": canteen_id})

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise InvalidInput("Username or email already exists")

    user = User(
        username=username,
        name=(name or username).strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        canteen_id=canteen_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User on success, None on bad credentials or an inactive
    account. Stamps last_login_at.
    """
    identifier = (identifier or "").strip()
    if not identifier or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier.lower())
    ).first()

    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
