# Overview: User directory: bcrypt credentials, lookup and attribution snapshots.

"""
User Directory

WHY: Every ledger action is attributed to a person. The ledger itself never
authenticates; it receives a UserRef (id + display name) produced here.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, mixed case, a digit and a special character
- No credentials live in code; users are created via CLI or the admin API
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..entities import UserRef
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import USER_ROLES, User
from ..time_utils import utcnow
from ..validation import clean_text, parse_choice


logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")
    if not re.search(r"[^A-Za-z0-9]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    display_name: str | None = None,
    role: str = "SELLER",
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: blank username, unknown role, weak password
        ConflictError: username already taken
    """
    username = clean_text(username, "username", max_length=64, required=True)
    role = parse_choice(role, "role", USER_ROLES)
    display_name = clean_text(display_name or username, "display_name", max_length=128)

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError("Username already exists", details={"username": username})

    user = User(
        username=username,
        display_name=display_name,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    logger.info("Created user %s (%s)", username, role)
    return user


def authenticate(username: str, credential: str) -> User:
    """
    Check a username/password pair.

    Returns the User and stamps last_login_at. Unknown user, inactive user
    and wrong password all raise the same AuthError.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()

    if not user or not user.is_active or not verify_password(credential, user.password_hash):
        raise AuthError("Invalid credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", details={"user_id": user_id})
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username).all()


def user_ref(user: User) -> UserRef:
    """Attribution snapshot handed to ledger operations."""
    return UserRef(id=str(user.id), name=user.display_name or user.username)
