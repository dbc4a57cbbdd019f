# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Back-office users authenticate server-side; the credential check never
happens in the browser. Passwords are hashed with bcrypt and validated for
strength. Session tokens are managed separately (see session_service.py).

Company access is granted per user through CompanyMembership.
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Company, CompanyMembership
from laborslip.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(username: str, email: str, password: str) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If username or email already exists
        PasswordValidationError: If password doesn't meet requirements
    """
    username = username.strip().lower()
    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()

    if existing:
        raise ValueError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username.lower(), User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def grant_company_access(user_id: int, company_id: int) -> CompanyMembership:
    """Grant a user access to a company. Idempotent."""
    company = db.session.query(Company).filter_by(id=company_id).first()
    if not company:
        raise ValueError("Company not found")

    existing = db.session.query(CompanyMembership).filter_by(
        user_id=user_id,
        company_id=company_id,
    ).first()

    if existing:
        return existing

    membership = CompanyMembership(user_id=user_id, company_id=company_id)
    db.session.add(membership)
    db.session.commit()
    return membership
