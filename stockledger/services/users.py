import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.exceptions import ValidationError
from stockledger.core.security import hash_password, verify_password
from stockledger.models.user import User, UserRole
from stockledger.services.audit import record_audit

logger = logging.getLogger(__name__)


def find_user(db: Session, identity: str) -> User | None:
    normalized = identity.strip().lower()
    return db.scalar(
        select(User).where(or_(func.lower(User.email) == normalized, func.lower(User.username) == normalized))
    )


def authenticate(db: Session, identity: str, password: str) -> User | None:
    user = find_user(db, identity)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


def create_user(
    db: Session,
    *,
    email: str,
    username: str,
    password: str,
    role: UserRole = UserRole.STOREKEEPER,
    full_name: str | None = None,
    actor: User | None = None,
) -> User:
    email = email.strip().lower()
    username = username.strip()
    if find_user(db, email) or find_user(db, username):
        raise ValidationError("A user with that email or username already exists", username=username)
    user = User(
        email=email,
        username=username,
        full_name=full_name.strip() if full_name and full_name.strip() else None,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.flush()
    record_audit(
        db,
        "users.created",
        actor_name=actor.username if actor else None,
        actor_user_id=actor.id if actor else None,
        entity_type="user",
        entity_id=str(user.id),
        details={"username": user.username, "role": user.role.value},
    )
    return user


def ensure_bootstrap_admin(db: Session) -> User | None:
    """Create the configured admin account on first start; no-op without a password."""
    if not settings.bootstrap_admin_password:
        return None
    existing = find_user(db, settings.bootstrap_admin_username)
    if existing:
        return existing
    user = create_user(
        db,
        email=settings.bootstrap_admin_email,
        username=settings.bootstrap_admin_username,
        password=settings.bootstrap_admin_password,
        role=UserRole.ADMIN,
        full_name="Administrator",
    )
    db.commit()
    logger.info("Bootstrap admin %s created", user.username)
    return user
