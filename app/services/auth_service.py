# app/services/auth_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.core.security import create_access_token, hash_password, verify_password
from app.models.enums import UserRole
from app.models.user import User
from app.policies.rbac import Principal

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(
        select(User).where(func.lower(User.email) == _normalize_email(email))
    ).scalar_one_or_none()


def register(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    role: UserRole,
    phone: Optional[str] = None,
) -> User:
    if UserRole(role) == UserRole.ADMIN:
        raise ValidationError("Admin accounts cannot be self-registered.")
    if get_user_by_email(db, email) is not None:
        raise ValidationError("Email is already registered.")

    user = User(
        email=_normalize_email(email),
        display_name=display_name.strip(),
        phone=phone,
        role=UserRole(role).value,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email is already registered.")
    db.refresh(user)
    logger.info("user registered user_id=%s role=%s", user.id, user.role)
    return user


def authenticate(db: Session, email: str, password: str) -> Principal | None:
    user = get_user_by_email(db, email)

    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return Principal(
        user_id=user.id,
        role=UserRole(user.role),
        display_name=user.display_name,
    )


def issue_token(principal: Principal) -> str:
    return create_access_token(
        subject=str(principal.user_id),
        claims={"role": principal.role.value, "display_name": principal.display_name},
    )
