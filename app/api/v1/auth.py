#app/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import NotFound, Unauthenticated
from app.db.session import get_db
from app.models.enums import UserRole
from app.models.user import User
from app.policies.rbac import Principal
from app.schemas.auth import LoginRequest, RegisterRequest
from app.schemas.common import ok
from app.services.auth_service import authenticate, issue_token, register

router = APIRouter(prefix="/auth")


def _iso(dt):
    return dt.isoformat() if dt else None


def user_resp(u: User) -> dict:
    return {
        "userId": str(u.id),
        "email": u.email,
        "displayName": u.display_name,
        "phone": u.phone,
        "role": u.role,
        "rating": u.rating,
        "completedProjects": u.completed_projects,
        "totalEarnings": str(u.total_earnings) if u.total_earnings is not None else "0",
        "createdAtIso": _iso(u.created_at),
    }


@router.post("/register", status_code=201)
def register_user(req: RegisterRequest, db: Session = Depends(get_db)):
    user = register(
        db,
        email=req.email,
        password=req.password,
        display_name=req.displayName,
        role=UserRole(req.role),
        phone=req.phone,
    )
    token = issue_token(
        Principal(user_id=user.id, role=UserRole(user.role), display_name=user.display_name)
    )
    return ok(
        {"access_token": token, "token_type": "bearer", "user": user_resp(user)},
        message="Registration successful.",
    )


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    principal = authenticate(db, req.email, req.password)
    if not principal:
        raise Unauthenticated("Invalid credentials.")

    return ok({"access_token": issue_token(principal), "token_type": "bearer"})


@router.get("/me")
def get_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = db.get(User, principal.user_id)
    if user is None:
        raise NotFound("User not found.")
    return ok(user_resp(user))
