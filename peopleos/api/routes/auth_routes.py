"""
Authentication Routes

POST /auth/register - Register new user (first account becomes SUPER_ADMIN)
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
GET /auth/users - List users (admin)
PUT /auth/users/{user_id} - Change role / activation / employee link (super admin)
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select

from peopleos.core.auth import (
    create_access_token,
    get_admin,
    get_current_user,
    get_super_admin,
    hash_password,
    verify_password,
)
from peopleos.db.postgres import get_db_session
from peopleos.models import Employee, User
from peopleos.models.enums import UserRole
from peopleos.schemas.schemas import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
    UserUpdate,
)
from peopleos.services.audit_service import log_audit

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=MessageResponse, status_code=201)
async def register(request: RegisterRequest):
    """
    Register a new user account.

    The very first account is the SUPER_ADMIN; everyone after that starts
    as EMPLOYEE until a super admin changes their role. The account is
    not linked to an employee record here; a super admin does that.
    """
    email = request.email.lower()
    with get_db_session() as db:
        if db.scalar(select(User.id).where(func.lower(User.email) == email)):
            raise HTTPException(status_code=400, detail="Email already registered")

        is_first = not db.scalar(select(func.count(User.id)))
        role = UserRole.SUPER_ADMIN if is_first else UserRole.EMPLOYEE

        user = User(
            email=email,
            password_hash=hash_password(request.password),
            full_name=request.full_name,
            role=role,
        )
        db.add(user)
        db.flush()
        log_audit(db, "USER_REGISTERED", "user", user.id, metadata={"role": role.value})

    return MessageResponse(message=f"Registered successfully as {role.value}. Please login.")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        user = db.scalar(select(User).where(func.lower(User.email) == request.email.lower()))

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    token = create_access_token(data={"sub": str(user.id), "role": user.role.value})

    return TokenResponse(access_token=token, user_id=user.id, role=user.role)


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get current user info, including the linked employee id."""
    with get_db_session() as db:
        return UserResponse.model_validate(db.get(User, user["user_id"]))


@router.get("/users", response_model=List[UserResponse])
async def list_users(admin: dict = Depends(get_admin)):
    with get_db_session() as db:
        users = db.scalars(select(User).order_by(User.created_at)).all()
        return [UserResponse.model_validate(u) for u in users]


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, request: UserUpdate, admin: dict = Depends(get_super_admin)):
    with get_db_session() as db:
        user = db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        changes = request.model_dump(exclude_unset=True)
        # role and is_active are not nullable; a null employee_id unlinks
        changes = {k: v for k, v in changes.items() if v is not None or k == "employee_id"}
        if changes.get("employee_id") is not None and not db.get(Employee, changes["employee_id"]):
            raise HTTPException(status_code=404, detail="Employee not found")

        for field, value in changes.items():
            setattr(user, field, value)

        log_audit(db, "USER_UPDATED", "user", user.id, actor=admin,
                  metadata={k: getattr(v, "value", v) for k, v in changes.items()})
        return UserResponse.model_validate(user)
