"""
Authentication Utility - JWT, password handling and role checks.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- FastAPI dependencies for protected routes, one per access level
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from peopleos.core.config import get_settings
from peopleos.db.postgres import get_db_session
from peopleos.models import User
from peopleos.models.enums import UserRole

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor (missing header handled below as 401)
bearer_scheme = HTTPBearer(auto_error=False)

PERMISSION_DENIED = "You do not have permission to perform this action"

HR_ADMIN_ROLES = {UserRole.SUPER_ADMIN, UserRole.HR_ADMIN}
ADMIN_ROLES = {UserRole.SUPER_ADMIN, UserRole.HR_ADMIN, UserRole.IT_ADMIN}


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    # Verify user exists
    with get_db_session() as db:
        user = db.get(User, int(user_id))
        if not user:
            raise credentials_exception

        if not user.is_active:
            raise HTTPException(status_code=403, detail="Account deactivated")

        return {
            "user_id": user.id,
            "email": user.email,
            "role": user.role,
            "employee_id": user.employee_id,
        }


def require_roles(roles: set):
    """Build a dependency that only lets the given roles through."""

    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise HTTPException(status_code=403, detail=PERMISSION_DENIED)
        return user

    return dependency


# Access levels
get_hr_admin = require_roles(HR_ADMIN_ROLES)
get_admin = require_roles(ADMIN_ROLES)
get_super_admin = require_roles({UserRole.SUPER_ADMIN})
