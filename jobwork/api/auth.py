"""
Authentication API routes.
"""
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, EmailStr, Field

from jobwork.api.deps import get_storage, client_ip
from jobwork.api.serializers import serialize, serialize_user
from jobwork.core.config import settings
from jobwork.core.errors import AuthenticationError, Conflict, PermissionDenied
from jobwork.core.logging import get_logger
from jobwork.core.rbac import CurrentUser, get_current_user
from jobwork.core.security import verify_password, get_password_hash, create_access_token
from jobwork.services.audit import record_audit
from jobwork.storage import Storage
from jobwork.storage.entities import Company, User

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])
protected_router = APIRouter(prefix="/api/protected/auth", tags=["Authentication"])


# ============= SCHEMAS =============

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=128)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    # Admin accounts are never self-registered
    role: Literal["buyer", "supplier"]
    company_name: str = Field(..., min_length=1, max_length=255, alias="companyName")
    phone: Optional[str] = Field(None, max_length=50)

    model_config = {"populate_by_name": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict


def _issue_token(user: User) -> TokenResponse:
    # Role is deliberately not put in the token; it is read from storage per request
    access_token = create_access_token({"sub": user.id, "email": user.email})
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=serialize_user(user),
    )


# ============= ROUTES =============

@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    request: Request,
    register_data: RegisterRequest,
    storage: Storage = Depends(get_storage),
):
    """Register a buyer or supplier together with their company."""
    if not settings.ALLOW_PUBLIC_REGISTRATION:
        raise PermissionDenied("Public registration is disabled. Contact an administrator.")

    with storage.transaction():
        if storage.get_user_by_email(register_data.email):
            raise Conflict("Email already registered")

        company = storage.create_company(Company(name=register_data.company_name))
        user = storage.create_user(User(
            email=register_data.email,
            hashed_password=get_password_hash(register_data.password),
            role=register_data.role,
            name=register_data.name,
            phone=register_data.phone,
            company_id=company.id,
        ))
        record_audit(storage, "register", user, "user", user.id,
                     {"email": user.email, "role": user.role, "company": company.name},
                     ip_address=client_ip(request))

    logger.info(f"Registered {user.role} {user.id}")
    return _issue_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    login_data: LoginRequest,
    storage: Storage = Depends(get_storage),
):
    """Authenticate user and return JWT token."""
    user = storage.get_user_by_email(login_data.email)

    # Same message for unknown email and wrong password
    if not verify_password(login_data.password, user.hashed_password if user else None):
        raise AuthenticationError("Invalid email or password")

    record_audit(storage, "login", user, "user", user.id,
                 {"email": user.email}, ip_address=client_ip(request))
    return _issue_token(user)


@protected_router.get("/me")
async def me(
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Current user with their company."""
    user = storage.get_user(current_user.id)
    company = storage.get_company(user.company_id) if user.company_id else None
    return {"user": serialize_user(user), "company": serialize(company)}
