from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from modules.auth.dependencies import get_current_user, require_permission
from modules.auth.models.user import User
from modules.auth.services.auth_service import AuthService
from modules.auth.schemas.auth_schemas import (
    LoginRequest, TokenResponse, UserCreate, UserResponse, UserListResponse, PinSetupRequest
)
from settings import ACCESS_TOKEN_EXPIRE_MINUTES
from utils.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=TokenResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    user = AuthService.authenticate_user(db, login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = AuthService.create_access_token(
        data={"sub": user.email}, expires_delta=access_token_expires
    )

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=user.id,
        user_name=user.name,
        user_role=user.role
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("manage_users"))
):
    """Create a user in the caller's company"""
    if db.query(User).filter(User.email == user_data.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already registered"
        )

    new_user = User(
        name=user_data.name,
        email=user_data.email,
        password_hash=AuthService.get_password_hash(user_data.password),
        role=user_data.role,
        company_id=user_data.company_id or current_user.company_id,
        is_active=True
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info(f"User {new_user.email} registered with role {new_user.role}")
    return UserResponse.from_user(new_user)


@router.get("/users", response_model=UserListResponse)
def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    role: Optional[str] = Query(None, description="Filter by role"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("manage_users"))
):
    query = db.query(User).filter(User.company_id == current_user.company_id)
    if role is not None:
        query = query.filter(User.role == role.strip().lower())
    total = query.count()
    users = query.order_by(User.id).offset(skip).limit(limit).all()
    return UserListResponse(users=[UserResponse.from_user(u) for u in users], total=total)


@router.put("/me/pin", response_model=UserResponse)
def set_signature_pin(
    data: PinSetupRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Set or replace the caller's signature PIN"""
    if not AuthService.verify_password(data.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect password"
        )
    current_user.signature_pin_hash = AuthService.get_pin_hash(data.pin)
    db.commit()
    db.refresh(current_user)
    logger.info(f"Signature PIN updated for user {current_user.id}")
    return UserResponse.from_user(current_user)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return UserResponse.from_user(current_user)
