from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from modules.auth.models.user import User
from modules.auth.services.auth_service import AuthService
from modules.auth.services.identity import Identity, identity_from_user
from modules.auth.services.permission import can_perform_action

security = HTTPBearer()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security), db: Session = Depends(get_db)):
    """Resolve the authenticated user from the bearer token"""
    user = AuthService.get_current_user(db, credentials.credentials)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_identity(current_user: User = Depends(get_current_user)) -> Identity:
    return identity_from_user(current_user)


def require_permission(action: str):
    def dependency(current_user: User = Depends(get_current_user)):
        if not can_perform_action(current_user.role, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User with role '{current_user.role}' cannot perform '{action}'"
            )
        return current_user
    return dependency
