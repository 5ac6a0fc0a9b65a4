from .auth_schemas import (
    LoginRequest, TokenResponse, UserCreate, UserResponse,
    PinSetupRequest, UserListResponse
)

__all__ = [
    'LoginRequest', 'TokenResponse', 'UserCreate', 'UserResponse',
    'PinSetupRequest', 'UserListResponse'
]
