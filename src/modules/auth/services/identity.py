from dataclasses import dataclass
from typing import Optional

from modules.auth.models.user import User, DPA_ROLE


@dataclass(frozen=True)
class Identity:
    """Snapshot of the caller, as resolved by the auth layer."""
    user_id: int
    name: str
    role: str
    company_id: int = 1
    pin_hash: Optional[str] = None
    authenticated: bool = True
    # Set when the caller proved possession of their signature PIN out of band
    pin_verified: bool = False

    @property
    def is_dpa(self) -> bool:
        return self.role == DPA_ROLE

    def holds_role(self, role: str) -> bool:
        return self.role == (role or "").strip().lower()


def identity_from_user(user: User, authenticated: bool = True, pin_verified: bool = False) -> Identity:
    return Identity(
        user_id=user.id,
        name=user.name,
        role=user.role,
        company_id=user.company_id,
        pin_hash=user.signature_pin_hash,
        authenticated=authenticated and bool(user.is_active),
        pin_verified=pin_verified,
    )
