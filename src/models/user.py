from pydantic import BaseModel, Field

from src.db.core import UserRole


# ===== USER PYDANTIC MODELS =====

class CurrentUser(BaseModel):
    """Identity of the caller, as resolved by the authentication layer"""
    id: int = Field(..., description="User ID")
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
