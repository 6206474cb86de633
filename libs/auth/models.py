import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    DELIVERY = "delivery"


class AuthUser(BaseModel):
    """
    Verified identity resolved from a bearer token issued by the auth service.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = Role.CUSTOMER.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value
