"""
Caller Identity

Authentication happens outside the cashbook. Every mutating or listing
call receives an already-resolved Caller and the cashbook trusts it.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    INVENTORY = "INVENTORY"
    VIEWER = "VIEWER"


class Caller(BaseModel):
    """The resolved identity behind a request."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    username: str = Field(default="", max_length=100)
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
