from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    CLINICIAN = "clinician"
    ADMIN = "admin"


class Identity(BaseModel):
    """Verified identity claims of the caller.

    The catalog never owns or mutates users; it only reads these claims from
    a verified credential to decide whether a mutation is allowed.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    role: UserRole
    email: Optional[EmailStr] = None
    # Trust the user works for, when the identity provider supplies one.
    trust_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
