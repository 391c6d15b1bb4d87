from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.user import UserRole


class UserRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    name: str
    email: str
    role: UserRole
    password_hash: str


class UserPublic(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    name: str
    email: str
    role: UserRole

    @classmethod
    def of(cls, user: UserRecord) -> "UserPublic":
        return cls(id=user.id, username=user.username, name=user.name, email=user.email, role=user.role)
