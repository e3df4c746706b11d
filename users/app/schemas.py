from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=2)

class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class UserPatch(BaseModel):
    """Only the keys the client sent are applied."""
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[EmailStr] = None

    @field_validator("*")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)

class UserOut(CamelModel):
    """Returned to the client (omits password)."""
    id: int
    email: str
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class UserEnvelope(CamelModel):
    user: UserOut

class UserSaved(UserEnvelope):
    message: str

class UserList(CamelModel):
    users: List[UserOut]

class LoginResult(CamelModel):
    message: str
    token: str
    user: UserOut
