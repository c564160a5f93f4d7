from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator
import re


# Shared properties
class ProfileBase(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None


# Properties to receive on registration. The role is never taken from the client.
class ProfileCreate(ProfileBase):
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v):
        if not re.search(r'[A-Z]', v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r'[a-z]', v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r'[0-9]', v):
            raise ValueError("Password must contain at least one digit")
        return v


# Properties to return to client
class Profile(ProfileBase):
    id: UUID
    role: str
    is_active: bool

    class Config:
        from_attributes = True


# Token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# Token payload
class TokenPayload(BaseModel):
    sub: Optional[UUID] = None
