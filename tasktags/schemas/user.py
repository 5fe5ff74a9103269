from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6)
    email: Optional[EmailStr] = None


class UserLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    user: UserOut


class LoginUser(BaseModel):
    id: int
    username: str
    email: Optional[str] = None


class Token(BaseModel):
    message: str = "Login successful"
    token: str
    user: LoginUser


class ProfileUpdate(BaseModel):
    email: Optional[EmailStr] = None

    @model_validator(mode="after")
    def check_fields(self):
        if not self.model_fields_set:
            raise ValueError("No update data provided.")
        return self


class PasswordChange(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class Message(BaseModel):
    message: str
