from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


USERNAME_PATTERN = r"^[A-Za-z0-9_.]+$"


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=USERNAME_PATTERN)
    full_name: str = Field(..., alias="fullName", min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    class Config:
        populate_by_name = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Full name cannot be empty")
        return v.strip()


class SignupResponse(BaseModel):
    email: EmailStr


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$", description="6-digit code from the verification email")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    username_or_email: str = Field(..., alias="usernameOrEmail", min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    class Config:
        populate_by_name = True


class ForgotPasswordRequest(BaseModel):
    username_or_email: str = Field(..., alias="usernameOrEmail", min_length=1, max_length=255)

    class Config:
        populate_by_name = True


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=128)
    confirm_password: str = Field(..., alias="confirmPassword", min_length=1, max_length=128)

    class Config:
        populate_by_name = True


class ResendVerificationRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class UserResponse(BaseModel):
    id: int
    username: str
    full_name: str = Field(..., alias="fullName")
    email: str
    profile_image_url: Optional[str] = Field(None, alias="profileImageURL")
    is_verified: bool = Field(..., alias="isVerified")

    class Config:
        from_attributes = True
        populate_by_name = True


class AuthResponse(UserResponse):
    token: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class LikeResponse(BaseModel):
    liked: bool


class FollowResponse(BaseModel):
    following: bool
