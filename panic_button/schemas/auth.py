"""Auth schemas."""

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """Login or refresh response from the backend."""

    access_token: str
    refresh_token: str
    expires_in: int = Field(gt=0)  # seconds


class CredentialsStatus(BaseModel):
    authenticated: bool
    expires_at: float | None
