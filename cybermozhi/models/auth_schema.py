from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

# Request Schemas
class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8)
    email: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName", min_length=2, max_length=50)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

class LoginRequest(BaseModel):
    username: str
    password: str

class RefreshTokenRequest(BaseModel):
    refresh_token: str

# Response Schemas
class MessageResponse(BaseModel):
    message: str

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until token expires

class UserResponse(BaseModel):
    user_id: str
    username: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None

class AuthenticatedUserResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
