from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockledger.models.user import UserRole


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(min_length=1, max_length=320, description="Email or username")
    password: str = Field(min_length=1, max_length=128)

    @model_validator(mode="before")
    @classmethod
    def accept_username_or_email(cls, data):
        if not isinstance(data, dict) or data.get("identity"):
            return data
        for key in ("username", "email"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return {**data, "identity": value}
        return data

    @field_validator("identity")
    @classmethod
    def normalize_identity(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("identity must not be empty")
        return normalized


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserCreate(BaseModel):
    email: str = Field(min_length=5, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    username: str = Field(min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    password: str = Field(min_length=10, max_length=128)
    full_name: str | None = Field(default=None, max_length=120)
    role: UserRole = UserRole.STOREKEEPER

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_").replace(" ", "_")
        return value


class UserOut(BaseModel):
    id: int
    email: str
    username: str
    full_name: str | None
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
