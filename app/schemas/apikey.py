"""API key schemas."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from app.models.api_key import ApiScope


class ApiKeyCreate(BaseModel):
    name: str
    scope: ApiScope
    days_valid: int | None = 90

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name cannot be blank")
        return value.strip()


class ApiKeyCreated(BaseModel):
    """Returned once by the create endpoint; the raw key is never shown again."""

    id: int
    name: str
    scope: ApiScope
    key: str
    expires_at: datetime | None


class ApiKeyRead(BaseModel):
    id: int
    name: str
    prefix: str
    scope: ApiScope
    is_active: bool
    created_at: datetime
    expires_at: datetime | None
    last_used_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
