from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from portal.authz.gate import AppRole


class ClientCreate(BaseModel):
    id: str | None = Field(default=None, min_length=3, max_length=64, description="Client ID like c_acme")
    name: str = Field(min_length=2, max_length=255)


class ClientOut(BaseModel):
    id: str
    name: str
    created_at: datetime


class AppCreate(BaseModel):
    slug: str = Field(min_length=2, max_length=64, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(min_length=2, max_length=255)
    domain: str = Field(min_length=8, max_length=1024, description="https://chat.example.com")

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned.startswith(("https://", "http://")):
            raise ValueError("domain must be an http(s) origin")
        return cleaned


class AppOut(BaseModel):
    id: str
    slug: str
    name: str
    domain: str


class GrantCreate(BaseModel):
    user_id: str = Field(min_length=3, max_length=64)
    app_slug: str = Field(min_length=2, max_length=64)
    role: AppRole = "user"


class GrantOut(BaseModel):
    id: str
    user_id: str
    app_id: str
    app_slug: str
    client_id: str | None = None
    role: str
    created_at: datetime


class GrantsListResponse(BaseModel):
    client_id: str
    grants: list[GrantOut]
