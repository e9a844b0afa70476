from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from portal.authz.gate import AppRole


class MemberOut(BaseModel):
    id: str                       # membership id
    user_id: str
    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str
    account_locked: bool = False
    must_reset_password: bool = False
    created_at: datetime


class MembersListResponse(BaseModel):
    client_id: str
    members: list[MemberOut]


class InviteRequest(BaseModel):
    email: EmailStr
    app_slugs: list[str] = Field(default_factory=list, max_length=50)
    role: AppRole = "user"


class InviteResponse(BaseModel):
    ok: bool = True
    user_id: str
    created: bool
    granted: list[str] = Field(default_factory=list)


class AddByEmailRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: str = Field(default="agent", max_length=32)
    # temporary password; the user must replace it at first login
    password: str | None = Field(default=None, min_length=8, max_length=72)

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("must not be blank")
        return cleaned


class AddByEmailResponse(BaseModel):
    ok: bool = True
    created: bool = False
    note: str | None = None


class MemberUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    role: str | None = Field(default=None, max_length=32)
    password: str | None = Field(default=None, min_length=8, max_length=72)
    account_locked: bool | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def _non_empty_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("cannot be empty")
        return cleaned


class OpsAuditEntryOut(BaseModel):
    id: str
    client_id: str | None = None
    actor_user_id: str
    action_type: str
    target_user_id: str | None = None
    metadata_json: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class OpsAuditListResponse(BaseModel):
    client_id: str
    items: list[OpsAuditEntryOut]
