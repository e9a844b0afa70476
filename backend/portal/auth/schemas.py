from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    # prevent bcrypt crash on long input
    password: str = Field(min_length=1, max_length=72)
    redirect: str | None = Field(default=None, max_length=2048)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    must_reset_password: bool
    next: str


class MembershipOut(BaseModel):
    client_id: str
    role: str


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    is_hyper: bool
    client_id: str | None = None
    role: str | None = None
    must_reset_password: bool
    memberships: list[MembershipOut] = Field(default_factory=list)


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=72)


class ResetPasswordResponse(BaseModel):
    ok: bool = True
    state: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class RecoverRequest(BaseModel):
    token: str = Field(min_length=20, max_length=256)
    new_password: str = Field(min_length=8, max_length=72)


class OkResponse(BaseModel):
    ok: bool = True
    message: str | None = None
