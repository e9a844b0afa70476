from pydantic import BaseModel, EmailStr, Field


class BootstrapApp(BaseModel):
    slug: str = Field(min_length=2, max_length=64, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(min_length=2, max_length=255)
    domain: str = Field(min_length=8, max_length=1024)


class BootstrapRequest(BaseModel):
    admin_email: EmailStr
    admin_password: str = Field(min_length=8, max_length=72)
    admin_first_name: str | None = Field(default=None, max_length=100)
    admin_last_name: str | None = Field(default=None, max_length=100)
    client_id: str | None = Field(default=None, min_length=3, max_length=64, description="Client ID like c_acme")
    client_name: str | None = Field(default=None, min_length=2, max_length=255)
    apps: list[BootstrapApp] = Field(default_factory=list, max_length=20)
