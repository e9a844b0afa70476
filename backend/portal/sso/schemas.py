from pydantic import BaseModel


class SSOIssueResponse(BaseModel):
    token: str
    redirect_url: str


class PortalAppOut(BaseModel):
    id: str
    slug: str
    name: str
    domain: str
    role: str


class PortalAppsResponse(BaseModel):
    client_id: str | None = None
    apps: list[PortalAppOut]
