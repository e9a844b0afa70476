from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SECRET_BYTES = 32


def _check_secret(value: str) -> str:
    if len(value.encode("utf-8")) < MIN_SECRET_BYTES:
        raise ValueError(f"secret must be at least {MIN_SECRET_BYTES} bytes")
    return value


class SSOSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SSO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shared with the portal out-of-band; signs SSO tokens.
    JWT_SECRET: str
    # App-local; signs app session tokens. Falls back to JWT_SECRET.
    APP_SESSION_SECRET: str | None = None
    TOKEN_TTL_SECONDS: int = Field(default=5 * 60, ge=1)
    SESSION_TTL_SECONDS: int = Field(default=7 * 24 * 60 * 60, ge=1)
    CLOCK_SKEW_SECONDS: int = Field(default=5, ge=0, le=60)
    SESSION_COOKIE_NAME: str = "app_session"
    COOKIE_SECURE: bool = True
    PORTAL_LOGIN_URL: str = "http://localhost:3000/login"

    @field_validator("JWT_SECRET")
    @classmethod
    def _check_jwt_secret(cls, value: str) -> str:
        return _check_secret(value)

    @field_validator("APP_SESSION_SECRET")
    @classmethod
    def _check_session_secret(cls, value: str | None) -> str | None:
        return _check_secret(value) if value is not None else None

    @field_validator("SESSION_TTL_SECONDS")
    @classmethod
    def _session_outlives_token(cls, value: int, info) -> int:
        token_ttl = info.data.get("TOKEN_TTL_SECONDS")
        if token_ttl is not None and value <= token_ttl:
            raise ValueError("SESSION_TTL_SECONDS must exceed TOKEN_TTL_SECONDS")
        return value
