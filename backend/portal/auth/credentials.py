"""Credential Store: identities, password checks, per-user flags, recovery links.

Reads go to the database on every call; nothing here is cached across
requests.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from portal.auth.models import RecoveryToken, User
from portal.auth.repository import RecoveryTokenRepository, UserRepository
from portal.auth.security import hash_password, hash_token, verify_password
from portal.core.config import settings
from portal.core.errors import AccountLocked, BadRequest, NotFound, Unauthenticated

logger = logging.getLogger(__name__)

METADATA_FIELDS = ("first_name", "last_name", "account_locked", "must_reset_password")


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    is_hyper: bool
    account_locked: bool
    must_reset_password: bool

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            email=user.email,
            is_hyper=user.is_hyper,
            account_locked=user.account_locked,
            must_reset_password=user.must_reset_password,
        )


def _metadata(user: User) -> dict:
    return {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "account_locked": user.account_locked,
        "must_reset_password": user.must_reset_password,
    }


def reset_flag_is_stale(user: User) -> bool:
    """The flag is stale when the password changed after it was set."""
    return bool(
        user.must_reset_password
        and user.password_changed_at is not None
        and user.reset_required_at is not None
        and user.password_changed_at > user.reset_required_at
    )


class CredentialStore:
    def __init__(self, db: AsyncSession) -> None:
        self.users = UserRepository(db)
        self.recovery = RecoveryTokenRepository(db)

    async def _require_user(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if not user:
            raise NotFound("User not found")
        return user

    async def find_by_email(self, email: str) -> User | None:
        return await self.users.get_by_email(email)

    async def verify_credentials(self, email: str, password: str) -> Identity:
        user = await self.users.get_by_email(email)
        password_ok = False
        if user and user.password_hash:
            try:
                password_ok = verify_password(password, user.password_hash)
            except ValueError:
                password_ok = False

        if not user or not password_ok:
            raise Unauthenticated("Invalid credentials")

        # Checked after the password so a wrong guess cannot probe lock state.
        if user.account_locked:
            raise AccountLocked()

        return Identity.from_user(user)

    async def create_user(
        self,
        *,
        email: str,
        password: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        must_reset_password: bool = False,
        is_hyper: bool = False,
    ) -> User:
        now = datetime.utcnow()
        try:
            pw_hash = hash_password(password) if password else None
        except ValueError as exc:
            raise BadRequest(str(exc)) from exc

        user = User(
            id=f"u_{secrets.token_hex(10)}",
            email=email.strip().lower(),
            password_hash=pw_hash,
            first_name=first_name,
            last_name=last_name,
            is_hyper=is_hyper,
            account_locked=False,
            must_reset_password=must_reset_password,
            reset_required_at=now if must_reset_password else None,
            password_changed_at=None,
            created_at=now,
        )
        return await self.users.add(user)

    async def get_metadata(self, user_id: str) -> dict:
        return _metadata(await self._require_user(user_id))

    async def set_metadata(self, user_id: str, **changes) -> dict:
        unknown = set(changes) - set(METADATA_FIELDS)
        if unknown:
            raise BadRequest(f"Unknown metadata fields: {', '.join(sorted(unknown))}")

        user = await self._require_user(user_id)
        for key, value in changes.items():
            setattr(user, key, value)
        if changes.get("must_reset_password") is True:
            user.reset_required_at = datetime.utcnow()
        await self.users.save(user)
        return _metadata(user)

    async def set_email(self, user_id: str, email: str) -> None:
        user = await self._require_user(user_id)
        user.email = email.strip().lower()
        await self.users.save(user)

    async def set_password(self, user_id: str, password: str, *, temporary: bool = False) -> None:
        """Store a new password hash.

        ``temporary`` marks an administrator-issued password, which puts the
        account into the must-reset state in the same write.
        """
        user = await self._require_user(user_id)
        try:
            user.password_hash = hash_password(password)
        except ValueError as exc:
            raise BadRequest(str(exc)) from exc

        now = datetime.utcnow()
        user.password_changed_at = now
        if temporary:
            user.must_reset_password = True
            # Strictly after password_changed_at so the flag is not read as stale.
            user.reset_required_at = now + timedelta(microseconds=1)
        await self.users.save(user)

    async def correct_stale_reset_flag(self, user_id: str) -> bool:
        user = await self._require_user(user_id)
        if not reset_flag_is_stale(user):
            return False
        user.must_reset_password = False
        await self.users.save(user)
        logger.info("Cleared stale must_reset_password flag user_id=%s", user_id)
        return True

    async def issue_recovery_link(self, email: str) -> tuple[User, str] | None:
        user = await self.users.get_by_email(email)
        if not user:
            return None

        raw = secrets.token_urlsafe(32)
        now = datetime.utcnow()
        await self.recovery.add(
            RecoveryToken(
                id=f"rec_{secrets.token_hex(10)}",
                user_id=user.id,
                token_hash=hash_token(raw),
                expires_at=now + timedelta(minutes=settings.RECOVERY_TOKEN_EXP_MINUTES),
                consumed_at=None,
                created_at=now,
            )
        )
        base = settings.FRONTEND_URL.rstrip("/")
        link = f"{base}{settings.RESET_PASSWORD_PATH}?{urlencode({'token': raw})}"
        return user, link

    async def consume_recovery_link(self, raw_token: str, new_password: str) -> Identity:
        now = datetime.utcnow()
        row = await self.recovery.get_active(hash_token(raw_token), now=now)
        if not row:
            raise BadRequest("Invalid or expired recovery link")

        await self.set_password(row.user_id, new_password)
        await self.recovery.mark_consumed(row, now=now)
        await self.set_metadata(row.user_id, must_reset_password=False)
        return Identity.from_user(await self._require_user(row.user_id))

