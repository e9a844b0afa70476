"""Password-reset-required state machine.

    NORMAL --(admin temp password / created with password)--> MUST_RESET
    MUST_RESET --(new password stored)--> RESET_IN_PROGRESS
    RESET_IN_PROGRESS --(flag cleared)--> NORMAL

The password write always lands before the flag clear. If the clear fails,
the account stays in RESET_IN_PROGRESS: the user is let in, and the stale
flag is cleared on the next login check.
"""

import enum
import logging

from portal.auth.credentials import CredentialStore, reset_flag_is_stale
from portal.auth.models import User
from portal.core.errors import Internal

logger = logging.getLogger(__name__)


class ResetState(str, enum.Enum):
    NORMAL = "normal"
    MUST_RESET = "must_reset"
    RESET_IN_PROGRESS = "reset_in_progress"


def reset_state(user: User) -> ResetState:
    if not user.must_reset_password:
        return ResetState.NORMAL
    if reset_flag_is_stale(user):
        return ResetState.RESET_IN_PROGRESS
    return ResetState.MUST_RESET


def reset_required(user: User) -> bool:
    return reset_state(user) is ResetState.MUST_RESET


async def complete_password_reset(store: CredentialStore, user_id: str, new_password: str) -> ResetState:
    # A failure here propagates and leaves the flag untouched.
    await store.set_password(user_id, new_password)

    try:
        await store.set_metadata(user_id, must_reset_password=False)
    except Internal:
        logger.warning("Password updated but reset flag not cleared user_id=%s", user_id)
        return ResetState.RESET_IN_PROGRESS

    logger.info("Password reset completed user_id=%s", user_id)
    return ResetState.NORMAL
