import functools
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.errors import Conflict, Internal

logger = logging.getLogger(__name__)


class Repository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db


def translate_db_errors(fn):
    """Map driver failures to portal error kinds at the repository boundary.

    A failed read must surface as ``Internal``, never as "row not found".
    """

    @functools.wraps(fn)
    async def wrapper(self: Repository, *args, **kwargs):
        try:
            return await fn(self, *args, **kwargs)
        except IntegrityError as exc:
            await self.db.rollback()
            raise Conflict("Duplicate record") from exc
        except SQLAlchemyError as exc:
            logger.exception("Persistence failure in %s", fn.__qualname__)
            await self.db.rollback()
            raise Internal() from exc

    return wrapper
