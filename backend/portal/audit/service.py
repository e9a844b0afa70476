import logging
import secrets
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.audit.models import OpsAuditLog
from portal.db.repository import Repository, translate_db_errors

logger = logging.getLogger(__name__)


class AuditRepository(Repository):
    @translate_db_errors
    async def add(self, row: OpsAuditLog) -> OpsAuditLog:
        self.db.add(row)
        await self.db.commit()
        return row

    @translate_db_errors
    async def list_for_client(self, client_id: str, *, limit: int = 100) -> list[OpsAuditLog]:
        result = await self.db.execute(
            select(OpsAuditLog)
            .where(OpsAuditLog.client_id == client_id)
            .order_by(OpsAuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


async def write_ops_audit_log(
    db: AsyncSession,
    *,
    client_id: str | None,
    actor_user_id: str,
    action_type: str,
    target_user_id: str | None = None,
    metadata: dict | None = None,
) -> OpsAuditLog:
    row = OpsAuditLog(
        id=f"opl_{secrets.token_hex(10)}",
        client_id=client_id,
        actor_user_id=actor_user_id,
        action_type=action_type,
        target_user_id=target_user_id,
        metadata_json=metadata or {},
        created_at=datetime.utcnow(),
    )
    await AuditRepository(db).add(row)
    logger.info(
        "Audit action=%s actor=%s target=%s client=%s",
        action_type,
        actor_user_id,
        target_user_id,
        client_id,
    )
    return row
