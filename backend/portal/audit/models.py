from datetime import datetime

from sqlalchemy import DateTime, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base


class OpsAuditLog(Base):
    __tablename__ = "ops_audit_logs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # e.g. opl_abc123
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    actor_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metadata_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


Index("ix_ops_audit_client_created_at", OpsAuditLog.client_id, OpsAuditLog.created_at)
