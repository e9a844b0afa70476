"""create portal tables

Revision ID: 5b2e8c1d7a90
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5b2e8c1d7a90"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("is_hyper", sa.Boolean(), nullable=False),
        sa.Column("account_locked", sa.Boolean(), nullable=False),
        sa.Column("must_reset_password", sa.Boolean(), nullable=False),
        sa.Column("reset_required_at", sa.DateTime(), nullable=True),
        sa.Column("password_changed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "recovery_tokens",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("token_hash", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_recovery_tokens_user_id"), "recovery_tokens", ["user_id"], unique=False)
    op.create_index(op.f("ix_recovery_tokens_token_hash"), "recovery_tokens", ["token_hash"], unique=True)

    op.create_table(
        "clients",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "apps",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=1024), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_apps_slug"), "apps", ["slug"], unique=True)

    op.create_table(
        "client_users",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "user_id", name="uq_client_users_client_user"),
    )
    op.create_index(op.f("ix_client_users_client_id"), "client_users", ["client_id"], unique=False)
    op.create_index(op.f("ix_client_users_user_id"), "client_users", ["user_id"], unique=False)

    op.create_table(
        "user_apps",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_apps_user_id"), "user_apps", ["user_id"], unique=False)
    op.create_index(op.f("ix_user_apps_app_id"), "user_apps", ["app_id"], unique=False)
    op.create_index(op.f("ix_user_apps_client_id"), "user_apps", ["client_id"], unique=False)
    op.create_index(
        "ix_user_apps_user_app_client", "user_apps", ["user_id", "app_id", "client_id"], unique=False
    )

    op.create_table(
        "ops_audit_logs",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=True),
        sa.Column("actor_user_id", sa.String(length=64), nullable=False),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("target_user_id", sa.String(length=64), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_ops_audit_logs_client_id"), "ops_audit_logs", ["client_id"], unique=False)
    op.create_index(op.f("ix_ops_audit_logs_actor_user_id"), "ops_audit_logs", ["actor_user_id"], unique=False)
    op.create_index(op.f("ix_ops_audit_logs_action_type"), "ops_audit_logs", ["action_type"], unique=False)
    op.create_index("ix_ops_audit_client_created_at", "ops_audit_logs", ["client_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_ops_audit_client_created_at", table_name="ops_audit_logs")
    op.drop_index(op.f("ix_ops_audit_logs_action_type"), table_name="ops_audit_logs")
    op.drop_index(op.f("ix_ops_audit_logs_actor_user_id"), table_name="ops_audit_logs")
    op.drop_index(op.f("ix_ops_audit_logs_client_id"), table_name="ops_audit_logs")
    op.drop_table("ops_audit_logs")

    op.drop_index("ix_user_apps_user_app_client", table_name="user_apps")
    op.drop_index(op.f("ix_user_apps_client_id"), table_name="user_apps")
    op.drop_index(op.f("ix_user_apps_app_id"), table_name="user_apps")
    op.drop_index(op.f("ix_user_apps_user_id"), table_name="user_apps")
    op.drop_table("user_apps")

    op.drop_index(op.f("ix_client_users_user_id"), table_name="client_users")
    op.drop_index(op.f("ix_client_users_client_id"), table_name="client_users")
    op.drop_table("client_users")

    op.drop_index(op.f("ix_apps_slug"), table_name="apps")
    op.drop_table("apps")

    op.drop_table("clients")

    op.drop_index(op.f("ix_recovery_tokens_token_hash"), table_name="recovery_tokens")
    op.drop_index(op.f("ix_recovery_tokens_user_id"), table_name="recovery_tokens")
    op.drop_table("recovery_tokens")

    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
