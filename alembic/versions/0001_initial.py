"""users and refresh token records

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "app_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("session_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_app_users_email"), "app_users", ["email"], unique=True)

    op.create_table(
        "app_refresh_tokens",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("family_id", sa.String(length=36), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("replaced_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["app_users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token_hash", name="uq_app_refresh_tokens_token_hash"),
    )
    op.create_index(op.f("ix_app_refresh_tokens_user_id"), "app_refresh_tokens", ["user_id"], unique=False)
    op.create_index(op.f("ix_app_refresh_tokens_family_id"), "app_refresh_tokens", ["family_id"], unique=False)
    op.create_index(
        "uq_app_refresh_tokens_active_family",
        "app_refresh_tokens",
        ["user_id", "family_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_index("uq_app_refresh_tokens_active_family", table_name="app_refresh_tokens")
    op.drop_index(op.f("ix_app_refresh_tokens_family_id"), table_name="app_refresh_tokens")
    op.drop_index(op.f("ix_app_refresh_tokens_user_id"), table_name="app_refresh_tokens")
    op.drop_table("app_refresh_tokens")
    op.drop_index(op.f("ix_app_users_email"), table_name="app_users")
    op.drop_table("app_users")
