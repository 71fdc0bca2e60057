"""Initial schema: users, credentials, acronyms, categories, sessions.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    ]


def upgrade() -> None:
    # users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("profile_picture", sa.String(255), nullable=True),
        sa.Column("twitter_url", sa.String(255), nullable=True),
        sa.Column("user_type", sa.String(20), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    # tokens
    op.create_table(
        "tokens",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("value", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_tokens_user_id_users", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_tokens"),
    )
    op.create_index("ix_tokens_value", "tokens", ["value"], unique=True)
    op.create_index("ix_tokens_user_id", "tokens", ["user_id"])

    # password_reset_tokens
    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("value", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_password_reset_tokens_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_password_reset_tokens"),
    )
    op.create_index(
        "ix_password_reset_tokens_value", "password_reset_tokens", ["value"], unique=True
    )
    op.create_index("ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"])

    # acronyms
    op.create_table(
        "acronyms",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("short", sa.String(255), nullable=False),
        sa.Column("long", sa.String(1024), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_acronyms_user_id_users", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_acronyms"),
    )
    op.create_index("ix_acronyms_short", "acronyms", ["short"])
    op.create_index("ix_acronyms_user_id", "acronyms", ["user_id"])

    # categories
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
    )
    op.create_index("ix_categories_name", "categories", ["name"], unique=True)

    # acronym_category_pivot
    op.create_table(
        "acronym_category_pivot",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("acronym_id", sa.Integer, nullable=False),
        sa.Column("category_id", sa.Integer, nullable=False),
        sa.ForeignKeyConstraint(
            ["acronym_id"],
            ["acronyms.id"],
            name="fk_acronym_category_pivot_acronym_id_acronyms",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_acronym_category_pivot_category_id_categories",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_acronym_category_pivot"),
        sa.UniqueConstraint("acronym_id", "category_id", name="uq_acronym_category_pair"),
    )
    op.create_index(
        "ix_acronym_category_pivot_acronym_id", "acronym_category_pivot", ["acronym_id"]
    )
    op.create_index(
        "ix_acronym_category_pivot_category_id", "acronym_category_pivot", ["category_id"]
    )

    # web_sessions
    op.create_table(
        "web_sessions",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("reset_user_id", sa.String(36), nullable=True),
        sa.Column("csrf_token", sa.String(64), nullable=True),
        sa.Column("oauth_state", sa.String(64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_web_sessions_user_id_users", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["reset_user_id"],
            ["users.id"],
            name="fk_web_sessions_reset_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_web_sessions"),
    )
    op.create_index("ix_web_sessions_user_id", "web_sessions", ["user_id"])


def downgrade() -> None:
    op.drop_table("web_sessions")
    op.drop_table("acronym_category_pivot")
    op.drop_table("categories")
    op.drop_table("acronyms")
    op.drop_table("password_reset_tokens")
    op.drop_table("tokens")
    op.drop_table("users")
