"""Create users and clipboard_items tables

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  Initial schema: accounts and their clipboard items.
How:   Portable column types (string UUIDs, TIMESTAMP WITH TIME ZONE) so the
       same migration runs on PostgreSQL and SQLite.

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        # Empty string marks a legacy unsalted hash
        sa.Column("password_salt", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("session_token", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "clipboard_items",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("client_id", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default=sa.text("'text'")),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        # Target of the single-item sync upsert
        sa.UniqueConstraint("user_id", "client_id", name="uq_clipboard_items_user_client"),
    )
    op.create_index("ix_clipboard_items_user_id", "clipboard_items", ["user_id"])
    op.create_index(
        "idx_clipboard_items_user_timestamp",
        "clipboard_items",
        ["user_id", sa.text("timestamp DESC")],
    )
    op.create_index("idx_clipboard_items_user_updated", "clipboard_items", ["user_id", "updated_at"])
    op.create_index("idx_clipboard_items_user_created", "clipboard_items", ["user_id", "created_at"])
    op.create_index("idx_clipboard_items_type", "clipboard_items", ["type"])


def downgrade() -> None:
    op.drop_index("idx_clipboard_items_type", table_name="clipboard_items")
    op.drop_index("idx_clipboard_items_user_created", table_name="clipboard_items")
    op.drop_index("idx_clipboard_items_user_updated", table_name="clipboard_items")
    op.drop_index("idx_clipboard_items_user_timestamp", table_name="clipboard_items")
    op.drop_index("ix_clipboard_items_user_id", table_name="clipboard_items")
    op.drop_table("clipboard_items")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
