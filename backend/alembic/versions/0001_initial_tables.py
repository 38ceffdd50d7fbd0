"""Create secrets and request_log tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "secrets",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("ciphertext", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_secrets_created_at", "secrets", ["created_at"])

    op.create_table(
        "request_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("client_identity", sa.String(255), nullable=False),
        sa.Column("ts", sa.DateTime, nullable=False),
    )
    op.create_index("ix_request_log_ts", "request_log", ["ts"])
    op.create_index(
        "ix_request_log_client_identity_ts", "request_log", ["client_identity", "ts"]
    )


def downgrade() -> None:
    op.drop_index("ix_request_log_client_identity_ts", table_name="request_log")
    op.drop_index("ix_request_log_ts", table_name="request_log")
    op.drop_table("request_log")

    op.drop_index("ix_secrets_created_at", table_name="secrets")
    op.drop_table("secrets")
