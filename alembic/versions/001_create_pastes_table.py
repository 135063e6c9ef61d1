"""Create pastes table (schema v0)

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

The original four-column layout. Databases created by GET /install already
have schema v1; stamp those with `alembic stamp 002` instead of upgrading.

Rollback: downgrade() drops the table and every paste in it.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "pastes",
        sa.Column("uuid", sa.String(36), primary_key=True),
        # "%Y-%m-%dT%H:%M:%S%z", always UTC
        sa.Column("date", sa.String(24), nullable=True),
        sa.Column("raw", sa.Text(), nullable=True),
        sa.Column("mode", sa.String(31), nullable=True),
    )
    op.create_index("ix_pastes_date", "pastes", ["date"])


def downgrade() -> None:
    op.drop_index("ix_pastes_date", table_name="pastes")
    op.drop_table("pastes")
