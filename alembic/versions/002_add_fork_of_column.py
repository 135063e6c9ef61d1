"""Add fork_of column (schema v1)

Revision ID: 002
Revises: 001
Create Date: 2024-02-01 00:00:00.000000+00:00

Runs the same create/copy/drop/rename rebuild as POST /upgrade/1, but inside
the single transaction alembic opens for the revision.
"""

from typing import Sequence, Union

from alembic import op

from wastebin.services.migrations import MIGRATIONS, rebuild_table

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    rebuild_table(op, MIGRATIONS[1])


def downgrade() -> None:
    with op.batch_alter_table("pastes") as batch_op:
        batch_op.drop_column("fork_of")
