"""course versions come from a sequence

Revision ID: 7c2e4a91d5b3
Revises: 3b1f6c2d9a40
Create Date: 2026-10-19 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e4a91d5b3"
down_revision: str | Sequence[str] | None = "3b1f6c2d9a40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute(sa.schema.CreateSequence(sa.Sequence("course_version_seq")))
    # Start above every version already handed out.
    op.execute(
        "SELECT setval('course_version_seq', "
        "COALESCE((SELECT max(version) FROM courses), 0) + 1, false)"
    )


def downgrade() -> None:
    op.execute(sa.schema.DropSequence(sa.Sequence("course_version_seq")))
