"""normalize legacy underscore status values

Revision ID: 20251020_080000
Revises: 20251019_090000
Create Date: 2025-10-20 08:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20251020_080000'
down_revision: Union[str, None] = '20251019_090000'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEGACY_STATUSES = {'in_progress': 'in-progress', 'no_show': 'no-show'}


def upgrade() -> None:
    """Rewrite underscore spellings so the overlap constraint and status filters see them"""
    appointments = sa.table('appointments', sa.column('status', sa.String))
    for legacy, canonical in LEGACY_STATUSES.items():
        op.execute(
            appointments.update()
            .where(appointments.c.status == legacy)
            .values(status=canonical)
        )


def downgrade() -> None:
    # Canonical values are valid under every earlier revision
    pass
