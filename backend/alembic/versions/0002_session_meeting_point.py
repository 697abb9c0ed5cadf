"""sessions: suggested meeting point

Revision ID: 0002_session_meeting_point
Revises: 0001_initial_schema
Create Date: 2026-10-17 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_session_meeting_point"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("sessions") as batch:
        batch.add_column(sa.Column("meeting_longitude", sa.Float(), nullable=True))
        batch.add_column(sa.Column("meeting_latitude", sa.Float(), nullable=True))
        batch.add_column(sa.Column("meeting_point_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("sessions") as batch:
        batch.drop_column("meeting_point_at")
        batch.drop_column("meeting_latitude")
        batch.drop_column("meeting_longitude")
