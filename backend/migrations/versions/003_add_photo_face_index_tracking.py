"""Add face_index_status and face_index_attempted_at to photos

Revision ID: 003
Revises: 002
Create Date: 2026-03-09 09:15:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    columns = [col['name'] for col in inspector.get_columns('photos')]

    if 'face_index_status' not in columns:
        op.add_column('photos', sa.Column('face_index_status', sa.String(30), nullable=True))
    if 'face_index_attempted_at' not in columns:
        op.add_column('photos', sa.Column('face_index_attempted_at', sa.DateTime(timezone=True), nullable=True))

    # Photos that already hold a face record were indexed
    op.execute(
        "UPDATE photos SET face_index_status = 'indexed' "
        "WHERE id IN (SELECT photo_id FROM face_records)"
    )


def downgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    columns = [col['name'] for col in inspector.get_columns('photos')]

    if 'face_index_attempted_at' in columns:
        op.drop_column('photos', 'face_index_attempted_at')
    if 'face_index_status' in columns:
        op.drop_column('photos', 'face_index_status')
