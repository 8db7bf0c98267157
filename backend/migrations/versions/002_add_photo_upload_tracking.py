"""Add is_uploaded and uploaded_at to photos

Revision ID: 002
Revises: 001
Create Date: 2026-02-26 12:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    columns = [col['name'] for col in inspector.get_columns('photos')]

    if 'is_uploaded' not in columns:
        op.add_column('photos', sa.Column('is_uploaded', sa.Boolean(), nullable=False, server_default=sa.false()))
    if 'uploaded_at' not in columns:
        op.add_column('photos', sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=True))

    indexes = [idx['name'] for idx in inspector.get_indexes('photos')]
    if 'ix_photos_event_uploaded' not in indexes:
        op.create_index('ix_photos_event_uploaded', 'photos', ['event_id', 'is_uploaded'])


def downgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)

    indexes = [idx['name'] for idx in inspector.get_indexes('photos')]
    if 'ix_photos_event_uploaded' in indexes:
        op.drop_index('ix_photos_event_uploaded', table_name='photos')

    columns = [col['name'] for col in inspector.get_columns('photos')]
    if 'uploaded_at' in columns:
        op.drop_column('photos', 'uploaded_at')
    if 'is_uploaded' in columns:
        op.drop_column('photos', 'is_uploaded')
