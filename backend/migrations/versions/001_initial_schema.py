"""Initial schema: users, events, photos, face records, purchases, stripe events

Revision ID: 001
Revises:
Create Date: 2026-02-26 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('email', sa.String(length=320), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='photographer'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'events' not in existing_tables:
        op.create_table(
            'events',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('owner_id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('slug', sa.String(length=255), nullable=False),
            sa.Column('event_date', sa.DateTime(timezone=True), nullable=False),
            sa.Column('venue', sa.String(length=255), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
            sa.Column('price_photo', sa.Integer(), nullable=False, server_default='500'),
            sa.Column('price_all', sa.Integer(), nullable=False, server_default='2500'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_events_slug', 'events', ['slug'], unique=True)
        op.create_index('ix_events_owner_id', 'events', ['owner_id'])

    if 'photos' not in existing_tables:
        op.create_table(
            'photos',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('event_id', sa.String(length=36), nullable=False),
            sa.Column('storage_key', sa.String(length=512), nullable=False),
            sa.Column('mime_type', sa.String(length=120), nullable=False),
            sa.Column('file_size', sa.Integer(), nullable=True),
            sa.Column('width', sa.Integer(), nullable=True),
            sa.Column('height', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
            sa.Column('captured_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('storage_key')
        )
        op.create_index('ix_photos_event_id', 'photos', ['event_id'])
        op.create_index('ix_photos_event_status', 'photos', ['event_id', 'status'])

    if 'face_records' not in existing_tables:
        op.create_table(
            'face_records',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('photo_id', sa.String(length=36), nullable=False),
            sa.Column('provider', sa.String(length=50), nullable=False),
            sa.Column('external_id', sa.String(length=255), nullable=False),
            sa.Column('confidence', sa.Float(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['photo_id'], ['photos.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('provider', 'external_id', name='uq_face_records_provider_external_id')
        )
        op.create_index('ix_face_records_photo_id', 'face_records', ['photo_id'])

    if 'purchases' not in existing_tables:
        op.create_table(
            'purchases',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('event_id', sa.String(length=36), nullable=False),
            sa.Column('buyer_email', sa.String(length=320), nullable=False),
            sa.Column('stripe_session_id', sa.String(length=255), nullable=False),
            sa.Column('stripe_payment_id', sa.String(length=255), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('payout_status', sa.String(length=50), nullable=False, server_default='pending'),
            sa.Column('amount_total', sa.Integer(), nullable=False),
            sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_purchases_stripe_session_id', 'purchases', ['stripe_session_id'], unique=True)
        op.create_index('ix_purchases_event_id', 'purchases', ['event_id'])

    if 'purchase_items' not in existing_tables:
        op.create_table(
            'purchase_items',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('purchase_id', sa.String(length=36), nullable=False),
            sa.Column('photo_id', sa.String(length=36), nullable=True),
            sa.Column('item_type', sa.String(length=20), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['photo_id'], ['photos.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_purchase_items_purchase_id', 'purchase_items', ['purchase_id'])
        op.create_index('ix_purchase_items_photo_id', 'purchase_items', ['photo_id'])

    if 'stripe_events' not in existing_tables:
        op.create_table(
            'stripe_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('payload', sa.JSON(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_stripe_events_id', 'stripe_events', ['id'])
        op.create_index('ix_stripe_events_stripe_event_id', 'stripe_events', ['stripe_event_id'], unique=True)
        op.create_index('ix_stripe_events_event_type', 'stripe_events', ['event_type'])


def downgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    for table in ('stripe_events', 'purchase_items', 'purchases', 'face_records', 'photos', 'events', 'users'):
        if table in existing_tables:
            op.drop_table(table)
