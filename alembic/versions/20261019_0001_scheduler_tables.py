"""scheduler tables: availability slots, weekly templates, bookings, outcomes

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    # Profile-service views
    op.create_table(
        'specialist_profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, unique=True),
        sa.Column('moderation_status', sa.String(16), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
    )
    op.create_table(
        'children',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('parent_id', sa.String(64), nullable=False),
    )
    op.create_index('ix_children_parent_id', 'children', ['parent_id'])

    op.create_table(
        'availability_slots',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('specialist_id', sa.String(64), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_booked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('note', sa.String(200)),
        *_timestamps(),
        sa.UniqueConstraint('specialist_id', 'starts_at', name='uq_availability_slots_specialist_id_starts_at'),
        sa.CheckConstraint('ends_at > starts_at', name='ck_availability_slots_time'),
    )
    op.create_index(
        'ix_availability_slots_specialist_range',
        'availability_slots',
        ['specialist_id', 'starts_at', 'ends_at'],
    )

    op.create_table(
        'weekly_templates',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('specialist_id', sa.String(64), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        'weekly_template_slots',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'template_id', sa.Uuid(),
            sa.ForeignKey('weekly_templates.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('day_of_week', sa.SmallInteger(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('note', sa.String(200)),
        sa.UniqueConstraint(
            'template_id', 'day_of_week', 'start_time', 'end_time',
            name='uq_weekly_template_slots_day_range',
        ),
        sa.CheckConstraint('end_time > start_time', name='ck_weekly_template_slots_time'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_weekly_template_slots_dow'),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('specialist_id', sa.String(64), nullable=False),
        sa.Column('parent_id', sa.String(64), nullable=False),
        sa.Column('child_id', sa.Uuid(), sa.ForeignKey('children.id')),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('message_from_parent', sa.String(1000)),
        sa.Column('availability_slot_id', sa.Uuid(), sa.ForeignKey('availability_slots.id')),
        *_timestamps(),
        sa.CheckConstraint('ends_at > starts_at', name='ck_bookings_time'),
    )
    op.create_index('ix_bookings_specialist_id_starts_at', 'bookings', ['specialist_id', 'starts_at'])
    op.create_index('ix_bookings_parent_id_starts_at', 'bookings', ['parent_id', 'starts_at'])
    op.create_index('ix_bookings_availability_slot_id', 'bookings', ['availability_slot_id'])

    op.create_table(
        'booking_outcomes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'booking_id', sa.Uuid(),
            sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, unique=True,
        ),
        sa.Column('specialist_id', sa.String(64), nullable=False),
        sa.Column('parent_id', sa.String(64), nullable=False),
        sa.Column('summary', sa.String(4000), nullable=False),
        sa.Column('recommendations', sa.String(4000)),
        sa.Column('next_steps', sa.String(1000)),
        sa.Column('private_notes', sa.String(4000)),
        sa.Column('parent_acknowledged_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('booking_outcomes')
    op.drop_index('ix_bookings_availability_slot_id', table_name='bookings')
    op.drop_index('ix_bookings_parent_id_starts_at', table_name='bookings')
    op.drop_index('ix_bookings_specialist_id_starts_at', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('weekly_template_slots')
    op.drop_table('weekly_templates')
    op.drop_index('ix_availability_slots_specialist_range', table_name='availability_slots')
    op.drop_table('availability_slots')
    op.drop_index('ix_children_parent_id', table_name='children')
    op.drop_table('children')
    op.drop_table('specialist_profiles')
