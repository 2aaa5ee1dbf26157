"""Pricing engine schema

Revision ID: 001
Create Date: 2026-10-19

Rooms, bookings, competitor surveys and hotel settings are normally owned by
the wider platform; they are created here so the engine can run standalone.
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Platform tables read by the engine
    op.create_table(
        'rooms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('base_price', sa.Float(), nullable=False),
        sa.Column('allotment', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('min_auto_price', sa.Float()),
        sa.Column('max_auto_price', sa.Float()),
        sa.Column('auto_pricing_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_bookings_room_id', 'bookings', ['room_id'])

    op.create_table(
        'booking_rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('room_number', sa.String(20)),
    )
    op.create_index('ix_booking_rooms_booking_id', 'booking_rooms', ['booking_id'])
    op.create_index('ix_booking_rooms_room_id', 'booking_rooms', ['room_id'])

    op.create_table(
        'competitor_rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('competitor_hotel', sa.String(100), nullable=False),
        sa.Column('room_name', sa.String(100), nullable=False),
        sa.Column('comparable_room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='SET NULL')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_competitor_rooms_comparable_room_id', 'competitor_rooms', ['comparable_room_id'])

    op.create_table(
        'competitor_price_surveys',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('competitor_room_id', sa.Integer(), sa.ForeignKey('competitor_rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('survey_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_competitor_survey_lookup', 'competitor_price_surveys', ['competitor_room_id', 'survey_date'])

    op.create_table(
        'hotel_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('hotel_name', sa.String(100)),
        sa.Column('whatsapp_number', sa.String(30)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Engine-owned tables
    op.create_table(
        'price_cache',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('base_price', sa.Float(), nullable=False),
        sa.Column('price_per_night', sa.Float(), nullable=False),
        sa.Column('occupancy_rate', sa.Float(), nullable=False),
        sa.Column('demand_score', sa.Float(), nullable=False),
        sa.Column('time_multiplier', sa.Float(), nullable=False),
        sa.Column('occupancy_multiplier', sa.Float(), nullable=False),
        sa.Column('competitor_multiplier', sa.Float(), nullable=False),
        sa.Column('demand_multiplier', sa.Float(), nullable=False),
        sa.Column('final_multiplier', sa.Float(), nullable=False),
        sa.Column('pricing_factors', sa.JSON()),
        sa.Column('calculated_at', sa.DateTime(), nullable=False),
        sa.Column('valid_until', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('room_id', 'date', name='uq_price_cache_room_date'),
    )
    op.create_index('ix_price_cache_valid_until', 'price_cache', ['valid_until'])

    op.create_table(
        'pricing_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('event_data', sa.JSON()),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('processing_started_at', sa.DateTime()),
        sa.Column('processing_completed_at', sa.DateTime()),
    )
    op.create_index('ix_pricing_events_id', 'pricing_events', ['id'])
    op.create_index('ix_pricing_events_room_id', 'pricing_events', ['room_id'])
    op.create_index('ix_pricing_events_queue', 'pricing_events', ['processed', 'status', 'priority', 'created_at'])

    op.create_table(
        'price_approvals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pricing_event_id', sa.Integer(), sa.ForeignKey('pricing_events.id')),
        sa.Column('old_price', sa.Float(), nullable=False),
        sa.Column('new_price', sa.Float(), nullable=False),
        sa.Column('price_change_percentage', sa.Float(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('auto_approve', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expires_at', sa.DateTime()),
        sa.Column('approved_by', sa.String(100)),
        sa.Column('resolved_at', sa.DateTime()),
        sa.Column('rejection_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_price_approvals_id', 'price_approvals', ['id'])
    op.create_index('ix_price_approvals_room_id', 'price_approvals', ['room_id'])
    op.create_index('ix_price_approvals_status', 'price_approvals', ['status'])

    op.create_table(
        'pricing_adjustment_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('previous_price', sa.Float(), nullable=False),
        sa.Column('new_price', sa.Float(), nullable=False),
        sa.Column('adjustment_reason', sa.Text()),
        sa.Column('adjustment_type', sa.String(30), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_pricing_adjustment_logs_id', 'pricing_adjustment_logs', ['id'])
    op.create_index('ix_pricing_adjustment_logs_room_id', 'pricing_adjustment_logs', ['room_id'])

    op.create_table(
        'pricing_metrics',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('metric_type', sa.String(30), nullable=False),
        sa.Column('metric_name', sa.String(100), nullable=False),
        sa.Column('metric_value', sa.Float(), nullable=False),
        sa.Column('room_id', sa.String(36)),
        sa.Column('previous_value', sa.Float()),
        sa.Column('change_percentage', sa.Float()),
        sa.Column('context_data', sa.JSON()),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_pricing_metrics_id', 'pricing_metrics', ['id'])
    op.create_index('ix_pricing_metrics_room_id', 'pricing_metrics', ['room_id'])
    op.create_index('ix_pricing_metrics_name_time', 'pricing_metrics', ['metric_name', 'recorded_at'])
    op.create_index('ix_pricing_metrics_type_time', 'pricing_metrics', ['metric_type', 'recorded_at'])

    op.create_table(
        'pricing_calculations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('cache_hit', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processing_time_ms', sa.Float()),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_pricing_calculations_id', 'pricing_calculations', ['id'])
    op.create_index('ix_pricing_calculations_created_at', 'pricing_calculations', ['created_at'])

    op.create_table(
        'pricing_alerts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('metric_name', sa.String(100), nullable=False),
        sa.Column('current_value', sa.Float(), nullable=False),
        sa.Column('threshold', sa.Float(), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('triggered_at', sa.DateTime(), nullable=False),
        sa.Column('resolved_at', sa.DateTime()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_pricing_alerts_id', 'pricing_alerts', ['id'])
    op.create_index('ix_pricing_alerts_active', 'pricing_alerts', ['metric_name', 'is_active'])

    op.create_table(
        'alert_cooldowns',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('metric_name', sa.String(100), nullable=False, unique=True),
        sa.Column('last_triggered_at', sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table('alert_cooldowns')
    op.drop_table('pricing_alerts')
    op.drop_table('pricing_calculations')
    op.drop_table('pricing_metrics')
    op.drop_table('pricing_adjustment_logs')
    op.drop_table('price_approvals')
    op.drop_table('pricing_events')
    op.drop_table('price_cache')
    op.drop_table('hotel_settings')
    op.drop_table('competitor_price_surveys')
    op.drop_table('competitor_rooms')
    op.drop_table('booking_rooms')
    op.drop_table('bookings')
    op.drop_table('rooms')
