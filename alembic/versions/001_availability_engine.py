"""Availability engine schema

Revision ID: 001_availability_engine
Revises:
Create Date: 2026-10-19

Creates:
1. rooms - read-only room catalog view
2. reservations - stays with optimistic version counter
3. room_date_cells - one row per room per date (unique room_id + date)
4. block_periods / block_period_rooms / cell_block_claims
5. availability_rules
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_availability_engine'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ===========================================
    # 1. ROOMS
    # ===========================================
    op.create_table(
        'rooms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('room_code', sa.String(50), nullable=True),
        sa.Column('room_type', sa.String(50), nullable=True),
        sa.Column('floor_number', sa.Integer, nullable=True),
        sa.Column('base_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('max_occupancy', sa.Integer, nullable=False, server_default='2'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_rooms_company_active', 'rooms', ['company_id', 'is_active'])

    # ===========================================
    # 2. RESERVATIONS
    # ===========================================
    op.create_table(
        'reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('check_in_date', sa.Date, nullable=False),
        sa.Column('check_out_date', sa.Date, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('guest_name', sa.String(200), nullable=True),
        sa.Column('guests', sa.Integer, nullable=False, server_default='1'),
        sa.Column('total_price', sa.Numeric(10, 2), server_default='0'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('cancel_reason', sa.String(255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime, nullable=True),
        sa.Column('created_by_id', sa.String(36), nullable=True),
        sa.Column('updated_by_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
    )
    op.create_index('ix_reservations_room_dates', 'reservations', ['room_id', 'check_in_date', 'check_out_date'])
    op.create_index('ix_reservations_company_status', 'reservations', ['company_id', 'status'])

    # ===========================================
    # 3. ROOM DATE CELLS
    # ===========================================
    op.create_table(
        'room_date_cells',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_blocked', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('block_reason', sa.String(200), nullable=True),
        sa.Column('custom_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('min_nights', sa.Integer, nullable=True),
        sa.Column('reservation_id', sa.String(36), sa.ForeignKey('reservations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        # The collision detector for reservation claims
        sa.UniqueConstraint('room_id', 'date', name='uq_room_date_cell'),
    )
    op.create_index('ix_room_date_cells_company_date', 'room_date_cells', ['company_id', 'date'])
    op.create_index('ix_room_date_cells_reservation', 'room_date_cells', ['reservation_id'])

    # ===========================================
    # 4. BLOCK PERIODS
    # ===========================================
    op.create_table(
        'block_periods',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('applies_to_all_rooms', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=True),
        sa.Column('reason', sa.String(200), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('recurrence', sa.JSON, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('deactivated_at', sa.DateTime, nullable=True),
        sa.Column('created_by_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_block_periods_company_active', 'block_periods', ['company_id', 'is_active'])

    op.create_table(
        'block_period_rooms',
        sa.Column('block_period_id', sa.String(36), sa.ForeignKey('block_periods.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'cell_block_claims',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('block_period_id', sa.String(36), sa.ForeignKey('block_periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('block_period_id', 'room_id', 'date', name='uq_block_claim'),
    )
    op.create_index('ix_block_claims_room_date', 'cell_block_claims', ['room_id', 'date'])

    # ===========================================
    # 5. AVAILABILITY RULES
    # ===========================================
    op.create_table(
        'availability_rules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=True),
        sa.Column('rule_type', sa.String(40), nullable=False),
        sa.Column('payload', sa.JSON, nullable=False),
        sa.Column('priority', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('start_date', sa.Date, nullable=True),
        sa.Column('end_date', sa.Date, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_rules_company_active', 'availability_rules', ['company_id', 'is_active'])
    op.create_index('ix_rules_room', 'availability_rules', ['room_id'])


def downgrade() -> None:
    op.drop_table('availability_rules')
    op.drop_table('cell_block_claims')
    op.drop_table('block_period_rooms')
    op.drop_table('block_periods')
    op.drop_table('room_date_cells')
    op.drop_table('reservations')
    op.drop_table('rooms')
