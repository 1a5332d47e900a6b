"""Create the trade schema: RFQs, offers, orders and rentals

Revision ID: 0001_initial_trade_schema
Revises:
Create Date: 2026-10-19

This migration creates:
- Party reference tables (suppliers, catalog_entries, projects, rental_tools)
- RFQs, their recipients, offers and offer version history
- Orders with status history, delivery events and confirmations
- Rental bookings with handover and return records
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_trade_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    ]


def _negotiated_window():
    return [
        sa.Column('promised_window_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('promised_window_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proposed_window_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proposed_window_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proposed_by', sa.String(), nullable=True),
        sa.Column('proposal_status', sa.String(), nullable=False, server_default=sa.text("'none'")),
        sa.Column('window_agreed_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # ===== PARTIES =====
    op.create_table(
        'suppliers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('business_name', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('min_order_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('payment_terms', sa.String(), nullable=False, server_default=sa.text("'cod'")),
        *_timestamps(),
    )
    op.create_index('ix_suppliers_user_id', 'suppliers', ['user_id'], unique=True)

    op.create_table(
        'catalog_entries',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('suppliers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('unit', sa.String(), nullable=False, server_default=sa.text("'each'")),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('direct_order_available', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('delivery_options', sa.String(), nullable=False, server_default=sa.text("'both'")),
        *_timestamps(),
    )
    op.create_index('ix_catalog_entries_supplier_active', 'catalog_entries', ['supplier_id', 'is_active'])

    op.create_table(
        'projects',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('owner_id', sa.String(), nullable=False, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('site_address', sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'rental_tools',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('suppliers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('day_rate', sa.Numeric(12, 2), nullable=False),
        sa.Column('week_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('deposit_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('delivery_option', sa.String(), nullable=False, server_default=sa.text("'pickup'")),
        sa.Column('direct_booking_available', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
    )
    op.create_index('ix_rental_tools_supplier_active', 'rental_tools', ['supplier_id', 'is_active'])

    # ===== RFQS & OFFERS =====
    op.create_table(
        'rfqs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('buyer_id', sa.String(), nullable=False, index=True),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('line_items', sa.JSON(), nullable=False),
        sa.Column('preferred_window_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('preferred_window_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('additional_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default=sa.text("'active'")),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_check_constraint(
        'ck_rfqs_preferred_window_order',
        'rfqs',
        'preferred_window_start IS NULL OR preferred_window_end IS NULL '
        'OR preferred_window_start < preferred_window_end'
    )
    op.create_index('ix_rfqs_buyer_status', 'rfqs', ['buyer_id', 'status'])

    op.create_table(
        'rfq_recipients',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('rfq_id', sa.String(), sa.ForeignKey('rfqs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('suppliers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('viewed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_rfq_recipient'),
    )

    op.create_table(
        'offers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('rfq_id', sa.String(), sa.ForeignKey('rfqs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('suppliers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('line_prices', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('delivery_window_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivery_window_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_terms', sa.String(), nullable=False, server_default=sa.text("'cod'")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        *_timestamps(),
        # One offer per supplier per RFQ; resubmissions replace it in place
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_offer_rfq_supplier'),
    )
    op.create_index('ix_offers_rfq_status', 'offers', ['rfq_id', 'status'])

    op.create_table(
        'offer_history',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('offer_id', sa.String(), sa.ForeignKey('offers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('line_prices', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('delivery_window_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivery_window_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_terms', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('superseded_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.UniqueConstraint('offer_id', 'version_number', name='uq_offer_history_version'),
    )

    # ===== ORDERS =====
    op.create_table(
        'orders',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('order_number', sa.String(), nullable=False),
        sa.Column('buyer_id', sa.String(), nullable=False, index=True),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('suppliers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('offer_id', sa.String(), sa.ForeignKey('offers.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('grand_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('pickup_or_delivery', sa.String(), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('payment_terms', sa.String(), nullable=False, server_default=sa.text("'cod'")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('confirmation_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        *_negotiated_window(),
        *_timestamps(),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_buyer_status', 'orders', ['buyer_id', 'status'])
    op.create_index('ix_orders_supplier_status', 'orders', ['supplier_id', 'status'])
    op.create_index('ix_orders_status_deadline', 'orders', ['status', 'confirmation_deadline'])
    op.create_check_constraint(
        'ck_orders_grand_total',
        'orders',
        'grand_total = total_amount + delivery_fee + tax_amount'
    )
    op.create_check_constraint(
        'ck_orders_non_negative_amounts',
        'orders',
        'total_amount >= 0 AND delivery_fee >= 0 AND tax_amount >= 0'
    )
    op.create_check_constraint(
        'ck_orders_pickup_or_delivery',
        'orders',
        "pickup_or_delivery IN ('pickup', 'delivery')"
    )

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('old_status', sa.String(), nullable=True),
        sa.Column('new_status', sa.String(), nullable=False),
        sa.Column('event', sa.String(), nullable=False),
        sa.Column('actor_role', sa.String(), nullable=False),
        sa.Column('actor_id', sa.String(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'delivery_events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('recorded_by_role', sa.String(), nullable=False),
        sa.Column('recorded_by_id', sa.String(), nullable=False),
        sa.Column('photos', sa.JSON(), nullable=False),
        sa.Column('quantities', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('location', sa.JSON(), nullable=True),
        sa.Column('is_partial', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'confirmations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('delivery_event_id', sa.String(), sa.ForeignKey('delivery_events.id', ondelete='SET NULL'), nullable=True),
        sa.Column('confirmation_type', sa.String(), nullable=False),
        sa.Column('confirmed_by_role', sa.String(), nullable=False),
        sa.Column('confirmed_by_id', sa.String(), nullable=True),
        sa.Column('dispute_category', sa.String(), nullable=True),
        sa.Column('dispute_reason', sa.Text(), nullable=True),
        sa.Column('evidence_photos', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_check_constraint(
        'ck_confirmations_dispute_category',
        'confirmations',
        "confirmation_type <> 'dispute' OR dispute_category IS NOT NULL"
    )

    # ===== RENTALS =====
    op.create_table(
        'rental_bookings',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('booking_number', sa.String(), nullable=False),
        sa.Column('buyer_id', sa.String(), nullable=False, index=True),
        sa.Column('supplier_id', sa.String(), sa.ForeignKey('suppliers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('rental_tool_id', sa.String(), sa.ForeignKey('rental_tools.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actual_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rental_duration_days', sa.Integer(), nullable=False),
        sa.Column('day_rate', sa.Numeric(12, 2), nullable=False),
        sa.Column('week_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_rental_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('late_return_fee', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('damage_fee', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('pickup_or_delivery', sa.String(), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('payment_terms', sa.String(), nullable=False, server_default=sa.text("'cod'")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('dispute_reason', sa.Text(), nullable=True),
        *_negotiated_window(),
        *_timestamps(),
    )
    op.create_index('ix_rental_bookings_booking_number', 'rental_bookings', ['booking_number'], unique=True)
    op.create_index('ix_rental_bookings_status_end', 'rental_bookings', ['status', 'end_date'])
    op.create_check_constraint('ck_rental_bookings_dates', 'rental_bookings', 'start_date < end_date')

    op.create_table(
        'rental_handovers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('booking_id', sa.String(), sa.ForeignKey('rental_bookings.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('confirmed_by_role', sa.String(), nullable=False),
        sa.Column('confirmed_by_id', sa.String(), nullable=False),
        sa.Column('photos', sa.JSON(), nullable=False),
        sa.Column('condition_notes', sa.Text(), nullable=True),
        sa.Column('handed_over_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'rental_returns',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('booking_id', sa.String(), sa.ForeignKey('rental_bookings.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('confirmed_by_role', sa.String(), nullable=False),
        sa.Column('confirmed_by_id', sa.String(), nullable=False),
        sa.Column('photos', sa.JSON(), nullable=False),
        sa.Column('condition_notes', sa.Text(), nullable=True),
        sa.Column('is_late', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('days_overdue', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('late_fee', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('returned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )


def downgrade() -> None:
    op.drop_table('rental_returns')
    op.drop_table('rental_handovers')
    op.drop_table('rental_bookings')
    op.drop_table('confirmations')
    op.drop_table('delivery_events')
    op.drop_table('order_status_history')
    op.drop_table('orders')
    op.drop_table('offer_history')
    op.drop_table('offers')
    op.drop_table('rfq_recipients')
    op.drop_table('rfqs')
    op.drop_table('rental_tools')
    op.drop_table('projects')
    op.drop_table('catalog_entries')
    op.drop_table('suppliers')
