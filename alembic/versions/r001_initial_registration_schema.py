"""Create registration, ticket and payment tables

Revision ID: r001_initial_registration
Revises:
Create Date: 2025-10-01

This migration creates the registration store:
- categories: competition tracks with fee and participant cap
- registrations / individual_registrations: the two registration kinds
- registration_categories, participants: school selections and pupils
- tickets / individual_tickets: issued tickets with one-way check-in
- payment_records, payment_webhook_events: payment attempts and gateway events
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = 'r001_initial_registration'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), 'postgresql')


def _lifecycle_columns():
    return [
        sa.Column('tracking_number', sa.String(32), nullable=False),
        sa.Column('payment_status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('admin_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('amount_due', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(32), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _ticket_columns():
    return [
        sa.Column('holder_key', sa.String(64), nullable=False),
        sa.Column('holder_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(32), nullable=False),
        sa.Column('ticket_number', sa.String(96), nullable=False),
        sa.Column('qr_payload', sa.Text(), nullable=False),
        sa.Column('checked_in', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checked_in_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'categories',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('fee', sa.Integer(), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'individual_registrations',
        sa.Column('id', sa.String(), primary_key=True),
        *_lifecycle_columns(),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(32), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('gender', sa.String(16), nullable=True),
        sa.Column('state', sa.String(64), nullable=True),
        sa.Column('lga', sa.String(128), nullable=True),
    )
    op.create_index('ix_individual_registrations_tracking_number', 'individual_registrations', ['tracking_number'], unique=True)
    op.create_index('ix_individual_registrations_payment_status', 'individual_registrations', ['payment_status'])
    op.create_index('ix_individual_registrations_phone_number', 'individual_registrations', ['phone_number'], unique=True)

    op.create_table(
        'registrations',
        sa.Column('id', sa.String(), primary_key=True),
        *_lifecycle_columns(),
        sa.Column('school_name', sa.String(255), nullable=False),
        sa.Column('contact_name', sa.String(255), nullable=False),
        sa.Column('contact_phone', sa.String(32), nullable=False),
        sa.Column('contact_email', sa.String(255), nullable=True),
    )
    op.create_index('ix_registrations_tracking_number', 'registrations', ['tracking_number'], unique=True)
    op.create_index('ix_registrations_payment_status', 'registrations', ['payment_status'])
    op.create_index('ix_registrations_contact_phone', 'registrations', ['contact_phone'])

    op.create_table(
        'registration_categories',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('registration_id', sa.String(), sa.ForeignKey('registrations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.String(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('fee', sa.Integer(), nullable=False),
        sa.Column('companions_issued', sa.Integer(), server_default='0', nullable=False),
        sa.UniqueConstraint('registration_id', 'category_id', name='uq_registration_category'),
    )
    op.create_index('ix_registration_categories_registration_id', 'registration_categories', ['registration_id'])

    op.create_table(
        'participants',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('registration_id', sa.String(), sa.ForeignKey('registrations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.String(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('class', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_participants_registration_id', 'participants', ['registration_id'])
    op.create_index('ix_participants_category_id', 'participants', ['category_id'])

    op.create_table(
        'tickets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('registration_id', sa.String(), sa.ForeignKey('registrations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.String(), sa.ForeignKey('categories.id'), nullable=True),
        *_ticket_columns(),
        sa.UniqueConstraint('registration_id', 'holder_key', name='uq_ticket_holder'),
    )
    op.create_index('ix_tickets_ticket_number', 'tickets', ['ticket_number'], unique=True)
    op.create_index('ix_tickets_registration_id', 'tickets', ['registration_id'])

    op.create_table(
        'individual_tickets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('registration_id', sa.String(), sa.ForeignKey('individual_registrations.id', ondelete='CASCADE'), nullable=False),
        *_ticket_columns(),
        sa.UniqueConstraint('registration_id', 'holder_key', name='uq_individual_ticket_holder'),
    )
    op.create_index('ix_individual_tickets_ticket_number', 'individual_tickets', ['ticket_number'], unique=True)
    op.create_index('ix_individual_tickets_registration_id', 'individual_tickets', ['registration_id'])

    op.create_table(
        'payment_records',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tracking_number', sa.String(32), nullable=False),
        sa.Column('registration_kind', sa.String(16), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='NGN'),
        sa.Column('payment_method', sa.String(32), nullable=False),
        sa.Column('payment_gateway', sa.String(32), nullable=True),
        sa.Column('payment_reference', sa.String(128), nullable=False, unique=True),
        sa.Column('gateway_reference', sa.String(128), nullable=True),
        sa.Column('transaction_id', sa.String(128), nullable=True),
        sa.Column('gateway_response', JSON_TYPE, nullable=True),
        sa.Column('payment_status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_payment_records_tracking_number', 'payment_records', ['tracking_number'])

    op.create_table(
        'payment_webhook_events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('provider_code', sa.String(50), nullable=False),
        sa.Column('provider_event_id', sa.String(255), nullable=False),
        sa.Column('provider_event_type', sa.String(100), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('payload', JSON_TYPE, nullable=False),
        sa.Column('signature_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_reference', sa.String(128), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('provider_code', 'provider_event_id', name='uq_provider_event'),
    )


def downgrade() -> None:
    op.drop_table('payment_webhook_events')
    op.drop_index('ix_payment_records_tracking_number', table_name='payment_records')
    op.drop_table('payment_records')
    op.drop_table('individual_tickets')
    op.drop_table('tickets')
    op.drop_table('participants')
    op.drop_table('registration_categories')
    op.drop_table('registrations')
    op.drop_table('individual_registrations')
    op.drop_table('categories')
