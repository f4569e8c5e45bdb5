"""Create billing schema

Revision ID: 001_billing
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '001_billing'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _timestamps(updated=True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False)
        )
    return columns


def upgrade():
    """Create users, masters, clients, bills, line items, payments and history."""

    # ====================
    # USERS
    # ====================
    op.create_table(
        'users',
        _id(),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(150), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('role', sa.String(20), server_default='EMPLOYEE', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ====================
    # HEADERS (issuing companies)
    # ====================
    op.create_table(
        'header_master',
        _id(),
        sa.Column('company_name', sa.String(200), nullable=False),
        sa.Column('proprietor_name', sa.String(150), nullable=True),
        sa.Column('address_line1', sa.String(255), nullable=True),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('pincode', sa.String(10), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('gstin', sa.String(15), nullable=True),
        sa.Column('pan', sa.String(10), nullable=True),
        sa.Column('bill_prefix', sa.String(10), unique=True, nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'header_bank_details',
        _id(),
        sa.Column('header_id', UUID(as_uuid=True), sa.ForeignKey('header_master.id', ondelete='CASCADE'),
                  unique=True, nullable=False),
        sa.Column('bank_name', sa.String(150), nullable=True),
        sa.Column('account_holder_name', sa.String(150), nullable=True),
        sa.Column('account_number', sa.String(30), nullable=True),
        sa.Column('ifsc_code', sa.String(11), nullable=True),
        sa.Column('branch_name', sa.String(150), nullable=True),
        sa.Column('upi_id', sa.String(100), nullable=True),
        sa.Column('qr_code_image', sa.Text, nullable=True),
    )

    # ====================
    # REFERENCE MASTERS
    # ====================
    op.create_table(
        'particulars_master',
        _id(),
        sa.Column('service_name', sa.String(200), nullable=False),
        sa.Column('is_other', sa.Boolean, server_default='false', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'gst_rates_master',
        _id(),
        sa.Column('rate_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('description', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        'payment_terms_master',
        _id(),
        sa.Column('term_name', sa.String(100), nullable=False),
        sa.Column('days_to_add', sa.Integer, server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(),
    )

    # ====================
    # CLIENTS
    # ====================
    op.create_table(
        'clients_master',
        _id(),
        sa.Column('client_name', sa.String(200), nullable=False),
        sa.Column('contact_person', sa.String(150), nullable=True),
        sa.Column('phone', sa.String(10), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('gstin', sa.String(15), unique=True, nullable=True),
        sa.Column('address_line1', sa.String(255), nullable=True),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('pincode', sa.String(10), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_clients_master_client_name', 'clients_master', ['client_name'])

    # ====================
    # BILLS
    # ====================
    op.create_table(
        'bills',
        _id(),
        sa.Column('bill_no', sa.String(50), nullable=False),
        sa.Column('financial_year', sa.String(7), nullable=False),
        sa.Column('header_id', UUID(as_uuid=True), sa.ForeignKey('header_master.id'), nullable=False),
        sa.Column('client_id', UUID(as_uuid=True), sa.ForeignKey('clients_master.id'), nullable=True),
        sa.Column('payment_term_id', UUID(as_uuid=True), sa.ForeignKey('payment_terms_master.id'), nullable=False),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('bill_date', sa.Date, nullable=False),
        sa.Column('due_date', sa.Date, nullable=False),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('total_invoice_value', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_paid', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('payment_status', sa.String(20), server_default='UNPAID', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_bills_bill_no', 'bills', ['bill_no'], unique=True)
    op.create_index('ix_bills_header_id', 'bills', ['header_id'])
    op.create_index('ix_bills_client_id', 'bills', ['client_id'])
    op.create_index('ix_bills_status', 'bills', ['status'])
    op.create_index('ix_bills_payment_status', 'bills', ['payment_status'])
    op.create_index('ix_bills_bill_date', 'bills', ['bill_date'])
    op.create_index('ix_bills_header_fy', 'bills', ['header_id', 'financial_year'])

    op.create_table(
        'bill_services',
        _id(),
        sa.Column('bill_id', UUID(as_uuid=True), sa.ForeignKey('bills.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sr_no', sa.Integer, nullable=False),
        sa.Column('particulars_id', UUID(as_uuid=True), sa.ForeignKey('particulars_master.id'), nullable=False),
        sa.Column('particulars_other', sa.String(255), nullable=True),
        sa.Column('service_date', sa.Date, nullable=False),
        sa.Column('service_year', sa.String(10), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('gst_rate_id', UUID(as_uuid=True), sa.ForeignKey('gst_rates_master.id'), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_bill_services_bill_sr', 'bill_services', ['bill_id', 'sr_no'])

    op.create_table(
        'bill_payments',
        _id(),
        sa.Column('bill_id', UUID(as_uuid=True), sa.ForeignKey('bills.id'), nullable=False),
        sa.Column('payment_date', sa.Date, nullable=False),
        sa.Column('amount_paid', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('recorded_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_bill_payments_bill_date', 'bill_payments', ['bill_id', 'payment_date'])

    op.create_table(
        'bill_history',
        _id(),
        sa.Column('bill_id', UUID(as_uuid=True), sa.ForeignKey('bills.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('action_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('recipient_email', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('details', sa.Text, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_bill_history_bill_id', 'bill_history', ['bill_id'])

    op.create_table(
        'bill_number_counters',
        _id(),
        sa.Column('header_id', UUID(as_uuid=True), sa.ForeignKey('header_master.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('financial_year', sa.String(7), nullable=False),
        sa.Column('last_number', sa.Integer, server_default='0', nullable=False),
        sa.UniqueConstraint('header_id', 'financial_year', name='uq_bill_counter_header_fy'),
    )


def downgrade():
    """Drop billing tables"""
    op.drop_table('bill_number_counters')
    op.drop_table('bill_history')
    op.drop_table('bill_payments')
    op.drop_table('bill_services')
    op.drop_table('bills')
    op.drop_table('clients_master')
    op.drop_table('payment_terms_master')
    op.drop_table('gst_rates_master')
    op.drop_table('particulars_master')
    op.drop_table('header_bank_details')
    op.drop_table('header_master')
    op.drop_table('users')
