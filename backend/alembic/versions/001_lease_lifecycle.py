"""Lease lifecycle schema

Revision ID: 001_lease_lifecycle
Revises:
Create Date: 2026-10-17

Users, properties, the lease aggregate with its child tables, and the audit log.
Money as INTEGER CENTS (BIGINT). Enum columns store member names.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_lease_lifecycle'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)
JSONB = postgresql.JSONB()

LEASE_STATUS = (
    'PENDING_REQUEST', 'UNDER_REVIEW', 'APPROVED', 'REJECTED', 'DRAFT', 'SENT_TO_TENANT',
    'CHANGES_REQUESTED', 'SENT_TO_LANDLORD', 'SIGNED_BY_LANDLORD', 'FULLY_EXECUTED', 'ACTIVE',
    'RENEWAL_PENDING', 'NOTICE_GIVEN', 'MOVE_OUT_SCHEDULED', 'CANCELLED', 'EXPIRED', 'TERMINATED',
)

ENUM_TYPES = (
    'auditaction', 'documenttype', 'deposittransactiontype', 'noticetype',
    'damageresponsibility', 'propertycondition', 'inspectionkind', 'signaturetype',
    'partyrole', 'depositstatus', 'renewalstatus', 'rentfrequency', 'applicationstatus',
    'leasestatus', 'propertystatus', 'userrole',
)


def _user_fk(name: str, nullable: bool = True, ondelete: str = 'SET NULL') -> sa.Column:
    return sa.Column(name, UUID, sa.ForeignKey('users.id', ondelete=ondelete), nullable=nullable)


def _lease_fk() -> sa.Column:
    return sa.Column('lease_id', UUID, sa.ForeignKey('leases.id', ondelete='CASCADE'), nullable=False, index=True)


def upgrade() -> None:
    # === USERS ===
    op.create_table(
        'users',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('firebase_uid', sa.String(128), unique=True, nullable=False, index=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', sa.Enum('TENANT', 'OWNER', 'ADMIN', 'SUPER_ADMIN', name='userrole'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === PROPERTIES ===
    op.create_table(
        'properties',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('owner_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', 'RENTED', 'ARCHIVED', name='propertystatus'), nullable=False, index=True),
        sa.Column('price_cents', sa.BigInteger(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === LEASES ===
    op.create_table(
        'leases',
        sa.Column('id', UUID, primary_key=True),
        _user_fk('landlord_id', nullable=False, ondelete='RESTRICT'),
        _user_fk('tenant_id', nullable=False, ondelete='RESTRICT'),
        sa.Column('property_id', UUID, sa.ForeignKey('properties.id', ondelete='RESTRICT'), nullable=False),
        _user_fk('created_by_id', nullable=False, ondelete='RESTRICT'),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum(*LEASE_STATUS, name='leasestatus'), nullable=False, index=True),
        sa.Column('application_status', sa.Enum('PENDING', 'UNDER_REVIEW', 'APPROVED', 'REJECTED', name='applicationstatus'), nullable=False),
        sa.Column('application_submitted_at', sa.DateTime(), nullable=True),
        sa.Column('application_reviewed_at', sa.DateTime(), nullable=True),
        _user_fk('application_reviewed_by_id'),
        sa.Column('screening_results', JSONB, nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True, index=True),
        sa.Column('rent_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('rent_frequency', sa.Enum('MONTHLY', 'WEEKLY', 'BIWEEKLY', 'QUARTERLY', 'YEARLY', name='rentfrequency'), nullable=False),
        sa.Column('security_deposit_cents', sa.BigInteger(), nullable=True),
        sa.Column('late_fee_cents', sa.BigInteger(), nullable=True),
        sa.Column('grace_period_days', sa.Integer(), nullable=True),
        sa.Column('utilities', JSONB, nullable=False),
        sa.Column('maintenance_terms', sa.Text(), nullable=True),
        sa.Column('terms', JSONB, nullable=False),
        sa.Column('custom_clauses', JSONB, nullable=False),
        sa.Column('payment_due_day', sa.Integer(), nullable=True),
        sa.Column('payment_methods', JSONB, nullable=False),
        sa.Column('auto_pay_enabled', sa.Boolean(), nullable=False),
        sa.Column('move_in_date', sa.Date(), nullable=True),
        sa.Column('move_out_date', sa.Date(), nullable=True),
        sa.Column('keys_handed_over', sa.Boolean(), nullable=False),
        sa.Column('keys_returned', sa.Boolean(), nullable=False),
        sa.Column('forwarding_address', sa.Text(), nullable=True),
        sa.Column('renewal_status', sa.Enum('NOT_DUE', 'PENDING', 'OFFERED', 'ACCEPTED', 'DECLINED', 'EXPIRED', name='renewalstatus'), nullable=False, index=True),
        sa.Column('renewal_offered_at', sa.DateTime(), nullable=True),
        sa.Column('renewal_response_due_by', sa.DateTime(), nullable=True),
        sa.Column('renewal_new_end_date', sa.Date(), nullable=True),
        sa.Column('renewal_new_rent_cents', sa.BigInteger(), nullable=True),
        sa.Column('renewal_notes', sa.Text(), nullable=True),
        sa.Column('deposit_status', sa.Enum('PENDING', 'PAID', 'HELD', 'RETURNED', 'PARTIALLY_RETURNED', 'PENDING_REFUND', name='depositstatus'), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, index=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, index=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('rent_amount_cents >= 0', name='ck_lease_rent_non_negative'),
        sa.CheckConstraint(
            'security_deposit_cents IS NULL OR security_deposit_cents >= 0',
            name='ck_lease_deposit_non_negative',
        ),
    )
    op.create_index('ix_leases_landlord_id', 'leases', ['landlord_id'])
    op.create_index('ix_leases_tenant_id', 'leases', ['tenant_id'])
    op.create_index('ix_leases_property_id', 'leases', ['property_id'])
    op.create_index('ix_leases_property_tenant_status', 'leases', ['property_id', 'tenant_id', 'status'])

    # === STATUS HISTORY ===
    op.create_table(
        'lease_status_history',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', postgresql.ENUM(name='leasestatus', create_type=False), nullable=False),
        _user_fk('changed_by_id'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('metadata', JSONB, nullable=False),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
    )

    # === MESSAGES ===
    op.create_table(
        'lease_messages',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('sequence', sa.Integer(), nullable=False),
        _user_fk('from_id'),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('attachments', JSONB, nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.Column('read_by', JSONB, nullable=False),
    )

    # === CHANGE REQUESTS ===
    op.create_table(
        'lease_change_requests',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('sequence', sa.Integer(), nullable=False),
        _user_fk('requested_by_id', nullable=False, ondelete='CASCADE'),
        sa.Column('changes', sa.Text(), nullable=False),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.Column('resolved', sa.Boolean(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
    )

    # === SIGNATURES (write-once per party) ===
    op.create_table(
        'lease_signatures',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('party', sa.Enum('LANDLORD', 'TENANT', 'OTHER', 'SYSTEM', name='partyrole'), nullable=False),
        _user_fk('signed_by_id', nullable=False, ondelete='RESTRICT'),
        sa.Column('signed_at', sa.DateTime(), nullable=False),
        sa.Column('signature_type', sa.Enum('DRAW', 'TYPE', 'UPLOAD', name='signaturetype'), nullable=False),
        sa.Column('signature_url', sa.String(1000), nullable=True),
        sa.Column('signature_public_id', sa.String(500), nullable=True),
        sa.Column('typed_text', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.UniqueConstraint('lease_id', 'party', name='uq_lease_signature_party'),
    )

    # === INSPECTIONS ===
    op.create_table(
        'lease_inspections',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('kind', sa.Enum('MOVE_IN', 'MOVE_OUT', 'PERIODIC', name='inspectionkind'), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=True),
        sa.Column('conducted_at', sa.DateTime(), nullable=True),
        _user_fk('conducted_by_id'),
        sa.Column('report', sa.Text(), nullable=True),
        sa.Column('photos', JSONB, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('signed_by_landlord', sa.Boolean(), nullable=False),
        sa.Column('signed_by_tenant', sa.Boolean(), nullable=False),
        sa.Column('signed_at', sa.DateTime(), nullable=True),
        sa.Column('condition', sa.Enum('EXCELLENT', 'GOOD', 'FAIR', 'POOR', 'DAMAGED', name='propertycondition'), nullable=True),
        sa.Column('next_inspection_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'lease_inspection_damages',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('inspection_id', UUID, sa.ForeignKey('lease_inspections.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('estimated_cost_cents', sa.BigInteger(), nullable=True),
        sa.Column('photos', JSONB, nullable=False),
        sa.Column('responsibility', sa.Enum('TENANT', 'LANDLORD', 'SHARED', name='damageresponsibility'), nullable=False),
    )

    # === NOTICES ===
    op.create_table(
        'lease_notices',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('notice_type', sa.Enum('RENEWAL', 'TERMINATION', 'RENT_INCREASE', 'OTHER', name='noticetype'), nullable=False),
        _user_fk('given_by_id'),
        sa.Column('given_at', sa.DateTime(), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('acknowledged', sa.Boolean(), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
    )

    # === DEPOSIT LEDGER ===
    op.create_table(
        'lease_deposit_transactions',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('transaction_type', sa.Enum('DEPOSIT', 'RETURN', 'DEDUCTION', name='deposittransactiontype'), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('proof', sa.String(1000), nullable=True),
        sa.CheckConstraint('amount_cents >= 0', name='ck_deposit_tx_amount_non_negative'),
    )

    # === DOCUMENTS ===
    op.create_table(
        'lease_documents',
        sa.Column('id', UUID, primary_key=True),
        _lease_fk(),
        sa.Column('document_type', sa.Enum('LEASE', 'ADDENDUM', 'NOTICE', 'INSPECTION', 'OTHER', name='documenttype'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url', sa.String(1000), nullable=True),
        _user_fk('uploaded_by_id'),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('details', JSONB, nullable=False),
    )

    # === AUDIT LOG ===
    op.create_table(
        'audit_log',
        sa.Column('id', UUID, primary_key=True),
        _user_fk('user_id'),
        sa.Column('action', sa.Enum(
            'LEASE_CREATED', 'LEASE_SIGNED', 'LEASE_CANCELLED', 'LEASE_DELETED', 'LEASE_RESTORED',
            'LEASE_PURGED', 'DEPOSIT_RECORDED', 'DEPOSIT_RETURNED', 'RENEWAL_ACCEPTED',
            name='auditaction',
        ), nullable=False, index=True),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', UUID, nullable=False, index=True),
        sa.Column('details', JSONB, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_log_user_id')
    op.drop_table('audit_log')
    op.drop_table('lease_documents')
    op.drop_table('lease_deposit_transactions')
    op.drop_table('lease_notices')
    op.drop_table('lease_inspection_damages')
    op.drop_table('lease_inspections')
    op.drop_table('lease_signatures')
    op.drop_table('lease_change_requests')
    op.drop_table('lease_messages')
    op.drop_table('lease_status_history')
    op.drop_index('ix_leases_property_tenant_status')
    op.drop_index('ix_leases_property_id')
    op.drop_index('ix_leases_tenant_id')
    op.drop_index('ix_leases_landlord_id')
    op.drop_table('leases')
    op.drop_table('properties')
    op.drop_table('users')

    # Drop enums
    for enum_name in ENUM_TYPES:
        op.execute(f'DROP TYPE IF EXISTS {enum_name}')
