"""initial

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tg_id', sa.BigInteger(), nullable=True),
        sa.Column('tg_username', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_tg_id'), 'users', ['tg_id'], unique=True)

    # Properties
    op.create_table('properties',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.String(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('invite_code', sa.String(length=6), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_properties_landlord_id'), 'properties', ['landlord_id'], unique=False)

    # Units
    op.create_table('units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('tenant_name', sa.String(), nullable=False),
        sa.Column('tenant_email', sa.String(), nullable=False),
        sa.Column('pending_tenant_id', sa.Integer(), nullable=True),
        sa.Column('pending_tenant_name', sa.String(), nullable=True),
        sa.Column('pending_tenant_email', sa.String(), nullable=True),
        sa.Column('pending_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rent_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('billing_cycle', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['pending_tenant_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_units_property_id'), 'units', ['property_id'], unique=False)
    op.create_index(op.f('ix_units_landlord_id'), 'units', ['landlord_id'], unique=False)
    op.create_index('ix_units_landlord_status', 'units', ['landlord_id', 'status'], unique=False)

    # Invite codes
    op.create_table('invite_codes',
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('property_name', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('code')
    )
    op.create_index('ix_invite_codes_lookup', 'invite_codes', ['landlord_id', 'property_id', 'status'], unique=False)

    # Invite tokens
    op.create_table('invite_tokens',
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('unit_name', sa.String(), nullable=False),
        sa.Column('property_name', sa.String(), nullable=False),
        sa.Column('rent_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('billing_cycle', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('accepted_by', sa.Integer(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['accepted_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('token')
    )
    op.create_index('ix_invite_tokens_unit_status', 'invite_tokens', ['property_id', 'unit_id', 'status'], unique=False)

    # Tenancies (no FKs to units/properties: history outlives them)
    op.create_table('tenancies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('tenant_name', sa.String(), nullable=False),
        sa.Column('tenant_email', sa.String(), nullable=False),
        sa.Column('unit_name', sa.String(), nullable=False),
        sa.Column('property_name', sa.String(), nullable=False),
        sa.Column('rent_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('billing_cycle', sa.String(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invoice_scheduling_enabled', sa.Boolean(), nullable=False),
        sa.Column('next_invoice_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tenancies_landlord_id'), 'tenancies', ['landlord_id'], unique=False)
    op.create_index(op.f('ix_tenancies_tenant_id'), 'tenancies', ['tenant_id'], unique=False)
    op.create_index('ix_tenancies_unit_status', 'tenancies', ['landlord_id', 'property_id', 'unit_id', 'status'], unique=False)

    # Notifications
    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('property_id', sa.Integer(), nullable=True),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_landlord_id'), 'notifications', ['landlord_id'], unique=False)

    # Invoices
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenancy_id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['tenancy_id'], ['tenancies.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoices_tenancy_id'), 'invoices', ['tenancy_id'], unique=False)

    # Reminders
    op.create_table('reminders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('tenancy_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('audience', sa.String(), nullable=False),
        sa.Column('days_before', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_id', 'audience', 'days_before', name='uq_reminders_invoice_audience_days')
    )
    op.create_index(op.f('ix_reminders_invoice_id'), 'reminders', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_reminders_user_id'), 'reminders', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_reminders_user_id'), table_name='reminders')
    op.drop_index(op.f('ix_reminders_invoice_id'), table_name='reminders')
    op.drop_table('reminders')
    op.drop_index(op.f('ix_invoices_tenancy_id'), table_name='invoices')
    op.drop_table('invoices')
    op.drop_index(op.f('ix_notifications_landlord_id'), table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_tenancies_unit_status', table_name='tenancies')
    op.drop_index(op.f('ix_tenancies_tenant_id'), table_name='tenancies')
    op.drop_index(op.f('ix_tenancies_landlord_id'), table_name='tenancies')
    op.drop_table('tenancies')
    op.drop_index('ix_invite_tokens_unit_status', table_name='invite_tokens')
    op.drop_table('invite_tokens')
    op.drop_index('ix_invite_codes_lookup', table_name='invite_codes')
    op.drop_table('invite_codes')
    op.drop_index('ix_units_landlord_status', table_name='units')
    op.drop_index(op.f('ix_units_landlord_id'), table_name='units')
    op.drop_index(op.f('ix_units_property_id'), table_name='units')
    op.drop_table('units')
    op.drop_index(op.f('ix_properties_landlord_id'), table_name='properties')
    op.drop_table('properties')
    op.drop_index(op.f('ix_users_tg_id'), table_name='users')
    op.drop_table('users')
