"""initial schema: grant store, users, audit, rfq workflow tables

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-17
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('resource', sa.String(length=32), nullable=False),
        sa.UniqueConstraint('action', 'resource', name='uq_permission_action_resource'),
    )
    op.create_index('ix_permissions_resource', 'permissions', ['resource'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=50), nullable=False, unique=True),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=150), nullable=False, unique=True),
        sa.Column('short_form', sa.String(length=20), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('token', sa.String(length=1024)),
        sa.Column('otp_code', sa.String(length=10)),
        sa.Column('otp_expires', sa.DateTime()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('deactivated_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('roles_snapshot', sa.JSON()),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])

    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=150), nullable=False, unique=True),
        sa.Column('email', sa.String(length=150), nullable=False, unique=True),
        sa.Column('code', sa.String(length=50)),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        *_timestamps(),
    )
    op.create_index('ix_customers_code', 'customers', ['code'])
    op.create_index('ix_customers_created_by', 'customers', ['created_by'])

    op.create_table('rfq',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('receive_date', sa.Date(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('salesperson_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('price', sa.String(length=100), nullable=False),
        sa.Column('progress', sa.String(length=64), nullable=False),
        sa.Column('rfq_location', sa.String(length=255)),
        sa.Column('remarks', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_rfq_customer_id', 'rfq', ['customer_id'])
    op.create_index('ix_rfq_salesperson_id', 'rfq', ['salesperson_id'])
    op.create_index('ix_rfq_progress', 'rfq', ['progress'])

    op.create_table('rfq_prepared_people',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfq.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.UniqueConstraint('rfq_id', 'user_id', name='uq_rfq_prepared_person'),
    )
    op.create_index('ix_rfq_prepared_people_user_id', 'rfq_prepared_people', ['user_id'])

    op.create_table('sales_funnel',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfq.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quote_date', sa.Date(), nullable=False),
        sa.Column('sent_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('exp_win_date', sa.Date(), nullable=False),
        sa.Column('last_updated', sa.DateTime()),
        sa.Column('status', sa.String(length=50)),
        sa.Column('remarks', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_sales_funnel_rfq_id', 'sales_funnel', ['rfq_id'])
    op.create_index('ix_sales_funnel_sent_by', 'sales_funnel', ['sent_by'])
    op.create_index('ix_sales_funnel_status', 'sales_funnel', ['status'])

    op.create_table('invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.Numeric(20, 3), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        *_timestamps(),
    )
    op.create_index('ix_invoices_invoice_date', 'invoices', ['invoice_date'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_currency', 'invoices', ['currency'])
    op.create_index('ix_invoices_created_by', 'invoices', ['created_by'])


def downgrade():
    for table in ('invoices', 'sales_funnel', 'rfq_prepared_people', 'rfq', 'customers',
                  'audit_logs', 'user_roles', 'role_permissions', 'users', 'roles', 'permissions'):
        op.drop_table(table)
