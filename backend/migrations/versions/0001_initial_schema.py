"""initial console schema

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-18
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
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table('identities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        *_timestamps()
    )
    op.create_index('ix_identities_email', 'identities', ['email'])

    op.create_table('revoked_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('jti', sa.String(length=64), nullable=False, unique=True),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_revoked_tokens_jti', 'revoked_tokens', ['jti'])

    op.create_table('businesses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('address', sa.String(length=255)),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('email', sa.String(length=150)),
        sa.Column('logo_url', sa.String(length=500)),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('identities.id'), nullable=False),
        *_timestamps()
    )
    op.create_index('ix_businesses_owner_id', 'businesses', ['owner_id'])

    op.create_table('profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identities.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=64)),
        sa.Column('last_name', sa.String(length=64)),
        sa.Column('avatar_url', sa.String(length=500)),
        *_timestamps()
    )

    op.create_table('branches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('address', sa.String(length=255)),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('email', sa.String(length=150)),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        *_timestamps()
    )
    op.create_index('ix_branches_business_id', 'branches', ['business_id'])
    op.create_index('ix_branches_name', 'branches', ['name'])
    op.create_index('ix_branches_code', 'branches', ['code'])
    op.create_index('ix_branches_status', 'branches', ['status'])

    op.create_table('employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id', ondelete='SET NULL')),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identities.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=150), nullable=False),
        sa.Column('job_title', sa.String(length=64), nullable=False),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('address', sa.String(length=255)),
        sa.Column('hire_date', sa.Date()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        *_timestamps()
    )
    for col in ('business_id', 'branch_id', 'identity_id', 'name', 'email', 'status'):
        op.create_index(f'ix_employees_{col}', 'employees', [col])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255)),
        *_timestamps()
    )
    op.create_index('ix_roles_business_id', 'roles', ['business_id'])

    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module', sa.String(length=32), nullable=False),
        sa.Column('create_permission', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('read_permission', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('update_permission', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('delete_permission', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sa.UniqueConstraint('role_id', 'module', name='uq_permission_role_module'),
    )
    op.create_index('ix_permissions_role_id', 'permissions', ['role_id'])

    op.create_table('employee_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('employee_id', 'role_id', name='uq_employee_role'),
    )

    op.create_table('clients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('email', sa.String(length=150)),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('company', sa.String(length=150)),
        sa.Column('address', sa.String(length=255)),
        sa.Column('notes', sa.Text()),
        *_timestamps()
    )
    op.create_index('ix_clients_business_id', 'clients', ['business_id'])
    op.create_index('ix_clients_name', 'clients', ['name'])
    op.create_index('ix_clients_email', 'clients', ['email'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='product'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps()
    )
    for col in ('business_id', 'branch_id', 'name', 'status'):
        op.create_index(f'ix_products_{col}', 'products', [col])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_identity_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer()),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor_identity_id', 'audit_logs', ['actor_identity_id'])
    op.create_index('ix_audit_logs_business_id', 'audit_logs', ['business_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for table in (
        'audit_logs', 'products', 'clients', 'employee_roles', 'permissions', 'roles',
        'employees', 'branches', 'profiles', 'businesses', 'revoked_tokens', 'identities',
    ):
        op.drop_table(table)
