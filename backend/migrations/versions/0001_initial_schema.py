"""initial repair desk schema

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(created=True):
    cols = []
    if created:
        cols.append(sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')))
    cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')))
    return cols


def upgrade():
    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False, unique=True),
        sa.Column('service', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('description_i18n', sa.JSON(), nullable=True),
        *_timestamps(created=False)
    )
    op.create_index('ix_permissions_code', 'permissions', ['code'])
    op.create_index('ix_permissions_service', 'permissions', ['service'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('description_i18n', sa.JSON(), nullable=True),
        *_timestamps(created=False)
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('company_name', sa.String(length=128)),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(created=False)
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
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])

    op.create_table('clients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('email', sa.String(length=128)),
        sa.Column('address', sa.String(length=255)),
        sa.Column('city', sa.String(length=64)),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(created=False)
    )
    op.create_index('ix_clients_full_name', 'clients', ['full_name'])
    op.create_index('ix_clients_user_id', 'clients', ['user_id'])

    op.create_table('appliances',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('manufacturer', sa.String(length=64)),
        sa.Column('model', sa.String(length=64)),
        sa.Column('serial_number', sa.String(length=64)),
        *_timestamps(created=False)
    )
    op.create_index('ix_appliances_client_id', 'appliances', ['client_id'])

    op.create_table('services',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('appliance_id', sa.Integer(), sa.ForeignKey('appliances.id'), nullable=False),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('business_partner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('technician_notes', sa.Text()),
        sa.Column('cost', sa.String(length=32)),
        sa.Column('is_completely_fixed', sa.Boolean(), nullable=True),
        sa.Column('scheduled_date', sa.String(length=32)),
        sa.Column('completed_date', sa.String(length=32)),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps()
    )
    op.create_index('ix_services_client_id', 'services', ['client_id'])
    op.create_index('ix_services_technician_id', 'services', ['technician_id'])
    op.create_index('ix_services_business_partner_id', 'services', ['business_partner_id'])
    op.create_index('ix_services_status', 'services', ['status'])

    op.create_table('spare_part_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=True),
        sa.Column('part_name', sa.String(length=255), nullable=False),
        sa.Column('part_number', sa.String(length=64)),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('urgency', sa.String(length=16), nullable=False, server_default='normal'),
        sa.Column('warranty_status', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('description', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('supplier_name', sa.String(length=128)),
        sa.Column('estimated_cost', sa.String(length=32)),
        sa.Column('estimated_delivery', sa.String(length=32)),
        sa.Column('requested_by', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 1', name='ck_spare_part_quantity_positive'),
    )
    op.create_index('ix_spare_part_orders_service_id', 'spare_part_orders', ['service_id'])
    op.create_index('ix_spare_part_orders_status', 'spare_part_orders', ['status'])

    op.create_table('removed_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('part_name', sa.String(length=255), nullable=False),
        sa.Column('removal_date', sa.String(length=32), nullable=False),
        sa.Column('removal_reason', sa.Text(), nullable=False),
        sa.Column('current_location', sa.String(length=32), nullable=False, server_default='workshop'),
        sa.Column('expected_return_date', sa.String(length=32)),
        sa.Column('actual_return_date', sa.String(length=32)),
        sa.Column('part_status', sa.String(length=32), nullable=False, server_default='removed'),
        sa.Column('technician_notes', sa.Text()),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps()
    )
    op.create_index('ix_removed_parts_service_id', 'removed_parts', ['service_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_service_id', sa.Integer()),
        sa.Column('related_user_id', sa.Integer()),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='normal'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_related_service_id', 'notifications', ['related_service_id'])

    op.create_table('outbound_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('channel', sa.String(length=16), nullable=False),
        sa.Column('recipient', sa.String(length=128), nullable=False),
        sa.Column('recipient_label', sa.String(length=128)),
        sa.Column('subject', sa.String(length=255)),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('event', sa.String(length=64), nullable=False),
        sa.Column('related_service_id', sa.Integer()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='queued'),
        sa.Column('provider_message_id', sa.String(length=128)),
        sa.Column('error', sa.String(length=255)),
        sa.Column('attempted_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_outbound_messages_channel', 'outbound_messages', ['channel'])
    op.create_index('ix_outbound_messages_status', 'outbound_messages', ['status'])
    op.create_index('ix_outbound_messages_related_service_id', 'outbound_messages', ['related_service_id'])


def downgrade():
    for tbl in ['outbound_messages', 'notifications', 'removed_parts', 'spare_part_orders', 'services',
                'appliances', 'clients', 'audit_logs', 'user_roles', 'role_permissions', 'users', 'roles', 'permissions']:
        op.drop_table(tbl)
