"""Baseline shop floor schema

Revision ID: 001_baseline_shop_floor_schema
Revises:
Create Date: 2024-06-03

Users, locations, machines, part master with BOM and machine durations,
document requirements, work orders with assembly rows, jobs and machine
downtime logs.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_baseline_shop_floor_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', sa.Integer(), primary_key=True)


def _created_at():
    return sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade() -> None:
    op.create_table('users',
        _id(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='operator'),
        sa.Column('can_approve_compliance', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table('locations',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=True, unique=True),
    )

    op.create_table('machines',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='available'),
        sa.Column('status_reason', sa.Text(), nullable=True),
        sa.Column('status_updated_at', sa.DateTime(), nullable=True),
        _created_at(),
    )
    op.create_index(op.f('ix_machines_code'), 'machines', ['code'], unique=True)
    op.create_index(op.f('ix_machines_location_id'), 'machines', ['location_id'])
    op.create_index(op.f('ix_machines_status'), 'machines', ['status'])

    op.create_table('parts',
        _id(),
        sa.Column('part_number', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('part_type', sa.String(length=20), nullable=False, server_default='manufactured'),
        sa.Column('requires_passivation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('requires_paint', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index(op.f('ix_parts_part_number'), 'parts', ['part_number'], unique=True)
    op.create_index(op.f('ix_parts_part_type'), 'parts', ['part_type'])

    op.create_table('assembly_bom',
        _id(),
        sa.Column('assembly_id', sa.Integer(), sa.ForeignKey('parts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('component_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('assembly_id', 'component_id', name='uq_assembly_bom_component'),
    )
    op.create_index(op.f('ix_assembly_bom_assembly_id'), 'assembly_bom', ['assembly_id'])
    op.create_index(op.f('ix_assembly_bom_component_id'), 'assembly_bom', ['component_id'])

    op.create_table('part_machine_durations',
        _id(),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('machine_id', sa.Integer(), sa.ForeignKey('machines.id', ondelete='CASCADE'), nullable=False),
        sa.Column('estimated_minutes', sa.Integer(), nullable=False),
        sa.Column('base_quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('preference_order', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('part_id', 'machine_id', name='uq_part_machine_duration'),
    )
    op.create_index(op.f('ix_part_machine_durations_part_id'), 'part_machine_durations', ['part_id'])
    op.create_index(op.f('ix_part_machine_durations_machine_id'), 'part_machine_durations', ['machine_id'])

    op.create_table('document_types',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table('part_document_requirements',
        _id(),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_type_id', sa.Integer(), sa.ForeignKey('document_types.id'), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('required_at', sa.String(length=30), nullable=True),
    )
    op.create_index(op.f('ix_part_document_requirements_part_id'), 'part_document_requirements', ['part_id'])

    op.create_table('work_orders',
        _id(),
        sa.Column('wo_number', sa.String(length=20), nullable=False),
        sa.Column('order_type', sa.String(length=20), nullable=False, server_default='make_to_order'),
        sa.Column('maintenance_type', sa.String(length=20), nullable=True),
        sa.Column('machine_id', sa.Integer(), sa.ForeignKey('machines.id'), nullable=True),
        sa.Column('customer', sa.String(length=200), nullable=True),
        sa.Column('po_number', sa.String(length=100), nullable=True),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='normal'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index(op.f('ix_work_orders_wo_number'), 'work_orders', ['wo_number'], unique=True)
    op.create_index(op.f('ix_work_orders_order_type'), 'work_orders', ['order_type'])
    op.create_index(op.f('ix_work_orders_machine_id'), 'work_orders', ['machine_id'])
    op.create_index(op.f('ix_work_orders_status'), 'work_orders', ['status'])

    op.create_table('work_order_assemblies',
        _id(),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assembly_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=20), nullable=True, server_default='pending'),
        sa.Column('station_number', sa.String(length=20), nullable=True),
        sa.Column('assembler_number', sa.String(length=50), nullable=True),
        sa.Column('assembly_started_at', sa.DateTime(), nullable=True),
        sa.Column('assembly_started_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assembly_completed_at', sa.DateTime(), nullable=True),
        sa.Column('assembly_completed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('good_quantity', sa.Integer(), nullable=True),
        sa.Column('bad_quantity', sa.Integer(), nullable=True),
        sa.Column('assembly_notes', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index(op.f('ix_work_order_assemblies_work_order_id'), 'work_order_assemblies', ['work_order_id'])
    op.create_index(op.f('ix_work_order_assemblies_assembly_id'), 'work_order_assemblies', ['assembly_id'])
    op.create_index(op.f('ix_work_order_assemblies_status'), 'work_order_assemblies', ['status'])

    op.create_table('jobs',
        _id(),
        sa.Column('job_number', sa.String(length=20), nullable=False),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_order_assembly_id', sa.Integer(), sa.ForeignKey('work_order_assemblies.id'), nullable=True),
        sa.Column('component_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='normal'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending_compliance'),
        sa.Column('assigned_machine_id', sa.Integer(), sa.ForeignKey('machines.id'), nullable=True),
        sa.Column('scheduled_start', sa.DateTime(), nullable=True),
        sa.Column('scheduled_end', sa.DateTime(), nullable=True),
        sa.Column('estimated_minutes', sa.Integer(), nullable=True),
        sa.Column('scheduled_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(), nullable=True),
        sa.Column('setup_start', sa.DateTime(), nullable=True),
        sa.Column('production_start', sa.DateTime(), nullable=True),
        sa.Column('actual_end', sa.DateTime(), nullable=True),
        sa.Column('good_pieces', sa.Integer(), nullable=True),
        sa.Column('bad_pieces', sa.Integer(), nullable=True),
        sa.Column('time_per_unit', sa.Float(), nullable=True),
        sa.Column('incomplete_reason', sa.Text(), nullable=True),
        sa.Column('incomplete_at', sa.DateTime(), nullable=True),
        sa.Column('passivation_start', sa.DateTime(), nullable=True),
        sa.Column('passivation_end', sa.DateTime(), nullable=True),
        sa.Column('passivation_operator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('passivation_notes', sa.Text(), nullable=True),
        sa.Column('paint_start', sa.DateTime(), nullable=True),
        sa.Column('paint_end', sa.DateTime(), nullable=True),
        sa.Column('paint_operator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('paint_notes', sa.Text(), nullable=True),
        sa.Column('is_maintenance', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('maintenance_description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index(op.f('ix_jobs_job_number'), 'jobs', ['job_number'], unique=True)
    op.create_index(op.f('ix_jobs_work_order_id'), 'jobs', ['work_order_id'])
    op.create_index(op.f('ix_jobs_work_order_assembly_id'), 'jobs', ['work_order_assembly_id'])
    op.create_index(op.f('ix_jobs_component_id'), 'jobs', ['component_id'])
    op.create_index(op.f('ix_jobs_status'), 'jobs', ['status'])
    op.create_index(op.f('ix_jobs_assigned_machine_id'), 'jobs', ['assigned_machine_id'])
    op.create_index(op.f('ix_jobs_scheduled_start'), 'jobs', ['scheduled_start'])

    op.create_table('job_documents',
        _id(),
        sa.Column('job_id', sa.Integer(), sa.ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_type_id', sa.Integer(), sa.ForeignKey('document_types.id'), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index(op.f('ix_job_documents_job_id'), 'job_documents', ['job_id'])

    op.create_table('machine_downtime_logs',
        _id(),
        sa.Column('machine_id', sa.Integer(), sa.ForeignKey('machines.id', ondelete='CASCADE'), nullable=False),
        sa.Column('job_id', sa.Integer(), sa.ForeignKey('jobs.id'), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('reason', sa.String(length=200), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('logged_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _created_at(),
    )
    op.create_index(op.f('ix_machine_downtime_logs_machine_id'), 'machine_downtime_logs', ['machine_id'])
    op.create_index(op.f('ix_machine_downtime_logs_start_time'), 'machine_downtime_logs', ['start_time'])
    op.create_index(op.f('ix_machine_downtime_logs_end_time'), 'machine_downtime_logs', ['end_time'])


def downgrade() -> None:
    for table in (
        'machine_downtime_logs',
        'job_documents',
        'jobs',
        'work_order_assemblies',
        'work_orders',
        'part_document_requirements',
        'document_types',
        'part_machine_durations',
        'assembly_bom',
        'parts',
        'machines',
        'locations',
        'users',
    ):
        op.drop_table(table)
