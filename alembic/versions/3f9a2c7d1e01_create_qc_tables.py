"""Create users, laptops, QC sessions, checklist items, attachments and history tables

Revision ID: 3f9a2c7d1e01
Revises:
Create Date: 2026-10-19 09:12:41.204118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a2c7d1e01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LAPTOP_STATUSES = ('pending', 'dalam_qc', 'lulus_qc', 'perlu_perbaikan', 'dalam_perbaikan')


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def upgrade() -> None:
    op.create_table('users',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('username', sa.String(length=255), nullable=False),
    sa.Column('password_hash', sa.String(length=255), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('role', _enum('userrole', 'leader', 'staff'), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    op.create_table('laptops',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('serial_number', sa.String(length=255), nullable=False),
    sa.Column('model', sa.String(length=255), nullable=True),
    sa.Column('brand', sa.String(length=255), nullable=True),
    sa.Column('specifications', sa.JSON(), nullable=True),
    sa.Column('status', _enum('laptopstatus', *LAPTOP_STATUSES), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_laptops_id'), 'laptops', ['id'], unique=False)
    op.create_index(op.f('ix_laptops_serial_number'), 'laptops', ['serial_number'], unique=True)
    op.create_index(op.f('ix_laptops_status'), 'laptops', ['status'], unique=False)

    op.create_table('qc_sessions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('laptop_id', sa.Integer(), nullable=False),
    sa.Column('qc_user_id', sa.Integer(), nullable=True),
    sa.Column('qc_name', sa.String(length=255), nullable=True),
    sa.Column('qc_room', sa.String(length=100), nullable=True),
    sa.Column('qc_line', sa.String(length=100), nullable=True),
    sa.Column('qc_table', sa.String(length=100), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('overall_status', _enum('sessionoutcome', 'pending', 'pass', 'fail'), nullable=False),
    sa.Column('qc_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.ForeignKeyConstraint(['laptop_id'], ['laptops.id'], ),
    sa.ForeignKeyConstraint(['qc_user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_qc_sessions_id'), 'qc_sessions', ['id'], unique=False)
    op.create_index(op.f('ix_qc_sessions_laptop_id'), 'qc_sessions', ['laptop_id'], unique=False)
    op.create_index(op.f('ix_qc_sessions_qc_user_id'), 'qc_sessions', ['qc_user_id'], unique=False)
    op.create_index(op.f('ix_qc_sessions_overall_status'), 'qc_sessions', ['overall_status'], unique=False)
    op.create_index(op.f('ix_qc_sessions_qc_date'), 'qc_sessions', ['qc_date'], unique=False)

    op.create_table('qc_checklist_items',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('qc_session_id', sa.Integer(), nullable=False),
    sa.Column('category', _enum('checklistcategory', 'hardware', 'software'), nullable=False),
    sa.Column('item_name', sa.String(length=255), nullable=False),
    sa.Column('status', _enum('itemstatus', 'pending', 'pass', 'fail'), nullable=False),
    sa.Column('is_checked', sa.Boolean(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.ForeignKeyConstraint(['qc_session_id'], ['qc_sessions.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_qc_checklist_items_id'), 'qc_checklist_items', ['id'], unique=False)
    op.create_index(op.f('ix_qc_checklist_items_qc_session_id'), 'qc_checklist_items', ['qc_session_id'], unique=False)

    op.create_table('attachments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('qc_session_id', sa.Integer(), nullable=False),
    sa.Column('file_name', sa.String(length=255), nullable=False),
    sa.Column('file_path', sa.String(length=500), nullable=False),
    sa.Column('file_type', sa.String(length=100), nullable=False),
    sa.Column('file_size', sa.Integer(), nullable=False),
    sa.Column('description', sa.String(length=500), nullable=True),
    sa.Column('uploaded_by', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.ForeignKeyConstraint(['qc_session_id'], ['qc_sessions.id'], ),
    sa.ForeignKeyConstraint(['uploaded_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_attachments_id'), 'attachments', ['id'], unique=False)
    op.create_index(op.f('ix_attachments_qc_session_id'), 'attachments', ['qc_session_id'], unique=False)

    op.create_table('history_logs',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('laptop_id', sa.Integer(), nullable=True),
    sa.Column('user_id', sa.Integer(), nullable=True),
    sa.Column('action', sa.String(length=500), nullable=False),
    sa.Column('action_type', _enum('actiontype', 'status_change', 'qc_start', 'qc_complete', 'qc_edit'), nullable=False),
    sa.Column('previous_status', _enum('laptopstatus', *LAPTOP_STATUSES), nullable=True),
    sa.Column('new_status', _enum('laptopstatus', *LAPTOP_STATUSES), nullable=True),
    sa.Column('details', sa.JSON(), nullable=True),
    sa.Column('ip_address', sa.String(length=45), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    sa.ForeignKeyConstraint(['laptop_id'], ['laptops.id'], ),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_history_logs_id'), 'history_logs', ['id'], unique=False)
    op.create_index(op.f('ix_history_logs_laptop_id'), 'history_logs', ['laptop_id'], unique=False)
    op.create_index(op.f('ix_history_logs_user_id'), 'history_logs', ['user_id'], unique=False)
    op.create_index(op.f('ix_history_logs_action_type'), 'history_logs', ['action_type'], unique=False)
    op.create_index(op.f('ix_history_logs_created_at'), 'history_logs', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('history_logs')
    op.drop_table('attachments')
    op.drop_table('qc_checklist_items')
    op.drop_table('qc_sessions')
    op.drop_table('laptops')
    op.drop_table('users')
