"""Initial migration - create storage_entries and reconciliation_attempts tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

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
    # Key/value slots (payment intent, auth token)
    op.create_table(
        'storage_entries',
        sa.Column('key', sa.String(255), primary_key=True),
        sa.Column('value_json', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # Journal of terminal reconciliation outcomes
    op.create_table(
        'reconciliation_attempts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('visit_id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.String(255), nullable=True),
        sa.Column('transaction_uuid', sa.String(255), nullable=True),
        sa.Column('outcome', sa.String(50), nullable=False),
        sa.Column('source', sa.String(50), nullable=False),
        sa.Column('state_path', sa.String(255), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('context_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_reconciliation_attempts_order_id', 'reconciliation_attempts', ['order_id'])
    op.create_index('ix_reconciliation_attempts_outcome', 'reconciliation_attempts', ['outcome'])
    op.create_index('ix_reconciliation_attempts_created_at', 'reconciliation_attempts', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_reconciliation_attempts_created_at', table_name='reconciliation_attempts')
    op.drop_index('ix_reconciliation_attempts_outcome', table_name='reconciliation_attempts')
    op.drop_index('ix_reconciliation_attempts_order_id', table_name='reconciliation_attempts')
    op.drop_table('reconciliation_attempts')
    op.drop_table('storage_entries')
