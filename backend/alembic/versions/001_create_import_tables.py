"""create expense, import and storage tables

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:00:00
"""

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        'import_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('couple_id', sa.String(64), nullable=False, index=True),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('file_type', sa.String(8), nullable=True),
        sa.Column(
            'status',
            sa.Enum('pending', 'processing', 'completed', 'failed', name='importstatus'),
            nullable=False,
        ),
        sa.Column('transactions_parsed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('transactions_imported', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('transactions_skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_type', sa.String(32), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'expenses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('couple_id', sa.String(64), nullable=False, index=True),
        sa.Column('paid_by', sa.String(64), nullable=False),
        sa.Column('partner_id', sa.String(64), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category_key', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False, index=True),
        sa.Column('transaction_type', sa.Enum('debit', 'credit', name='transactiontype'), nullable=False),
        sa.Column('paid_by_percentage', sa.Integer(), nullable=False),
        sa.Column('paid_by_share', sa.Numeric(12, 2), nullable=False),
        sa.Column('partner_share', sa.Numeric(12, 2), nullable=False),
        sa.Column('source', sa.Enum('manual', 'bank_import', 'receipt', name='expensesource'), nullable=False),
        sa.Column('fingerprint', sa.String(64), nullable=True, index=True),
        sa.Column('import_id', sa.String(36), sa.ForeignKey('import_logs.id'), nullable=True),
        sa.Column('receipt_path', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_expense_couple_date', 'expenses', ['couple_id', 'date'])

    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('couple_id', sa.String(64), nullable=False, index=True),
        sa.Column('key', sa.String(64), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('icon', sa.String(16), nullable=True),
        sa.Column('default_budget', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('keywords', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('couple_id', 'key', name='uq_category_couple_key'),
    )

    op.create_table(
        'storage_entries',
        sa.Column('key', sa.String(128), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('storage_entries')
    op.drop_table('categories')
    op.drop_index('idx_expense_couple_date', table_name='expenses')
    op.drop_table('expenses')
    op.drop_table('import_logs')
