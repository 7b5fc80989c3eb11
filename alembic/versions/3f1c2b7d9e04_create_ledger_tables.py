"""create ledger tables

Revision ID: 3f1c2b7d9e04
Revises:
Create Date: 2026-10-19 10:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2b7d9e04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

transaction_type = sa.Enum('WITHDRAW', 'DEPOSIT', 'TRANSFER', 'BANK_SLIP', 'CARD', 'INVESTMENT', name='transactiontype')
investment_type = sa.Enum(
    'CDB', 'LCI', 'LCA', 'STOCK', 'FUND', 'CRA', 'CRI', 'DEBENTURE', 'CURRENCY', 'LC', 'LF', 'FII', 'TREASURY',
    name='investmenttype'
)
budget_type = sa.Enum('ANNUAL', 'QUARTERLY', 'MONTHLY', 'WEEKLY', 'DAILY', name='budgettype')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.Enum('USER', 'ADMIN', name='userrole'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('email', name='uq_user_email'),
        sa.UniqueConstraint('username', name='uq_user_username'),
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('account_name', sa.String(255), nullable=False),
        sa.Column(
            'account_type',
            sa.Enum('CHECKING', 'SAVINGS', 'CREDIT_CARD', 'INVESTMENT', 'OTHER', name='accounttype'),
            nullable=True
        ),
        sa.Column('institution_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'account_name', name='uq_user_account_name'),
    )

    op.create_table(
        'goals',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('value', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('saved_value', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_goals_user', 'goals', ['user_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('parent_category', sa.String(100), nullable=False),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('value', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('investment_type', investment_type, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_transactions_user_date', 'transactions', ['user_id', 'transaction_date'])
    op.create_index('idx_transactions_user_account', 'transactions', ['user_id', 'account_id'])
    op.create_index('idx_transactions_category', 'transactions', ['category'])

    op.create_table(
        'transaction_goals',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('goal_id', sa.Integer(), sa.ForeignKey('goals.id'), nullable=False),
        sa.Column('goal_name', sa.String(255), nullable=False),
        sa.Column('percentage', sa.DECIMAL(5, 4), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
    )
    op.create_index('idx_transaction_goals_goal', 'transaction_goals', ['goal_id'])

    op.create_table(
        'monthly_balances',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('opening_balance', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('closing_balance', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'account_id', 'year', 'month', name='uq_monthly_balance_period'),
    )
    op.create_index('idx_monthly_balances_account_period', 'monthly_balances', ['account_id', 'year', 'month'])

    op.create_table(
        'monthly_balance_transactions',
        sa.Column(
            'monthly_balance_id', sa.Integer(),
            sa.ForeignKey('monthly_balances.id', ondelete='CASCADE'), primary_key=True
        ),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transactions.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('value', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('budget_type', budget_type, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('spent_value', sa.DECIMAL(15, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'name', name='uq_user_budget_name'),
    )
    op.create_index('idx_budgets_user_period', 'budgets', ['user_id', 'start_date', 'end_date'])

    op.create_table(
        'budget_categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('budget_id', sa.Integer(), sa.ForeignKey('budgets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.UniqueConstraint('budget_id', 'category', name='uq_budget_category'),
    )
    op.create_index('idx_budget_categories_category', 'budget_categories', ['category'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_budget_categories_category', table_name='budget_categories')
    op.drop_table('budget_categories')
    op.drop_index('idx_budgets_user_period', table_name='budgets')
    op.drop_table('budgets')
    op.drop_table('monthly_balance_transactions')
    op.drop_index('idx_monthly_balances_account_period', table_name='monthly_balances')
    op.drop_table('monthly_balances')
    op.drop_index('idx_transaction_goals_goal', table_name='transaction_goals')
    op.drop_table('transaction_goals')
    op.drop_index('idx_transactions_category', table_name='transactions')
    op.drop_index('idx_transactions_user_account', table_name='transactions')
    op.drop_index('idx_transactions_user_date', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('idx_goals_user', table_name='goals')
    op.drop_table('goals')
    op.drop_table('accounts')
    op.drop_table('users')
