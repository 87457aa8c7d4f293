"""Initial migration - fund sync schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False, comment='Creation timestamp'),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False, comment='Last update timestamp'),
    ]


def upgrade() -> None:
    # Fund configuration
    op.create_table('contracts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False, comment='SFT or Vault'),
        sa.Column('contract_address', sa.String(length=42), nullable=True, comment='Contract address (0x-prefixed)'),
        sa.Column('chain', sa.String(length=50), nullable=True, comment='Chain the contract is deployed on'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('funds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, comment='Display name'),
        sa.Column('chain', sa.String(length=50), nullable=True, comment='Chain name'),
        sa.Column('base_currency', sa.String(length=20), nullable=True, comment='Currency rewards are paid in'),
        sa.Column('sft_id', sa.Integer(), nullable=True, comment='Semi-fungible token contract'),
        sa.Column('vault_id', sa.Integer(), nullable=True, comment='Staking vault contract'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['sft_id'], ['contracts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['vault_id'], ['contracts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fund_id', sa.Integer(), nullable=False),
        sa.Column('package_id', sa.String(length=78), nullable=False, comment='On-chain slot identifier (decimal string)'),
        sa.Column('name', sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['fund_id'], ['funds.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Users
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=64), nullable=True, comment='Display name'),
        sa.Column('exp', sa.BigInteger(), nullable=False, comment='Accumulated experience points'),
        sa.Column('points', sa.BigInteger(), nullable=False, comment='Accumulated reward points'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username')
    )

    op.create_table('wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(length=42), nullable=False, comment='Wallet address'),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('referrals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('staked_value', sa.BigInteger(), nullable=False, comment='Currently staked token value in whole units (not wei)'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Token state
    op.create_table('tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fund_id', sa.Integer(), nullable=True, comment='Owning fund'),
        sa.Column('contract_address', sa.String(length=42), nullable=False, comment='SFT contract address'),
        sa.Column('token_id', sa.String(length=66), nullable=False, comment='Token id as 0x + 64 hex digits'),
        sa.Column('owner', sa.String(length=42), nullable=True, comment='Current owner address'),
        sa.Column('token_value', sa.String(length=100), nullable=False, comment='Token value in wei as an exact decimal string'),
        sa.Column('package_id', sa.Integer(), nullable=True, comment="Package matching the token's slot"),
        sa.Column('status', sa.String(length=20), nullable=False, comment='Holding, Staking or Burned'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['fund_id'], ['funds.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    # Audit trail
    op.create_table('event_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False, comment='Classified action'),
        sa.Column('block_number', sa.BigInteger(), nullable=False, comment='Block number'),
        sa.Column('block_hash', sa.String(length=66), nullable=False, comment='Block hash'),
        sa.Column('transaction_index', sa.Integer(), nullable=False, comment='Transaction index within block'),
        sa.Column('transaction_hash', sa.String(length=66), nullable=False, comment='Transaction hash'),
        sa.Column('log_index', sa.Integer(), nullable=False, comment='Log index within block'),
        sa.Column('contract_address', sa.String(length=42), nullable=False, comment='Emitting contract address'),
        sa.Column('data', sa.Text(), nullable=False, comment='Raw log data (hex)'),
        sa.Column('topics', sa.JSON(), nullable=False, comment='Raw log topics (hex)'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('claimed_reward_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('fund_id', sa.Integer(), nullable=True),
        sa.Column('chain', sa.String(length=50), nullable=True),
        sa.Column('reward_currency', sa.String(length=20), nullable=True),
        sa.Column('balance', sa.String(length=100), nullable=False, comment='Claimed balance in whole units'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['fund_id'], ['funds.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('earning_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False, comment='Earning source, e.g. ClaimReward'),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('earning_exp', sa.BigInteger(), nullable=False),
        sa.Column('earning_points', sa.BigInteger(), nullable=False),
        sa.Column('receipt', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Run summaries
    op.create_table('sync_run_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trigger', sa.String(length=20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('latest_token_event_log_block_number', sa.BigInteger(), nullable=False, comment='Checkpoint block captured at run start'),
        sa.Column('latest_token_event_log_index', sa.Integer(), nullable=False, comment='Checkpoint log index captured at run start'),
        sa.Column('total_synced', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    # Indexes
    for table in (
        'contracts', 'funds', 'packages', 'users', 'wallets', 'referrals', 'tokens',
        'event_logs', 'claimed_reward_records', 'earning_records', 'sync_run_logs',
    ):
        op.create_index(f'ix_{table}_created_at', table, ['created_at'], unique=False)

    op.create_index('ix_packages_fund_id', 'packages', ['fund_id'], unique=False)
    op.create_index('idx_package_fund_package_id', 'packages', ['fund_id', 'package_id'], unique=False)
    op.create_index('ix_wallets_address', 'wallets', ['address'], unique=True)
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'], unique=False)
    op.create_index('ix_referrals_user_id', 'referrals', ['user_id'], unique=True)
    op.create_index('ix_tokens_fund_id', 'tokens', ['fund_id'], unique=False)
    op.create_index('ix_tokens_owner', 'tokens', ['owner'], unique=False)
    op.create_index('idx_token_contract_token_id', 'tokens', ['contract_address', 'token_id'], unique=False)
    op.create_index('ix_event_logs_transaction_hash', 'event_logs', ['transaction_hash'], unique=False)
    op.create_index('idx_event_log_position', 'event_logs', ['block_number', 'log_index'], unique=False)
    op.create_index('ix_claimed_reward_records_user_id', 'claimed_reward_records', ['user_id'], unique=False)
    op.create_index('ix_claimed_reward_records_fund_id', 'claimed_reward_records', ['fund_id'], unique=False)
    op.create_index('ix_earning_records_type', 'earning_records', ['type'], unique=False)
    op.create_index('ix_earning_records_user_id', 'earning_records', ['user_id'], unique=False)
    op.create_index('idx_sync_run_log_prune', 'sync_run_logs', ['trigger', 'status', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('sync_run_logs')
    op.drop_table('earning_records')
    op.drop_table('claimed_reward_records')
    op.drop_table('event_logs')
    op.drop_table('tokens')
    op.drop_table('referrals')
    op.drop_table('wallets')
    op.drop_table('users')
    op.drop_table('packages')
    op.drop_table('funds')
    op.drop_table('contracts')
