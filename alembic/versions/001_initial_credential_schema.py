"""Initial credential service schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

Creates users with their credential identity, the refresh token ledger and
the account-verification, recover-password and reset-password requests with
one attempt counter table per flow.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SELF_SERVICE_TABLES = ('account_verification', 'recover_password', 'reset_password')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('user_name', sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)
    op.create_index('ix_user_created_at', 'user', ['created_at'])

    op.create_table(
        'user_identity',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('is_account_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('strict_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('idx_user_identity_locked', 'user_identity', ['is_locked'])
    op.create_index('ix_user_identity_created_at', 'user_identity', ['created_at'])

    op.create_table(
        'refresh_token',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('jti', sa.String(length=64), nullable=False),
        sa.Column('iat', sa.BigInteger(), nullable=False),
        sa.Column('exp', sa.BigInteger(), nullable=False),
        sa.Column('platform', sa.Enum('WEB', 'MOBILE', name='platform_for_jwt'), nullable=False),
        sa.Column('token', sa.Text(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_refresh_token_jti', 'refresh_token', ['jti'], unique=True)
    op.create_index('idx_refresh_token_user_id', 'refresh_token', ['user_id'])
    op.create_index('ix_refresh_token_created_at', 'refresh_token', ['created_at'])

    for table in SELF_SERVICE_TABLES:
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('security_token', sa.Text(), nullable=False),
            sa.Column('jti', sa.String(length=64), nullable=False),
            sa.Column('new_password', sa.String(length=255), nullable=True),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('security_token'),
        )
        op.create_index(f'ix_{table}_user_id', table, ['user_id'], unique=True)
        op.create_index(f'ix_{table}_jti', table, ['jti'], unique=True)
        op.create_index(f'ix_{table}_deleted_at', table, ['deleted_at'])
        op.create_index(f'ix_{table}_created_at', table, ['created_at'])

        counter_table = f'{table}_attempt_count'
        op.create_table(
            counter_table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('request_id', sa.Integer(), nullable=False),
            sa.Column('count', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('count_increase_last_update_date', sa.DateTime(), nullable=False),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['request_id'], [f'{table}.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('request_id'),
        )
        op.create_index(f'ix_{counter_table}_deleted_at', counter_table, ['deleted_at'])
        op.create_index(f'ix_{counter_table}_created_at', counter_table, ['created_at'])


def downgrade() -> None:
    for table in reversed(SELF_SERVICE_TABLES):
        op.drop_table(f'{table}_attempt_count')
        op.drop_table(table)
    op.drop_table('refresh_token')
    sa.Enum(name='platform_for_jwt').drop(op.get_bind(), checkfirst=True)
    op.drop_table('user_identity')
    op.drop_table('user')
