"""Initial users table"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20240905_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='Researcher'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reset_password_token', sa.String()),
        sa.Column('reset_password_expires', sa.DateTime()),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('avatar_url', sa.Text()),
        sa.Column('bio', sa.Text()),
        sa.Column('s3_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('s3_endpoint', sa.String()),
        sa.Column('s3_region', sa.String()),
        sa.Column('s3_bucket', sa.String()),
        sa.Column('s3_access_key', sa.String()),
        sa.Column('s3_secret_key', sa.String()),
        sa.Column('smtp_host', sa.String()),
        sa.Column('smtp_port', sa.Integer()),
        sa.Column('smtp_user', sa.String()),
        sa.Column('smtp_password', sa.String()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_reset_password_token', 'users', ['reset_password_token'])


def downgrade() -> None:
    op.drop_index('ix_users_reset_password_token', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
