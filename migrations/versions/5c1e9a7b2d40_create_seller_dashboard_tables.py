"""create sellers, product versions, otp codes, support queries and audit log

Revision ID: 5c1e9a7b2d40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e9a7b2d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'sellers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('auth_provider', sa.String(length=20), nullable=False),
        sa.Column('is_seller', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sellers_email', 'sellers', ['email'], unique=True)
    op.create_index('ix_sellers_phone', 'sellers', ['phone'], unique=True)

    op.create_table(
        'product_versions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('product_group_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.JSON(), nullable=True),
        sa.Column('type', sa.String(length=10), nullable=False),
        sa.Column('quantity_left', sa.Integer(), nullable=False),
        sa.Column('quantity_sold', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('session', sa.String(length=255), nullable=True),
        sa.Column('image_url', sa.JSON(), nullable=False),
        sa.Column('edit_count', sa.Integer(), nullable=False),
        sa.Column('approval_status', sa.String(length=20), nullable=False),
        sa.Column('product_status', sa.String(length=20), nullable=False),
        sa.Column('reject_explanation', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['sellers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_group_id', 'edit_count', name='uq_product_group_version'),
    )
    op.create_index('ix_product_versions_product_group_id', 'product_versions', ['product_group_id'])
    op.create_index('ix_product_versions_user_id', 'product_versions', ['user_id'])
    op.create_index('ix_product_versions_approval_status', 'product_versions', ['approval_status'])

    op.create_table(
        'otp_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('channel', sa.String(length=10), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('purpose', sa.String(length=20), nullable=False),
        sa.Column('code_hash', sa.String(length=64), nullable=False),
        sa.Column('seller_id', sa.String(length=36), nullable=True),
        sa.Column('signup_full_name', sa.String(length=255), nullable=True),
        sa.Column('signup_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_otp_codes_destination', 'otp_codes', ['destination'])
    op.create_index('ix_otp_codes_created_at', 'otp_codes', ['created_at'])

    op.create_table(
        'report_query',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['sellers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_report_query_user_id', 'report_query', ['user_id'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.String(length=36), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('product_group_id', sa.String(length=36), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_seller_id', 'audit_log', ['seller_id'])
    op.create_index('ix_audit_log_product_group_id', 'audit_log', ['product_group_id'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade():
    op.drop_table('audit_log')
    op.drop_table('report_query')
    op.drop_table('otp_codes')
    op.drop_table('product_versions')
    op.drop_table('sellers')
