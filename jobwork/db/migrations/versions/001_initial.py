"""initial marketplace schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates all enum types and tables for the jobwork marketplace.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


user_role = sa.Enum('buyer', 'supplier', 'admin', name='user_role')
supplier_verification = sa.Enum('unverified', 'bronze', 'silver', 'gold', name='supplier_verification')
rfq_status = sa.Enum(
    'draft', 'submitted', 'under_review', 'invited', 'quoted', 'offers_published',
    'accepted', 'completed', 'cancelled', name='rfq_status',
)
invite_status = sa.Enum('invited', 'responded', 'declined', name='invite_status')
quote_status = sa.Enum('submitted', 'accepted', 'rejected', name='quote_status')
order_status = sa.Enum(
    'created', 'deposit_paid', 'confirmed', 'production', 'quality_check', 'shipped',
    'delivered', 'cancelled', name='order_status',
)
notification_type = sa.Enum(
    'rfq_submitted', 'rfq_status_change', 'supplier_invitation', 'quote_received',
    'offer_published', 'order_created', 'order_status_change', 'production_update',
    'supplier_verified', 'general', name='notification_type',
)

ENUMS = [user_role, supplier_verification, rfq_status, invite_status, quote_status,
         order_status, notification_type]


def _timestamps(updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade() -> None:
    # Companies
    op.create_table('companies',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('gstin', sa.String(20)),
        sa.Column('pan', sa.String(20)),
        sa.Column('address', sa.JSON()),
        sa.Column('city', sa.String(100)),
        sa.Column('state', sa.String(100)),
        sa.Column('country', sa.String(100)),
        *_timestamps(),
    )

    # Users
    op.create_table('users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id')),
        sa.Column('phone', sa.String(50)),
        sa.Column('is_verified', sa.Boolean()),
        *_timestamps(),
    )

    # Supplier profiles
    op.create_table('supplier_profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), unique=True, nullable=False),
        sa.Column('capabilities', sa.JSON()),
        sa.Column('machines', sa.JSON()),
        sa.Column('certifications', sa.JSON()),
        sa.Column('moq_default', sa.Integer()),
        sa.Column('verified_status', supplier_verification),
        *_timestamps(),
    )

    # SKU catalog
    op.create_table('skus',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(50), unique=True, nullable=False, index=True),
        sa.Column('industry', sa.String(100), nullable=False, index=True),
        sa.Column('process_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('default_moq', sa.Integer()),
        sa.Column('default_lead_time_days', sa.Integer()),
        sa.Column('parameters_schema', sa.JSON()),
        sa.Column('active', sa.Boolean()),
        *_timestamps(updated=False),
    )

    # RFQs
    op.create_table('rfqs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_number', sa.String(50), unique=True, nullable=False),
        sa.Column('buyer_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('status', rfq_status, nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('nda_required', sa.Boolean()),
        sa.Column('confidential', sa.Boolean()),
        sa.Column('budget_range', sa.JSON()),
        *_timestamps(),
    )

    # Supplier invites
    op.create_table('supplier_invites',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id'), nullable=False),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('invited_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', invite_status, nullable=False),
        sa.Column('invited_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('response_deadline', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_invite_rfq_supplier'),
    )

    # Quotes
    op.create_table('quotes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id'), nullable=False, index=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('invite_id', sa.String(36), sa.ForeignKey('supplier_invites.id'), nullable=False, unique=True),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('lead_time_days', sa.Integer(), nullable=False),
        sa.Column('validity_days', sa.Integer()),
        sa.Column('tooling_cost', sa.Numeric(12, 2)),
        sa.Column('notes', sa.Text()),
        sa.Column('terms', sa.JSON()),
        sa.Column('status', quote_status, nullable=False),
        *_timestamps(updated=False),
    )

    # Curated offers
    op.create_table('curated_offers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id'), nullable=False, index=True),
        sa.Column('admin_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('lead_time_days', sa.Integer(), nullable=False),
        sa.Column('warranty', sa.String(255), nullable=False),
        sa.Column('advance_payment_percentage', sa.Integer(), nullable=False),
        sa.Column('advance_payment_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('final_payment_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_terms', sa.Text()),
        sa.Column('payment_link', sa.Text()),
        sa.Column('payment_deadline', sa.DateTime(timezone=True)),
        sa.Column('details', sa.JSON()),
        sa.Column('supplier_indicators', sa.JSON()),
        sa.Column('quote_ids', sa.JSON()),
        sa.Column('published_at', sa.DateTime(timezone=True)),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        *_timestamps(updated=False),
    )

    # Orders
    op.create_table('orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_number', sa.String(50), unique=True, nullable=False),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id'), nullable=False),
        sa.Column('curated_offer_id', sa.String(36), sa.ForeignKey('curated_offers.id'), nullable=False, unique=True),
        sa.Column('buyer_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('admin_id', sa.String(36), sa.ForeignKey('users.id')),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('users.id'), index=True),
        sa.Column('status', order_status, nullable=False),
        sa.Column('deposit_percent', sa.Integer()),
        sa.Column('deposit_paid', sa.Boolean()),
        sa.Column('advance_payment', sa.Numeric(12, 2)),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_ref', sa.String(255)),
        *_timestamps(),
    )

    # Production updates
    op.create_table('production_updates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False, index=True),
        sa.Column('stage', sa.String(100), nullable=False),
        sa.Column('detail', sa.Text()),
        sa.Column('updated_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(updated=False),
    )

    # Documents
    op.create_table('documents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), index=True),
        sa.Column('doc_type', sa.String(100), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('content_type', sa.String(100), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('sha256', sa.String(64), nullable=False, index=True),
        sa.Column('file_ref', sa.Text(), nullable=False),
        sa.Column('uploaded_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Notifications
    op.create_table('notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean()),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', sa.String(36)),
        *_timestamps(updated=False),
    )
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])

    # Audit logs
    op.create_table('audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id')),
        sa.Column('action', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_id', sa.String(36), nullable=False),
        sa.Column('details', sa.JSON()),
        sa.Column('ip_address', sa.String(50)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, index=True),
    )


def downgrade() -> None:
    op.drop_index('ix_notifications_user_created', table_name='notifications')
    for table in ('audit_logs', 'notifications', 'documents', 'production_updates', 'orders',
                  'curated_offers', 'quotes', 'supplier_invites', 'rfqs', 'skus',
                  'supplier_profiles', 'users', 'companies'):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in ENUMS:
        enum.drop(bind, checkfirst=True)
