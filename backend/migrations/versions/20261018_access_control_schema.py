"""Access control schema: tenants, principals, role mappings, overrides, staff

Revision ID: 20261018_access
Revises:
Create Date: 2026-10-18

This migration adds:
1. organizations (tenant root)
2. principals and session_tokens (credentials and sessions)
3. role_assignments (canonical role mapping per tenant + principal)
4. admin_role_overrides (operator email -> role list)
5. permission_overrides (per-module override rows)
6. staff_members (structured staff records with access state)
7. security_events (append-only audit)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_access'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. ORGANIZATIONS
    # ==========================================================================
    op.create_table('organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('organizations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_organizations_code'), ['code'], unique=True)
        batch_op.create_index(batch_op.f('ix_organizations_is_active'), ['is_active'], unique=False)

    # ==========================================================================
    # 2. PRINCIPALS AND SESSIONS
    # ==========================================================================
    op.create_table('principals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('external_id', sa.String(length=64), nullable=True),
        sa.Column('credential_status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('must_change_password', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'email', name='uq_principals_org_email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('principals', schema=None) as batch_op:
        batch_op.create_index('ix_principals_org_id', ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_principals_external_id'), ['external_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_principals_credential_status'), ['credential_status'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['principal_id'], ['principals.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index('ix_session_tokens_principal_active', ['principal_id', 'is_revoked'], unique=False)
        batch_op.create_index('ix_session_tokens_org_id', ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_principal_id'), ['principal_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_is_revoked'), ['is_revoked'], unique=False)

    # ==========================================================================
    # 3. ROLE ASSIGNMENTS
    # ==========================================================================
    op.create_table('role_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=64), nullable=True),
        sa.Column('job_title', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='GRANT'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['principal_id'], ['principals.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'principal_id', name='uq_role_assignments_org_principal'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('role_assignments', schema=None) as batch_op:
        batch_op.create_index('ix_role_assignments_org_status', ['org_id', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_role_assignments_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_role_assignments_principal_id'), ['principal_id'], unique=False)

    # ==========================================================================
    # 4. ADMIN ROLE OVERRIDE LIST
    # ==========================================================================
    op.create_table('admin_role_overrides',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=64), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'email', name='uq_admin_role_overrides_org_email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('admin_role_overrides', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_admin_role_overrides_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_admin_role_overrides_email'), ['email'], unique=False)

    # ==========================================================================
    # 5. PERMISSION OVERRIDES
    # ==========================================================================
    op.create_table('permission_overrides',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('module', sa.String(length=64), nullable=False),
        sa.Column('can_view', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('can_create', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('can_edit', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('can_delete', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('can_administer', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('updated_by_principal_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['principal_id'], ['principals.id'], ),
        sa.ForeignKeyConstraint(['updated_by_principal_id'], ['principals.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'principal_id', 'module', name='uq_permission_overrides_org_principal_module'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('permission_overrides', schema=None) as batch_op:
        batch_op.create_index('ix_permission_overrides_org_principal', ['org_id', 'principal_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_permission_overrides_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_permission_overrides_principal_id'), ['principal_id'], unique=False)

    # ==========================================================================
    # 6. STAFF MEMBERS
    # ==========================================================================
    op.create_table('staff_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('job_title', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('access_state', sa.String(length=16), nullable=False, server_default='no_access'),
        sa.Column('principal_id', sa.Integer(), nullable=True),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deactivation_reason', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['principal_id'], ['principals.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'email', name='uq_staff_members_org_email'),
        sa.UniqueConstraint('principal_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('staff_members', schema=None) as batch_op:
        batch_op.create_index('ix_staff_members_org_state', ['org_id', 'access_state'], unique=False)
        batch_op.create_index(batch_op.f('ix_staff_members_org_id'), ['org_id'], unique=False)

    # ==========================================================================
    # 7. SECURITY EVENTS
    # ==========================================================================
    op.create_table('security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=True),
        sa.Column('principal_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['principal_id'], ['principals.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('security_events', schema=None) as batch_op:
        batch_op.create_index('ix_security_events_principal_type', ['principal_id', 'event_type'], unique=False)
        batch_op.create_index('ix_security_events_org_occurred', ['org_id', 'occurred_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_org_id'), ['org_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_principal_id'), ['principal_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_success'), ['success'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_occurred_at'), ['occurred_at'], unique=False)


def downgrade():
    op.drop_table('security_events')
    op.drop_table('staff_members')
    op.drop_table('permission_overrides')
    op.drop_table('admin_role_overrides')
    op.drop_table('role_assignments')
    op.drop_table('session_tokens')
    op.drop_table('principals')
    op.drop_table('organizations')
