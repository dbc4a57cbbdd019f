"""initial labor slip schema

Revision ID: ls001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates:
- labor_companies: tenants (one per 統一編號)
- users, company_memberships, session_tokens: back-office auth
- labor_contacts: reusable payee profiles, unique per (company, id_number)
- labor_reports: payment slips with the signing-link state
- report_sequences: per-company, per-year report number counters
- labor_line_groups: LINE groups the bot has joined
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'ls001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # labor_companies
    # ============================================================================
    op.create_table(
        'labor_companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('tax_id', sa.String(length=16), nullable=True),
        sa.Column('responsible_person', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_labor_companies_tax_id', 'labor_companies', ['tax_id'], unique=True)
    op.create_index('ix_labor_companies_is_active', 'labor_companies', ['is_active'])

    # ============================================================================
    # users / company_memberships / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'company_memberships',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['labor_companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'company_id', name='uq_company_memberships_user_company'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_company_memberships_user', 'company_memberships', ['user_id'])
    op.create_index('ix_company_memberships_company_id', 'company_memberships', ['company_id'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # labor_contacts: one profile per national ID within a company
    # ============================================================================
    op.create_table(
        'labor_contacts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('id_number', sa.String(length=20), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('bank_name', sa.String(length=120), nullable=True),
        sa.Column('bank_branch', sa.String(length=120), nullable=True),
        sa.Column('bank_account', sa.String(length=64), nullable=True),
        sa.Column('is_union_member', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('id_card_front_url', sa.String(length=512), nullable=True),
        sa.Column('id_card_back_url', sa.String(length=512), nullable=True),
        sa.Column('bank_book_url', sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['labor_companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'id_number', name='uq_labor_contacts_company_id_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_labor_contacts_company_id', 'labor_contacts', ['company_id'])
    op.create_index('ix_labor_contacts_company_name', 'labor_contacts', ['company_id', 'name'])

    # ============================================================================
    # labor_reports: amounts satisfy net = gross - tax - health insurance
    # ============================================================================
    op.create_table(
        'labor_reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('report_number', sa.String(length=32), nullable=False),
        sa.Column('contact_id', sa.Integer(), nullable=True),
        sa.Column('payee_name', sa.String(length=120), nullable=False),
        sa.Column('payee_id_number', sa.String(length=20), nullable=True),
        sa.Column('payee_address', sa.String(length=255), nullable=True),
        sa.Column('payee_bank_name', sa.String(length=120), nullable=True),
        sa.Column('payee_bank_account', sa.String(length=64), nullable=True),
        sa.Column('income_type', sa.String(length=4), nullable=False),
        sa.Column('gross_amount', sa.Integer(), nullable=False),
        sa.Column('income_tax', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('health_insurance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=True),
        sa.Column('period_end', sa.Date(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('sign_token', sa.String(length=64), nullable=True),
        sa.Column('signature_data', sa.Text(), nullable=True),
        sa.Column('signed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signed_ip', sa.String(length=45), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['labor_companies.id'], ),
        sa.ForeignKeyConstraint(['contact_id'], ['labor_contacts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'report_number', name='uq_labor_reports_company_number'),
        sa.UniqueConstraint('sign_token', name='uq_labor_reports_sign_token'),
        sa.CheckConstraint('income_tax >= 0', name='ck_labor_reports_income_tax_nonneg'),
        sa.CheckConstraint('health_insurance >= 0', name='ck_labor_reports_hi_nonneg'),
        sa.CheckConstraint('net_amount = gross_amount - income_tax - health_insurance',
                           name='ck_labor_reports_net_amount'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_labor_reports_company_id', 'labor_reports', ['company_id'])
    op.create_index('ix_labor_reports_contact_id', 'labor_reports', ['contact_id'])
    op.create_index('ix_labor_reports_status', 'labor_reports', ['status'])
    op.create_index('ix_labor_reports_company_status', 'labor_reports', ['company_id', 'status'])
    op.create_index('ix_labor_reports_company_payment_date', 'labor_reports', ['company_id', 'payment_date'])

    # ============================================================================
    # report_sequences: LR-{year}-{NNNN} counters
    # ============================================================================
    op.create_table(
        'report_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['company_id'], ['labor_companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'year', name='uq_report_sequences_company_year'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_report_sequences_company_id', 'report_sequences', ['company_id'])

    # ============================================================================
    # labor_line_groups
    # ============================================================================
    op.create_table(
        'labor_line_groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(length=64), nullable=False),
        sa.Column('group_name', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_labor_line_groups_group_id', 'labor_line_groups', ['group_id'], unique=True)


def downgrade():
    op.drop_table('labor_line_groups')
    op.drop_table('report_sequences')
    op.drop_table('labor_reports')
    op.drop_table('labor_contacts')
    op.drop_table('session_tokens')
    op.drop_table('company_memberships')
    op.drop_table('users')
    op.drop_table('labor_companies')
