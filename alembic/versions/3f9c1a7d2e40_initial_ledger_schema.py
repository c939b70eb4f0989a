"""Initial ledger schema

Revision ID: 3f9c1a7d2e40
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7d2e40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'partners',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False, unique=True),
        sa.Column('placement_terms', sa.JSON(), nullable=True),
        sa.Column('webhook_url', sa.Text(), nullable=True),
        sa.Column('api_key_hash', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_partners_api_key_hash', 'partners', ['api_key_hash'])

    op.create_table(
        'introductions',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('partner_id', sa.Text(), sa.ForeignKey('partners.id'), nullable=False),
        sa.Column('candidate_crd', sa.BigInteger(), nullable=False),
        sa.Column('candidate_first_name', sa.Text(), nullable=False),
        sa.Column('candidate_last_name', sa.Text(), nullable=False),
        sa.Column('candidate_phone', sa.Text(), nullable=True),
        sa.Column('candidate_email', sa.Text(), nullable=True),
        sa.Column('candidate_linkedin', sa.Text(), nullable=True),
        sa.Column('recruiter_name', sa.Text(), nullable=True),
        sa.Column('intro_timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('conversation_id', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='OPEN'),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint(
            'partner_id', 'candidate_crd', 'conversation_id',
            name='uq_introduction_partner_crd_conversation',
        ),
    )
    op.create_index('ix_introductions_candidate_crd', 'introductions', ['candidate_crd'])
    op.create_index('ix_introductions_status', 'introductions', ['status'])

    op.create_table(
        'hires',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('crd_number', sa.BigInteger(), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('last_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('firm_entity', sa.Text(), nullable=False),
        sa.Column('firm_crd', sa.BigInteger(), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('termination_date', sa.Date(), nullable=True),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('raw_source_reference', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('crd_number', 'firm_entity', 'hire_date', name='uq_hire_crd_firm_date'),
    )
    op.create_index('ix_hires_crd_number', 'hires', ['crd_number'])
    op.create_index('ix_hires_hire_date', 'hires', ['hire_date'])

    op.create_table(
        'placements',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('partner_id', sa.Text(), sa.ForeignKey('partners.id'), nullable=False),
        sa.Column('introduction_id', sa.Text(), sa.ForeignKey('introductions.id'), nullable=False, unique=True),
        sa.Column('hire_id', sa.Text(), sa.ForeignKey('hires.id'), nullable=False),
        sa.Column('candidate_crd', sa.BigInteger(), nullable=False),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='PENDING_NOTIFY'),
        sa.Column('fee_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('fee_currency', sa.Text(), nullable=False, server_default='USD'),
        sa.Column('terms_snapshot', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_placements_candidate_crd', 'placements', ['candidate_crd'])
    op.create_index('ix_placements_status', 'placements', ['status'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('entity_type', sa.Text(), nullable=False),
        sa.Column('entity_id', sa.Text(), nullable=False),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])

    op.create_table(
        'registered_advisors',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('crd_number', sa.BigInteger(), nullable=False, unique=True),
        sa.Column('first_name', sa.Text(), server_default=''),
        sa.Column('last_name', sa.Text(), server_default=''),
        sa.Column('firm_crd', sa.BigInteger(), nullable=False),
        sa.Column('firm_name', sa.Text(), server_default=''),
        sa.Column('first_seen', sa.DateTime(timezone=True)),
        sa.Column('last_seen', sa.DateTime(timezone=True)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_registered_advisors_firm_crd', 'registered_advisors', ['firm_crd'])


def downgrade() -> None:
    op.drop_index('ix_registered_advisors_firm_crd', table_name='registered_advisors')
    op.drop_table('registered_advisors')
    op.drop_index('ix_audit_log_created_at', table_name='audit_log')
    op.drop_index('ix_audit_log_entity', table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_index('ix_placements_status', table_name='placements')
    op.drop_index('ix_placements_candidate_crd', table_name='placements')
    op.drop_table('placements')
    op.drop_index('ix_hires_hire_date', table_name='hires')
    op.drop_index('ix_hires_crd_number', table_name='hires')
    op.drop_table('hires')
    op.drop_index('ix_introductions_status', table_name='introductions')
    op.drop_index('ix_introductions_candidate_crd', table_name='introductions')
    op.drop_table('introductions')
    op.drop_index('ix_partners_api_key_hash', table_name='partners')
    op.drop_table('partners')
