"""Subscription ledger schema

Revision ID: 0001_subscription_ledger
Revises:
Create Date: 2026-10-19

Creates the tier catalog, AI model registry, subscription and payment
tables and the referral points ledger, then seeds the default tiers,
the points payment method and the default AI model.
"""
import uuid
from datetime import datetime, timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_subscription_ledger'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_LIST = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create ledger tables and seed reference data."""

    # AI model registry
    op.create_table(
        'ai_models',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('provider', sa.String(20), nullable=False, index=True),
        sa.Column('model_name', sa.String(100), nullable=False, unique=True),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('supports_vision', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('supports_caching', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('max_context_tokens', sa.Integer(), nullable=False),
        sa.Column('max_output_tokens', sa.Integer(), nullable=False),
        sa.Column('input_token_cost_per_million', sa.Float(), nullable=False),
        sa.Column('output_token_cost_per_million', sa.Float(), nullable=False),
        sa.Column('token_multiplier', sa.Float(), server_default='1.0', nullable=False),
        sa.Column('temperature_default', sa.Float(), server_default='0.7', nullable=False),
        sa.Column('is_default', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False, index=True),
        *_timestamps(),
    )

    # Tier catalog
    op.create_table(
        'subscription_tiers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price_monthly', sa.Float(), server_default='0', nullable=False),
        sa.Column('price_yearly', sa.Float(), server_default='0', nullable=False),
        sa.Column('token_limit', sa.Integer()),
        sa.Column('papers_limit', sa.Integer()),
        sa.Column('max_subjects', sa.Integer()),
        sa.Column('can_select_grade', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('can_select_subjects', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('referral_points_awarded', sa.Integer(), server_default='0', nullable=False),
        sa.Column('points_cost', sa.Integer(), server_default='0', nullable=False),
        sa.Column('duration_months', sa.Integer(), server_default='1', nullable=False),
        sa.Column('ai_model_id', sa.Uuid(), sa.ForeignKey('ai_models.id')),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'grade_levels',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'subjects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(20)),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'user_ai_preferences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, unique=True, index=True),
        sa.Column('ai_model_id', sa.Uuid(), sa.ForeignKey('ai_models.id'), nullable=False),
        *_timestamps(),
    )

    # Subscription ledger: one row per user
    op.create_table(
        'user_subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, unique=True, index=True),
        sa.Column('tier_id', sa.Uuid(), sa.ForeignKey('subscription_tiers.id'), nullable=False, index=True),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('billing_cycle', sa.String(20), server_default='monthly', nullable=False),
        sa.Column('is_recurring', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('payment_provider', sa.String(50)),
        sa.Column('period_start_date', sa.DateTime(timezone=True)),
        sa.Column('period_end_date', sa.DateTime(timezone=True)),
        sa.Column('token_limit_override', sa.Integer()),
        sa.Column('tokens_used_current_period', sa.Integer(), server_default='0', nullable=False),
        sa.Column('papers_accessed_current_period', sa.Integer(), server_default='0', nullable=False),
        sa.Column('accessed_paper_ids', JSON_LIST, nullable=False),
        sa.Column('selected_grade_id', sa.Uuid(), sa.ForeignKey('grade_levels.id')),
        sa.Column('selected_subject_ids', JSON_LIST, nullable=False),
        *_timestamps(),
    )
    op.create_index(
        'ix_user_subscriptions_status_period_end',
        'user_subscriptions',
        ['status', 'period_end_date'],
    )

    op.create_table(
        'payment_methods',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('tier_id', sa.Uuid(), nullable=False),
        sa.Column('billing_cycle', sa.String(20), server_default='monthly', nullable=False),
        sa.Column('amount', sa.Float(), server_default='0', nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD', nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False, index=True),
        sa.Column('payment_method_id', sa.Uuid(), sa.ForeignKey('payment_methods.id')),
        sa.Column('external_reference', sa.String(255)),
        sa.Column('selected_grade_id', sa.Uuid()),
        sa.Column('selected_subject_ids', JSON_LIST, nullable=False),
        *_timestamps(),
    )

    # Referral ledger
    op.create_table(
        'referral_codes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, unique=True, index=True),
        sa.Column('code', sa.String(32), nullable=False, unique=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        'referrals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('referrer_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('referred_id', sa.Uuid(), nullable=False, unique=True, index=True),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False, index=True),
        sa.Column('points_awarded', sa.Integer(), server_default='0', nullable=False),
        sa.Column('subscription_tier_id', sa.Uuid(), sa.ForeignKey('subscription_tiers.id')),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'completed')", name='ck_referrals_status'),
    )

    op.create_table(
        'user_referral_points',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, unique=True, index=True),
        sa.Column('points_balance', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_earned', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_spent', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_referrals', sa.Integer(), server_default='0', nullable=False),
        sa.Column('successful_referrals', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('points_balance >= 0', name='ck_user_referral_points_balance'),
    )

    op.create_table(
        'referral_transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('transaction_type', sa.String(20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('referral_id', sa.Uuid(), sa.ForeignKey('referrals.id')),
        sa.Column('subscription_id', sa.Uuid(), sa.ForeignKey('user_subscriptions.id')),
        sa.Column('description', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        'ix_referral_transactions_user_created',
        'referral_transactions',
        ['user_id', 'created_at'],
    )

    op.create_table(
        'referral_points_log',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subscription_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid()),
        sa.Column('referrer_id', sa.Uuid()),
        sa.Column('tier_name', sa.String(50)),
        sa.Column('referral_points_awarded', sa.Integer()),
        sa.Column('outcome', sa.String(20), nullable=False, index=True),
        sa.Column('reason', sa.String(50), nullable=False),
        sa.Column('detail', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    _seed()


def _seed() -> None:
    now = datetime.now(timezone.utc)
    model_id = uuid.uuid4()

    ai_models = sa.table(
        'ai_models',
        sa.column('id', sa.Uuid()),
        sa.column('provider', sa.String()),
        sa.column('model_name', sa.String()),
        sa.column('display_name', sa.String()),
        sa.column('description', sa.Text()),
        sa.column('supports_vision', sa.Boolean()),
        sa.column('supports_caching', sa.Boolean()),
        sa.column('max_context_tokens', sa.Integer()),
        sa.column('max_output_tokens', sa.Integer()),
        sa.column('input_token_cost_per_million', sa.Float()),
        sa.column('output_token_cost_per_million', sa.Float()),
        sa.column('token_multiplier', sa.Float()),
        sa.column('temperature_default', sa.Float()),
        sa.column('is_default', sa.Boolean()),
        sa.column('is_active', sa.Boolean()),
        sa.column('created_at', sa.DateTime(timezone=True)),
        sa.column('updated_at', sa.DateTime(timezone=True)),
    )
    op.bulk_insert(ai_models, [{
        'id': model_id,
        'provider': 'gemini',
        'model_name': 'gemini-2.5-flash',
        'display_name': 'Gemini 2.5 Flash',
        'description': 'Fast multimodal model with built-in caching',
        'supports_vision': True,
        'supports_caching': True,
        'max_context_tokens': 1000000,
        'max_output_tokens': 8192,
        'input_token_cost_per_million': 0.075,
        'output_token_cost_per_million': 0.30,
        'token_multiplier': 1.0,
        'temperature_default': 0.7,
        'is_default': True,
        'is_active': True,
        'created_at': now,
        'updated_at': now,
    }])

    tiers = sa.table(
        'subscription_tiers',
        sa.column('id', sa.Uuid()),
        sa.column('name', sa.String()),
        sa.column('display_name', sa.String()),
        sa.column('description', sa.Text()),
        sa.column('price_monthly', sa.Float()),
        sa.column('price_yearly', sa.Float()),
        sa.column('token_limit', sa.Integer()),
        sa.column('papers_limit', sa.Integer()),
        sa.column('max_subjects', sa.Integer()),
        sa.column('can_select_grade', sa.Boolean()),
        sa.column('can_select_subjects', sa.Boolean()),
        sa.column('referral_points_awarded', sa.Integer()),
        sa.column('points_cost', sa.Integer()),
        sa.column('duration_months', sa.Integer()),
        sa.column('ai_model_id', sa.Uuid()),
        sa.column('is_active', sa.Boolean()),
        sa.column('display_order', sa.Integer()),
        sa.column('created_at', sa.DateTime(timezone=True)),
        sa.column('updated_at', sa.DateTime(timezone=True)),
    )
    # (name, display, description, monthly, yearly, tokens, papers, max_subjects,
    #  selectable, points awarded, points cost)
    catalog = [
        ('free', 'Free', 'Try the AI assistant with limited access',
         0, 0, 50000, 2, None, False, 0, 0),
        ('student_lite', 'Student Lite', 'Affordable plan for focused exam preparation',
         8, 80, 250000, None, 1, True, 100, 1000),
        ('student', 'Student Package', 'Perfect for focused exam preparation',
         15, 150, 500000, None, 3, True, 150, 1500),
        ('pro', 'Professional Package', 'Unlimited access to all features',
         25, 250, None, None, None, False, 250, 2500),
    ]
    op.bulk_insert(tiers, [
        {
            'id': uuid.uuid4(),
            'name': name,
            'display_name': display_name,
            'description': description,
            'price_monthly': monthly,
            'price_yearly': yearly,
            'token_limit': tokens,
            'papers_limit': papers,
            'max_subjects': max_subjects,
            'can_select_grade': selectable,
            'can_select_subjects': selectable,
            'referral_points_awarded': awarded,
            'points_cost': cost,
            'duration_months': 1,
            'ai_model_id': model_id,
            'is_active': True,
            'display_order': order,
            'created_at': now,
            'updated_at': now,
        }
        for order, (name, display_name, description, monthly, yearly, tokens,
                    papers, max_subjects, selectable, awarded, cost) in enumerate(catalog, 1)
    ])

    payment_methods = sa.table(
        'payment_methods',
        sa.column('id', sa.Uuid()),
        sa.column('name', sa.String()),
        sa.column('display_name', sa.String()),
        sa.column('is_active', sa.Boolean()),
        sa.column('created_at', sa.DateTime(timezone=True)),
        sa.column('updated_at', sa.DateTime(timezone=True)),
    )
    op.bulk_insert(payment_methods, [
        {'id': uuid.uuid4(), 'name': name, 'display_name': display_name,
         'is_active': True, 'created_at': now, 'updated_at': now}
        for name, display_name in [
            ('paypal', 'PayPal'),
            ('card', 'Card'),
            ('points', 'Referral Points'),
        ]
    ])


def downgrade() -> None:
    """Drop ledger tables."""
    op.drop_table('referral_points_log')
    op.drop_index('ix_referral_transactions_user_created', table_name='referral_transactions')
    op.drop_table('referral_transactions')
    op.drop_table('user_referral_points')
    op.drop_table('referrals')
    op.drop_table('referral_codes')
    op.drop_table('payment_transactions')
    op.drop_table('payment_methods')
    op.drop_index('ix_user_subscriptions_status_period_end', table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
    op.drop_table('user_ai_preferences')
    op.drop_table('subjects')
    op.drop_table('grade_levels')
    op.drop_table('subscription_tiers')
    op.drop_table('ai_models')
