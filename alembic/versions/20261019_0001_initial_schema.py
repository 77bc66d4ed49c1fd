"""Initial schema - catalog, prerequisite graph, progression, suggestion cache

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Disciplines table
    op.create_table(
        'disciplines',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), unique=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Figures table
    op.create_table(
        'figures',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discipline_id', sa.Uuid(), sa.ForeignKey('disciplines.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('difficulty_level', sa.Integer(), nullable=False, default=1),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Step templates table
    op.create_table(
        'step_templates',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('figure_id', sa.Uuid(), sa.ForeignKey('figures.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('step_order', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False, default=''),
        sa.Column('xp', sa.Integer(), nullable=False, default=10),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('figure_id', 'step_order', name='uq_step_templates_figure_order'),
    )

    # Prerequisite edges table
    op.create_table(
        'prerequisite_edges',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('figure_id', sa.Uuid(), sa.ForeignKey('figures.id', ondelete='CASCADE'), nullable=False),
        sa.Column('prerequisite_id', sa.Uuid(), sa.ForeignKey('figures.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('edge_order', sa.Integer(), nullable=False, default=1),
        sa.Column('is_required', sa.Boolean(), nullable=False, default=True),
        sa.Column('weight', sa.Integer(), nullable=False, default=1),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('figure_id', 'prerequisite_id', name='uq_prerequisite_edges_pair'),
        sa.CheckConstraint('weight >= 1 AND weight <= 3', name='ck_prerequisite_edges_weight'),
        sa.CheckConstraint('edge_order >= 1', name='ck_prerequisite_edges_order'),
        sa.CheckConstraint('figure_id <> prerequisite_id', name='ck_prerequisite_edges_no_self_loop'),
    )
    op.create_index('ix_prerequisite_edges_figure_order', 'prerequisite_edges', ['figure_id', 'edge_order'])

    # Step progress table
    op.create_table(
        'step_progress',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('learner_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('step_id', sa.Uuid(), sa.ForeignKey('step_templates.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('status', sa.String(20), nullable=False, default='non_commence'),
        sa.Column('validated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('validated_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('learner_id', 'step_id', name='uq_step_progress_learner_step'),
    )
    op.create_index('ix_step_progress_learner_status', 'step_progress', ['learner_id', 'status'])

    # Practice attempts table (append-only)
    op.create_table(
        'practice_attempts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('progression_id', sa.Uuid(), sa.ForeignKey('step_progress.id', ondelete='CASCADE'), nullable=False),
        sa.Column('mode', sa.String(20), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_practice_attempts_progression_time', 'practice_attempts', ['progression_id', 'created_at'])

    # Learner groups table
    op.create_table(
        'learner_groups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Group members table
    op.create_table(
        'group_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('group_id', sa.Uuid(), sa.ForeignKey('learner_groups.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('learner_id', sa.Uuid(), nullable=False, index=True),
        sa.UniqueConstraint('group_id', 'learner_id', name='uq_group_members_group_learner'),
    )

    # Training plans table
    op.create_table(
        'training_plans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_personal', sa.Boolean(), nullable=False, default=False),
        sa.Column('active', sa.Boolean(), nullable=False, default=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_training_plans_owner_personal', 'training_plans', ['owner_id', 'is_personal', 'active'])
    op.create_index(
        'uq_training_plans_active_personal',
        'training_plans',
        ['owner_id'],
        unique=True,
        postgresql_where=sa.text('is_personal AND active'),
        sqlite_where=sa.text('is_personal AND active'),
    )

    # Plan figures table
    op.create_table(
        'plan_figures',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_id', sa.Uuid(), sa.ForeignKey('training_plans.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('figure_id', sa.Uuid(), sa.ForeignKey('figures.id', ondelete='CASCADE'), nullable=False),
        sa.Column('figure_order', sa.Integer(), nullable=False),
        sa.UniqueConstraint('plan_id', 'figure_id', name='uq_plan_figures_plan_figure'),
    )

    # Plan assignments table
    op.create_table(
        'plan_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_id', sa.Uuid(), sa.ForeignKey('training_plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('learner_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('plan_id', 'learner_id', name='uq_plan_assignments_plan_learner'),
    )

    # Suggestion cache table
    op.create_table(
        'suggestion_cache',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('target_kind', sa.String(10), nullable=False),
        sa.Column('target_id', sa.Uuid(), nullable=False),
        sa.Column('figure_id', sa.Uuid(), sa.ForeignKey('figures.id', ondelete='CASCADE'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('validated_count', sa.Integer(), nullable=False, default=0),
        sa.Column('total_count', sa.Integer(), nullable=False, default=0),
        sa.Column('status', sa.String(20), nullable=False, default='pending'),
        sa.Column('suggested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('target_kind', 'target_id', 'figure_id', name='uq_suggestion_cache_target_figure'),
    )
    op.create_index('ix_suggestion_cache_target_status', 'suggestion_cache', ['target_kind', 'target_id', 'status'])
    op.create_index('ix_suggestion_cache_expiry', 'suggestion_cache', ['expires_at'])

    # Event logs table (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type_time', 'event_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('suggestion_cache')
    op.drop_table('plan_assignments')
    op.drop_table('plan_figures')
    op.drop_table('training_plans')
    op.drop_table('group_members')
    op.drop_table('learner_groups')
    op.drop_table('practice_attempts')
    op.drop_table('step_progress')
    op.drop_table('prerequisite_edges')
    op.drop_table('step_templates')
    op.drop_table('figures')
    op.drop_table('disciplines')
