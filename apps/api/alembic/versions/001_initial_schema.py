"""initial schema: exercises, plans, progressions, sessions, profiles

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Global exercise catalogue
    op.create_table(
        'exercise',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.UniqueConstraint('name', name='uq_exercise_name'),
    )

    op.create_table(
        'training_plan',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_training_plan_user_id', 'training_plan', ['user_id'])

    op.create_table(
        'training_plan_day',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['training_plan.id'], ondelete='CASCADE'),
        sa.CheckConstraint('order_index >= 1', name='ck_training_plan_day_order_index_positive'),
    )
    op.create_index('ix_training_plan_day_plan_id', 'training_plan_day', ['plan_id'])

    op.create_table(
        'training_plan_exercise',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_day_id', sa.Uuid(), nullable=False),
        sa.Column('exercise_id', sa.Uuid(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['plan_day_id'], ['training_plan_day.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['exercise_id'], ['exercise.id'], ),
        sa.CheckConstraint('order_index >= 1', name='ck_training_plan_exercise_order_index_positive'),
    )
    op.create_index('ix_training_plan_exercise_day_id', 'training_plan_exercise', ['plan_day_id'])
    op.create_index('ix_training_plan_exercise_exercise_id', 'training_plan_exercise', ['exercise_id'])

    op.create_table(
        'training_plan_exercise_set',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_exercise_id', sa.Uuid(), nullable=False),
        sa.Column('set_index', sa.Integer(), nullable=False),
        sa.Column('expected_reps', sa.Integer(), nullable=False),
        sa.Column('expected_weight', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['plan_exercise_id'], ['training_plan_exercise.id'], ondelete='CASCADE'),
        sa.CheckConstraint('set_index >= 1', name='ck_training_plan_exercise_set_index_positive'),
        sa.CheckConstraint('expected_reps >= 0', name='ck_training_plan_exercise_set_reps_non_negative'),
        sa.CheckConstraint('expected_weight >= 0', name='ck_training_plan_exercise_set_weight_non_negative'),
    )
    op.create_index(
        'ix_training_plan_exercise_set_plan_exercise_id', 'training_plan_exercise_set', ['plan_exercise_id']
    )

    # One progression rule per (plan, exercise)
    op.create_table(
        'training_plan_exercise_progression',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_id', sa.Uuid(), nullable=False),
        sa.Column('exercise_id', sa.Uuid(), nullable=False),
        sa.Column('weight_increment', sa.Float(), nullable=False),
        sa.Column('failure_count_for_deload', sa.Integer(), nullable=False),
        sa.Column('deload_percentage', sa.Float(), nullable=False),
        sa.Column('deload_strategy', sa.Text(), server_default='PROPORTIONAL', nullable=False),
        sa.Column('reference_set_index', sa.Integer(), nullable=True),
        sa.Column('consecutive_failures', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['plan_id'], ['training_plan.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['exercise_id'], ['exercise.id'], ),
        sa.UniqueConstraint('plan_id', 'exercise_id', name='uq_progression_plan_exercise'),
        sa.CheckConstraint('consecutive_failures >= 0', name='ck_progression_failures_non_negative'),
        sa.CheckConstraint(
            'deload_percentage >= 0 AND deload_percentage <= 100',
            name='ck_progression_deload_percentage_range',
        ),
    )

    op.create_table(
        'training_session',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('plan_id', sa.Uuid(), nullable=False),
        sa.Column('plan_day_id', sa.Uuid(), nullable=True),
        sa.Column('session_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.Text(), server_default='PENDING', nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['training_plan.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_day_id'], ['training_plan_day.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_training_session_user_id', 'training_session', ['user_id'])
    op.create_index('ix_training_session_plan_status', 'training_session', ['plan_id', 'status'])

    op.create_table(
        'session_set',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('plan_exercise_id', sa.Uuid(), nullable=False),
        sa.Column('set_index', sa.Integer(), nullable=False),
        sa.Column('expected_reps', sa.Integer(), nullable=True),
        sa.Column('actual_reps', sa.Integer(), nullable=True),
        sa.Column('actual_weight', sa.Float(), server_default='0', nullable=False),
        sa.Column('status', sa.Text(), server_default='PENDING', nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['training_session.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_exercise_id'], ['training_plan_exercise.id'], ondelete='CASCADE'),
        sa.CheckConstraint('set_index >= 1', name='ck_session_set_index_positive'),
    )
    op.create_index('ix_session_set_session_exercise', 'session_set', ['session_id', 'plan_exercise_id'])

    op.create_table(
        'user_profile',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('first_name', sa.Text(), server_default='', nullable=False),
        sa.Column('active_plan_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['active_plan_id'], ['training_plan.id'], ondelete='SET NULL'),
    )


def downgrade() -> None:
    op.drop_table('user_profile')
    op.drop_index('ix_session_set_session_exercise', table_name='session_set')
    op.drop_table('session_set')
    op.drop_index('ix_training_session_plan_status', table_name='training_session')
    op.drop_index('ix_training_session_user_id', table_name='training_session')
    op.drop_table('training_session')
    op.drop_table('training_plan_exercise_progression')
    op.drop_index('ix_training_plan_exercise_set_plan_exercise_id', table_name='training_plan_exercise_set')
    op.drop_table('training_plan_exercise_set')
    op.drop_index('ix_training_plan_exercise_exercise_id', table_name='training_plan_exercise')
    op.drop_index('ix_training_plan_exercise_day_id', table_name='training_plan_exercise')
    op.drop_table('training_plan_exercise')
    op.drop_index('ix_training_plan_day_plan_id', table_name='training_plan_day')
    op.drop_table('training_plan_day')
    op.drop_index('ix_training_plan_user_id', table_name='training_plan')
    op.drop_table('training_plan')
    op.drop_table('exercise')
