"""Initial schema baseline

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the card, review history and review session tables.
For databases created with init_db, mark this migration as complete
without running it:
    alembic stamp 001
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cards",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("word_id", sa.Integer(), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=False, default=1),
        sa.Column("ease_factor", sa.Float(), nullable=False, default=2.5),
        sa.Column("stability_factor", sa.Float(), nullable=False, default=1.0),
        sa.Column("created_at", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Integer(), nullable=False),
        sa.Column("next_review", sa.Integer(), nullable=True),
        sa.Column("last_reviewed", sa.Integer(), nullable=True),
        sa.Column("total_reviews", sa.Integer(), nullable=False, default=0),
        sa.Column("correct_reviews", sa.Integer(), nullable=False, default=0),
        sa.Column("consecutive_correct", sa.Integer(), nullable=False, default=0),
        sa.Column("consecutive_incorrect", sa.Integer(), nullable=False, default=0),
        sa.Column("review_count_again", sa.Integer(), nullable=False, default=0),
        sa.Column("review_count_hard", sa.Integer(), nullable=False, default=0),
        sa.Column("review_count_good", sa.Integer(), nullable=False, default=0),
        sa.Column("review_count_easy", sa.Integer(), nullable=False, default=0),
        sa.Column("difficulty_rating", sa.Float(), nullable=True),
        sa.Column("performance_index", sa.Float(), nullable=True),
        sa.Column("retention_rate", sa.Float(), nullable=True),
        sa.Column("average_response_time", sa.Integer(), nullable=True),
        sa.Column("total_study_time", sa.Integer(), nullable=False, default=0),
        sa.Column("last_review_outcome", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("is_suspended", sa.Boolean(), nullable=False, default=False),
        sa.Column("card_age_days", sa.Integer(), nullable=False, default=0),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "word_id", name="uq_card_user_word"),
    )
    op.create_index("idx_cards_user_due", "cards", ["user_id", "due_date"])

    op.create_table(
        "card_review_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("review_number", sa.Integer(), nullable=False),
        sa.Column("outcome", sa.Text(), nullable=False),
        sa.Column("response_time", sa.Integer(), nullable=False),
        sa.Column("reviewed_at", sa.Integer(), nullable=False),
        sa.Column("interval_before_review", sa.Integer(), nullable=False),
        sa.Column("ease_factor_before_review", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("card_id", "review_number", name="uq_history_card_review"),
    )

    op.create_table(
        "review_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("mode", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, default="active"),
        sa.Column("start_time", sa.Integer(), nullable=False),
        sa.Column("end_time", sa.Integer(), nullable=True),
        sa.Column("total_cards", sa.Integer(), nullable=False, default=0),
        sa.Column("completed_cards", sa.Integer(), nullable=False, default=0),
        sa.Column("correct_answers", sa.Integer(), nullable=False, default=0),
        sa.Column("average_response_time", sa.Integer(), nullable=True),
        sa.Column("session_accuracy", sa.Float(), nullable=True),
        sa.Column("session_duration", sa.Integer(), nullable=True),
        sa.Column("cards_per_minute", sa.Float(), nullable=True),
        sa.Column("efficiency_score", sa.Float(), nullable=True),
        sa.Column("difficulty_level", sa.Float(), nullable=True),
        sa.Column("focus_score", sa.Float(), nullable=True),
        sa.Column("learning_velocity", sa.Float(), nullable=True),
        sa.Column("accuracy_bonus", sa.Float(), nullable=True),
        sa.Column("time_efficiency_bonus", sa.Float(), nullable=True),
        sa.Column("consistency_bonus", sa.Float(), nullable=True),
        sa.Column("total_session_score", sa.Float(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_review_sessions_user_status", "review_sessions", ["user_id", "status"])

    op.create_table(
        "review_session_cards",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("review_number", sa.Integer(), nullable=False),
        sa.Column("interval_before_review", sa.Integer(), nullable=False),
        sa.Column("ease_factor_before_review", sa.Float(), nullable=False),
        sa.Column("consecutive_correct_before", sa.Integer(), nullable=False, default=0),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column("response_time", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.Integer(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("interval_after_review", sa.Integer(), nullable=True),
        sa.Column("ease_factor_after_review", sa.Float(), nullable=True),
        sa.Column("difficulty_rating", sa.Float(), nullable=True),
        sa.Column("accuracy_score", sa.Float(), nullable=True),
        sa.Column("performance_category", sa.Text(), nullable=True),
        sa.Column("learning_gain", sa.Float(), nullable=True),
        sa.Column("retention_risk", sa.Float(), nullable=True),
        sa.Column("streak_broken", sa.Boolean(), nullable=False, default=False),
        sa.ForeignKeyConstraint(["session_id"], ["review_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_review_session_cards_session_id", "review_session_cards", ["session_id"])


def downgrade() -> None:
    op.drop_index("idx_review_session_cards_session_id", table_name="review_session_cards")
    op.drop_table("review_session_cards")
    op.drop_index("idx_review_sessions_user_status", table_name="review_sessions")
    op.drop_table("review_sessions")
    op.drop_table("card_review_history")
    op.drop_index("idx_cards_user_due", table_name="cards")
    op.drop_table("cards")
