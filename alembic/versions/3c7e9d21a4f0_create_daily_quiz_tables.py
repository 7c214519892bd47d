"""daily quiz: create questions, daily_quiz, daily_quiz_question, composition_logs

Revision ID: 3c7e9d21a4f0
Revises:
Create Date: 2025-11-02
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3c7e9d21a4f0"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("question_type", sa.String(length=32), nullable=False),
        sa.Column("difficulty", sa.String(length=16), nullable=False),
        sa.Column("themes_json", sa.JSON(), nullable=False),
        sa.Column("subjects_json", sa.JSON(), nullable=False),
        sa.Column("prompt_json", sa.JSON(), nullable=True),
        sa.Column("choices_json", sa.JSON(), nullable=True),
        sa.Column("media_json", sa.JSON(), nullable=True),
        sa.Column("correct_json", sa.JSON(), nullable=True),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("exposure_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_questions_difficulty", "questions", ["difficulty"])
    op.create_index("ix_questions_created_at", "questions", ["created_at"])
    op.create_index("ix_questions_pool", "questions", ["difficulty", "approved", "disabled"])

    op.create_table(
        "daily_quiz",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("drop_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("mode", sa.String(length=16), nullable=False),
        sa.Column("theme_plan_json", sa.JSON(), nullable=False),
        sa.Column("template_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("template_location", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        # The real duplicate guard; the composer's pre-check is advisory
        sa.UniqueConstraint("drop_at_utc", name="uq_daily_quiz_drop_at_utc"),
    )
    op.create_index("ix_daily_quiz_created_at", "daily_quiz", ["created_at"])

    op.create_table(
        "daily_quiz_question",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "daily_quiz_id",
            sa.String(length=36),
            sa.ForeignKey("daily_quiz.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("difficulty", sa.String(length=16), nullable=False),
        sa.Column("question_type", sa.String(length=32), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "daily_quiz_id", "question_id", name="uq_daily_quiz_question_pair"
        ),
    )
    op.create_index(
        "ix_daily_quiz_question_daily_quiz_id", "daily_quiz_question", ["daily_quiz_id"]
    )
    op.create_index(
        "ix_daily_quiz_question_question_id", "daily_quiz_question", ["question_id"]
    )

    op.create_table(
        "composition_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "daily_quiz_id",
            sa.String(length=36),
            sa.ForeignKey("daily_quiz.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("target_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("mode", sa.String(length=16), nullable=False),
        sa.Column("theme_plan_json", sa.JSON(), nullable=False),
        sa.Column("selection_process_json", sa.JSON(), nullable=False),
        sa.Column("final_selection_json", sa.JSON(), nullable=False),
        sa.Column("warnings_json", sa.JSON(), nullable=False),
        sa.Column("performance_json", sa.JSON(), nullable=False),
        sa.Column("relaxation_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("has_errors", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_composition_logs_daily_quiz_id", "composition_logs", ["daily_quiz_id"]
    )
    op.create_index("ix_composition_logs_created_at", "composition_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_composition_logs_created_at", table_name="composition_logs")
    op.drop_index("ix_composition_logs_daily_quiz_id", table_name="composition_logs")
    op.drop_table("composition_logs")

    op.drop_index("ix_daily_quiz_question_question_id", table_name="daily_quiz_question")
    op.drop_index("ix_daily_quiz_question_daily_quiz_id", table_name="daily_quiz_question")
    op.drop_table("daily_quiz_question")

    op.drop_index("ix_daily_quiz_created_at", table_name="daily_quiz")
    op.drop_table("daily_quiz")

    op.drop_index("ix_questions_pool", table_name="questions")
    op.drop_index("ix_questions_created_at", table_name="questions")
    op.drop_index("ix_questions_difficulty", table_name="questions")
    op.drop_table("questions")
