from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON, DateTime

from dailyquiz.core.database import Base
from dailyquiz.models.question import generate_uuid


class DailyQuiz(Base):
    __tablename__ = "daily_quiz"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    drop_at_utc = Column(DateTime(timezone=True), nullable=False)
    mode = Column(String(16), nullable=False)
    # Versioned ThemePlan snapshot, see ThemePlan.to_snapshot()
    theme_plan_json = Column(JSON, nullable=False, default=dict)
    template_version = Column(Integer, nullable=False, default=1)
    # Empty until the template has been published
    template_location = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    questions = relationship(
        "DailyQuizQuestion",
        back_populates="daily_quiz",
        cascade="all, delete-orphan",
        order_by="DailyQuizQuestion.position",
    )

    # One quiz per drop time, enforced by the database rather than the pre-check
    __table_args__ = (
        UniqueConstraint("drop_at_utc", name="uq_daily_quiz_drop_at_utc"),
    )


class DailyQuizQuestion(Base):
    __tablename__ = "daily_quiz_question"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    daily_quiz_id = Column(
        String(36),
        ForeignKey("daily_quiz.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(
        String(36),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Snapshot of the question as selected; later edits to the question don't apply
    difficulty = Column(String(16), nullable=False)
    question_type = Column(String(32), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    daily_quiz = relationship("DailyQuiz", back_populates="questions")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint(
            "daily_quiz_id", "question_id", name="uq_daily_quiz_question_pair"
        ),
    )
