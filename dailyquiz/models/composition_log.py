from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON, DateTime

from dailyquiz.core.database import Base
from dailyquiz.models.question import generate_uuid


class CompositionLogRecord(Base):
    __tablename__ = "composition_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    # Null when composition failed before a quiz row existed
    daily_quiz_id = Column(
        String(36),
        ForeignKey("daily_quiz.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    target_date = Column(DateTime(timezone=True), nullable=False)
    mode = Column(String(16), nullable=False)
    theme_plan_json = Column(JSON, nullable=False, default=dict)
    selection_process_json = Column(JSON, nullable=False, default=list)
    final_selection_json = Column(JSON, nullable=False, default=dict)
    warnings_json = Column(JSON, nullable=False, default=list)
    performance_json = Column(JSON, nullable=False, default=dict)
    relaxation_level = Column(Integer, nullable=False, default=0)
    has_errors = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
