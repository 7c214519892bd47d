import uuid

from sqlalchemy import Boolean, Column, Index, Integer, String
from sqlalchemy.sql import func
from sqlalchemy.types import JSON, DateTime

from dailyquiz.core.database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    question_type = Column(String(32), nullable=False)
    difficulty = Column(String(16), nullable=False, index=True)
    themes_json = Column(JSON, nullable=False, default=list)
    # Structured "type:value" tags, e.g. "album:folklore"
    subjects_json = Column(JSON, nullable=False, default=list)
    prompt_json = Column(JSON, nullable=True)
    choices_json = Column(JSON, nullable=True)
    media_json = Column(JSON, nullable=True)
    correct_json = Column(JSON, nullable=True)
    approved = Column(Boolean, default=False, nullable=False)
    disabled = Column(Boolean, default=False, nullable=False)
    exposure_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_questions_pool", "difficulty", "approved", "disabled"),
    )
