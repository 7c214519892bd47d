from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from dailyquiz.domain.daily_quiz_domain import DailyQuizDomain
from dailyquiz.models.composition_log import CompositionLogRecord
from dailyquiz.repositories.interfaces import CompositionLogStore
from dailyquiz.schemas.daily_quiz import CompositionLog


class CompositionLogRepository(CompositionLogStore):
    """Repository for composition log persistence"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, log: CompositionLog) -> str:
        """Persist a composition log and return its ID"""
        record = CompositionLogRecord(**DailyQuizDomain.log_to_dict(log))
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record.id

    def list_since(self, since: datetime, limit: int = 100) -> List[CompositionLog]:
        """Logs created at or after `since`, newest first"""
        records = (
            self.db.query(CompositionLogRecord)
            .filter(CompositionLogRecord.created_at >= since)
            .order_by(CompositionLogRecord.created_at.desc())
            .limit(limit)
            .all()
        )
        return [DailyQuizDomain.record_to_log(record) for record in records]
