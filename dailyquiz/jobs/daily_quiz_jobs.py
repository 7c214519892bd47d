import logging
import random
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from dailyquiz.core.clock import SystemClock
from dailyquiz.core.config import settings
from dailyquiz.core.exceptions import ComposerError, DuplicateQuizError
from dailyquiz.repositories.interfaces import DailyQuizStore
from dailyquiz.schemas.daily_quiz import (
    CompositionResponse,
    DailyQuizMode,
    TemplatePublishResponse,
)
from dailyquiz.services.composer import DailyQuizComposerService

logger = logging.getLogger(__name__)

# Drops happen between 17:00 and 19:59 Toronto time
DROP_WINDOW_START_HOUR = 17
DROP_WINDOW_END_HOUR = 19
# Toronto is treated as a fixed UTC-5, daylight saving is not applied
TORONTO_UTC_OFFSET = timedelta(hours=5)


class DailyQuizJobProcessor:
    """
    Scheduled entry points, triggered by an external cron through `dailyquiz.jobs.run`.

    - compose: once a day, composes tomorrow's quiz at a random drop time
    - warmup: every few minutes, publishes templates for quizzes about to drop
    """

    def __init__(
        self,
        composer: DailyQuizComposerService,
        quiz_store: DailyQuizStore,
        clock=None,
        rng: Optional[random.Random] = None,
        warmup_window_minutes: Optional[int] = None,
    ):
        self.composer = composer
        self.quiz_store = quiz_store
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.warmup_window = timedelta(
            minutes=warmup_window_minutes or settings.WARMUP_WINDOW_MINUTES
        )

    def drop_window(self, day) -> Tuple[datetime, datetime]:
        """UTC bounds [start, end) of the drop window on a Toronto calendar day"""
        start = datetime.combine(day, time(DROP_WINDOW_START_HOUR), tzinfo=timezone.utc)
        end = datetime.combine(day, time(DROP_WINDOW_END_HOUR), tzinfo=timezone.utc)
        return start + TORONTO_UTC_OFFSET, end + timedelta(hours=1) + TORONTO_UTC_OFFSET

    def next_drop_time(self) -> datetime:
        """Random minute in tomorrow's drop window, in UTC"""
        tomorrow = (self.clock.now() + timedelta(days=1)).date()
        hour = self.rng.randint(DROP_WINDOW_START_HOUR, DROP_WINDOW_END_HOUR)
        minute = self.rng.randint(0, 59)
        local_drop = datetime.combine(tomorrow, time(hour, minute), tzinfo=timezone.utc)
        return local_drop + TORONTO_UTC_OFFSET

    def run_daily_composition(
        self, mode: DailyQuizMode = DailyQuizMode.MIX
    ) -> Optional[CompositionResponse]:
        logger.info("🕐 Starting daily quiz composition job")

        tomorrow = (self.clock.now() + timedelta(days=1)).date()
        window_start, window_end = self.drop_window(tomorrow)
        scheduled = self.quiz_store.find_in_drop_window(window_start, window_end)
        if scheduled:
            logger.info(
                f"Quiz already scheduled for {tomorrow.isoformat()} "
                f"({scheduled[0].drop_at_utc.isoformat()}), skipping composition"
            )
            return None

        drop_at_utc = self.next_drop_time()
        try:
            result = self.composer.compose_daily_quiz(drop_at_utc, mode)
        except DuplicateQuizError as e:
            # Another run got there first; the unique constraint kept a single quiz
            logger.info(f"{e}, skipping composition")
            return None

        logger.info(
            f"✅ Daily quiz composed: {result.quiz_id} with {len(result.question_ids)} questions "
            f"dropping at {result.drop_at_utc.isoformat()}"
        )
        return result

    def run_template_warmup(self) -> List[TemplatePublishResponse]:
        """Publish missing templates for quizzes dropping within the warm-up window"""
        now = self.clock.now()
        quizzes = self.quiz_store.find_missing_template(now, now + self.warmup_window)

        if not quizzes:
            logger.info("🔥 Template warmup: nothing to publish")
            return []

        published = []
        for quiz in quizzes:
            try:
                published.append(self.composer.publish_template(quiz.id))
                logger.info(f"✅ Template published for quiz {quiz.id}")
            except (ComposerError, ValueError) as e:
                logger.error(f"❌ Failed to publish template for quiz {quiz.id}: {e}")
        return published
