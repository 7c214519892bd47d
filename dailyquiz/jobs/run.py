"""
Cron entry point for the daily quiz jobs.

    python -m dailyquiz.jobs.run compose [--mode mix|spotlight|event]
    python -m dailyquiz.jobs.run warmup
    python -m dailyquiz.jobs.run init-db
"""

import argparse
import logging
import sys

from dailyquiz.core.config import settings
from dailyquiz.core.database import Base, SessionLocal, engine
from dailyquiz.jobs.daily_quiz_jobs import DailyQuizJobProcessor
from dailyquiz.repositories import (
    CompositionLogRepository,
    DailyQuizRepository,
    QuestionRepository,
)
from dailyquiz.schemas.daily_quiz import DailyQuizMode
from dailyquiz.services.artifact_store import get_artifact_publisher
from dailyquiz.services.composer import DailyQuizComposerService

logger = logging.getLogger("dailyquiz.jobs")


def build_processor(db) -> DailyQuizJobProcessor:
    quiz_store = DailyQuizRepository(db)
    composer = DailyQuizComposerService(
        question_store=QuestionRepository(db),
        quiz_store=quiz_store,
        log_store=CompositionLogRepository(db),
        publisher=get_artifact_publisher(),
    )
    return DailyQuizJobProcessor(composer, quiz_store)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run daily quiz scheduled jobs")
    subparsers = parser.add_subparsers(dest="job", required=True)

    compose_parser = subparsers.add_parser("compose", help="Compose tomorrow's daily quiz")
    compose_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in DailyQuizMode],
        default=DailyQuizMode.MIX.value,
        help="Composition mode",
    )
    subparsers.add_parser("warmup", help="Publish templates for quizzes about to drop")
    subparsers.add_parser("init-db", help="Create tables directly (development only)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.job == "init-db":
        Base.metadata.create_all(bind=engine)
        logger.info("✅ Tables created")
        return 0

    db = SessionLocal()
    try:
        processor = build_processor(db)
        if args.job == "compose":
            processor.run_daily_composition(DailyQuizMode(args.mode))
        else:
            processor.run_template_warmup()
        return 0
    except Exception:
        logger.exception(f"❌ Job '{args.job}' failed")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
