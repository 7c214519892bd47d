import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional

from dailyquiz.core.clock import SystemClock, as_utc
from dailyquiz.core.exceptions import (
    ArtifactPublishError,
    DuplicateQuizError,
    NoQuestionsSelectedError,
    QuizNotFoundError,
    TemplateValidationError,
)
from dailyquiz.domain.daily_quiz_domain import DailyQuizData, DailyQuizDomain, QuizQuestionLink
from dailyquiz.domain.question_domain import QuestionData, QuestionDomain
from dailyquiz.domain.selection import SelectionResult
from dailyquiz.repositories.interfaces import (
    ArtifactPublisher,
    CompositionLogStore,
    DailyQuizStore,
    QuestionStore,
    count_by_difficulty,
)
from dailyquiz.schemas.daily_quiz import (
    CompositionLog,
    CompositionLogEntry,
    CompositionLogListResponse,
    CompositionResponse,
    CompositionStatsResponse,
    ComposerConfig,
    ConfigurationOptionsResponse,
    DailyQuizMode,
    DifficultySelectionLog,
    FinalSelectionLog,
    Pagination,
    PerformanceLog,
    PreviewResponse,
    RecentComposition,
    SystemHealthResponse,
    TemplatePublishResponse,
    ThemePlan,
)
from dailyquiz.schemas.question import DIFFICULTY_ORDER, Difficulty, QuestionTheme
from dailyquiz.services.anti_repeat import AntiRepeatService
from dailyquiz.services.difficulty_distribution import DifficultyDistributionService
from dailyquiz.services.question_selector import QuestionSelector
from dailyquiz.services.template import TemplateService
from dailyquiz.services.theme_planner import ThemePlanner

logger = logging.getLogger(__name__)

STATS_WINDOW_DAYS = 30
STATS_LOG_LIMIT = 100
RECENT_WARNING_LOGS = 10
RECENT_WARNING_LIMIT = 20
HEALTH_RECENT_DAYS = 7
HEALTH_MINIMUMS = {Difficulty.EASY: 10, Difficulty.MEDIUM: 6, Difficulty.HARD: 3}


class DailyQuizComposerService:
    """
    Composes one daily quiz per drop time.

    compose_daily_quiz() runs theme planning and question selection, writes
    the quiz and its question links in one transaction, publishes the
    answer-free template, records usage on the selected questions and
    leaves a composition log for every run, failed ones included.
    """

    def __init__(
        self,
        question_store: QuestionStore,
        quiz_store: DailyQuizStore,
        log_store: CompositionLogStore,
        publisher: ArtifactPublisher,
        clock=None,
        config: Optional[ComposerConfig] = None,
        theme_planner: Optional[ThemePlanner] = None,
        template_service: Optional[TemplateService] = None,
    ):
        self.question_store = question_store
        self.quiz_store = quiz_store
        self.log_store = log_store
        self.publisher = publisher
        self.clock = clock or SystemClock()
        self.config = config or ComposerConfig.from_settings()
        self.theme_planner = theme_planner or ThemePlanner()
        self.template_service = template_service or TemplateService()
        self.selector = QuestionSelector(question_store)
        self.anti_repeat = AntiRepeatService(
            question_store,
            relaxation_days=self.config.anti_repeat_days,
            max_exposure_bias=self.config.max_exposure_bias,
        )

    # =====================================================
    # 1️⃣ Composition
    # =====================================================
    def compose_daily_quiz(
        self,
        drop_at_utc: datetime,
        mode: DailyQuizMode = DailyQuizMode.MIX,
        config: Optional[ComposerConfig] = None,
    ) -> CompositionResponse:
        drop_at_utc = as_utc(drop_at_utc)
        config = config or self.config
        started = time.perf_counter()
        db_queries = 0
        theme_plan: Optional[ThemePlan] = None
        selection: Optional[SelectionResult] = None
        quiz: Optional[DailyQuizData] = None

        logger.info(f"🚀 Starting daily quiz composition for {drop_at_utc.isoformat()} ({mode.value})")

        try:
            existing = self.quiz_store.get_by_drop_at(drop_at_utc)
            db_queries += 1
            if existing:
                raise DuplicateQuizError(drop_at_utc)

            theme_plan = self.theme_planner.generate_theme_plan(mode, drop_at_utc)
            selection = self.selector.select_questions(config, theme_plan, drop_at_utc)
            db_queries += sum(
                outcome.levels_tried + (1 if outcome.emergency else 0)
                for outcome in selection.by_difficulty
            )

            if not selection.questions:
                raise NoQuestionsSelectedError()

            links = [
                QuizQuestionLink(
                    question_id=question.id,
                    difficulty=question.difficulty.value,
                    question_type=question.question_type.value,
                )
                for question in selection.questions
            ]
            quiz = self.quiz_store.create_with_questions(
                drop_at_utc, mode, theme_plan.to_snapshot(), links
            )
            db_queries += 1
            logger.info(f"✅ Daily quiz {quiz.id} saved with {len(links)} questions")

            warnings = list(selection.warnings)
            template_error = None
            try:
                quiz = self._build_and_publish(quiz, selection.questions, theme_plan)
                db_queries += 1
            except (TemplateValidationError, ArtifactPublishError, ValueError) as e:
                # The quiz stays valid without a template; warm-up or regenerate retries it
                template_error = str(e)
                warnings.append(f"Template not published: {template_error}")
                logger.error(f"❌ Template publish failed for daily quiz {quiz.id}: {template_error}")

            self.anti_repeat.update_question_usage(
                selection.question_ids, drop_at_utc
            )
            db_queries += 1

            self._emit_log(
                self._build_log(
                    drop_at_utc,
                    mode,
                    config,
                    theme_plan,
                    selection,
                    quiz,
                    warnings,
                    started,
                    db_queries,
                )
            )

            logger.info(
                f"✅ Composed daily quiz {quiz.id} with {len(selection.questions)} questions "
                f"(relaxation level: {selection.relaxation_level})"
            )

            return CompositionResponse(
                quiz_id=quiz.id,
                drop_at_utc=quiz.drop_at_utc,
                mode=quiz.mode,
                question_ids=selection.question_ids,
                relaxation_level=selection.relaxation_level,
                template_version=quiz.template_version,
                template_location=quiz.template_location,
                template_error=template_error,
                warnings=warnings,
            )

        except Exception as e:
            logger.error(f"❌ Failed to compose daily quiz for {drop_at_utc.isoformat()}: {e}")
            self._emit_log(
                self._build_log(
                    drop_at_utc,
                    mode,
                    config,
                    theme_plan,
                    selection,
                    quiz,
                    [str(e)],
                    started,
                    db_queries,
                    error=e,
                )
            )
            raise

    # =====================================================
    # 2️⃣ Template publishing
    # =====================================================
    def publish_template(self, quiz_id: str) -> TemplatePublishResponse:
        """Publish the current template version unless a location is already recorded"""
        quiz = self._get_quiz(quiz_id)
        if quiz.has_template:
            logger.info(f"♻️ Template v{quiz.template_version} already published for {quiz_id}")
            return TemplatePublishResponse(
                quiz_id=quiz.id,
                template_version=quiz.template_version,
                template_location=quiz.template_location,
                published=False,
            )

        quiz = self._build_and_publish(quiz, self._load_selected_questions(quiz), quiz.plan())
        return TemplatePublishResponse(
            quiz_id=quiz.id,
            template_version=quiz.template_version,
            template_location=quiz.template_location,
            published=True,
        )

    def regenerate_template(self, quiz_id: str) -> TemplatePublishResponse:
        """Rebuild the template from the stored selection under the next version"""
        quiz = self._get_quiz(quiz_id)
        next_version = replace(quiz, template_version=quiz.template_version + 1)

        logger.info(f"🔄 Regenerating template for {quiz_id} as v{next_version.template_version}")
        quiz = self._build_and_publish(
            next_version, self._load_selected_questions(quiz), quiz.plan()
        )
        return TemplatePublishResponse(
            quiz_id=quiz.id,
            template_version=quiz.template_version,
            template_location=quiz.template_location,
            published=True,
        )

    def _build_and_publish(
        self, quiz: DailyQuizData, questions: List[QuestionData], theme_plan: ThemePlan
    ) -> DailyQuizData:
        template = self.template_service.generate_template(
            quiz, questions, theme_plan, self.clock.now()
        )
        self.template_service.ensure_valid(template)

        content = self.template_service.serialize_template(template)
        path = self.template_service.build_template_path(quiz.drop_at_utc, quiz.template_version)
        location = self.publisher.publish(path, content)

        return self.quiz_store.update_template(quiz.id, quiz.template_version, location)

    def _load_selected_questions(self, quiz: DailyQuizData) -> List[QuestionData]:
        """Questions of a composed quiz with difficulty and type as they were selected"""
        links = self.quiz_store.get_links(quiz.id)
        stored = self.question_store.get_by_ids([link.question_id for link in links])
        questions = {question.id: question for question in stored}
        return [
            QuestionDomain.as_selected(
                questions[link.question_id], link.difficulty, link.question_type
            )
            for link in links
            if link.question_id in questions
        ]

    def _get_quiz(self, quiz_id: str) -> DailyQuizData:
        quiz = self.quiz_store.get_by_id(quiz_id)
        if not quiz:
            raise QuizNotFoundError(quiz_id)
        return quiz

    # =====================================================
    # 3️⃣ Composition log
    # =====================================================
    def _build_log(
        self,
        drop_at_utc: datetime,
        mode: DailyQuizMode,
        config: ComposerConfig,
        theme_plan: Optional[ThemePlan],
        selection: Optional[SelectionResult],
        quiz: Optional[DailyQuizData],
        warnings: List[str],
        started: float,
        db_queries: int,
        error: Optional[Exception] = None,
    ) -> CompositionLog:
        questions = selection.questions if selection else []
        last_used = [q.last_used_at for q in questions if q.last_used_at is not None]

        return CompositionLog(
            timestamp=self.clock.now(),
            target_date=drop_at_utc,
            mode=mode,
            daily_quiz_id=quiz.id if quiz else None,
            theme_plan=theme_plan.to_snapshot() if theme_plan else {"mode": mode.value, "themes": []},
            selection_process=[
                DifficultySelectionLog(
                    difficulty=outcome.difficulty,
                    target=outcome.target,
                    attempted=outcome.levels_tried,
                    candidates_seen=outcome.candidates_seen,
                    selected=len(outcome.questions),
                    relaxation_level=outcome.relaxation_level,
                    emergency=outcome.emergency,
                    issues=outcome.issues + outcome.warnings,
                )
                for outcome in (selection.by_difficulty if selection else [])
            ],
            final_selection=FinalSelectionLog(
                total_questions=len(questions),
                difficulty_actual=QuestionDomain.difficulty_breakdown(questions),
                difficulty_target={
                    difficulty.value: count
                    for difficulty, count in config.difficulty_distribution.items()
                },
                theme_distribution=selection.theme_distribution if selection else {},
                average_exposure=selection.average_exposure_count if selection else 0.0,
                oldest_last_used=min(last_used) if last_used else None,
                newest_last_used=max(last_used) if last_used else None,
            ),
            relaxation_level=selection.relaxation_level if selection else 0,
            warnings=warnings,
            performance=PerformanceLog(
                duration_ms=int((time.perf_counter() - started) * 1000),
                db_queries=db_queries,
            ),
            has_errors=error is not None,
            error_message=str(error) if error is not None else None,
        )

    def _emit_log(self, log: CompositionLog) -> None:
        logger.info(json.dumps({"composition_log": log.model_dump(mode="json")}))
        try:
            self.log_store.create(log)
        except Exception:
            # A lost log row must not fail the composition itself
            logger.exception("❌ Failed to save composition log")

    # =====================================================
    # 4️⃣ Monitoring
    # =====================================================
    def preview_composition(
        self,
        drop_at_utc: datetime,
        mode: DailyQuizMode = DailyQuizMode.MIX,
        config: Optional[ComposerConfig] = None,
    ) -> PreviewResponse:
        """What a composition would use for a drop time, without writing anything"""
        drop_at_utc = as_utc(drop_at_utc)
        config = config or self.config
        theme_plan = self.theme_planner.generate_theme_plan(mode, drop_at_utc)
        available = count_by_difficulty(self.question_store)

        distributor = DifficultyDistributionService(config)
        target = distributor.get_target_distribution(config.target_question_count)

        warnings: List[str] = []
        feasible = True

        for difficulty in DIFFICULTY_ORDER:
            have = available.get(difficulty.value, 0)
            if have < target[difficulty]:
                warnings.append(
                    f"Insufficient {difficulty.value} questions: need {target[difficulty]}, have {have}"
                )
                feasible = False

        if not feasible:
            adjusted = distributor.get_distribution_with_fallbacks(
                config.target_question_count,
                {d: available.get(d.value, 0) for d in DIFFICULTY_ORDER},
            )
            warnings.extend(adjusted["fallbacks"])
            warnings.extend(adjusted["warnings"])

        if self.quiz_store.get_by_drop_at(drop_at_utc):
            warnings.append(f"Daily quiz already exists for {drop_at_utc.isoformat()}")
            feasible = False

        if feasible:
            warnings.append("This is a preview - no records will be created")

        return PreviewResponse(
            drop_at_utc=drop_at_utc,
            mode=mode,
            theme_plan=theme_plan.to_snapshot(),
            estimated_questions=config.target_question_count,
            difficulty_distribution={d.value: n for d, n in target.items()},
            available_questions=available,
            warnings=warnings,
            feasible=feasible,
        )

    def get_composition_stats(self) -> CompositionStatsResponse:
        now = self.clock.now()
        recent_logs = self.log_store.list_since(
            now - timedelta(days=STATS_WINDOW_DAYS), limit=STATS_LOG_LIMIT
        )

        average_relaxation = 0.0
        if recent_logs:
            average_relaxation = sum(log.relaxation_level for log in recent_logs) / len(recent_logs)

        theme_distribution = {}
        for log in recent_logs:
            for theme, count in log.final_selection.theme_distribution.items():
                theme_distribution[theme] = theme_distribution.get(theme, 0) + count

        recent_warnings = []
        for log in recent_logs[:RECENT_WARNING_LOGS]:
            recent_warnings.extend(log.warnings)

        return CompositionStatsResponse(
            total_quizzes=self.quiz_store.count(),
            average_relaxation_level=round(average_relaxation, 2),
            theme_distribution=theme_distribution,
            recent_warnings=recent_warnings[:RECENT_WARNING_LIMIT],
            by_difficulty=count_by_difficulty(self.question_store),
        )

    def get_system_health(self) -> SystemHealthResponse:
        now = self.clock.now()
        issues: List[str] = []
        recommendations: List[str] = []

        try:
            stats = self.get_composition_stats()

            for difficulty, minimum in HEALTH_MINIMUMS.items():
                count = stats.by_difficulty.get(difficulty.value, 0)
                if count < minimum:
                    issues.append(
                        f"Low {difficulty.value} question count: {count} (minimum: {minimum})"
                    )
                    recommendations.append(f"Add more {difficulty.value} questions to the pool")

            recent = self.quiz_store.list_recent(
                limit=20, since=now - timedelta(days=HEALTH_RECENT_DAYS)
            )
            if not recent:
                issues.append("No recent quiz compositions found")
                recommendations.append("Ensure daily quiz composition is running")

            return SystemHealthResponse(
                healthy=not issues,
                issues=issues,
                recommendations=recommendations,
                last_check=now,
                question_pool_stats=stats,
                recent_compositions=[
                    RecentComposition(
                        id=quiz.id,
                        drop_at_utc=quiz.drop_at_utc,
                        mode=quiz.mode,
                        question_count=count,
                    )
                    for quiz, count in recent
                ],
            )
        except Exception as e:
            logger.exception("❌ Health check failed")
            return SystemHealthResponse(
                healthy=False,
                issues=[f"Health check failed: {str(e)}"],
                recommendations=["Check database connectivity and service configuration"],
                last_check=now,
            )

    def get_recent_composition_logs(
        self, limit: int = 10, offset: int = 0
    ) -> CompositionLogListResponse:
        entries = [
            CompositionLogEntry(
                id=quiz.id,
                drop_at_utc=quiz.drop_at_utc,
                mode=quiz.mode,
                themes=DailyQuizDomain.themes_of(quiz),
                question_count=count,
                template_version=quiz.template_version,
                template_location=quiz.template_location,
                created_at=quiz.created_at,
            )
            for quiz, count in self.quiz_store.list_recent(limit=limit, offset=offset)
        ]
        return CompositionLogListResponse(
            logs=entries,
            pagination=Pagination(total=self.quiz_store.count(), limit=limit, offset=offset),
        )

    def get_configuration_options(self) -> ConfigurationOptionsResponse:
        return ConfigurationOptionsResponse(
            modes=list(DailyQuizMode),
            themes=list(QuestionTheme),
            default_config=self.config,
        )
