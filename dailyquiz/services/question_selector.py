import logging
from datetime import datetime
from typing import List, Set

from dailyquiz.domain.question_domain import QuestionData, QuestionDomain
from dailyquiz.domain.selection import (
    EMERGENCY_RELAXATION_LEVEL,
    DifficultySelection,
    SelectionCriteria,
    SelectionResult,
)
from dailyquiz.repositories.interfaces import QuestionStore
from dailyquiz.schemas.daily_quiz import ComposerConfig, DailyQuizMode, ThemePlan
from dailyquiz.schemas.question import DIFFICULTY_ORDER, Difficulty
from dailyquiz.services.anti_repeat import AntiRepeatService
from dailyquiz.services.difficulty_distribution import DifficultyDistributionService

logger = logging.getLogger(__name__)


class QuestionSelector:
    """
    Picks the quiz questions one difficulty at a time with progressive relaxation.

    For each difficulty (easy, medium, hard) the anti-repeat threshold is
    loosened level by level until the quota is met, then an emergency pass
    takes the least exposed questions regardless of recency or diversity.
    Themes and subjects used by earlier difficulties steer the filtering of
    later ones, so the passes have to run in order.
    """

    def __init__(self, question_store: QuestionStore):
        self.question_store = question_store

    def select_questions(
        self,
        config: ComposerConfig,
        theme_plan: ThemePlan,
        reference_time: datetime,
    ) -> SelectionResult:
        logger.info(f"🎯 Starting question selection for {theme_plan.mode.value} quiz")

        anti_repeat = AntiRepeatService(
            self.question_store,
            relaxation_days=config.anti_repeat_days,
            max_exposure_bias=config.max_exposure_bias,
        )
        targets = DifficultyDistributionService(config).get_target_distribution(
            config.target_question_count
        )

        selected: List[QuestionData] = []
        used_themes: Set[str] = set()
        used_subjects: Set[str] = set()
        by_difficulty: List[DifficultySelection] = []
        warnings: List[str] = []

        for difficulty in DIFFICULTY_ORDER:
            target = targets.get(difficulty, 0)
            if target <= 0:
                continue

            logger.debug(f"Selecting {target} {difficulty.value} questions")
            outcome = self._select_for_difficulty(
                anti_repeat,
                difficulty,
                target,
                theme_plan,
                config,
                reference_time,
                exclude_ids=[q.id for q in selected],
                used_themes=used_themes,
                used_subjects=used_subjects,
            )

            by_difficulty.append(outcome)
            selected.extend(outcome.questions)
            warnings.extend(outcome.warnings)

            for question in outcome.questions:
                used_themes.update(question.themes)
                used_subjects.update(question.subjects)

        relaxation_level = max((o.relaxation_level for o in by_difficulty), default=0)

        logger.info(
            f"✅ Selected {len(selected)}/{config.target_question_count} questions "
            f"at relaxation level {relaxation_level}"
        )

        return SelectionResult(
            questions=selected,
            relaxation_level=relaxation_level,
            average_exposure_count=QuestionDomain.average_exposure(selected),
            theme_distribution=QuestionDomain.theme_distribution(selected),
            subject_distribution=QuestionDomain.subject_distribution(selected),
            warnings=warnings,
            by_difficulty=by_difficulty,
        )

    def _select_for_difficulty(
        self,
        anti_repeat: AntiRepeatService,
        difficulty: Difficulty,
        target: int,
        theme_plan: ThemePlan,
        config: ComposerConfig,
        reference_time: datetime,
        exclude_ids: List[str],
        used_themes: Set[str],
        used_subjects: Set[str],
    ) -> DifficultySelection:
        outcome = DifficultySelection(difficulty=difficulty, target=target)

        for level in range(anti_repeat.max_level + 1):
            if len(outcome.questions) >= target:
                break

            outcome.levels_tried += 1
            logger.debug(
                f"Trying relaxation level {level} for {difficulty.value} questions "
                f"(need {target - len(outcome.questions)} more)"
            )

            criteria = SelectionCriteria(
                difficulty=difficulty,
                exclude_question_ids=exclude_ids + [q.id for q in outcome.questions],
                max_days_since_last_used=anti_repeat.threshold_days(level),
                preferred_themes=self.preferred_themes(theme_plan),
                subject_diversity=sorted(used_subjects),
                max_exposure_count=config.max_exposure_bias if level == 0 else None,
            )
            candidates = anti_repeat.get_eligible_questions(criteria, level, reference_time)
            outcome.candidates_seen += len(candidates)

            if not candidates:
                outcome.issues.append(
                    f"No eligible {difficulty.value} questions at relaxation level {level}"
                )
                continue

            filtered = self.apply_theme_and_diversity_filtering(
                candidates, theme_plan, used_themes, used_subjects, config
            )
            if not filtered:
                outcome.issues.append(
                    f"No {difficulty.value} questions passed theme/diversity filtering at level {level}"
                )
                continue

            needed = target - len(outcome.questions)
            picks = sorted(filtered, key=lambda q: (q.exposure_count, q.id))[:needed]
            outcome.questions.extend(picks)
            outcome.relaxation_level = level
            logger.debug(f"Selected {len(picks)} {difficulty.value} questions at level {level}")

        if len(outcome.questions) < target:
            self._emergency_fill(outcome, exclude_ids)

        return outcome

    def _emergency_fill(self, outcome: DifficultySelection, exclude_ids: List[str]) -> None:
        difficulty = outcome.difficulty
        needed = outcome.target - len(outcome.questions)
        found_before = len(outcome.questions)

        logger.warning(
            f"🚨 Emergency selection: need {needed} more {difficulty.value} questions"
        )
        outcome.warnings.append(
            f"Emergency fallback: only found {found_before}/{outcome.target} "
            f"{difficulty.value} questions after all relaxation levels"
        )

        emergency = self.question_store.find_least_exposed(
            difficulty,
            exclude_ids + [q.id for q in outcome.questions],
            needed,
        )
        outcome.questions.extend(emergency)
        outcome.candidates_seen += len(emergency)
        outcome.relaxation_level = EMERGENCY_RELAXATION_LEVEL
        outcome.emergency = True

        logger.warning(
            f"Emergency selection found {len(emergency)}/{needed} {difficulty.value} questions"
        )
        if len(outcome.questions) < outcome.target:
            outcome.warnings.append(
                f"Shortfall: selected {len(outcome.questions)}/{outcome.target} "
                f"{difficulty.value} questions after emergency fallback"
            )

    @staticmethod
    def preferred_themes(theme_plan: ThemePlan) -> List[str]:
        if theme_plan.spotlight:
            return [theme_plan.spotlight.value]
        return [theme.value for theme in theme_plan.themes]

    @staticmethod
    def apply_theme_and_diversity_filtering(
        candidates: List[QuestionData],
        theme_plan: ThemePlan,
        used_themes: Set[str],
        used_subjects: Set[str],
        config: ComposerConfig,
    ) -> List[QuestionData]:
        """
        Theme preferences narrow the candidates only when something survives
        them. The subject overlap limit is a hard filter.
        """
        filtered = candidates
        plan_themes = {theme.value for theme in theme_plan.themes}

        if theme_plan.mode == DailyQuizMode.SPOTLIGHT and theme_plan.spotlight:
            spotlight = theme_plan.spotlight.value
            spotlight_matches = [q for q in filtered if spotlight in q.themes]
            if spotlight_matches:
                filtered = spotlight_matches
        elif plan_themes:
            plan_matches = [q for q in filtered if plan_themes.intersection(q.themes)]
            if plan_matches:
                filtered = plan_matches

        if (
            theme_plan.mode != DailyQuizMode.SPOTLIGHT
            and len(used_themes) < config.min_unique_themes
        ):
            introduces_new = [q for q in filtered if set(q.themes) - used_themes]
            if introduces_new:
                filtered = introduces_new

        return [
            q
            for q in filtered
            if len(used_subjects.intersection(q.subjects)) <= config.max_subject_overlap
        ]
