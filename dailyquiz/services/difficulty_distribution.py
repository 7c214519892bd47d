import logging
from typing import Dict, List, Optional

from dailyquiz.schemas.daily_quiz import ComposerConfig
from dailyquiz.schemas.question import DIFFICULTY_ORDER, Difficulty

logger = logging.getLogger(__name__)

EASY_RATIO = 0.5
MEDIUM_RATIO = 0.33
EMERGENCY_MAX_PER_DIFFICULTY = 3


def _round_half_up(value: float) -> int:
    # round() in Python rounds halves to even
    return int(value + 0.5)


class DifficultyDistributionService:
    """
    Turns a question count into a per-difficulty quota.

    The configured quota (3 easy / 2 medium / 1 hard by default) is used when
    the requested total equals the configured target and the quota adds up to
    it; other totals scale proportionally with at least one hard question.
    """

    def __init__(self, config: Optional[ComposerConfig] = None):
        self.config = config or ComposerConfig()

    def get_target_distribution(self, total_questions: int) -> Dict[Difficulty, int]:
        if total_questions == self.config.target_question_count:
            quota = {
                difficulty: self.config.difficulty_distribution.get(difficulty, 0)
                for difficulty in DIFFICULTY_ORDER
            }
            if sum(quota.values()) == total_questions:
                return quota
            logger.warning(
                f"⚠️ Configured quota adds up to {sum(quota.values())}, not {total_questions}; "
                f"using the proportional split"
            )

        easy = _round_half_up(total_questions * EASY_RATIO)
        medium = _round_half_up(total_questions * MEDIUM_RATIO)
        hard = max(1, total_questions - easy - medium)
        return {
            Difficulty.EASY: easy,
            Difficulty.MEDIUM: medium,
            Difficulty.HARD: hard,
        }

    def get_distribution_with_fallbacks(
        self, total_questions: int, available_counts: Dict[Difficulty, int]
    ) -> dict:
        """
        Adjust the target distribution to what the pool can supply.

        Shortfalls are moved to other difficulties in easy, medium, hard order.
        Returns {"distribution", "fallbacks", "warnings"}.
        """
        target = self.get_target_distribution(total_questions)
        distribution = dict(target)
        fallbacks: List[str] = []
        warnings: List[str] = []

        shortfalls = [
            (difficulty, target[difficulty], available_counts.get(difficulty, 0))
            for difficulty in DIFFICULTY_ORDER
            if available_counts.get(difficulty, 0) < target[difficulty]
        ]

        if not shortfalls:
            logger.debug("Target distribution can be met exactly")
            return {"distribution": distribution, "fallbacks": fallbacks, "warnings": warnings}

        logger.warning(f"⚠️ Applying fallback strategies for {len(shortfalls)} difficulty levels")

        for difficulty, needed, available in shortfalls:
            deficit = needed - available
            distribution[difficulty] = available
            fallbacks.append(
                f"{difficulty.value}: reduced from {needed} to {available} (deficit: {deficit})"
            )

            adjusted = self._redistribute_deficit(
                distribution, available_counts, deficit, fallbacks
            )
            if adjusted < deficit:
                warnings.append(
                    f"Could not fully compensate for {difficulty.value} deficit. "
                    f"Short by {deficit - adjusted} questions."
                )

        total_actual = sum(distribution.values())
        min_viable = self.minimum_viable_size(total_questions)
        if total_actual < min_viable:
            warnings.append(
                f"Quiz size {total_actual} is below minimum viable size {min_viable}. "
                "Consider increasing question pool or relaxing anti-repeat rules."
            )

        if total_actual < 3:
            distribution = self._emergency_distribution(available_counts, fallbacks)
            warnings.append(
                "EMERGENCY MODE: Using minimal distribution due to severe question shortage"
            )

        logger.warning(
            f"Final distribution: Easy={distribution[Difficulty.EASY]}, "
            f"Medium={distribution[Difficulty.MEDIUM]}, Hard={distribution[Difficulty.HARD]}"
        )
        return {"distribution": distribution, "fallbacks": fallbacks, "warnings": warnings}

    @staticmethod
    def minimum_viable_size(total_questions: int) -> int:
        return max(3, total_questions // 2)

    @staticmethod
    def _redistribute_deficit(
        distribution: Dict[Difficulty, int],
        available_counts: Dict[Difficulty, int],
        deficit: int,
        fallbacks: List[str],
    ) -> int:
        remaining = deficit
        for difficulty in DIFFICULTY_ORDER:
            if remaining <= 0:
                break
            can_add = min(remaining, available_counts.get(difficulty, 0) - distribution[difficulty])
            if can_add > 0:
                distribution[difficulty] += can_add
                remaining -= can_add
                fallbacks.append(
                    f"{difficulty.value}: increased by {can_add} to compensate for deficit"
                )
        return deficit - remaining

    @staticmethod
    def _emergency_distribution(
        available_counts: Dict[Difficulty, int], fallbacks: List[str]
    ) -> Dict[Difficulty, int]:
        distribution = {difficulty: 0 for difficulty in DIFFICULTY_ORDER}
        for difficulty in DIFFICULTY_ORDER:
            available = available_counts.get(difficulty, 0)
            if available > 0:
                distribution[difficulty] = min(available, EMERGENCY_MAX_PER_DIFFICULTY)
                fallbacks.append(
                    f"Emergency: using {distribution[difficulty]} {difficulty.value} questions"
                )
        return distribution
