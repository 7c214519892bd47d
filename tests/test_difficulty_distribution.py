"""
Pytest tests for DifficultyDistributionService
"""

from dailyquiz.schemas.daily_quiz import ComposerConfig
from dailyquiz.schemas.question import Difficulty
from dailyquiz.services.difficulty_distribution import DifficultyDistributionService

E, M, H = Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD


class TestTargetDistribution:
    def setup_method(self):
        self.service = DifficultyDistributionService()

    def test_default_quota(self):
        assert self.service.get_target_distribution(6) == {E: 3, M: 2, H: 1}

    def test_configured_quota_used_for_configured_target(self):
        config = ComposerConfig(
            target_question_count=9,
            difficulty_distribution={E: 4, M: 3, H: 2},
        )
        service = DifficultyDistributionService(config)

        assert service.get_target_distribution(9) == {E: 4, M: 3, H: 2}

    def test_quota_not_matching_target_uses_proportional_split(self):
        service = DifficultyDistributionService(ComposerConfig(target_question_count=10))

        assert service.get_target_distribution(10) == {E: 5, M: 3, H: 2}

    def test_quota_short_of_its_own_target(self):
        config = ComposerConfig(
            target_question_count=6,
            difficulty_distribution={E: 2, M: 2, H: 1},
        )
        service = DifficultyDistributionService(config)

        assert sum(service.get_target_distribution(6).values()) == 6

    def test_proportional_scaling(self):
        assert self.service.get_target_distribution(10) == {E: 5, M: 3, H: 2}
        assert self.service.get_target_distribution(4) == {E: 2, M: 1, H: 1}

    def test_halves_round_up(self):
        # 1.5 easy rounds to 2, hard is kept at one
        assert self.service.get_target_distribution(3) == {E: 2, M: 1, H: 1}

    def test_minimum_viable_size(self):
        assert DifficultyDistributionService.minimum_viable_size(6) == 3
        assert DifficultyDistributionService.minimum_viable_size(10) == 5
        assert DifficultyDistributionService.minimum_viable_size(2) == 3


class TestDistributionWithFallbacks:
    def setup_method(self):
        self.service = DifficultyDistributionService()

    def test_no_adjustment_when_pool_is_large_enough(self):
        result = self.service.get_distribution_with_fallbacks(6, {E: 10, M: 10, H: 10})

        assert result["distribution"] == {E: 3, M: 2, H: 1}
        assert result["fallbacks"] == []
        assert result["warnings"] == []

    def test_easy_deficit_moves_to_medium(self):
        result = self.service.get_distribution_with_fallbacks(6, {E: 1, M: 10, H: 10})

        assert result["distribution"] == {E: 1, M: 4, H: 1}
        assert "easy: reduced from 3 to 1 (deficit: 2)" in result["fallbacks"]
        assert "medium: increased by 2 to compensate for deficit" in result["fallbacks"]
        assert result["warnings"] == []

    def test_severe_shortage_uses_emergency_distribution(self):
        result = self.service.get_distribution_with_fallbacks(6, {E: 1, M: 0, H: 0})

        assert result["distribution"] == {E: 1, M: 0, H: 0}
        assert any("below minimum viable size" in w for w in result["warnings"])
        assert any(w.startswith("EMERGENCY MODE") for w in result["warnings"])
        assert "Emergency: using 1 easy questions" in result["fallbacks"]
