import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from dailyquiz.core.clock import as_utc
from dailyquiz.schemas.daily_quiz import DailyQuizMode, ThemePlan
from dailyquiz.schemas.question import QuestionTheme

logger = logging.getLogger(__name__)

MIX_THEME_WEIGHT = 2
SPOTLIGHT_THEME_WEIGHT = 6

# Indexed by day of week with Sunday = 0
WEEKLY_ROTATION: List[List[QuestionTheme]] = [
    [QuestionTheme.LYRICS, QuestionTheme.ALBUMS, QuestionTheme.TIMELINE],
    [QuestionTheme.AUDIO, QuestionTheme.SONGS, QuestionTheme.CAREER],
    [QuestionTheme.AESTHETIC, QuestionTheme.OUTFITS, QuestionTheme.TOURS],
    [QuestionTheme.CHARTS, QuestionTheme.POPULARITY, QuestionTheme.EVENTS],
    [QuestionTheme.TRIVIA, QuestionTheme.INSPIRATION, QuestionTheme.MOOD],
    [QuestionTheme.MASHUPS, QuestionTheme.TRACKLIST, QuestionTheme.SPEED],
    [QuestionTheme.VISUALS, QuestionTheme.AUDIO, QuestionTheme.ALBUMS],
]

# (month, day) -> (label, weighted themes)
SPECIAL_EVENTS: Dict[Tuple[int, int], Tuple[str, Dict[QuestionTheme, int]]] = {
    (12, 13): (
        "Taylor Swift's Birthday",
        {
            QuestionTheme.CAREER: 3,
            QuestionTheme.TIMELINE: 2,
            QuestionTheme.TRIVIA: 1,
        },
    ),
}


def day_of_week(moment: datetime) -> int:
    """Day of week with Sunday = 0"""
    return (moment.weekday() + 1) % 7


class ThemePlanner:
    """Derives the theme plan for a drop. Pure function of mode and drop date (UTC)."""

    def __init__(self, themes: Optional[List[QuestionTheme]] = None):
        self.themes = list(themes or QuestionTheme)

    def generate_theme_plan(self, mode: DailyQuizMode, drop_at: datetime) -> ThemePlan:
        drop_at = as_utc(drop_at)
        if mode == DailyQuizMode.SPOTLIGHT:
            plan = self._spotlight_plan(drop_at)
        elif mode == DailyQuizMode.EVENT:
            plan = self._event_plan(drop_at)
        else:
            plan = self._mix_plan(drop_at)

        logger.debug(
            f"Theme plan for {drop_at.date().isoformat()} ({mode.value}): "
            f"{[theme.value for theme in plan.themes]}"
        )
        return plan

    def _mix_plan(self, drop_at: datetime) -> ThemePlan:
        themes = WEEKLY_ROTATION[day_of_week(drop_at)]
        return ThemePlan(
            mode=DailyQuizMode.MIX,
            themes=list(themes),
            weights={theme.value: MIX_THEME_WEIGHT for theme in themes},
        )

    def _spotlight_plan(self, drop_at: datetime) -> ThemePlan:
        day_of_year = drop_at.timetuple().tm_yday
        spotlight = self.themes[day_of_year % len(self.themes)]
        return ThemePlan(
            mode=DailyQuizMode.SPOTLIGHT,
            themes=[spotlight],
            weights={spotlight.value: SPOTLIGHT_THEME_WEIGHT},
            spotlight=spotlight,
        )

    def _event_plan(self, drop_at: datetime) -> ThemePlan:
        event = SPECIAL_EVENTS.get((drop_at.month, drop_at.day))
        if event is None:
            # No event on this date; the plan is reported as a plain mix
            return self._mix_plan(drop_at)

        label, weights = event
        return ThemePlan(
            mode=DailyQuizMode.EVENT,
            themes=list(weights.keys()),
            weights={theme.value: weight for theme, weight in weights.items()},
            event=label,
        )
