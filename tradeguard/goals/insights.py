"""
Goal Failure Insights

Cause inference is a fixed priority chain over the goal window:
  1. a loss among the last closed trades
  2. trade-count goals only: more than N trades per day
  3. more than half of the recorded entry emotions are negative
  4. generic fallback

With too little closed history the fallback is returned straight away
and flagged as not confident.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from tradeguard.goals.contracts import is_failing
from tradeguard.journal.calculations import closed_trades, to_local
from tradeguard.journal.models import (
    NEGATIVE_EMOTIONS,
    GoalGeneratedInsight,
    GoalType,
    InsightSeverity,
    Trade,
    TradingGoal,
)
from tradeguard.utils.config import Settings, get_settings


class CauseCode(str, Enum):
    RECENT_LOSS = "recent-loss"
    HIGH_FREQUENCY = "high-frequency"
    NEGATIVE_EMOTIONS = "negative-emotions"
    UNKNOWN = "unknown"


CAUSE_MESSAGES = {
    CauseCode.RECENT_LOSS: "Occurred after a recent loss.",
    CauseCode.HIGH_FREQUENCY: "Trading frequency above your historical average.",
    CauseCode.NEGATIVE_EMOTIONS: "Negative emotional pattern detected in recent trades.",
    CauseCode.UNKNOWN: "Deviation from the behaviour expected from your history.",
}

TYPE_LABELS = {
    GoalType.PNL: "PnL",
    GoalType.WIN_RATE: "Win rate",
    GoalType.NUM_TRADES: "Number of trades",
}

# (goal type, cause) -> question; a None cause is the per-type default.
QUESTIONS: dict[tuple[GoalType, Optional[CauseCode]], str] = {
    (GoalType.NUM_TRADES, CauseCode.RECENT_LOSS): "What were you trying to recover?",
    (GoalType.NUM_TRADES, None): "What pushed you to exceed your limit?",
    (GoalType.PNL, CauseCode.RECENT_LOSS): "Are you trading with the right position size?",
    (GoalType.PNL, None): "Does your strategy need adjustments or more discipline?",
    (GoalType.WIN_RATE, None): "Are you entering setups you truly know?",
}
DEFAULT_QUESTION = "What can you learn from this situation?"


@dataclass
class FailureCause:
    code: CauseCode
    message: str
    confident: bool = True

    @classmethod
    def of(cls, code: CauseCode, confident: bool = True) -> "FailureCause":
        return cls(code=code, message=CAUSE_MESSAGES[code], confident=confident)


def goal_title(goal: TradingGoal) -> str:
    return f"{TYPE_LABELS[goal.type]} {goal.period.value}"


def goal_window_end(goal: TradingGoal, now: datetime) -> datetime:
    """`now`, clamped to the goal end once the window has closed."""
    return min(to_local(now), to_local(goal.end_date))


def trades_in_goal_window(
    goal: TradingGoal,
    trades: Sequence[Trade],
    now: datetime,
) -> list[Trade]:
    """Trades entered between the goal start and `now` (or the goal end, if earlier)."""
    start = to_local(goal.start_date)
    end = goal_window_end(goal, now)
    return [t for t in trades if start <= to_local(t.entry_date) <= end]


def infer_failure_cause(
    goal: TradingGoal,
    trades: Sequence[Trade],
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> FailureCause:
    cfg = config or get_settings()
    current_time = to_local(now or datetime.now())

    if len(closed_trades(trades)) < cfg.cause_min_closed_trades:
        return FailureCause.of(CauseCode.UNKNOWN, confident=False)

    window = trades_in_goal_window(goal, trades, current_time)

    recent_closed = sorted(
        (t for t in window if t.is_closed and t.exit_date),
        key=lambda t: to_local(t.exit_date),
        reverse=True,
    )[: cfg.cause_recent_trades]
    if any((t.pnl or 0) < 0 for t in recent_closed):
        return FailureCause.of(CauseCode.RECENT_LOSS)

    if goal.is_max_goal and goal.current > goal.target:
        elapsed = goal_window_end(goal, current_time) - to_local(goal.start_date)
        elapsed_days = elapsed.total_seconds() / 86400
        if len(window) / max(1.0, elapsed_days) > cfg.cause_max_trades_per_day:
            return FailureCause.of(CauseCode.HIGH_FREQUENCY)

    emotions = [e for t in window for e in t.emotions]
    if emotions:
        negative = sum(1 for e in emotions if e in NEGATIVE_EMOTIONS)
        if negative / len(emotions) > cfg.negative_emotion_ratio:
            return FailureCause.of(CauseCode.NEGATIVE_EMOTIONS)

    return FailureCause.of(CauseCode.UNKNOWN)


def generate_actionable_question(goal: TradingGoal, cause: FailureCause) -> str:
    if not is_failing(goal, goal.current):
        return DEFAULT_QUESTION
    return QUESTIONS.get((goal.type, cause.code)) or QUESTIONS.get((goal.type, None), DEFAULT_QUESTION)


def describe_failure(goal: TradingGoal) -> str:
    period = goal.period.value
    if goal.type == GoalType.NUM_TRADES:
        return (
            f"You exceeded your limit of {goal.target:g} {period} trades. "
            f"You made {goal.current:g} trades."
        )
    if goal.type == GoalType.PNL:
        return (
            f"You did not reach your {period} PnL target. "
            f"Target: {goal.target:.2f}, Current: {goal.current:.2f}."
        )
    return f"Your win rate ({goal.current:.1f}%) is below your {period} target ({goal.target:.1f}%)."


def is_critical_failure(goal: TradingGoal, config: Optional[Settings] = None) -> bool:
    cfg = config or get_settings()
    return goal.is_binding or goal.failure_count > cfg.repeated_failure_threshold


def generate_goal_failure_insight(
    goal: TradingGoal,
    trades: Sequence[Trade],
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
    cause: Optional[FailureCause] = None,
) -> Optional[GoalGeneratedInsight]:
    """Insight for a currently failing goal; None when it is passing or completed."""
    if goal.completed or not is_failing(goal, goal.current):
        return None

    current_time = now or datetime.now()
    cause = cause or infer_failure_cause(goal, trades, current_time, config)
    return GoalGeneratedInsight(
        goal_id=goal.id,
        goal_title=goal_title(goal),
        severity=(
            InsightSeverity.CRITICAL if is_critical_failure(goal, config) else InsightSeverity.IMPORTANT
        ),
        what_happened=describe_failure(goal),
        possible_cause=cause.message,
        actionable_question=generate_actionable_question(goal, cause),
        generated_at=current_time,
        data={
            "goal_type": goal.type.value,
            "goal_period": goal.period.value,
            "target": goal.target,
            "current": goal.current,
            "failure_count": goal.failure_count + 1,
            "cause": cause.code.value,
            "cause_confident": cause.confident,
        },
    )
