"""Post-mortems for critical goal failures."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from tradeguard.goals.contracts import is_failing
from tradeguard.goals.insights import (
    FailureCause,
    goal_title,
    infer_failure_cause,
    trades_in_goal_window,
)
from tradeguard.journal.calculations import to_local
from tradeguard.journal.models import GoalPostMortem, Trade, TradingGoal, TradingSettings
from tradeguard.risk.rules import RuleEvaluator
from tradeguard.utils.config import Settings, get_settings


def find_related_rule_violations(
    goal: TradingGoal,
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> list[str]:
    """Distinct rule keys broken by closed trades in the goal window, first seen first."""
    evaluator = RuleEvaluator(config)
    keys: list[str] = []
    for trade in trades_in_goal_window(goal, trades, now or datetime.now()):
        if not trade.is_closed:
            continue
        for key in evaluator.evaluate(trade, trades, settings).violated_keys:
            if key not in keys:
                keys.append(key)
    return keys


def find_historical_patterns(
    goal: TradingGoal,
    trades: Sequence[Trade],
    config: Optional[Settings] = None,
) -> list[str]:
    cfg = config or get_settings()
    patterns: list[str] = []

    if goal.failure_count > 1:
        patterns.append(f"This goal has failed {goal.failure_count} times before.")

    start = to_local(goal.start_date)
    losses = sum(
        1
        for t in trades
        if t.is_closed and t.exit_date and to_local(t.exit_date) >= start and (t.pnl or 0) < 0
    )
    if losses > cfg.losing_trades_pattern_threshold:
        patterns.append(f"{losses} losing trades detected during the goal period.")

    return patterns


def generate_goal_post_mortem(
    goal: TradingGoal,
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
    cause: Optional[FailureCause] = None,
) -> Optional[GoalPostMortem]:
    if goal.completed or not is_failing(goal, goal.current):
        return None

    current_time = now or datetime.now()
    cause = cause or infer_failure_cause(goal, trades, current_time, config)
    return GoalPostMortem(
        goal_id=goal.id,
        goal_title=goal_title(goal),
        failed_at=current_time,
        cause=cause.message,
        related_rule_violations=find_related_rule_violations(
            goal, trades, settings, current_time, config
        ),
        historical_patterns=find_historical_patterns(goal, trades, config),
        created_at=current_time,
    )
