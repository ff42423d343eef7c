"""
Goal Constraints — trading restrictions attached to a goal.

  session     only inside a market session (asian, london, new-york, overlap)
  hours       only between start_hour and end_hour
  max-trades  no new trade once the goal period holds max_value trades
  max-loss    no new trade once closed PnL in the period reaches -max_value
  custom      enforced by the caller, never active here

A constraint only applies while `now` is inside the goal window.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from tradeguard.goals.insights import trades_in_goal_window
from tradeguard.journal.calculations import to_local
from tradeguard.journal.models import ConstraintType, Trade, TradingGoal

SESSION_HOURS: dict[str, tuple[int, int]] = {
    "asian": (0, 9),
    "london": (8, 17),
    "new-york": (13, 22),
    "overlap": (13, 17),
}

SESSION_LABELS = {
    "asian": "Asian",
    "london": "London",
    "new-york": "New York",
    "overlap": "Overlap",
}


@dataclass
class ConstraintState:
    active: bool = False
    message: str = ""
    reason: Optional[str] = None


@dataclass
class ActiveConstraint:
    goal: TradingGoal
    message: str
    reason: Optional[str] = None


@dataclass
class GoalBlock:
    blocked: bool = False
    message: str = ""
    blocking_goals: list[TradingGoal] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocked": self.blocked,
            "message": self.message,
            "blocking_goal_ids": [g.id for g in self.blocking_goals],
        }


def is_goal_constraint_active(
    goal: TradingGoal,
    trades: Sequence[Trade],
    now: Optional[datetime] = None,
) -> ConstraintState:
    if goal.constraint_type in (ConstraintType.NONE, ConstraintType.CUSTOM):
        return ConstraintState()

    current_time = to_local(now or datetime.now())
    if not to_local(goal.start_date) <= current_time <= to_local(goal.end_date):
        return ConstraintState()

    cfg = goal.constraint_config
    hour = current_time.hour

    if goal.constraint_type == ConstraintType.SESSION:
        session = cfg.session if cfg else None
        if session not in SESSION_HOURS:
            return ConstraintState()
        start, end = SESSION_HOURS[session]
        if not start <= hour < end:
            return ConstraintState(
                active=True,
                message=(
                    f"Outside the hours allowed by your plan. You may only trade during the "
                    f"{SESSION_LABELS[session]} session ({start}:00 - {end}:00)."
                ),
                reason="session",
            )

    elif goal.constraint_type == ConstraintType.HOURS:
        start = cfg.start_hour if cfg and cfg.start_hour is not None else 0
        end = cfg.end_hour if cfg and cfg.end_hour is not None else 23
        if not start <= hour < end:
            return ConstraintState(
                active=True,
                message=(
                    f"Outside the hours allowed by your plan. "
                    f"You may only trade between {start}:00 and {end}:00."
                ),
                reason="hours",
            )

    elif goal.constraint_type == ConstraintType.MAX_TRADES:
        max_value = cfg.max_value if cfg and cfg.max_value is not None else goal.target
        count = len(trades_in_goal_window(goal, trades, current_time))
        if count >= max_value:
            return ConstraintState(
                active=True,
                message=f"You reached your limit of {max_value:g} trades for this period.",
                reason="max-trades",
            )

    elif goal.constraint_type == ConstraintType.MAX_LOSS:
        max_value = cfg.max_value if cfg and cfg.max_value is not None else goal.target
        period_pnl = sum(
            t.pnl or 0 for t in trades_in_goal_window(goal, trades, current_time) if t.is_closed
        )
        if period_pnl <= -abs(max_value):
            return ConstraintState(
                active=True,
                message=f"You reached your loss limit for this period ({abs(max_value):.2f}).",
                reason="max-loss",
            )

    return ConstraintState()


def get_active_goal_constraints(
    goals: Sequence[TradingGoal],
    trades: Sequence[Trade],
    now: Optional[datetime] = None,
) -> list[ActiveConstraint]:
    active: list[ActiveConstraint] = []
    for goal in goals:
        state = is_goal_constraint_active(goal, trades, now)
        if state.active:
            active.append(ActiveConstraint(goal=goal, message=state.message, reason=state.reason))
    return active


def should_block_trading_due_to_goals(
    goals: Sequence[TradingGoal],
    trades: Sequence[Trade],
    now: Optional[datetime] = None,
) -> GoalBlock:
    """Only the primary goal's constraint can block trading."""
    primary = next((g for g in goals if g.is_primary), None)
    if primary is None:
        return GoalBlock()

    active = get_active_goal_constraints([primary], trades, now)
    if not active:
        return GoalBlock()
    return GoalBlock(
        blocked=True,
        message=active[0].message,
        blocking_goals=[c.goal for c in active],
    )
