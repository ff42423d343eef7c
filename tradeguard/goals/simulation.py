"""
Goal Simulation — projects a goal's metric forward from the ledger history.

PnL and trade-count goals project linearly from the historical per-day
rate; win rate does not compound, so it projects flat from the current
rate. Each projection comes with a conservative/optimistic band and a
realism check against the goal target.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence

from tradeguard.journal.calculations import calculate_win_rate, closed_trades, to_local
from tradeguard.journal.models import GoalPeriod, GoalType, Trade, TradingGoal
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)

INSUFFICIENT_HISTORY = "Not enough trading history to project this goal."


@dataclass
class ProjectionBreakdown:
    conservative: float = 0.0
    moderate: float = 0.0
    optimistic: float = 0.0


@dataclass
class GoalSimulationResult:
    projected_value: float
    projected_days: int
    is_realistic: bool
    breakdown: ProjectionBreakdown = field(default_factory=ProjectionBreakdown)
    warning: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "projected_value": round(self.projected_value, 2),
            "projected_days": self.projected_days,
            "is_realistic": self.is_realistic,
            "warning": self.warning,
            "breakdown": {k: round(v, 2) for k, v in asdict(self.breakdown).items()},
        }


def history_span_days(trades: Sequence[Trade]) -> float:
    """Days from the first entry to the last exit (or entry), at least 1."""
    first = min(to_local(t.entry_date) for t in trades)
    last = max(to_local(t.exit_date or t.entry_date) for t in trades)
    return max(1.0, (last - first).total_seconds() / 86400)


def _band(moderate: float, spread: float) -> ProjectionBreakdown:
    return ProjectionBreakdown(
        conservative=moderate * (1 - spread),
        moderate=moderate,
        optimistic=moderate * (1 + spread),
    )


def simulate_goal_future(
    goal: TradingGoal,
    trades: Sequence[Trade],
    projection_days: int = 90,
    config: Optional[Settings] = None,
) -> GoalSimulationResult:
    cfg = config or get_settings()
    closed = closed_trades(trades)
    if not closed:
        return GoalSimulationResult(
            projected_value=0.0,
            projected_days=projection_days,
            is_realistic=False,
            warning=INSUFFICIENT_HISTORY,
        )

    warning: Optional[str] = None

    if goal.type == GoalType.PNL:
        avg_daily_pnl = sum(t.pnl or 0 for t in closed) / history_span_days(closed)
        breakdown = _band(avg_daily_pnl * projection_days, cfg.simulation_pnl_band)

        if goal.period == GoalPeriod.DAILY and goal.target > avg_daily_pnl * cfg.simulation_daily_pnl_multiple:
            warning = (
                f"Your historical daily average ({avg_daily_pnl:.2f}) is far below "
                f"your target ({goal.target:.2f}). Consider adjusting the goal."
            )
        elif (
            goal.period == GoalPeriod.MONTHLY
            and goal.target > breakdown.moderate * cfg.simulation_monthly_pnl_multiple
        ):
            warning = (
                f"Your projection ({breakdown.moderate / 30:.2f} per day) is far below "
                f"your monthly target ({goal.target:.2f}). Consider adjusting the goal."
            )

    elif goal.type == GoalType.WIN_RATE:
        win_rate = calculate_win_rate(closed)
        spread = cfg.simulation_win_rate_band
        breakdown = ProjectionBreakdown(
            conservative=max(0.0, win_rate - spread),
            moderate=win_rate,
            optimistic=min(100.0, win_rate + spread),
        )

        if goal.target > win_rate + cfg.simulation_win_rate_gap:
            warning = (
                f"Your historical win rate ({win_rate:.1f}%) is well below your "
                f"target ({goal.target:.1f}%). Consider adjusting the goal or "
                f"reviewing your strategy."
            )

    else:
        avg_trades_per_day = len(closed) / history_span_days(closed)
        breakdown = _band(avg_trades_per_day * projection_days, cfg.simulation_trades_band)

        if (
            goal.period == GoalPeriod.DAILY
            and goal.target < avg_trades_per_day * cfg.simulation_daily_trades_ratio
        ):
            warning = (
                f"Your historical daily average ({avg_trades_per_day:.1f} trades/day) is "
                f"far above your limit ({goal.target:g}). Check that the reduction is intended."
            )

    logger.debug(
        "goal_simulated",
        goal_id=goal.id,
        goal_type=goal.type.value,
        moderate=round(breakdown.moderate, 2),
        realistic=warning is None,
    )
    return GoalSimulationResult(
        projected_value=breakdown.moderate,
        projected_days=projection_days,
        is_realistic=warning is None,
        breakdown=breakdown,
        warning=warning,
    )
