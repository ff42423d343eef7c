"""
Risk Engine — one synchronous evaluation of a ledger against its settings.

The engine holds no state between calls. Everything it needs (ledger,
settings, goals, previous goal values, `now`) is passed in and every
mutation it decides on is returned.

Usage:
    engine = RiskEngine()
    snapshot = engine.snapshot(trades, settings, now=now)
    engine.assert_can_trade(trades, settings, now=now)   # raises when blocked
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from tradeguard.goals.constraints import GoalBlock, should_block_trading_due_to_goals
from tradeguard.goals.evaluator import GoalEvaluationResult, evaluate_goals
from tradeguard.goals.simulation import GoalSimulationResult, simulate_goal_future
from tradeguard.journal.models import (
    GoalGeneratedInsight,
    GoalPostMortem,
    Trade,
    TradingGoal,
    TradingSettings,
)
from tradeguard.risk.control import (
    GlobalRiskState,
    RealTimeRiskMetrics,
    RiskGlobalStatus,
    SimulationImpact,
    calculate_global_risk_status,
    calculate_real_time_risk,
    is_blocked,
    simulate_trade_impact,
)
from tradeguard.risk.metrics import (
    RiskLevel,
    RiskMetrics,
    RiskWarning,
    get_risk_level,
    get_risk_metrics,
    get_risk_warnings,
)
from tradeguard.risk.rules import RuleEvaluation, evaluate_and_update_trade, evaluate_trade_rules
from tradeguard.risk.status import TradingStatus, TradingStatusInfo, calculate_trading_status
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.exceptions import DataError, RiskLimitError, TradingBlockedError
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RiskSnapshot:
    timestamp: datetime
    metrics: RiskMetrics
    warnings: list[RiskWarning]
    risk_level: RiskLevel
    global_status: RiskGlobalStatus
    real_time: RealTimeRiskMetrics
    trading_status: TradingStatusInfo
    locked: bool
    goal_block: Optional[GoalBlock] = None

    @property
    def can_trade(self) -> bool:
        if self.global_status.status == GlobalRiskState.BLOCKED:
            return False
        if self.goal_block is not None and self.goal_block.blocked:
            return False
        return self.trading_status.status != TradingStatus.PAUSE_RECOMMENDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "can_trade": self.can_trade,
            "locked": self.locked,
            "risk_level": self.risk_level.value,
            "metrics": self.metrics.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "global_status": self.global_status.to_dict(),
            "real_time": self.real_time.to_dict(),
            "trading_status": self.trading_status.to_dict(),
            "goal_block": self.goal_block.to_dict() if self.goal_block else None,
        }


class RiskEngine:
    """Facade over the metric, rule, status and goal components."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or get_settings()

    # ─── Ledger ──────────────────────────────────────────────

    @staticmethod
    def _check_ledger(trades: Sequence[Trade]) -> None:
        seen: set[str] = set()
        for trade in trades:
            if trade.id in seen:
                raise DataError(f"Duplicate trade id in ledger: {trade.id}")
            seen.add(trade.id)

    # ─── Snapshot ────────────────────────────────────────────

    def snapshot(
        self,
        trades: Sequence[Trade],
        settings: TradingSettings,
        now: Optional[datetime] = None,
        goals: Sequence[TradingGoal] = (),
    ) -> RiskSnapshot:
        self._check_ledger(trades)
        current_time = now or datetime.now()

        metrics = get_risk_metrics(trades, settings, current_time, self.config)
        warnings = get_risk_warnings(metrics, self.config)
        snapshot = RiskSnapshot(
            timestamp=current_time,
            metrics=metrics,
            warnings=warnings,
            risk_level=get_risk_level(metrics, warnings),
            global_status=calculate_global_risk_status(trades, settings, current_time, self.config),
            real_time=calculate_real_time_risk(trades, settings, current_time, self.config),
            trading_status=calculate_trading_status(trades, settings, current_time, self.config),
            locked=is_blocked(settings, current_time),
            goal_block=should_block_trading_due_to_goals(goals, trades, current_time) if goals else None,
        )

        logger.debug(
            "risk_snapshot",
            global_status=snapshot.global_status.status.value,
            trading_status=snapshot.trading_status.status.value,
            risk_level=snapshot.risk_level.value,
            trades=len(trades),
        )
        return snapshot

    def assert_can_trade(
        self,
        trades: Sequence[Trade],
        settings: TradingSettings,
        now: Optional[datetime] = None,
        goals: Sequence[TradingGoal] = (),
    ) -> RiskSnapshot:
        """Snapshot, raising when the verdict forbids a new trade."""
        snapshot = self.snapshot(trades, settings, now, goals)

        if snapshot.global_status.status == GlobalRiskState.BLOCKED:
            logger.warning("trading_blocked", reasons=snapshot.global_status.reasons)
            raise TradingBlockedError(reasons=snapshot.global_status.reasons)
        if snapshot.goal_block is not None and snapshot.goal_block.blocked:
            logger.warning("trading_blocked_by_goal", message=snapshot.goal_block.message)
            raise TradingBlockedError(reasons=[snapshot.goal_block.message])
        if snapshot.trading_status.status == TradingStatus.PAUSE_RECOMMENDED:
            logger.warning("trading_pause_recommended", reason=snapshot.trading_status.main_reason)
            raise RiskLimitError(
                "Pause recommended",
                reasons=[snapshot.trading_status.main_reason],
            )
        return snapshot

    # ─── Trades ──────────────────────────────────────────────

    def evaluate_rules(
        self,
        trade: Trade,
        trades: Sequence[Trade],
        settings: TradingSettings,
    ) -> RuleEvaluation:
        return evaluate_trade_rules(trade, trades, settings, self.config)

    def evaluate_trade(
        self,
        trade: Trade,
        trades: Sequence[Trade],
        settings: TradingSettings,
    ) -> Trade:
        """Annotated copy of `trade` (rules evaluated, violations, classification)."""
        return evaluate_and_update_trade(trade, trades, settings, self.config)

    def simulate(
        self,
        candidate: Trade,
        trades: Sequence[Trade],
        settings: TradingSettings,
        now: Optional[datetime] = None,
    ) -> SimulationImpact:
        return simulate_trade_impact(candidate, trades, settings, now, self.config)

    # ─── Goals ───────────────────────────────────────────────

    def evaluate_goals(
        self,
        goals: Sequence[TradingGoal],
        trades: Sequence[Trade],
        settings: TradingSettings,
        previous_values: Optional[Mapping[str, float]] = None,
        existing_insights: Sequence[GoalGeneratedInsight] = (),
        existing_post_mortems: Sequence[GoalPostMortem] = (),
        now: Optional[datetime] = None,
    ) -> GoalEvaluationResult:
        self._check_ledger(trades)
        return evaluate_goals(
            goals,
            trades,
            settings,
            previous_values=previous_values,
            existing_insights=existing_insights,
            existing_post_mortems=existing_post_mortems,
            now=now,
            config=self.config,
        )

    def simulate_goal(
        self,
        goal: TradingGoal,
        trades: Sequence[Trade],
        projection_days: int = 90,
    ) -> GoalSimulationResult:
        self._check_ledger(trades)
        return simulate_goal_future(goal, trades, projection_days, config=self.config)
