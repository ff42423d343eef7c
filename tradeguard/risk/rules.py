"""
Trade Rule Evaluation — every configured rule is checked on every call.

Rule coverage:
  1. Max trades per day        (critical)
  2. Max trades per ISO week   (critical)
  3. Allowed trading hours     (critical)
  4. Max lot size              (critical)
  5. Risk per trade            (critical above 1.5x the limit, else minor)
  6. Minimum reward-to-risk    (minor)

The day and week counted are those of the trade's own entry, so a closed
trade re-evaluated later is judged against its own session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from tradeguard.journal.calculations import (
    local_date,
    same_iso_week,
    to_local,
    trade_risk_percent,
)
from tradeguard.journal.models import (
    EvaluatedRule,
    RuleStatus,
    RuleValue,
    RuleViolation,
    Severity,
    Trade,
    TradeClassification,
    TradeStatus,
    TradingSettings,
)
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RuleEvaluation:
    """Outcome of evaluating one trade."""
    trade_id: str
    evaluated_rules: list[EvaluatedRule] = field(default_factory=list)
    violated_rules: list[RuleViolation] = field(default_factory=list)

    @property
    def status(self) -> RuleStatus:
        return rule_status_for(self.violated_rules)

    @property
    def violated_keys(self) -> list[str]:
        return [v.rule_key for v in self.violated_rules]

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "status": self.status.value,
            "evaluated_rules": [r.model_dump(mode="json") for r in self.evaluated_rules],
            "violated_rules": [v.model_dump(mode="json") for v in self.violated_rules],
        }


def rule_status_for(violations: Sequence[RuleViolation]) -> RuleStatus:
    if any(v.severity == Severity.CRITICAL for v in violations):
        return RuleStatus.CRITICAL_VIOLATION
    if violations:
        return RuleStatus.MINOR_VIOLATION
    return RuleStatus.CLEAN


class RuleEvaluator:
    """Checks one trade against the user's trading rules.

    Usage:
        evaluation = RuleEvaluator().evaluate(trade, ledger, settings)
        if evaluation.status == RuleStatus.CRITICAL_VIOLATION: ...
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or get_settings()

    # ─── Public API ──────────────────────────────────────────

    def evaluate(
        self,
        trade: Trade,
        ledger: Sequence[Trade],
        settings: TradingSettings,
    ) -> RuleEvaluation:
        evaluation = RuleEvaluation(trade_id=trade.id)

        self._check_max_trades_per_day(evaluation, trade, ledger, settings)
        self._check_max_trades_per_week(evaluation, trade, ledger, settings)
        self._check_trading_hours(evaluation, trade, settings)
        self._check_max_lot_size(evaluation, trade, settings)
        self._check_risk_per_trade(evaluation, trade, settings)
        self._check_min_risk_reward(evaluation, trade)

        if evaluation.violated_rules:
            logger.info(
                "rule_evaluation_completed",
                trade_id=trade.id,
                status=evaluation.status.value,
                violated=evaluation.violated_keys,
            )
        else:
            logger.debug(
                "rule_evaluation_completed",
                trade_id=trade.id,
                status=evaluation.status.value,
                rules_checked=len(evaluation.evaluated_rules),
            )
        return evaluation

    # ─── Individual rules ────────────────────────────────────

    def _check_max_trades_per_day(
        self,
        evaluation: RuleEvaluation,
        trade: Trade,
        ledger: Sequence[Trade],
        settings: TradingSettings,
    ) -> None:
        limit = settings.trading_rules.max_trades_per_day
        if limit is None:
            return

        day = local_date(trade.entry_date)
        others = sum(1 for t in ledger if t.id != trade.id and local_date(t.entry_date) == day)
        self._record(
            evaluation,
            rule_id="max-trades-per-day",
            name="Max trades per day",
            key="maxTradesPerDay",
            respected=others < limit,
            expected=limit,
            actual=others + 1,
            severity=Severity.CRITICAL,
            message=f"Daily limit of {limit} trades exceeded",
        )

    def _check_max_trades_per_week(
        self,
        evaluation: RuleEvaluation,
        trade: Trade,
        ledger: Sequence[Trade],
        settings: TradingSettings,
    ) -> None:
        limit = settings.trading_rules.max_trades_per_week
        if limit is None:
            return

        others = sum(
            1 for t in ledger if t.id != trade.id and same_iso_week(t.entry_date, trade.entry_date)
        )
        self._record(
            evaluation,
            rule_id="max-trades-per-week",
            name="Max trades per week",
            key="maxTradesPerWeek",
            respected=others < limit,
            expected=limit,
            actual=others + 1,
            severity=Severity.CRITICAL,
            message=f"Weekly limit of {limit} trades exceeded",
        )

    def _check_trading_hours(
        self,
        evaluation: RuleEvaluation,
        trade: Trade,
        settings: TradingSettings,
    ) -> None:
        window = settings.trading_rules.allowed_trading_hours
        if not window.enabled:
            return

        hour = to_local(trade.entry_date).hour
        expected = f"{window.start_hour}:00 - {window.end_hour}:00"
        self._record(
            evaluation,
            rule_id="trading-hours",
            name="Allowed trading hours",
            key="allowedTradingHours",
            respected=window.start_hour <= hour < window.end_hour,
            expected=expected,
            actual=f"{hour}:00",
            severity=Severity.CRITICAL,
            message=f"Trade outside the allowed trading hours ({expected})",
        )

    def _check_max_lot_size(
        self,
        evaluation: RuleEvaluation,
        trade: Trade,
        settings: TradingSettings,
    ) -> None:
        limit = settings.trading_rules.max_lot_size
        if limit is None:
            return

        self._record(
            evaluation,
            rule_id="max-lot-size",
            name="Max lot size",
            key="maxLotSize",
            respected=trade.position_size <= limit,
            expected=limit,
            actual=trade.position_size,
            severity=Severity.CRITICAL,
            message=f"Position size ({trade.position_size}) exceeds the maximum allowed ({limit})",
        )

    def _check_risk_per_trade(
        self,
        evaluation: RuleEvaluation,
        trade: Trade,
        settings: TradingSettings,
    ) -> None:
        if not trade.stop_loss:
            return

        risk_pct = trade_risk_percent(trade, settings.effective_current_capital, self.config)
        max_risk = settings.risk_per_trade
        severity = (
            Severity.CRITICAL
            if risk_pct > max_risk * self.config.risk_escalation_multiplier
            else Severity.MINOR
        )
        self._record(
            evaluation,
            rule_id="risk-per-trade",
            name="Risk per trade",
            key="riskPerTrade",
            respected=risk_pct <= max_risk,
            expected=f"<= {max_risk}%",
            actual=f"{risk_pct:.2f}%",
            severity=severity,
            message=f"Risk ({risk_pct:.2f}%) exceeds the allowed limit ({max_risk}%)",
        )

    def _check_min_risk_reward(self, evaluation: RuleEvaluation, trade: Trade) -> None:
        if trade.risk_reward is None:
            return

        minimum = self.config.min_risk_reward
        self._record(
            evaluation,
            rule_id="min-risk-reward",
            name="Minimum risk/reward",
            key="minRiskReward",
            respected=trade.risk_reward >= minimum,
            expected=f">= {minimum:.1f}",
            actual=f"{trade.risk_reward:.2f}",
            severity=Severity.MINOR,
            message=(
                f"R/R ({trade.risk_reward:.2f}) is below the recommended minimum ({minimum:.1f})"
            ),
        )

    @staticmethod
    def _record(
        evaluation: RuleEvaluation,
        *,
        rule_id: str,
        name: str,
        key: str,
        respected: bool,
        expected: RuleValue,
        actual: RuleValue,
        severity: Severity,
        message: str,
    ) -> None:
        evaluation.evaluated_rules.append(EvaluatedRule(
            id=rule_id,
            rule_name=name,
            rule_key=key,
            respected=respected,
            expected_value=expected,
            actual_value=actual,
            severity=severity,
        ))
        if not respected:
            evaluation.violated_rules.append(RuleViolation(
                id=rule_id,
                rule_name=name,
                rule_key=key,
                expected_value=expected,
                actual_value=actual,
                severity=severity,
                message=message,
            ))


# ─── Module-level helpers ────────────────────────────────────

def evaluate_trade_rules(
    trade: Trade,
    ledger: Sequence[Trade],
    settings: TradingSettings,
    config: Optional[Settings] = None,
) -> RuleEvaluation:
    return RuleEvaluator(config).evaluate(trade, ledger, settings)


def classify_trade(
    trade: Trade,
    violations: Sequence[RuleViolation],
    config: Optional[Settings] = None,
) -> TradeClassification:
    cfg = config or get_settings()
    rr = trade.risk_reward

    if any(v.severity == Severity.CRITICAL for v in violations):
        return TradeClassification.ERROR
    if rr is not None and rr < cfg.error_trade_max_risk_reward:
        return TradeClassification.ERROR

    if (
        trade.status == TradeStatus.CLOSED
        and trade.pnl is not None
        and trade.pnl > 0
        and rr is not None
        and rr >= cfg.model_trade_min_risk_reward
        and not violations
    ):
        return TradeClassification.MODEL

    return TradeClassification.NEUTRAL


def evaluate_and_update_trade(
    trade: Trade,
    ledger: Sequence[Trade],
    settings: TradingSettings,
    config: Optional[Settings] = None,
) -> Trade:
    """Copy of the trade carrying its rule annotations and classification."""
    evaluation = evaluate_trade_rules(trade, ledger, settings, config)
    return trade.model_copy(update={
        "evaluated_rules": evaluation.evaluated_rules,
        "violated_rules": evaluation.violated_rules,
        "trade_classification": classify_trade(trade, evaluation.violated_rules, config),
    })


def get_trade_rule_status(trade: Trade) -> RuleStatus:
    """Status from the annotations already stored on the trade."""
    return rule_status_for(trade.violated_rules)
