"""
Risk Control — global risk status and pre-trade gating.

  calculate_global_risk_status   ok / warning / blocked from drawdown, daily risk, lock
  calculate_today_risk           risk committed by trades entered today
  calculate_real_time_risk       remaining daily risk, trades left, margin bar
  check_trading_rules            rules that block a new trade right now
  simulate_trade_impact          what a hypothetical trade would do to the account
  check_trade_calculation        sizing check with a compliant size suggestion
  is_blocked / block_user        ultra-disciplined lock helpers

A blocked_until lock is only ever extended here, never shortened.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, Sequence

from tradeguard.journal.calculations import (
    local_date,
    same_iso_week,
    to_local,
    trade_risk_amount,
    trades_entered_on,
)
from tradeguard.journal.models import (
    DrawdownMode,
    RuleStatus,
    RuleViolation,
    Severity,
    Trade,
    TradeStatus,
    TradingSettings,
)
from tradeguard.risk.metrics import calculate_drawdown, get_risk_metrics
from tradeguard.risk.rules import evaluate_trade_rules
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)


class GlobalRiskState(str, Enum):
    OK = "ok"
    WARNING = "warning"
    BLOCKED = "blocked"


@dataclass
class RiskGlobalStatus:
    status: GlobalRiskState
    reasons: list[str] = field(default_factory=list)
    risk_per_trade_allowed: Optional[float] = None
    risk_daily_allowed: Optional[float] = None
    drawdown_max_allowed: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


@dataclass
class RiskUsage:
    amount: float = 0.0
    percent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RealTimeRiskMetrics:
    risk_used_today: RiskUsage
    risk_remaining: RiskUsage
    trades_remaining_today: Optional[int]
    margin_used: float
    margin_available: float
    margin_limit: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SimulationImpact:
    daily_risk_before: float
    daily_risk_after: float
    daily_risk_change: float
    drawdown_before: float
    drawdown_after: float
    rules_that_would_activate: list[RuleViolation] = field(default_factory=list)
    final_status: GlobalRiskState = GlobalRiskState.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "impact_on_daily_risk": {
                "before": self.daily_risk_before,
                "after": self.daily_risk_after,
                "change": self.daily_risk_change,
            },
            "impact_on_drawdown": {
                "before": self.drawdown_before,
                "after": self.drawdown_after,
                "change": self.drawdown_after - self.drawdown_before,
            },
            "rules_that_would_activate": [
                v.model_dump(mode="json") for v in self.rules_that_would_activate
            ],
            "final_status": self.final_status.value,
        }


@dataclass
class SizingCheck:
    allowed: bool
    violations: list[RuleViolation] = field(default_factory=list)
    suggested_size: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "violations": [v.model_dump(mode="json") for v in self.violations],
            "suggested_size": self.suggested_size,
        }


def _escalate(current: GlobalRiskState, candidate: GlobalRiskState) -> GlobalRiskState:
    order = [GlobalRiskState.OK, GlobalRiskState.WARNING, GlobalRiskState.BLOCKED]
    return candidate if order.index(candidate) > order.index(current) else current


# ─── Lock helpers ────────────────────────────────────────────

def lock_active(settings: TradingSettings, now: Optional[datetime] = None) -> bool:
    """An unexpired blocked_until, whatever the lock flags say."""
    blocked_until = settings.ultra_disciplined_mode.blocked_until
    if blocked_until is None:
        return False
    return to_local(now or datetime.now()) < to_local(blocked_until)


def is_blocked(settings: TradingSettings, now: Optional[datetime] = None) -> bool:
    mode = settings.ultra_disciplined_mode
    if not mode.enabled or not mode.block_on_rule_break:
        return False
    return lock_active(settings, now)


def extended_lock_until(
    settings: TradingSettings,
    hours: float,
    now: Optional[datetime] = None,
) -> datetime:
    """now + hours, or the current lock end if that is later."""
    current_time = to_local(now or datetime.now())
    proposed = current_time + timedelta(hours=hours)
    existing = settings.ultra_disciplined_mode.blocked_until
    if existing is not None and to_local(existing) > proposed:
        return to_local(existing)
    return proposed


def block_user(
    settings: TradingSettings,
    hours: float = 24,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Settings update locking trading for `hours` (never shortens an active lock)."""
    return {
        "ultra_disciplined_mode": {
            "blocked_until": extended_lock_until(settings, hours, now),
        },
    }


# ─── Daily risk ──────────────────────────────────────────────

def calculate_today_risk(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> RiskUsage:
    """Stop-distance risk of every trade entered today, open or closed."""
    today = local_date(now or datetime.now())
    capital = settings.effective_current_capital

    total = sum(
        trade_risk_amount(t, config) for t in trades_entered_on(trades, today) if t.stop_loss
    )
    return RiskUsage(amount=total, percent=total / capital * 100 if capital > 0 else 0.0)


def calculate_global_risk_status(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> RiskGlobalStatus:
    cfg = config or get_settings()
    rm = settings.risk_management
    ratio = cfg.limit_warning_ratio
    status = GlobalRiskState.OK
    reasons: list[str] = []

    drawdown_pct = calculate_drawdown(trades, settings.effective_initial_capital).current_pct
    if rm.max_drawdown is not None:
        if drawdown_pct > rm.max_drawdown:
            status = _escalate(
                status,
                GlobalRiskState.BLOCKED
                if rm.drawdown_mode == DrawdownMode.HARD_STOP
                else GlobalRiskState.WARNING,
            )
            reasons.append(
                f"Current drawdown ({drawdown_pct:.2f}%) exceeds the maximum allowed "
                f"({rm.max_drawdown}%)"
            )
        elif drawdown_pct > 0 and drawdown_pct >= rm.max_drawdown * ratio:
            status = _escalate(status, GlobalRiskState.WARNING)
            reasons.append(
                f"Drawdown approaching the limit ({drawdown_pct:.2f}% / {rm.max_drawdown}%)"
            )

    today_risk = calculate_today_risk(trades, settings, now, cfg)
    if rm.max_risk_daily is not None:
        if today_risk.percent > rm.max_risk_daily:
            status = _escalate(status, GlobalRiskState.BLOCKED)
            reasons.append(
                f"Daily risk ({today_risk.percent:.2f}%) exceeds the limit ({rm.max_risk_daily}%)"
            )
        elif today_risk.percent > 0 and today_risk.percent >= rm.max_risk_daily * ratio:
            status = _escalate(status, GlobalRiskState.WARNING)
            reasons.append(
                f"Daily risk approaching the limit "
                f"({today_risk.percent:.2f}% / {rm.max_risk_daily}%)"
            )

    if lock_active(settings, now):
        status = GlobalRiskState.BLOCKED
        until = to_local(settings.ultra_disciplined_mode.blocked_until)
        reasons.append(f"Trading locked until {until.isoformat(sep=' ', timespec='minutes')}")

    result = RiskGlobalStatus(
        status=status,
        reasons=reasons,
        risk_per_trade_allowed=rm.max_risk_per_trade,
        risk_daily_allowed=rm.max_risk_daily,
        drawdown_max_allowed=rm.max_drawdown,
    )
    if status != GlobalRiskState.OK:
        logger.info("global_risk_status", status=status.value, reasons=reasons)
    return result


def calculate_real_time_risk(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> RealTimeRiskMetrics:
    current_time = now or datetime.now()
    capital = settings.effective_current_capital
    max_daily = settings.risk_management.max_risk_daily
    max_per_day = settings.trading_rules.max_trades_per_day
    used = calculate_today_risk(trades, settings, current_time, config)

    trades_today = len(trades_entered_on(trades, local_date(current_time)))
    trades_remaining = max(0, max_per_day - trades_today) if max_per_day is not None else None

    if max_daily is not None:
        remaining_pct = max(0.0, max_daily - used.percent)
        remaining = RiskUsage(amount=remaining_pct / 100 * capital, percent=remaining_pct)
    else:
        remaining = RiskUsage(amount=capital, percent=100.0)

    limit = max_daily if max_daily is not None else 100.0
    return RealTimeRiskMetrics(
        risk_used_today=used,
        risk_remaining=remaining,
        trades_remaining_today=trades_remaining,
        margin_used=used.percent,
        margin_available=max(0.0, limit - used.percent),
        margin_limit=limit,
    )


# ─── Pre-trade gating ────────────────────────────────────────

def check_trading_rules(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    position_size: Optional[float] = None,
    include_daily_loss: bool = True,
) -> list[RuleViolation]:
    """Rules that would stop a new trade from being opened at `now`."""
    current_time = to_local(now or datetime.now())
    today = current_time.date()
    rules = settings.trading_rules
    violations: list[RuleViolation] = []

    if rules.max_trades_per_day is not None:
        count = len(trades_entered_on(trades, today))
        if count >= rules.max_trades_per_day:
            violations.append(RuleViolation(
                id="max-trades-per-day",
                rule_name="Max trades per day",
                rule_key="maxTradesPerDay",
                expected_value=rules.max_trades_per_day,
                actual_value=count,
                severity=Severity.CRITICAL,
                message=f"Max {rules.max_trades_per_day} trades per day reached",
            ))

    if rules.max_trades_per_week is not None:
        count = sum(1 for t in trades if same_iso_week(t.entry_date, current_time))
        if count >= rules.max_trades_per_week:
            violations.append(RuleViolation(
                id="max-trades-per-week",
                rule_name="Max trades per week",
                rule_key="maxTradesPerWeek",
                expected_value=rules.max_trades_per_week,
                actual_value=count,
                severity=Severity.CRITICAL,
                message=f"Max {rules.max_trades_per_week} trades per week reached",
            ))

    window = rules.allowed_trading_hours
    if window.enabled and not (window.start_hour <= current_time.hour < window.end_hour):
        violations.append(RuleViolation(
            id="trading-hours",
            rule_name="Allowed trading hours",
            rule_key="allowedTradingHours",
            expected_value=f"{window.start_hour}:00 - {window.end_hour}:00",
            actual_value=f"{current_time.hour}:00",
            severity=Severity.CRITICAL,
            message=f"Trading allowed only between {window.start_hour}:00 and {window.end_hour}:00",
        ))

    if rules.max_lot_size is not None and position_size and position_size > rules.max_lot_size:
        violations.append(RuleViolation(
            id="max-lot-size",
            rule_name="Max lot size",
            rule_key="maxLotSize",
            expected_value=rules.max_lot_size,
            actual_value=position_size,
            severity=Severity.CRITICAL,
            message=f"The maximum allowed lot size is {rules.max_lot_size}",
        ))

    if include_daily_loss and rules.daily_loss_limit is not None:
        day_pnl = sum(
            t.pnl or 0
            for t in trades
            if t.status == TradeStatus.CLOSED and t.exit_date and local_date(t.exit_date) == today
        )
        capital = settings.effective_current_capital
        loss_pct = abs(day_pnl) / capital * 100 if day_pnl < 0 and capital > 0 else 0.0
        if loss_pct >= rules.daily_loss_limit > 0:
            violations.append(RuleViolation(
                id="daily-loss-limit",
                rule_name="Daily loss limit",
                rule_key="dailyLossLimit",
                expected_value=f"< {rules.daily_loss_limit}%",
                actual_value=f"{loss_pct:.2f}%",
                severity=Severity.CRITICAL,
                message=f"Daily loss limit of {rules.daily_loss_limit}% reached",
            ))

    return violations


def simulate_trade_impact(
    candidate: Trade,
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> SimulationImpact:
    """Effect of opening `candidate`; the drawdown only moves once a trade closes."""
    cfg = config or get_settings()
    capital = settings.effective_current_capital

    before = calculate_today_risk(trades, settings, now, cfg)
    drawdown = get_risk_metrics(trades, settings, now, cfg).current_drawdown_pct

    added_pct = 0.0
    if candidate.stop_loss and candidate.entry_price and capital > 0:
        added_pct = trade_risk_amount(candidate, cfg) / capital * 100
    after_pct = before.percent + added_pct

    evaluation = evaluate_trade_rules(candidate, trades, settings, cfg)
    if evaluation.status == RuleStatus.CRITICAL_VIOLATION:
        final = GlobalRiskState.BLOCKED
    elif evaluation.status == RuleStatus.MINOR_VIOLATION:
        final = GlobalRiskState.WARNING
    else:
        final = GlobalRiskState.OK

    max_daily = settings.risk_management.max_risk_daily
    if max_daily is not None:
        if after_pct > max_daily:
            final = GlobalRiskState.BLOCKED
        elif after_pct > max_daily * cfg.limit_warning_ratio:
            final = _escalate(final, GlobalRiskState.WARNING)

    return SimulationImpact(
        daily_risk_before=before.percent,
        daily_risk_after=after_pct,
        daily_risk_change=added_pct,
        drawdown_before=drawdown,
        drawdown_after=drawdown,
        rules_that_would_activate=list(evaluation.violated_rules),
        final_status=final,
    )


def check_trade_calculation(
    position_size: float,
    risk_percentage: float,
    entry_price: float,
    stop_loss: float,
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> SizingCheck:
    """Validate a sized position from the calculator before it is placed."""
    violations = check_trading_rules(trades, settings, now, position_size=position_size)
    rm = settings.risk_management
    capital = settings.effective_current_capital

    if rm.max_risk_per_trade is not None and risk_percentage > rm.max_risk_per_trade:
        violations.append(RuleViolation(
            id="max-risk-per-trade",
            rule_name="Max risk per trade",
            rule_key="maxRiskPerTrade",
            expected_value=f"<= {rm.max_risk_per_trade}%",
            actual_value=f"{risk_percentage:.2f}%",
            severity=Severity.CRITICAL,
            message=(
                f"Risk per trade ({risk_percentage:.2f}%) exceeds the limit "
                f"({rm.max_risk_per_trade}%)"
            ),
        ))

    if rm.max_risk_daily is not None:
        after = calculate_today_risk(trades, settings, now, config).percent + risk_percentage
        if after > rm.max_risk_daily:
            violations.append(RuleViolation(
                id="max-risk-daily",
                rule_name="Max daily risk",
                rule_key="maxRiskDaily",
                expected_value=f"<= {rm.max_risk_daily}%",
                actual_value=f"{after:.2f}%",
                severity=Severity.CRITICAL,
                message=f"Total daily risk ({after:.2f}%) would exceed the limit ({rm.max_risk_daily}%)",
            ))

    has_critical = any(v.severity == Severity.CRITICAL for v in violations)
    suggested: Optional[float] = None
    if (
        has_critical
        and rm.max_risk_per_trade is not None
        and risk_percentage > rm.max_risk_per_trade
    ):
        distance = abs(entry_price - stop_loss)
        if distance > 0:
            suggested = capital * rm.max_risk_per_trade / 100 / distance

    return SizingCheck(allowed=not has_critical, violations=violations, suggested_size=suggested)
