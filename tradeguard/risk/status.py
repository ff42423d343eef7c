"""
Trading Status Resolver — may the user trade right now?

Decision tree, evaluated top-down; the first matching condition supplies
the single reason and suggested action shown to the user:

  PAUSE_RECOMMENDED   daily loss over limit, drawdown > 15%,
                      avg risk/trade > 1.5x max, exposure > 60%
  RISK_ELEVATED       active rule violation, overtrading, drawdown > 10%,
                      avg risk/trade > max, exposure > 50%
  OPERABLE            otherwise
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

from tradeguard.journal.calculations import historical_avg_trades_per_day, to_local
from tradeguard.journal.models import Trade, TradingSettings
from tradeguard.risk.control import check_trading_rules
from tradeguard.risk.metrics import RiskMetrics, get_risk_metrics
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)


class TradingStatus(str, Enum):
    OPERABLE = "operable"
    RISK_ELEVATED = "risk-elevated"
    PAUSE_RECOMMENDED = "pause-recommended"


@dataclass
class TradingStatusDetails:
    risk_per_trade: float = 0.0
    max_risk_allowed: float = 0.0
    current_drawdown: float = 0.0
    daily_loss: float = 0.0
    daily_loss_limit: float = 0.0
    exposure: float = 0.0
    overtrading: bool = False
    rules_violated: list[str] = field(default_factory=list)


@dataclass
class TradingStatusInfo:
    status: TradingStatus
    main_reason: str
    suggested_action: str
    details: TradingStatusDetails

    @property
    def can_trade(self) -> bool:
        return self.status != TradingStatus.PAUSE_RECOMMENDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "main_reason": self.main_reason,
            "suggested_action": self.suggested_action,
            "details": asdict(self.details),
        }


def detect_active_rule_violations(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
) -> list[str]:
    """Rule limits already reached for a trade opened at `now`."""
    return [
        v.message
        for v in check_trading_rules(trades, settings, now, include_daily_loss=False)
    ]


def detect_overtrading(
    trades: Sequence[Trade],
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> bool:
    """This month's trades/day against the historical average."""
    cfg = config or get_settings()
    historical = historical_avg_trades_per_day(trades)
    if historical == 0:
        return False

    current_time = to_local(now or datetime.now())
    month_trades = [
        t for t in trades
        if (to_local(t.entry_date).year, to_local(t.entry_date).month)
        == (current_time.year, current_time.month)
    ]
    days_in_month = calendar.monthrange(current_time.year, current_time.month)[1]
    return len(month_trades) / days_in_month > historical * cfg.overtrading_multiplier


def _resolve(
    metrics: RiskMetrics,
    details: TradingStatusDetails,
    cfg: Settings,
) -> tuple[TradingStatus, str, str]:
    drawdown = metrics.current_drawdown_pct
    avg_risk = metrics.average_risk_per_trade
    max_risk = metrics.max_risk_allowed
    exposure = metrics.current_exposure_pct
    loss_limit = details.daily_loss_limit

    # ─── Pause ───────────────────────────────────────────────
    if metrics.daily_loss_pct > loss_limit:
        return (
            TradingStatus.PAUSE_RECOMMENDED,
            f"Daily loss limit exceeded ({metrics.daily_loss_pct:.2f}% > {loss_limit}%)",
            "Close all open positions and stop trading for the rest of the day.",
        )
    if drawdown > cfg.pause_drawdown_pct:
        return (
            TradingStatus.PAUSE_RECOMMENDED,
            f"Critical drawdown: {drawdown:.2f}%",
            "Halve your position size and review every open position.",
        )
    if avg_risk > max_risk * cfg.risk_escalation_multiplier:
        return (
            TradingStatus.PAUSE_RECOMMENDED,
            f"Risk per trade exceeded ({avg_risk:.2f}% > {max_risk}%)",
            "Reduce position size on future trades and close positions above the allowed risk.",
        )
    if exposure > cfg.pause_exposure_pct:
        return (
            TradingStatus.PAUSE_RECOMMENDED,
            f"Exposure too high: {exposure:.2f}%",
            "Close some positions to reduce exposure. Do not open new ones.",
        )

    # ─── Elevated ────────────────────────────────────────────
    if details.rules_violated:
        return (
            TradingStatus.RISK_ELEVATED,
            f"Rules violated: {details.rules_violated[0]}",
            "Review your trading rules and respect them before trading.",
        )
    if details.overtrading:
        return (
            TradingStatus.RISK_ELEVATED,
            "High trading frequency detected",
            "Trade less often. Favour quality over quantity.",
        )
    if drawdown > cfg.elevated_drawdown_pct:
        return (
            TradingStatus.RISK_ELEVATED,
            f"Moderate drawdown: {drawdown:.2f}%",
            "Be more conservative with position size and review your strategy.",
        )
    if avg_risk > max_risk:
        return (
            TradingStatus.RISK_ELEVATED,
            f"Risk per trade elevated ({avg_risk:.2f}% > {max_risk}%)",
            "Reduce position size on your next trades.",
        )
    if exposure > cfg.elevated_exposure_pct:
        return (
            TradingStatus.RISK_ELEVATED,
            f"Elevated exposure: {exposure:.2f}%",
            "Review open positions before adding risk.",
        )

    return (
        TradingStatus.OPERABLE,
        "Normal trading conditions",
        "You can trade following your rules.",
    )


def calculate_trading_status(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> TradingStatusInfo:
    cfg = config or get_settings()
    metrics = get_risk_metrics(trades, settings, now, cfg)

    loss_limit = settings.trading_rules.daily_loss_limit
    details = TradingStatusDetails(
        risk_per_trade=metrics.average_risk_per_trade,
        max_risk_allowed=metrics.max_risk_allowed,
        current_drawdown=metrics.current_drawdown_pct,
        daily_loss=metrics.daily_loss_pct,
        daily_loss_limit=loss_limit if loss_limit else cfg.default_daily_loss_limit_pct,
        exposure=metrics.current_exposure_pct,
        overtrading=detect_overtrading(trades, now, cfg),
        rules_violated=detect_active_rule_violations(trades, settings, now),
    )

    status, reason, action = _resolve(metrics, details, cfg)
    logger.debug("trading_status_resolved", status=status.value, reason=reason)
    return TradingStatusInfo(
        status=status,
        main_reason=reason,
        suggested_action=action,
        details=details,
    )
