"""
Risk Metric Calculators
=======================

Drawdown   — equity curve from closed trades on top of the initial capital
Exposure   — capital at risk across open positions, per asset
Risk/trade — average stop distance risk of closed trades, % of capital
Daily loss — today's realized loss, % of current capital

Drawdown uses the initial capital; exposure, risk-per-trade and daily
loss use the current capital. Everything here is pure: the same ledger,
settings and `now` always give the same numbers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

from tradeguard.journal.calculations import (
    calculate_max_drawdown,
    generate_equity_curve,
    local_date,
    trade_risk_amount,
)
from tradeguard.journal.models import Trade, TradeStatus, TradingSettings
from tradeguard.utils.config import Settings, get_settings


@dataclass
class DrawdownMetrics:
    current: float = 0.0
    current_pct: float = 0.0
    max: float = 0.0
    max_pct: float = 0.0
    peak_equity: float = 0.0
    equity: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ExposureMetrics:
    total: float = 0.0
    percent: float = 0.0
    by_asset: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DailyLoss:
    amount: float = 0.0
    percent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RiskMetrics:
    current_drawdown: float = 0.0
    current_drawdown_pct: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    current_exposure: float = 0.0
    current_exposure_pct: float = 0.0
    exposure_by_asset: dict[str, float] = field(default_factory=dict)
    average_risk_per_trade: float = 0.0
    max_risk_allowed: float = 0.0
    daily_loss: float = 0.0
    daily_loss_pct: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class WarningType(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class WarningSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


class RiskLevel(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


@dataclass
class RiskWarning:
    id: str
    type: WarningType
    message: str
    severity: WarningSeverity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value,
        }


# ─── Calculators ─────────────────────────────────────────────

def calculate_drawdown(trades: Sequence[Trade], initial_capital: float) -> DrawdownMetrics:
    """Current and maximum drawdown, percentages taken against the running peak."""
    curve = generate_equity_curve(trades, initial_capital)
    if len(curve) <= 1:
        return DrawdownMetrics(peak_equity=initial_capital, equity=initial_capital)

    last = curve[-1]
    max_dd, max_dd_pct = calculate_max_drawdown(curve)
    return DrawdownMetrics(
        current=last.drawdown,
        current_pct=last.drawdown_pct,
        max=max_dd,
        max_pct=max_dd_pct,
        peak_equity=last.peak,
        equity=last.equity,
    )


def calculate_exposure(
    trades: Sequence[Trade],
    current_capital: float,
    config: Optional[Settings] = None,
) -> ExposureMetrics:
    open_trades = [t for t in trades if t.status == TradeStatus.OPEN]
    if not open_trades or current_capital == 0:
        return ExposureMetrics()

    by_asset: dict[str, float] = {}
    total = 0.0
    for trade in open_trades:
        risk = trade_risk_amount(trade, config)
        total += risk
        by_asset[trade.asset] = by_asset.get(trade.asset, 0.0) + risk

    return ExposureMetrics(
        total=total,
        percent=total / current_capital * 100,
        by_asset=by_asset,
    )


def calculate_risk_per_trade(
    trades: Sequence[Trade],
    current_capital: float,
    config: Optional[Settings] = None,
) -> float:
    """Average risk % of closed trades; a trade without a stop contributes zero."""
    if current_capital == 0:
        return 0.0

    risks = [
        trade_risk_amount(t, config) / current_capital * 100
        for t in trades
        if t.status == TradeStatus.CLOSED and t.exit_date
    ]
    if not risks:
        return 0.0
    return sum(risks) / len(risks)


def calculate_daily_loss(
    trades: Sequence[Trade],
    current_capital: float,
    now: Optional[datetime] = None,
) -> DailyLoss:
    """Today's net realized loss; a profitable day reports zero."""
    today = local_date(now or datetime.now())
    day_pnl = sum(
        t.pnl or 0
        for t in trades
        if t.status == TradeStatus.CLOSED and t.exit_date and local_date(t.exit_date) == today
    )
    amount = abs(min(0.0, day_pnl))
    percent = amount / current_capital * 100 if current_capital > 0 else 0.0
    return DailyLoss(amount=amount, percent=percent)


def get_risk_metrics(
    trades: Sequence[Trade],
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> RiskMetrics:
    current_capital = settings.effective_current_capital

    drawdown = calculate_drawdown(trades, settings.effective_initial_capital)
    exposure = calculate_exposure(trades, current_capital, config)
    avg_risk = calculate_risk_per_trade(trades, current_capital, config)
    daily = calculate_daily_loss(trades, current_capital, now)

    return RiskMetrics(
        current_drawdown=drawdown.current,
        current_drawdown_pct=drawdown.current_pct,
        max_drawdown=drawdown.max,
        max_drawdown_pct=drawdown.max_pct,
        current_exposure=exposure.total,
        current_exposure_pct=exposure.percent,
        exposure_by_asset=exposure.by_asset,
        average_risk_per_trade=avg_risk,
        max_risk_allowed=settings.risk_per_trade,
        daily_loss=daily.amount,
        daily_loss_pct=daily.percent,
    )


# ─── Warnings ────────────────────────────────────────────────

def get_risk_warnings(metrics: RiskMetrics, config: Optional[Settings] = None) -> list[RiskWarning]:
    cfg = config or get_settings()
    ratio = cfg.limit_warning_ratio
    warnings: list[RiskWarning] = []

    if metrics.average_risk_per_trade > metrics.max_risk_allowed:
        warnings.append(RiskWarning(
            id="risk-per-trade-exceeded",
            type=WarningType.ERROR,
            message=(
                f"Risk per trade exceeded: {metrics.average_risk_per_trade:.2f}% "
                f"> {metrics.max_risk_allowed}%"
            ),
            severity=WarningSeverity.HIGH,
        ))

    max_exposure = cfg.warning_exposure_pct
    if metrics.current_exposure_pct > max_exposure:
        warnings.append(RiskWarning(
            id="exposure-too-high",
            type=WarningType.ERROR,
            message=f"Exposure too high: {metrics.current_exposure_pct:.1f}% > {max_exposure}%",
            severity=WarningSeverity.HIGH,
        ))
    elif metrics.current_exposure_pct > max_exposure * ratio:
        warnings.append(RiskWarning(
            id="exposure-approaching",
            type=WarningType.WARNING,
            message=f"Exposure approaching the limit: {metrics.current_exposure_pct:.1f}%",
            severity=WarningSeverity.MEDIUM,
        ))

    loss_limit = cfg.warning_daily_loss_pct
    if metrics.daily_loss_pct > loss_limit:
        warnings.append(RiskWarning(
            id="daily-loss-limit-exceeded",
            type=WarningType.ERROR,
            message=f"Daily loss limit exceeded: {metrics.daily_loss_pct:.2f}% > {loss_limit}%",
            severity=WarningSeverity.HIGH,
        ))
    elif metrics.daily_loss_pct > loss_limit * ratio:
        warnings.append(RiskWarning(
            id="daily-loss-limit-approaching",
            type=WarningType.WARNING,
            message=f"Daily loss approaching the limit: {metrics.daily_loss_pct:.2f}%",
            severity=WarningSeverity.MEDIUM,
        ))

    if metrics.current_drawdown_pct > cfg.warning_high_drawdown_pct:
        warnings.append(RiskWarning(
            id="high-drawdown",
            type=WarningType.ERROR,
            message=f"High drawdown: {metrics.current_drawdown_pct:.2f}%",
            severity=WarningSeverity.HIGH,
        ))
    elif metrics.current_drawdown_pct > cfg.warning_drawdown_pct:
        warnings.append(RiskWarning(
            id="drawdown-warning",
            type=WarningType.WARNING,
            message=f"Moderate drawdown: {metrics.current_drawdown_pct:.2f}%",
            severity=WarningSeverity.MEDIUM,
        ))

    return warnings


def get_risk_level(metrics: RiskMetrics, warnings: Sequence[RiskWarning]) -> RiskLevel:
    if any(w.severity == WarningSeverity.HIGH for w in warnings):
        return RiskLevel.DANGER
    if any(w.severity == WarningSeverity.MEDIUM for w in warnings):
        return RiskLevel.WARNING
    if metrics.current_drawdown_pct > 5 or metrics.current_exposure_pct > 30:
        return RiskLevel.WARNING
    return RiskLevel.SAFE
