"""
Ledger Calculations
===================

Pure functions over trades: PnL, reward-to-risk, unit normalization,
equity curve & max drawdown, win rate, profit factor, streaks and the
historical trades-per-day average.

Unit normalization is a heuristic: a forex-looking asset with a size
under 100 is taken to be quoted in standard lots and converted to units
(x 100,000); anything else is already in units. Sizes such as 50 units of
EURUSD are therefore misread as 50 lots. The rule is kept as is because
every reported risk magnitude depends on it.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, asdict
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

import numpy as np

from tradeguard.journal.models import PositionType, Trade, TradeStatus
from tradeguard.utils.config import Settings, get_settings

_SIX_LETTERS = re.compile(r"^[A-Z]{6}$")

MAJOR_PAIRS = frozenset({
    "EURUSD", "GBPUSD", "USDJPY", "AUDUSD", "USDCAD", "USDCHF", "NZDUSD",
    "EURGBP", "EURJPY", "GBPJPY", "AUDJPY", "CADJPY", "EURCHF", "GBPCHF",
    "CHFJPY", "NZDJPY",
})


# ─── Time helpers ────────────────────────────────────────────

def to_local(moment: datetime) -> datetime:
    """Naive local datetime; aware values are converted to local time."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def local_date(moment: datetime) -> date:
    return to_local(moment).date()


def same_iso_week(a: datetime, b: datetime) -> bool:
    ya, wa, _ = local_date(a).isocalendar()
    yb, wb, _ = local_date(b).isocalendar()
    return (ya, wa) == (yb, wb)


# ─── Sizing ──────────────────────────────────────────────────

def is_forex_pair(asset: str) -> bool:
    normalized = asset.upper().replace("/", "")
    return "/" in asset or bool(_SIX_LETTERS.match(normalized)) or normalized in MAJOR_PAIRS


def normalize_units(asset: str, position_size: float, config: Optional[Settings] = None) -> float:
    """Convert a forex lot size to units; other sizes pass through."""
    cfg = config or get_settings()
    if is_forex_pair(asset) and position_size < cfg.lot_size_threshold:
        return position_size * cfg.standard_lot_units
    return position_size


def trade_risk_amount(trade: Trade, config: Optional[Settings] = None) -> float:
    """Capital lost if the stop is hit; a missing stop means no measurable risk."""
    stop = trade.stop_loss if trade.stop_loss else trade.entry_price
    units = normalize_units(trade.asset, trade.position_size, config)
    leverage = trade.leverage or 1
    return abs(trade.entry_price - stop) * units * leverage


def trade_risk_percent(trade: Trade, capital: float, config: Optional[Settings] = None) -> float:
    if capital <= 0:
        return 0.0
    return trade_risk_amount(trade, config) / capital * 100


# ─── Per-trade outcome ───────────────────────────────────────

def calculate_pnl(trade: Trade, config: Optional[Settings] = None) -> float:
    """Realized PnL from prices, in account currency."""
    if trade.status == TradeStatus.OPEN or trade.exit_price is None:
        return 0.0

    units = normalize_units(trade.asset, trade.position_size, config)
    move = trade.exit_price - trade.entry_price
    pnl = move * units if trade.position_type == PositionType.LONG else -move * units

    if trade.leverage and trade.leverage > 1:
        pnl *= trade.leverage
    return pnl


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def calculate_risk_reward(trade: Trade) -> Optional[float]:
    """Planned reward / planned risk; None without both stop and target.

    Prices go through Decimal(str(x)) so quoted prices divide exactly
    (1.1000 / 1.0950 / 1.1100 gives 2.0, not 2.0000000000000178).
    """
    if not trade.stop_loss or not trade.take_profit:
        return None

    try:
        entry = _decimal(trade.entry_price)
        stop = _decimal(trade.stop_loss)
        target = _decimal(trade.take_profit)
    except InvalidOperation:
        return None

    if trade.position_type == PositionType.LONG:
        risk, reward = entry - stop, target - entry
    else:
        risk, reward = stop - entry, entry - target

    if risk <= 0:
        return None
    return float(reward / risk)


# ─── Ledger views ────────────────────────────────────────────

def closed_trades(trades: Iterable[Trade]) -> list[Trade]:
    """Closed trades with a realized PnL, oldest exit first."""
    result = [t for t in trades if t.status == TradeStatus.CLOSED and t.pnl is not None]
    result.sort(key=lambda t: to_local(t.exit_date or t.entry_date))
    return result


def trades_entered_on(trades: Iterable[Trade], day: date) -> list[Trade]:
    return [t for t in trades if local_date(t.entry_date) == day]


# ─── Equity curve & drawdown ─────────────────────────────────

@dataclass
class EquityPoint:
    timestamp: Optional[datetime]
    equity: float
    cumulative_pnl: float
    peak: float
    drawdown: float
    drawdown_pct: float

    def to_dict(self) -> dict:
        return asdict(self)


def generate_equity_curve(trades: Sequence[Trade], initial_equity: float) -> list[EquityPoint]:
    """Chronological equity points, starting with the untouched initial capital."""
    ordered = closed_trades(trades)
    pnls = np.array([t.pnl for t in ordered], dtype=float)

    equity = initial_equity + np.concatenate(([0.0], np.cumsum(pnls)))
    peak = np.maximum.accumulate(equity)
    drawdown = peak - equity
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdown_pct = np.where(peak > 0, drawdown / peak * 100, 0.0)
    # Equity below zero would otherwise read as more than 100% of the peak.
    drawdown_pct = np.clip(drawdown_pct, 0.0, 100.0)

    stamps: list[Optional[datetime]] = [None] + [t.exit_date or t.entry_date for t in ordered]
    return [
        EquityPoint(
            timestamp=stamps[i],
            equity=float(equity[i]),
            cumulative_pnl=float(equity[i] - initial_equity),
            peak=float(peak[i]),
            drawdown=float(drawdown[i]),
            drawdown_pct=float(drawdown_pct[i]),
        )
        for i in range(len(equity))
    ]


def calculate_max_drawdown(curve: Sequence[EquityPoint]) -> tuple[float, float]:
    """(max drawdown, max drawdown %) over the curve."""
    if not curve:
        return 0.0, 0.0
    return (
        max(p.drawdown for p in curve),
        max(p.drawdown_pct for p in curve),
    )


# ─── Performance statistics ──────────────────────────────────

def calculate_win_rate(trades: Iterable[Trade]) -> float:
    closed = closed_trades(trades)
    if not closed:
        return 0.0
    wins = sum(1 for t in closed if (t.pnl or 0) > 0)
    return wins / len(closed) * 100


def calculate_profit_factor(trades: Iterable[Trade]) -> float:
    total_profit = 0.0
    total_loss = 0.0
    for t in closed_trades(trades):
        pnl = t.pnl or 0
        if pnl > 0:
            total_profit += pnl
        elif pnl < 0:
            total_loss += abs(pnl)

    if total_loss == 0:
        return math.inf if total_profit > 0 else 0.0
    return total_profit / total_loss


def _max_streak(trades: Iterable[Trade], winning: bool) -> int:
    best = current = 0
    for t in closed_trades(trades):
        pnl = t.pnl or 0
        hit = pnl > 0 if winning else pnl < 0
        current = current + 1 if hit else 0
        best = max(best, current)
    return best


def calculate_max_win_streak(trades: Iterable[Trade]) -> int:
    return _max_streak(trades, winning=True)


def calculate_max_loss_streak(trades: Iterable[Trade]) -> int:
    return _max_streak(trades, winning=False)


def historical_avg_trades_per_day(trades: Iterable[Trade]) -> float:
    """Closed trades divided by the whole days their exits span (min 1)."""
    exits = [to_local(t.exit_date) for t in trades if t.status == TradeStatus.CLOSED and t.exit_date]
    if not exits:
        return 0.0
    span_days = (max(exits) - min(exits)).total_seconds() / 86400
    return len(exits) / max(1, math.ceil(span_days))
