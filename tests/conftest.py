"""
Shared fixtures and ledger builders for the risk / goal test suite.

Every test runs against a fixed clock (NOW, a Wednesday at noon) so day,
ISO-week and month windows are deterministic.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest

from tradeguard.journal.models import (
    GoalPeriod,
    GoalType,
    PositionType,
    Trade,
    TradeStatus,
    TradingGoal,
    TradingSettings,
)
from tradeguard.utils.config import Settings

NOW = datetime(2024, 3, 13, 12, 0)


# ─────────────────────────────────────────────────────────
# Ledger builders
# ─────────────────────────────────────────────────────────

def make_trade(
    asset: str = "AAPL",
    entry_price: float = 100.0,
    position_size: float = 10.0,
    entry_date: datetime | None = None,
    **overrides: Any,
) -> Trade:
    """Open trade; pass status/exit fields through overrides for other shapes."""
    data: dict[str, Any] = {
        "asset": asset,
        "position_type": PositionType.LONG,
        "entry_price": entry_price,
        "position_size": position_size,
        "entry_date": entry_date or NOW - timedelta(hours=1),
    }
    data.update(overrides)
    return Trade(**data)


def make_closed_trade(
    pnl: float,
    exit_date: datetime | None = None,
    entry_date: datetime | None = None,
    asset: str = "AAPL",
    **overrides: Any,
) -> Trade:
    exit_at = exit_date or NOW - timedelta(minutes=30)
    return make_trade(
        asset=asset,
        entry_date=entry_date or exit_at - timedelta(hours=1),
        status=TradeStatus.CLOSED,
        exit_price=overrides.pop("exit_price", 100.0 + pnl / 10),
        exit_date=exit_at,
        pnl=pnl,
        **overrides,
    )


def make_goal(
    goal_type: GoalType = GoalType.NUM_TRADES,
    target: float = 5,
    current: float = 0,
    period: GoalPeriod = GoalPeriod.DAILY,
    **overrides: Any,
) -> TradingGoal:
    data: dict[str, Any] = {
        "period": period,
        "type": goal_type,
        "target": target,
        "current": current,
        "start_date": NOW.replace(hour=0, minute=0),
        "end_date": NOW.replace(hour=23, minute=59),
    }
    data.update(overrides)
    return TradingGoal(**data)


# ─────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def settings() -> TradingSettings:
    """Default account: 10,000 capital, 1% risk per trade, no limits."""
    return TradingSettings()
