"""
Global risk status, real-time usage, simulation, sizing and lock tests.
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_closed_trade, make_trade
from tradeguard.journal.models import (
    DrawdownMode,
    RiskManagementConfig,
    TradingHoursWindow,
    TradingRules,
    TradingSettings,
    UltraDisciplinedMode,
)
from tradeguard.risk.control import (
    GlobalRiskState,
    block_user,
    calculate_global_risk_status,
    calculate_real_time_risk,
    calculate_today_risk,
    check_trade_calculation,
    check_trading_rules,
    is_blocked,
    simulate_trade_impact,
)


def risk_settings(**risk) -> TradingSettings:
    return TradingSettings(risk_management=RiskManagementConfig(**risk))


def locked_settings(until, enabled=True, block_on_rule_break=True) -> TradingSettings:
    return TradingSettings(
        ultra_disciplined_mode=UltraDisciplinedMode(
            enabled=enabled, block_on_rule_break=block_on_rule_break, blocked_until=until,
        )
    )


# ============================================================================
# Global risk status
# ============================================================================

class TestGlobalRiskStatus:

    def test_empty_ledger_is_ok(self, settings, config):
        status = calculate_global_risk_status([], settings, NOW, config)
        assert status.status == GlobalRiskState.OK
        assert status.reasons == []

    def test_hard_stop_drawdown_blocks(self, config):
        settings = TradingSettings(
            current_capital=8500,
            risk_management=RiskManagementConfig(max_drawdown=10, drawdown_mode="hard-stop"),
        )
        status = calculate_global_risk_status([make_closed_trade(-1500)], settings, NOW, config)

        assert status.status == GlobalRiskState.BLOCKED
        assert status.reasons
        assert status.drawdown_max_allowed == 10

    def test_soft_warning_drawdown_only_warns(self, config):
        settings = risk_settings(max_drawdown=10, drawdown_mode=DrawdownMode.SOFT_WARNING)
        status = calculate_global_risk_status([make_closed_trade(-1500)], settings, NOW, config)
        assert status.status == GlobalRiskState.WARNING

    def test_legacy_drawdown_mode_maps_to_soft_warning(self):
        assert risk_settings(drawdown_mode="partial-block").risk_management.drawdown_mode == (
            DrawdownMode.SOFT_WARNING
        )

    def test_approaching_drawdown_warns(self, config):
        settings = risk_settings(max_drawdown=10, drawdown_mode="hard-stop")
        status = calculate_global_risk_status([make_closed_trade(-900)], settings, NOW, config)
        assert status.status == GlobalRiskState.WARNING
        assert "approaching" in status.reasons[0]

    def test_daily_risk_breach_blocks(self, config):
        settings = risk_settings(max_risk_daily=2)
        trades = [make_trade(stop_loss=75)]   # 2.5%
        assert calculate_global_risk_status(trades, settings, NOW, config).status == GlobalRiskState.BLOCKED

    def test_daily_risk_near_limit_warns(self, config):
        settings = risk_settings(max_risk_daily=2)
        trades = [make_trade(stop_loss=83)]   # 1.7%
        assert calculate_global_risk_status(trades, settings, NOW, config).status == GlobalRiskState.WARNING

    def test_warning_never_downgrades_blocked(self, config):
        settings = risk_settings(max_drawdown=10, drawdown_mode="hard-stop", max_risk_daily=2)
        trades = [make_closed_trade(-1500, exit_date=NOW - timedelta(days=1)), make_trade(stop_loss=83)]
        status = calculate_global_risk_status(trades, settings, NOW, config)
        assert status.status == GlobalRiskState.BLOCKED
        assert len(status.reasons) == 2

    def test_active_lock_forces_blocked(self, config):
        settings = locked_settings(NOW + timedelta(hours=1), enabled=False)
        status = calculate_global_risk_status([], settings, NOW, config)
        assert status.status == GlobalRiskState.BLOCKED
        assert "locked" in status.reasons[-1]

    def test_expired_lock_ignored(self, config):
        settings = locked_settings(NOW - timedelta(minutes=1))
        assert calculate_global_risk_status([], settings, NOW, config).status == GlobalRiskState.OK


# ============================================================================
# Today's risk & real-time usage
# ============================================================================

class TestRealTimeRisk:

    def test_today_risk_counts_trades_entered_today(self, settings, config):
        trades = [
            make_trade(stop_loss=90),                                          # 100
            make_closed_trade(-50, stop_loss=95),                              # 50
            make_trade(stop_loss=50, entry_date=NOW - timedelta(days=1)),      # yesterday
            make_trade(),                                                      # no stop
        ]
        usage = calculate_today_risk(trades, settings, NOW, config)
        assert usage.amount == pytest.approx(150.0)
        assert usage.percent == pytest.approx(1.5)

    def test_usage_against_limits(self, config):
        settings = TradingSettings(
            risk_management=RiskManagementConfig(max_risk_daily=3),
            trading_rules=TradingRules(max_trades_per_day=4),
        )
        metrics = calculate_real_time_risk([make_trade(stop_loss=90)], settings, NOW, config)

        assert metrics.risk_used_today.percent == pytest.approx(1.0)
        assert metrics.risk_remaining.percent == pytest.approx(2.0)
        assert metrics.risk_remaining.amount == pytest.approx(200.0)
        assert metrics.trades_remaining_today == 3
        assert metrics.margin_available == pytest.approx(2.0)
        assert metrics.margin_limit == 3

    def test_no_limits(self, settings, config):
        metrics = calculate_real_time_risk([], settings, NOW, config)
        assert metrics.risk_remaining.percent == 100.0
        assert metrics.risk_remaining.amount == 10_000
        assert metrics.trades_remaining_today is None
        assert metrics.margin_limit == 100.0


# ============================================================================
# Locks
# ============================================================================

class TestLocks:

    def test_is_blocked_requires_flags_and_future_lock(self):
        assert is_blocked(locked_settings(NOW + timedelta(hours=1)), NOW)
        assert not is_blocked(locked_settings(NOW + timedelta(hours=1), enabled=False), NOW)
        assert not is_blocked(locked_settings(NOW + timedelta(hours=1), block_on_rule_break=False), NOW)
        assert not is_blocked(locked_settings(NOW - timedelta(hours=1)), NOW)
        assert not is_blocked(TradingSettings(), NOW)

    def test_block_user_sets_lock(self, settings):
        update = block_user(settings, hours=24, now=NOW)
        assert update["ultra_disciplined_mode"]["blocked_until"] == NOW + timedelta(hours=24)

    def test_block_user_never_shortens(self):
        settings = locked_settings(NOW + timedelta(hours=48))
        update = block_user(settings, hours=1, now=NOW)
        assert update["ultra_disciplined_mode"]["blocked_until"] == NOW + timedelta(hours=48)

    def test_block_user_extends(self):
        settings = locked_settings(NOW + timedelta(hours=1))
        update = block_user(settings, hours=24, now=NOW)
        assert update["ultra_disciplined_mode"]["blocked_until"] == NOW + timedelta(hours=24)


# ============================================================================
# Pre-trade checks
# ============================================================================

class TestTradingRuleChecks:

    def test_daily_count_reached(self, config):
        settings = TradingSettings(trading_rules=TradingRules(max_trades_per_day=1))
        [violation] = check_trading_rules([make_trade()], settings, NOW)
        assert violation.rule_key == "maxTradesPerDay"

    def test_outside_hours(self):
        settings = TradingSettings(trading_rules=TradingRules(
            allowed_trading_hours=TradingHoursWindow(enabled=True, start_hour=13, end_hour=17),
        ))
        [violation] = check_trading_rules([], settings, NOW)
        assert violation.id == "trading-hours"

    def test_daily_loss_limit(self):
        settings = TradingSettings(trading_rules=TradingRules(daily_loss_limit=2))
        trades = [make_closed_trade(-300)]
        assert [v.rule_key for v in check_trading_rules(trades, settings, NOW)] == ["dailyLossLimit"]
        assert check_trading_rules(trades, settings, NOW, include_daily_loss=False) == []


class TestSimulation:

    def test_within_limits(self, config):
        settings = risk_settings(max_risk_daily=2)
        candidate = make_trade(stop_loss=90, entry_date=NOW)
        impact = simulate_trade_impact(candidate, [], settings, NOW, config)

        assert impact.daily_risk_before == 0
        assert impact.daily_risk_after == pytest.approx(1.0)
        assert impact.drawdown_before == impact.drawdown_after
        assert impact.rules_that_would_activate == []
        assert impact.final_status == GlobalRiskState.OK

    def test_daily_overflow_blocks(self, config):
        settings = risk_settings(max_risk_daily=0.5)
        candidate = make_trade(stop_loss=90, entry_date=NOW)
        assert simulate_trade_impact(candidate, [], settings, NOW, config).final_status == (
            GlobalRiskState.BLOCKED
        )

    def test_critical_rule_blocks(self, config):
        settings = TradingSettings(trading_rules=TradingRules(max_lot_size=5))
        impact = simulate_trade_impact(make_trade(position_size=10), [], settings, NOW, config)
        assert impact.final_status == GlobalRiskState.BLOCKED
        assert [v.rule_key for v in impact.rules_that_would_activate] == ["maxLotSize"]

    def test_minor_rule_warns(self, settings, config):
        candidate = make_trade(stop_loss=90, take_profit=108)
        impact = simulate_trade_impact(candidate, [], settings, NOW, config)
        assert impact.final_status == GlobalRiskState.WARNING
        assert impact.to_dict()["final_status"] == "warning"


class TestSizingCheck:

    def test_excess_risk_suggests_size(self, config):
        settings = risk_settings(max_risk_per_trade=1)
        check = check_trade_calculation(10, 2.5, 100, 90, [], settings, NOW, config)

        assert not check.allowed
        assert [v.rule_key for v in check.violations] == ["maxRiskPerTrade"]
        assert check.suggested_size == pytest.approx(10.0)

    def test_compliant_size(self, config):
        settings = risk_settings(max_risk_per_trade=1, max_risk_daily=3)
        check = check_trade_calculation(5, 0.5, 100, 90, [], settings, NOW, config)
        assert check.allowed
        assert check.violations == []
        assert check.suggested_size is None

    def test_daily_risk_overflow(self, config):
        settings = risk_settings(max_risk_per_trade=2, max_risk_daily=2)
        trades = [make_trade(stop_loss=85)]   # 1.5% already used
        check = check_trade_calculation(10, 1.0, 100, 90, trades, settings, NOW, config)

        assert not check.allowed
        assert [v.rule_key for v in check.violations] == ["maxRiskDaily"]
        assert check.suggested_size is None
