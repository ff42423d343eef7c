"""
Rule evaluator and trade classifier tests.
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_closed_trade, make_trade
from tradeguard.journal.models import (
    RuleStatus,
    Severity,
    TradeClassification,
    TradingHoursWindow,
    TradingRules,
    TradingSettings,
)
from tradeguard.risk.rules import (
    RuleEvaluator,
    classify_trade,
    evaluate_and_update_trade,
    evaluate_trade_rules,
    get_trade_rule_status,
)


def settings_with(**rules) -> TradingSettings:
    return TradingSettings(trading_rules=TradingRules(**rules))


# ============================================================================
# Trading hours
# ============================================================================

class TestTradingHours:

    @pytest.fixture
    def settings(self):
        return settings_with(
            allowed_trading_hours=TradingHoursWindow(enabled=True, start_hour=9, end_hour=17)
        )

    def test_entry_outside_window_is_critical(self, settings, config):
        trade = make_trade(entry_date=NOW.replace(hour=18))
        evaluation = evaluate_trade_rules(trade, [trade], settings, config)

        [violation] = evaluation.violated_rules
        assert violation.id == "trading-hours"
        assert violation.severity == Severity.CRITICAL
        assert evaluation.status == RuleStatus.CRITICAL_VIOLATION

    def test_end_hour_is_exclusive(self, settings, config):
        trade = make_trade(entry_date=NOW.replace(hour=17))
        assert evaluate_trade_rules(trade, [], settings, config).violated_keys == ["allowedTradingHours"]

    def test_start_hour_is_inclusive(self, settings, config):
        trade = make_trade(entry_date=NOW.replace(hour=9))
        assert evaluate_trade_rules(trade, [], settings, config).status == RuleStatus.CLEAN

    def test_disabled_window_not_evaluated(self, config):
        trade = make_trade(entry_date=NOW.replace(hour=3))
        evaluation = evaluate_trade_rules(trade, [], TradingSettings(), config)
        assert evaluation.evaluated_rules == []
        assert evaluation.status == RuleStatus.CLEAN


# ============================================================================
# Trade counts
# ============================================================================

class TestTradeCounts:

    def test_day_limit_excludes_the_trade_itself(self, config):
        settings = settings_with(max_trades_per_day=2)
        earlier = make_trade(entry_date=NOW - timedelta(hours=3))
        trade = make_trade(entry_date=NOW)

        evaluation = evaluate_trade_rules(trade, [earlier, trade], settings, config)
        assert evaluation.status == RuleStatus.CLEAN
        assert evaluation.evaluated_rules[0].actual_value == 2

    def test_day_limit_exceeded(self, config):
        settings = settings_with(max_trades_per_day=2)
        ledger = [make_trade(entry_date=NOW - timedelta(hours=h)) for h in (1, 2)]
        trade = make_trade(entry_date=NOW)

        [violation] = evaluate_trade_rules(trade, ledger + [trade], settings, config).violated_rules
        assert violation.rule_key == "maxTradesPerDay"
        assert violation.actual_value == 3
        assert violation.severity == Severity.CRITICAL

    def test_other_days_not_counted(self, config):
        settings = settings_with(max_trades_per_day=1)
        ledger = [make_trade(entry_date=NOW - timedelta(days=1))]
        trade = make_trade(entry_date=NOW)
        assert evaluate_trade_rules(trade, ledger, settings, config).status == RuleStatus.CLEAN

    def test_iso_week_limit(self, config):
        # NOW is Wednesday 2024-03-13; Monday is the 11th, the previous Friday the 8th.
        ledger = [
            make_trade(entry_date=NOW - timedelta(days=2)),
            make_trade(entry_date=NOW - timedelta(days=1)),
            make_trade(entry_date=NOW - timedelta(days=5)),
        ]
        trade = make_trade(entry_date=NOW)

        clean = evaluate_trade_rules(trade, ledger, settings_with(max_trades_per_week=3), config)
        broken = evaluate_trade_rules(trade, ledger, settings_with(max_trades_per_week=2), config)
        assert clean.status == RuleStatus.CLEAN
        assert broken.violated_keys == ["maxTradesPerWeek"]


# ============================================================================
# Size, risk, reward-to-risk
# ============================================================================

class TestSizeAndRisk:

    def test_max_lot_size(self, config):
        trade = make_trade(position_size=10)
        evaluation = evaluate_trade_rules(trade, [], settings_with(max_lot_size=5), config)
        assert evaluation.violated_keys == ["maxLotSize"]
        assert evaluation.status == RuleStatus.CRITICAL_VIOLATION

    def test_risk_within_limit(self, settings, config):
        trade = make_trade(stop_loss=95)   # 50 on 10,000 = 0.5%
        assert evaluate_trade_rules(trade, [], settings, config).status == RuleStatus.CLEAN

    def test_risk_over_limit_is_minor(self, settings, config):
        trade = make_trade(stop_loss=88)   # 1.2%
        [violation] = evaluate_trade_rules(trade, [], settings, config).violated_rules
        assert violation.rule_key == "riskPerTrade"
        assert violation.severity == Severity.MINOR

    def test_risk_over_one_and_a_half_times_is_critical(self, settings, config):
        trade = make_trade(stop_loss=80)   # 2%
        [violation] = evaluate_trade_rules(trade, [], settings, config).violated_rules
        assert violation.severity == Severity.CRITICAL

    def test_missing_stop_skips_risk_rule(self, settings, config):
        evaluation = evaluate_trade_rules(make_trade(position_size=10_000), [], settings, config)
        assert evaluation.evaluated_rules == []

    def test_forex_risk_uses_lot_normalization(self, settings, config):
        trade = make_trade(asset="EURUSD", entry_price=1.1, stop_loss=1.095, position_size=1)
        [violation] = evaluate_trade_rules(trade, [], settings, config).violated_rules
        assert violation.actual_value == "5.00%"
        assert violation.severity == Severity.CRITICAL

    def test_reward_to_risk_of_two_respected(self, settings, config):
        trade = make_trade(
            asset="EURUSD", entry_price=1.1000, stop_loss=1.0950, take_profit=1.1100,
            position_size=0.01,
        )
        evaluation = evaluate_trade_rules(trade, [], settings, config)
        rr_rule = next(r for r in evaluation.evaluated_rules if r.rule_key == "minRiskReward")
        assert rr_rule.respected

    def test_reward_to_risk_of_one_respected(self, settings, config):
        trade = make_trade(stop_loss=95, take_profit=105)
        assert evaluate_trade_rules(trade, [], settings, config).status == RuleStatus.CLEAN

    def test_low_reward_to_risk_is_minor(self, settings, config):
        trade = make_trade(stop_loss=95, take_profit=102.5)
        evaluation = evaluate_trade_rules(trade, [], settings, config)
        assert evaluation.violated_keys == ["minRiskReward"]
        assert evaluation.status == RuleStatus.MINOR_VIOLATION

    def test_every_rule_checked(self, config):
        settings = settings_with(
            max_lot_size=5,
            allowed_trading_hours=TradingHoursWindow(enabled=True, start_hour=9, end_hour=17),
        )
        trade = make_trade(position_size=10, entry_date=NOW.replace(hour=20))
        evaluation = evaluate_trade_rules(trade, [], settings, config)
        assert set(evaluation.violated_keys) == {"maxLotSize", "allowedTradingHours"}

    def test_idempotent(self, config):
        settings = settings_with(max_trades_per_day=1, max_lot_size=5)
        ledger = [make_trade(entry_date=NOW - timedelta(hours=2))]
        trade = make_trade(position_size=10, stop_loss=80, take_profit=110, entry_date=NOW)
        evaluator = RuleEvaluator(config)

        first = evaluator.evaluate(trade, ledger, settings)
        second = evaluator.evaluate(trade, ledger, settings)
        assert first.to_dict() == second.to_dict()


# ============================================================================
# Classification
# ============================================================================

class TestClassification:

    def test_critical_violation_is_error(self, config):
        trade = make_trade(position_size=10)
        evaluation = evaluate_trade_rules(trade, [], settings_with(max_lot_size=5), config)
        assert classify_trade(trade, evaluation.violated_rules, config) == TradeClassification.ERROR

    def test_poor_reward_to_risk_is_error(self, config):
        trade = make_trade(stop_loss=90, take_profit=104)
        assert classify_trade(trade, [], config) == TradeClassification.ERROR

    def test_stale_supplied_ratio_does_not_hide_error(self, config):
        trade = make_trade(stop_loss=90, take_profit=102, risk_reward=5.0)
        assert classify_trade(trade, [], config) == TradeClassification.ERROR

    def test_model_trade(self, settings, config):
        trade = make_closed_trade(100, stop_loss=95, take_profit=110)
        evaluation = evaluate_trade_rules(trade, [trade], settings, config)
        assert evaluation.violated_rules == []
        assert classify_trade(trade, evaluation.violated_rules, config) == TradeClassification.MODEL

    def test_open_trade_is_neutral(self, config):
        trade = make_trade(stop_loss=95, take_profit=110)
        assert classify_trade(trade, [], config) == TradeClassification.NEUTRAL

    def test_minor_violation_is_neutral(self, settings, config):
        trade = make_closed_trade(100, stop_loss=88, take_profit=130)
        evaluation = evaluate_trade_rules(trade, [], settings, config)
        assert evaluation.status == RuleStatus.MINOR_VIOLATION
        assert classify_trade(trade, evaluation.violated_rules, config) == TradeClassification.NEUTRAL

    def test_evaluate_and_update_returns_annotated_copy(self, config):
        trade = make_trade(position_size=10)
        updated = evaluate_and_update_trade(trade, [], settings_with(max_lot_size=5), config)

        assert trade.violated_rules == []
        assert trade.trade_classification is None
        assert updated.trade_classification == TradeClassification.ERROR
        assert get_trade_rule_status(updated) == RuleStatus.CRITICAL_VIOLATION
        assert len(updated.evaluated_rules) == 1
