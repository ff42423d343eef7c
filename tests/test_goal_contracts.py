"""
Goal contract tests: failure predicates, consequences, lock monotonicity
and settings update helpers.
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_goal
from tradeguard.goals.contracts import (
    apply_goal_consequences,
    apply_settings_update,
    is_failing,
    is_failure_transition,
    merge_settings_updates,
    should_apply_consequences,
)
from tradeguard.journal.models import (
    GoalConsequences,
    GoalType,
    TradingSettings,
    UltraDisciplinedMode,
)
from tradeguard.utils.exceptions import ConfigurationError


def binding_goal(current=6, cooldown_hours=2, reduce_risk_percent=50, **overrides):
    return make_goal(
        GoalType.NUM_TRADES,
        target=5,
        current=current,
        is_binding=True,
        consequences=GoalConsequences(
            cooldown_hours=cooldown_hours, reduce_risk_percent=reduce_risk_percent,
        ),
        **overrides,
    )


class TestFailurePredicates:

    def test_trade_count_is_a_ceiling(self):
        goal = make_goal(GoalType.NUM_TRADES, target=5)
        assert not is_failing(goal, 5)
        assert is_failing(goal, 6)

    def test_pnl_and_win_rate_are_floors(self):
        for goal_type in (GoalType.PNL, GoalType.WIN_RATE):
            goal = make_goal(goal_type, target=100)
            assert is_failing(goal, 99.5)
            assert not is_failing(goal, 100)

    def test_transition_detected(self):
        assert is_failure_transition(make_goal(target=5, current=6), previous_value=5)

    def test_steady_failure_is_not_a_transition(self):
        assert not is_failure_transition(make_goal(target=5, current=7), previous_value=6)

    def test_recovery_is_not_a_transition(self):
        assert not is_failure_transition(make_goal(GoalType.PNL, target=100, current=120), 80)


class TestConsequences:

    def test_binding_goal_transition(self, settings, config):
        goal = binding_goal()
        assert should_apply_consequences(goal, previous_value=5)

        update = apply_goal_consequences(goal, settings, NOW, config)
        lock = update["ultra_disciplined_mode"]
        assert lock["blocked_until"] == NOW + timedelta(hours=2)
        assert lock["enabled"] is True
        assert lock["block_on_rule_break"] is True
        assert update["risk_per_trade"] == pytest.approx(0.5)

    def test_non_binding_goal(self, settings, config):
        goal = make_goal(target=5, current=6, consequences=GoalConsequences(cooldown_hours=2))
        assert not should_apply_consequences(goal, previous_value=5)
        assert apply_goal_consequences(goal, settings, NOW, config) == {}

    def test_binding_goal_without_consequences(self, settings, config):
        goal = make_goal(target=5, current=6, is_binding=True)
        assert apply_goal_consequences(goal, settings, NOW, config) == {}

    def test_risk_floor(self, config):
        settings = TradingSettings(risk_per_trade=0.15)
        update = apply_goal_consequences(
            binding_goal(cooldown_hours=None, reduce_risk_percent=90), settings, NOW, config,
        )
        assert update == {"risk_per_trade": 0.1}

    def test_existing_longer_lock_kept(self, config):
        until = NOW + timedelta(hours=10)
        settings = TradingSettings(ultra_disciplined_mode=UltraDisciplinedMode(blocked_until=until))
        update = apply_goal_consequences(binding_goal(), settings, NOW, config)
        assert update["ultra_disciplined_mode"]["blocked_until"] == until

    def test_repeated_application_never_shortens_lock(self, settings, config):
        goal = binding_goal(cooldown_hours=3, reduce_risk_percent=None)
        previous = None
        for minutes in (0, 30, 5, 120):
            update = apply_goal_consequences(goal, settings, NOW + timedelta(minutes=minutes), config)
            settings = apply_settings_update(settings, update)
            blocked_until = settings.ultra_disciplined_mode.blocked_until
            if previous is not None:
                assert blocked_until >= previous
            previous = blocked_until
        assert previous == NOW + timedelta(minutes=120, hours=3)


class TestSettingsUpdates:

    def test_deep_merge(self):
        until = NOW + timedelta(hours=1)
        merged = merge_settings_updates(
            {"risk_per_trade": 0.5},
            {"ultra_disciplined_mode": {"enabled": True}},
            {"ultra_disciplined_mode": {"blocked_until": until}},
            {"risk_per_trade": 0.25},
        )
        assert merged == {
            "risk_per_trade": 0.25,
            "ultra_disciplined_mode": {"enabled": True, "blocked_until": until},
        }

    def test_merge_keeps_later_lock(self):
        later = NOW + timedelta(hours=5)
        merged = merge_settings_updates(
            {"ultra_disciplined_mode": {"blocked_until": later}},
            {"ultra_disciplined_mode": {"blocked_until": NOW + timedelta(hours=1)}},
        )
        assert merged["ultra_disciplined_mode"]["blocked_until"] == later

    def test_apply_returns_new_settings(self, settings):
        updated = apply_settings_update(
            settings, {"risk_per_trade": 0.5, "ultra_disciplined_mode": {"enabled": True}},
        )
        assert updated.risk_per_trade == 0.5
        assert updated.ultra_disciplined_mode.enabled
        assert updated.ultra_disciplined_mode.block_on_rule_break is False
        assert settings.risk_per_trade == 1.0
        assert not settings.ultra_disciplined_mode.enabled

    def test_unknown_key_rejected(self, settings):
        with pytest.raises(ConfigurationError):
            apply_settings_update(settings, {"risk_per_trad": 0.5})

    def test_unknown_nested_key_rejected(self, settings):
        with pytest.raises(ConfigurationError, match="risk_management.max_leverage"):
            apply_settings_update(settings, {"risk_management": {"max_leverage": 3}})
