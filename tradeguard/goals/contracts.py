"""
Goal Contracts — failure predicates and the consequences of binding goals.

A consequence is never applied in place. It is returned as a partial
settings update (nested dict keyed like TradingSettings) which the caller
persists, merging several with merge_settings_updates() when needed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from tradeguard.journal.calculations import to_local
from tradeguard.journal.models import TradingGoal, TradingSettings
from tradeguard.risk.control import extended_lock_until
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.exceptions import ConfigurationError
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)

SettingsUpdate = dict[str, Any]


# ─── Failure predicates ──────────────────────────────────────

def is_failing(goal: TradingGoal, value: float) -> bool:
    """Limit goals fail above target, the rest fail below it."""
    if goal.is_max_goal:
        return value > goal.target
    return value < goal.target


def was_passing(goal: TradingGoal, previous_value: float) -> bool:
    return not is_failing(goal, previous_value)


def is_failure_transition(goal: TradingGoal, previous_value: float) -> bool:
    """Passing before, failing now. Steady failure is not a transition."""
    return was_passing(goal, previous_value) and is_failing(goal, goal.current)


def should_apply_consequences(goal: TradingGoal, previous_value: float) -> bool:
    return goal.is_binding and is_failure_transition(goal, previous_value)


# ─── Consequences ────────────────────────────────────────────

def apply_goal_consequences(
    goal: TradingGoal,
    settings: TradingSettings,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> SettingsUpdate:
    """Settings update for a failed binding goal; {} when it has no consequences."""
    if not goal.is_binding or goal.consequences is None:
        return {}

    cfg = config or get_settings()
    consequences = goal.consequences
    update: SettingsUpdate = {}

    if consequences.cooldown_hours:
        update["ultra_disciplined_mode"] = {
            "enabled": True,
            "block_on_rule_break": True,
            "blocked_until": extended_lock_until(settings, consequences.cooldown_hours, now),
        }

    if consequences.reduce_risk_percent:
        reduced = settings.risk_per_trade * (1 - consequences.reduce_risk_percent / 100)
        update["risk_per_trade"] = max(cfg.risk_per_trade_floor, reduced)

    if update:
        logger.info(
            "consequences_computed",
            goal_id=goal.id,
            blocked_until=str(update.get("ultra_disciplined_mode", {}).get("blocked_until")),
            risk_per_trade=update.get("risk_per_trade"),
        )
    return update


# ─── Settings updates ────────────────────────────────────────

def _later(a: Any, b: Any) -> Any:
    if isinstance(a, datetime) and isinstance(b, datetime):
        return a if to_local(a) > to_local(b) else b
    return b


def merge_settings_updates(*updates: SettingsUpdate) -> SettingsUpdate:
    """Deep merge, later updates winning, except that locks only ever extend."""
    merged: SettingsUpdate = {}
    for update in updates:
        for key, value in update.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = merge_settings_updates(current, value)
            elif key == "blocked_until" and value is not None and current is not None:
                merged[key] = _later(current, value)
            else:
                merged[key] = value
    return merged


def _check_keys(model: type[BaseModel], update: SettingsUpdate, path: str = "") -> None:
    for key, value in update.items():
        field = model.model_fields.get(key)
        if field is None:
            raise ConfigurationError(f"Unknown settings key: {path}{key}")
        annotation = field.annotation
        if isinstance(value, dict) and isinstance(annotation, type) and issubclass(annotation, BaseModel):
            _check_keys(annotation, value, f"{path}{key}.")


def apply_settings_update(settings: TradingSettings, update: SettingsUpdate) -> TradingSettings:
    """New validated settings with `update` merged in; `settings` is left untouched."""
    _check_keys(TradingSettings, update)
    data = merge_settings_updates(settings.model_dump(), update)
    return TradingSettings.model_validate(data)
