"""
Goal Evaluator — the goal state machine as one explicit pipeline.

    transition check → insight (≤1/goal/day) → post-mortem (≤1/goal/day)
                     → consequences → settings updates (returned)

Nothing is persisted or mutated: the caller receives the records to store,
a partial update per touched goal and the settings updates to apply. The
day-level deduplication looks at the records passed in plus anything
emitted earlier in the same call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from tradeguard.goals.contracts import (
    SettingsUpdate,
    apply_goal_consequences,
    apply_settings_update,
    is_failure_transition,
    merge_settings_updates,
    should_apply_consequences,
)
from tradeguard.goals.insights import (
    generate_goal_failure_insight,
    infer_failure_cause,
    is_critical_failure,
)
from tradeguard.goals.postmortem import generate_goal_post_mortem
from tradeguard.journal.calculations import local_date
from tradeguard.journal.models import (
    GoalGeneratedInsight,
    GoalPostMortem,
    Trade,
    TradingGoal,
    TradingSettings,
)
from tradeguard.utils.config import Settings, get_settings
from tradeguard.utils.exceptions import GoalError
from tradeguard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class GoalEvaluationResult:
    insights: list[GoalGeneratedInsight] = field(default_factory=list)
    post_mortems: list[GoalPostMortem] = field(default_factory=list)
    goal_updates: dict[str, dict[str, Any]] = field(default_factory=dict)
    settings_updates: list[SettingsUpdate] = field(default_factory=list)
    failed_goal_ids: list[str] = field(default_factory=list)

    @property
    def settings_update(self) -> SettingsUpdate:
        """All settings updates folded into one."""
        return merge_settings_updates(*self.settings_updates)

    @property
    def has_changes(self) -> bool:
        return bool(self.insights or self.post_mortems or self.goal_updates or self.settings_updates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "insights": [i.model_dump(mode="json") for i in self.insights],
            "post_mortems": [p.model_dump(mode="json") for p in self.post_mortems],
            "goal_updates": {
                goal_id: {
                    k: v.isoformat() if isinstance(v, datetime) else v for k, v in update.items()
                }
                for goal_id, update in self.goal_updates.items()
            },
            "settings_update": self.settings_update,
            "failed_goal_ids": self.failed_goal_ids,
        }


def _has_record_on(records: Sequence[Any], goal_id: str, attr: str, day) -> bool:
    return any(
        r.goal_id == goal_id and local_date(getattr(r, attr)) == day for r in records
    )


def evaluate_goals(
    goals: Sequence[TradingGoal],
    trades: Sequence[Trade],
    settings: TradingSettings,
    previous_values: Optional[Mapping[str, float]] = None,
    existing_insights: Sequence[GoalGeneratedInsight] = (),
    existing_post_mortems: Sequence[GoalPostMortem] = (),
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> GoalEvaluationResult:
    """Run every goal through the failure pipeline.

    Args:
        previous_values: goal id -> `current` before the latest ledger change.
            A missing id means "unchanged", which never counts as a transition.
        existing_insights / existing_post_mortems: records already stored,
            used for the one-per-goal-per-day check.
    """
    cfg = config or get_settings()
    current_time = now or datetime.now()
    today = local_date(current_time)
    previous_values = previous_values or {}

    ids = [g.id for g in goals]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise GoalError(f"Duplicate goal ids: {', '.join(duplicates)}")

    result = GoalEvaluationResult()
    insights = list(existing_insights)
    post_mortems = list(existing_post_mortems)
    working_settings = settings

    for goal in goals:
        previous = previous_values.get(goal.id, goal.current)

        if not goal.completed and is_failure_transition(goal, previous):
            result.failed_goal_ids.append(goal.id)
            logger.info(
                "goal_failure_transition",
                goal_id=goal.id,
                goal_type=goal.type.value,
                previous=previous,
                current=goal.current,
                target=goal.target,
            )

            if _has_record_on(insights, goal.id, "generated_at", today):
                logger.debug("goal_insight_suppressed", goal_id=goal.id, day=today.isoformat())
            else:
                cause = infer_failure_cause(goal, trades, current_time, cfg)
                insight = generate_goal_failure_insight(goal, trades, current_time, cfg, cause)
                if insight is not None:
                    insights.append(insight)
                    result.insights.append(insight)

                    insight_ids = list(goal.generated_insight_ids)
                    if insight.id not in insight_ids:
                        insight_ids.append(insight.id)
                    result.goal_updates[goal.id] = {
                        "generated_insight_ids": insight_ids,
                        "failure_count": goal.failure_count + 1,
                        "failed_at": current_time,
                        "last_failed_at": current_time,
                    }

                    if _has_record_on(post_mortems, goal.id, "failed_at", today):
                        logger.debug("goal_post_mortem_suppressed", goal_id=goal.id)
                    elif is_critical_failure(goal, cfg):
                        post_mortem = generate_goal_post_mortem(
                            goal, trades, working_settings, current_time, cfg, cause
                        )
                        if post_mortem is not None:
                            post_mortems.append(post_mortem)
                            result.post_mortems.append(post_mortem)

        if should_apply_consequences(goal, previous):
            update = apply_goal_consequences(goal, working_settings, current_time, cfg)
            if update:
                result.settings_updates.append(update)
                working_settings = apply_settings_update(working_settings, update)

    if result.has_changes:
        logger.info(
            "goals_evaluated",
            goals=len(goals),
            failed=result.failed_goal_ids,
            insights=len(result.insights),
            post_mortems=len(result.post_mortems),
            settings_updates=len(result.settings_updates),
        )
    return result
