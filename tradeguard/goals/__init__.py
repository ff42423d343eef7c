"""
Goal State Machine
==================

  contracts.py    — failure predicates, binding-goal consequences, settings updates
  insights.py     — failure-cause inference and goal failure insights
  postmortem.py   — post-mortems for binding / repeatedly failing goals
  constraints.py  — session, hours, trade-count and loss constraints
  evaluator.py    — evaluate_goals(): the whole pipeline in one call
  simulation.py   — conservative/moderate/optimistic projections of a goal
"""

from tradeguard.goals.contracts import (
    apply_goal_consequences,
    apply_settings_update,
    is_failing,
    merge_settings_updates,
    should_apply_consequences,
)
from tradeguard.goals.insights import (
    FailureCause,
    generate_goal_failure_insight,
    infer_failure_cause,
)
from tradeguard.goals.postmortem import generate_goal_post_mortem
from tradeguard.goals.constraints import should_block_trading_due_to_goals
from tradeguard.goals.evaluator import GoalEvaluationResult, evaluate_goals
from tradeguard.goals.simulation import GoalSimulationResult, simulate_goal_future

__all__ = [
    # Contracts
    "is_failing", "should_apply_consequences", "apply_goal_consequences",
    "merge_settings_updates", "apply_settings_update",
    # Insights & post-mortems
    "FailureCause", "infer_failure_cause", "generate_goal_failure_insight",
    "generate_goal_post_mortem",
    # Constraints
    "should_block_trading_due_to_goals",
    # Pipeline
    "GoalEvaluationResult", "evaluate_goals",
    # Projection
    "GoalSimulationResult", "simulate_goal_future",
]
