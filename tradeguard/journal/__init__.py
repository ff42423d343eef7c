"""
Trade Journal Domain
====================

Ledger, account settings and goals, plus the pure calculations every
risk and goal component builds on.

Architecture:
  models.py        — Pydantic models for trades, settings, goals and goal outputs
  calculations.py  — PnL, reward-to-risk, lot normalization, equity curve, statistics
"""

from tradeguard.journal.models import (
    # Ledger
    Trade,
    TradeJournal,
    PositionType,
    TradeStatus,
    Emotion,
    EvaluatedRule,
    RuleViolation,
    Severity,
    RuleStatus,
    TradeClassification,
    # Settings
    TradingSettings,
    RiskManagementConfig,
    TradingRules,
    TradingHoursWindow,
    UltraDisciplinedMode,
    DrawdownMode,
    # Goals
    TradingGoal,
    GoalPeriod,
    GoalType,
    GoalConsequences,
    GoalConstraintConfig,
    ConstraintType,
    GoalGeneratedInsight,
    GoalPostMortem,
    InsightSeverity,
)

__all__ = [
    # Ledger
    "Trade", "TradeJournal", "PositionType", "TradeStatus", "Emotion",
    "EvaluatedRule", "RuleViolation", "Severity", "RuleStatus", "TradeClassification",
    # Settings
    "TradingSettings", "RiskManagementConfig", "TradingRules", "TradingHoursWindow",
    "UltraDisciplinedMode", "DrawdownMode",
    # Goals
    "TradingGoal", "GoalPeriod", "GoalType", "GoalConsequences", "GoalConstraintConfig",
    "ConstraintType", "GoalGeneratedInsight", "GoalPostMortem", "InsightSeverity",
]
