"""
Journal Data Models
===================

Trade ledger     — Trade, TradeJournal, rule-evaluation annotations
Account settings — TradingSettings and its nested limit blocks
Goals            — TradingGoal, consequences, constraints
Goal outputs     — GoalGeneratedInsight, GoalPostMortem

All models are pydantic models. Timestamps are naive local datetimes
(aware values are accepted and converted to local time by the calculators).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


# ── Enums ────────────────────────────────────────────────────

class PositionType(str, Enum):
    LONG = "long"
    SHORT = "short"


class TradeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class Emotion(str, Enum):
    CONFIDENT = "confident"
    ANXIOUS = "anxious"
    FEARFUL = "fearful"
    EXCITED = "excited"
    NEUTRAL = "neutral"
    FRUSTRATED = "frustrated"
    EUPHORIC = "euphoric"
    DEPRESSED = "depressed"


NEGATIVE_EMOTIONS = frozenset({
    Emotion.ANXIOUS, Emotion.FEARFUL, Emotion.FRUSTRATED, Emotion.DEPRESSED,
})


class Severity(str, Enum):
    CRITICAL = "critical"
    MINOR = "minor"


class RuleStatus(str, Enum):
    CLEAN = "clean"
    MINOR_VIOLATION = "minor-violation"
    CRITICAL_VIOLATION = "critical-violation"


class TradeClassification(str, Enum):
    MODEL = "model"
    NEUTRAL = "neutral"
    ERROR = "error"


class DrawdownMode(str, Enum):
    HARD_STOP = "hard-stop"
    SOFT_WARNING = "soft-warning"


class GoalPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class GoalType(str, Enum):
    PNL = "pnl"
    WIN_RATE = "winRate"
    NUM_TRADES = "numTrades"


class ConstraintType(str, Enum):
    NONE = "none"
    SESSION = "session"
    HOURS = "hours"
    MAX_TRADES = "max-trades"
    MAX_LOSS = "max-loss"
    CUSTOM = "custom"


class InsightSeverity(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RULE EVALUATION ANNOTATIONS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

RuleValue = Union[float, str]


class EvaluatedRule(BaseModel):
    """One rule checked against a trade, respected or not."""
    id: str
    rule_name: str
    rule_key: str
    respected: bool
    expected_value: Optional[RuleValue] = None
    actual_value: Optional[RuleValue] = None
    severity: Severity = Severity.MINOR


class RuleViolation(BaseModel):
    """A rule the trade broke."""
    id: str
    rule_name: str
    rule_key: str
    expected_value: RuleValue
    actual_value: RuleValue
    severity: Severity
    message: str


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TRADE LEDGER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TradeJournal(BaseModel):
    """Emotions recorded before, during and after the trade."""
    pre_trade_emotion: Optional[Emotion] = None
    during_trade_emotion: Optional[Emotion] = None
    post_trade_emotion: Optional[Emotion] = None
    notes: str = ""


class Trade(BaseModel):
    id: str = Field(default_factory=new_id)
    asset: str = Field(..., min_length=1)
    position_type: PositionType = PositionType.LONG
    entry_price: float
    exit_price: Optional[float] = None
    position_size: float = Field(..., ge=0)
    leverage: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    entry_date: datetime
    exit_date: Optional[datetime] = None
    status: TradeStatus = TradeStatus.OPEN
    pnl: Optional[float] = None
    risk_reward: Optional[float] = None
    tags: list[str] = Field(default_factory=list)
    journal: TradeJournal = Field(default_factory=TradeJournal)
    # Annotations appended by the rule evaluator
    evaluated_rules: list[EvaluatedRule] = Field(default_factory=list)
    violated_rules: list[RuleViolation] = Field(default_factory=list)
    trade_classification: Optional[TradeClassification] = None

    @model_validator(mode="after")
    def _check_lifecycle(self) -> "Trade":
        if self.status == TradeStatus.OPEN:
            if self.pnl is not None or self.exit_price is not None:
                raise ValueError("open trade cannot carry pnl or exit_price")
        else:
            if self.pnl is None or self.exit_price is None:
                raise ValueError("closed trade requires pnl and exit_price")

        # R/R is always derived from the stop and target; a supplied value is ignored.
        if self.stop_loss is None or self.take_profit is None:
            self.risk_reward = None
        else:
            # Local import: calculations depends on this module.
            from tradeguard.journal.calculations import calculate_risk_reward
            self.risk_reward = calculate_risk_reward(self)
        return self

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    @property
    def emotions(self) -> list[Emotion]:
        """Pre/during-trade emotion (pre-trade wins when both are set)."""
        emotion = self.journal.pre_trade_emotion or self.journal.during_trade_emotion
        return [emotion] if emotion is not None else []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ACCOUNT SETTINGS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RiskManagementConfig(BaseModel):
    max_risk_per_trade: Optional[float] = None   # %
    max_risk_daily: Optional[float] = None       # %
    max_risk_weekly: Optional[float] = None      # %
    max_drawdown: Optional[float] = None         # %
    drawdown_mode: DrawdownMode = DrawdownMode.SOFT_WARNING

    @field_validator("drawdown_mode", mode="before")
    @classmethod
    def _legacy_drawdown_mode(cls, value: Any) -> Any:
        if value in ("warning", "partial-block"):
            return DrawdownMode.SOFT_WARNING
        return value


class TradingHoursWindow(BaseModel):
    enabled: bool = False
    start_hour: int = Field(default=0, ge=0, le=24)
    end_hour: int = Field(default=24, ge=0, le=24)


class TradingRules(BaseModel):
    max_trades_per_day: Optional[int] = None
    max_trades_per_week: Optional[int] = None
    allowed_trading_hours: TradingHoursWindow = Field(default_factory=TradingHoursWindow)
    max_lot_size: Optional[float] = None
    daily_profit_target: Optional[float] = None
    daily_loss_limit: Optional[float] = None     # % of current capital


class UltraDisciplinedMode(BaseModel):
    enabled: bool = False
    block_on_rule_break: bool = False
    blocked_until: Optional[datetime] = None


class TradingSettings(BaseModel):
    account_size: float = 10_000.0
    base_currency: str = "USD"
    risk_per_trade: float = 1.0                  # %
    current_capital: float = 0.0
    initial_capital: float = 0.0
    risk_management: RiskManagementConfig = Field(default_factory=RiskManagementConfig)
    trading_rules: TradingRules = Field(default_factory=TradingRules)
    ultra_disciplined_mode: UltraDisciplinedMode = Field(default_factory=UltraDisciplinedMode)

    @property
    def effective_current_capital(self) -> float:
        return self.current_capital or self.account_size

    @property
    def effective_initial_capital(self) -> float:
        return self.initial_capital or self.account_size


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# GOALS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class GoalConsequences(BaseModel):
    cooldown_hours: Optional[float] = None
    reduce_risk_percent: Optional[float] = Field(default=None, ge=0, le=100)


class GoalConstraintConfig(BaseModel):
    session: Optional[str] = None                # asian | london | new-york | overlap
    start_hour: Optional[int] = None
    end_hour: Optional[int] = None
    max_value: Optional[float] = None


class TradingGoal(BaseModel):
    id: str = Field(default_factory=new_id)
    period: GoalPeriod
    type: GoalType
    target: float
    current: float = 0.0
    start_date: datetime
    end_date: datetime
    completed: bool = False
    is_primary: bool = False
    is_binding: bool = False
    consequences: Optional[GoalConsequences] = None
    constraint_type: ConstraintType = ConstraintType.NONE
    constraint_config: Optional[GoalConstraintConfig] = None
    failure_count: int = 0
    failed_at: Optional[datetime] = None
    last_failed_at: Optional[datetime] = None
    generated_insight_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_window(self) -> "TradingGoal":
        if self.end_date < self.start_date:
            raise ValueError("goal end_date precedes start_date")
        return self

    @property
    def is_max_goal(self) -> bool:
        """Trade-count goals are limits not to exceed; the rest are minimums."""
        return self.type == GoalType.NUM_TRADES


class GoalGeneratedInsight(BaseModel):
    id: str = Field(default_factory=new_id)
    goal_id: str
    goal_title: str
    severity: InsightSeverity
    what_happened: str
    possible_cause: str
    actionable_question: str
    generated_at: datetime
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def priority(self) -> int:
        return 90 if self.severity == InsightSeverity.CRITICAL else 60


class GoalPostMortem(BaseModel):
    id: str = Field(default_factory=new_id)
    goal_id: str
    goal_title: str
    failed_at: datetime
    cause: str
    related_rule_violations: list[str] = Field(default_factory=list)
    historical_patterns: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: datetime
