from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    DATA = "data"
    RISK = "risk"
    RULE = "rule"
    GOAL = "goal"
    CONFIG = "config"
    SYSTEM = "system"


class TradeGuardError(Exception):
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        reasons: Optional[list[str]] = None,
    ) -> None:
        self.message = message
        self.category = category
        self.reasons = list(reasons or [])
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value}] {self.message}"]
        if self.reasons:
            parts.append("Reasons: " + "; ".join(self.reasons))
        return " | ".join(parts)


class DataError(TradeGuardError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.DATA)


class RiskLimitError(TradeGuardError):
    def __init__(self, message: str, reasons: Optional[list[str]] = None) -> None:
        super().__init__(message, ErrorCategory.RISK, reasons)


class TradingBlockedError(TradeGuardError):
    def __init__(
        self,
        message: str = "Trading is blocked",
        reasons: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, ErrorCategory.RISK, reasons)


class GoalError(TradeGuardError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.GOAL)


class ConfigurationError(TradeGuardError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.CONFIG)
