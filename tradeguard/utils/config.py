from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="", description="Log file path (empty = stdout only)")
    log_json: bool = Field(default=True, description="Render log lines as JSON")

    lot_size_threshold: float = Field(default=100.0, description="Forex sizes below this are lots")
    standard_lot_units: float = Field(default=100_000.0, description="Units per standard forex lot")

    limit_warning_ratio: float = Field(default=0.8, description="Fraction of a limit that triggers a warning")
    risk_escalation_multiplier: float = Field(default=1.5, description="Risk multiple treated as critical")
    min_risk_reward: float = Field(default=1.0, description="Minimum acceptable reward-to-risk")
    model_trade_min_risk_reward: float = Field(default=2.0, description="R/R required for a model trade")
    error_trade_max_risk_reward: float = Field(default=0.5, description="R/R below which a trade is an error")

    pause_drawdown_pct: float = Field(default=15.0, description="Drawdown % that recommends a pause")
    elevated_drawdown_pct: float = Field(default=10.0, description="Drawdown % that elevates risk")
    pause_exposure_pct: float = Field(default=60.0, description="Exposure % that recommends a pause")
    elevated_exposure_pct: float = Field(default=50.0, description="Exposure % that elevates risk")
    default_daily_loss_limit_pct: float = Field(default=5.0, description="Daily loss limit % when unset")
    overtrading_multiplier: float = Field(default=1.5, description="Trades/day multiple of history = overtrading")

    warning_exposure_pct: float = Field(default=50.0, description="Exposure % risk warning")
    warning_daily_loss_pct: float = Field(default=5.0, description="Daily loss % risk warning")
    warning_high_drawdown_pct: float = Field(default=20.0, description="Drawdown % high-severity warning")
    warning_drawdown_pct: float = Field(default=10.0, description="Drawdown % medium-severity warning")

    risk_per_trade_floor: float = Field(default=0.1, description="Lowest risk % a consequence may set")

    cause_min_closed_trades: int = Field(default=5, description="Closed trades needed to infer a cause")
    cause_recent_trades: int = Field(default=3, description="Recent closed trades inspected for losses")
    cause_max_trades_per_day: float = Field(default=3.0, description="Trades/day considered excessive")
    negative_emotion_ratio: float = Field(default=0.5, description="Share of negative emotions that is a pattern")
    repeated_failure_threshold: int = Field(default=2, description="Failures beyond which a goal is critical")
    losing_trades_pattern_threshold: int = Field(default=3, description="Losing trades noted as a pattern")

    simulation_pnl_band: float = Field(default=0.3, description="Conservative/optimistic spread on projected PnL")
    simulation_trades_band: float = Field(default=0.2, description="Conservative/optimistic spread on projected trades")
    simulation_win_rate_band: float = Field(default=5.0, description="Win rate points either side of the projection")
    simulation_daily_pnl_multiple: float = Field(default=2.0, description="Daily PnL target above this x average is unrealistic")
    simulation_monthly_pnl_multiple: float = Field(default=1.5, description="Monthly PnL target above this x projection is unrealistic")
    simulation_win_rate_gap: float = Field(default=15.0, description="Win rate points above history that is unrealistic")
    simulation_daily_trades_ratio: float = Field(default=0.5, description="Daily trade cap below this x average is flagged")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "TRADEGUARD_",
        "extra": "ignore",
    }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
