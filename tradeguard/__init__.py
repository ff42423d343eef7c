"""
TradeGuard — risk and discipline evaluation for a personal trading journal.

Layers:
  journal/  — ledger, settings and goal models; pure trade calculations
  risk/     — metrics, rule evaluation, global risk status, trading status
  goals/    — goal failure pipeline, insights, post-mortems, consequences
  engine.py — RiskEngine facade
"""

from tradeguard.engine import RiskEngine, RiskSnapshot
from tradeguard.utils.logger import setup_logging

__version__ = "0.1.0"

__all__ = ["RiskEngine", "RiskSnapshot", "setup_logging", "__version__"]
