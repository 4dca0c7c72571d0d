"""Utility modules for the cost finder."""

from cost_finder.utils.estimate_logger import (
    configure_logging,
    log_cost_estimate,
)

__all__ = [
    "configure_logging",
    "log_cost_estimate",
]
