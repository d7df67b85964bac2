"""Telemetry and observability helpers.

This package tracks actual provider costs and emits structured run events.
"""

from .cost_tracker import CostTracker
from .logger import RunLogger, log_event

__all__ = ["CostTracker", "RunLogger", "log_event"]
