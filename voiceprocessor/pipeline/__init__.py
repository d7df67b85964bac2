"""Generation pipeline: job intake, orchestration, retry, stores, and notification."""

from .manager import CostQuote, GenerationManager, ProviderQuote
from .notifier import BestEffortNotifier, GenerationNotifier, LoggingNotifier
from .orchestrator import GenerationOrchestrator
from .retry import RetryPolicy
from .stores import InMemoryJobStore, InMemorySegmentStore, JobStore, SegmentStore

__all__ = [
    "BestEffortNotifier",
    "CostQuote",
    "GenerationManager",
    "GenerationNotifier",
    "GenerationOrchestrator",
    "InMemoryJobStore",
    "InMemorySegmentStore",
    "JobStore",
    "LoggingNotifier",
    "ProviderQuote",
    "RetryPolicy",
    "SegmentStore",
]
