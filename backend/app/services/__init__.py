"""Business services."""

from app.services.agents import AgentService
from app.services.notifier import SignalNotifier
from app.services.scanner import MarketScanner, ScanFilters, ScanResult

__all__ = [
    "AgentService",
    "MarketScanner",
    "ScanFilters",
    "ScanResult",
    "SignalNotifier",
]
