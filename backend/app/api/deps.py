"""FastAPI dependency providers.

Services are created once in the app lifespan and kept on app.state;
tests replace these providers through app.dependency_overrides.
"""

from fastapi import Depends, Request

from app.clients.kraken_rest import KrakenRestClient
from app.services.agents import AgentService
from app.services.notifier import SignalNotifier
from app.services.scanner import MarketScanner
from app.storage.signal_repo import SignalRepository
from scheduler.clock import Clock, SystemClock
from scheduler.processor import AgentJobProcessor
from scheduler.store import SchedulerStore

_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


def get_store(request: Request) -> SchedulerStore:
    return request.app.state.store


def get_signal_repo(request: Request) -> SignalRepository:
    return request.app.state.signal_repo


def get_market_data(request: Request) -> KrakenRestClient:
    return request.app.state.market_data


def get_notifier(request: Request) -> SignalNotifier:
    return request.app.state.notifier


def get_scanner(request: Request) -> MarketScanner:
    return request.app.state.scanner


def get_agent_service(
    store: SchedulerStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> AgentService:
    return AgentService(store, clock)


def get_job_processor(
    store: SchedulerStore = Depends(get_store),
    market_data: KrakenRestClient = Depends(get_market_data),
    signal_repo: SignalRepository = Depends(get_signal_repo),
    notifier: SignalNotifier = Depends(get_notifier),
) -> AgentJobProcessor:
    return AgentJobProcessor(
        fetcher=market_data,
        sink=signal_repo,
        logs=store,
        notifier=notifier,
    )
