"""REST API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from app.api.auth import require_owner, verify_cron_secret
from app.api.deps import (
    get_agent_service,
    get_clock,
    get_job_processor,
    get_scanner,
    get_signal_repo,
    get_store,
)
from app.config import Settings, get_settings
from app.models import AgentCreate, AgentToggle, AgentUpdate, StoredSignal
from app.services.agents import AgentService
from app.services.scanner import MarketScanner, ScanFilters, ScanResult
from app.storage.signal_repo import SignalRepository
from core.models.signal import Direction, Risk
from core.models.strategy import StrategyKind
from scheduler.clock import Clock
from scheduler.enqueue import enqueue_due_agents
from scheduler.models import AgentConfig, AgentJob
from scheduler.processor import AgentJobProcessor
from scheduler.store import SchedulerStore
from scheduler.worker import AgentWorker

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str


class EnqueueResponse(BaseModel):
    enqueued: int
    skipped: int


class WorkerResponse(BaseModel):
    processed: int
    claimed: int
    succeeded: int
    requeued: int
    failed: int
    cancelled: int
    reclaimed: int


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness probe."""
    return HealthResponse(status="ok", version="0.1.0")


# =============================================================================
# Cron triggers (bearer CRON_SECRET)
# =============================================================================


@router.post(
    "/cron/agents",
    response_model=EnqueueResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_enqueue_agents(
    store: SchedulerStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Enqueue a job for every due agent."""
    result = await enqueue_due_agents(store, clock)
    return EnqueueResponse(enqueued=result.enqueued, skipped=result.skipped)


@router.post(
    "/agents/worker",
    response_model=WorkerResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_agent_worker(
    limit: Optional[int] = Query(None, ge=1, le=50, description="Max jobs to claim"),
    store: SchedulerStore = Depends(get_store),
    processor: AgentJobProcessor = Depends(get_job_processor),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
):
    """Claim and process a batch of pending jobs."""
    worker = AgentWorker(store, processor, clock)
    result = await worker.run_once(limit or settings.worker_batch_size)
    return WorkerResponse(**result.to_dict())


# =============================================================================
# Agent management (owner-scoped)
# =============================================================================


@router.get("/agents", response_model=list[AgentConfig])
async def list_agents(
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    """List the caller's agents."""
    return await service.list_agents(owner_id)


@router.post("/agents", response_model=AgentConfig, status_code=201)
async def create_agent(
    body: AgentCreate,
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    """Create an agent. Its first run is one interval from now."""
    return await service.create_agent(owner_id, body)


@router.get("/agents/{agent_id}", response_model=AgentConfig)
async def get_agent(
    agent_id: str,
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    return await service.get_agent(owner_id, agent_id)


@router.patch("/agents/{agent_id}", response_model=AgentConfig)
async def update_agent(
    agent_id: str,
    body: AgentUpdate,
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    return await service.update_agent(owner_id, agent_id, body)


@router.post("/agents/{agent_id}/toggle", response_model=AgentConfig)
async def toggle_agent(
    agent_id: str,
    body: AgentToggle,
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    """Pause or resume an agent."""
    return await service.toggle_agent(owner_id, agent_id, body.is_active)


@router.delete("/agents/{agent_id}", status_code=204)
async def delete_agent(
    agent_id: str,
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    await service.delete_agent(owner_id, agent_id)
    return Response(status_code=204)


@router.post("/agents/{agent_id}/run", response_model=AgentJob, status_code=202)
async def run_agent_now(
    agent_id: str,
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    """Queue a manual run. 409 while a job is pending or running."""
    job = await service.run_now(owner_id, agent_id)
    if job is None:
        raise HTTPException(
            status_code=409,
            detail="A job is already running or pending for this agent",
        )
    return job


@router.get("/agents/{agent_id}/jobs", response_model=list[AgentJob])
async def list_agent_jobs(
    agent_id: str,
    limit: int = Query(20, ge=1, le=200),
    owner_id: str = Depends(require_owner),
    service: AgentService = Depends(get_agent_service),
):
    return await service.list_jobs(owner_id, agent_id, limit)


# =============================================================================
# Signals and scanner
# =============================================================================


@router.get("/signals", response_model=list[StoredSignal])
async def get_signals(
    instrument: Optional[str] = Query(None, description="Filter by instrument"),
    direction: Optional[Direction] = Query(None, description="Filter by direction"),
    limit: int = Query(50, ge=1, le=500, description="Maximum signals to return"),
    owner_id: str = Depends(require_owner),
    repo: SignalRepository = Depends(get_signal_repo),
):
    """Get the caller's recent signals."""
    return await repo.get_recent(owner_id, limit=limit, instrument=instrument, direction=direction)


@router.get("/scanner", response_model=ScanResult)
async def scan_market(
    min_confidence: float = Query(60.0, ge=0, le=100),
    direction: Optional[Direction] = Query(None),
    risk: Optional[Risk] = Query(None),
    strategy: Optional[StrategyKind] = Query(None),
    timeframe: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    scanner: MarketScanner = Depends(get_scanner),
    settings: Settings = Depends(get_settings),
):
    """Scan the configured instruments for opportunities.

    timeframe defaults to the scanner_timeframe setting.
    """
    try:
        filters = ScanFilters(
            min_confidence=min_confidence,
            direction=direction,
            risk=risk,
            strategy=strategy,
            timeframe=timeframe or settings.scanner_timeframe,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await scanner.scan(filters)
