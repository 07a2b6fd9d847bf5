"""Agent job scheduler.

Two externally triggered steps drive agents through their jobs:

    enqueue_due_agents(store)      due agents -> pending jobs
    AgentWorker(store, p).run_once  pending jobs -> running -> terminal

Depends on core/ only. Storage is behind the protocols in scheduler.store;
InMemorySchedulerStore is the reference implementation and
app.storage.agent_repo provides PostgreSQL.
"""

from scheduler.backoff import retry_delay
from scheduler.clock import Clock, ManualClock, SystemClock
from scheduler.enqueue import EnqueueResult, enqueue_due_agents, request_manual_run
from scheduler.errors import AgentNotFoundError, AgentValidationError
from scheduler.models import (
    AgentConfig,
    AgentJob,
    AgentLog,
    JobStatus,
    JobTrigger,
    LogLevel,
    PersistOutcome,
    SignalAlert,
)
from scheduler.processor import AgentJobProcessor, JobRunSummary
from scheduler.store import (
    AgentLogSink,
    AgentStore,
    InMemorySchedulerStore,
    JobStore,
    SchedulerStore,
)
from scheduler.worker import AgentWorker, WorkerResult

__all__ = [
    "AgentConfig",
    "AgentJob",
    "AgentJobProcessor",
    "AgentLog",
    "AgentLogSink",
    "AgentNotFoundError",
    "AgentStore",
    "AgentValidationError",
    "AgentWorker",
    "Clock",
    "EnqueueResult",
    "InMemorySchedulerStore",
    "JobRunSummary",
    "JobStatus",
    "JobStore",
    "JobTrigger",
    "LogLevel",
    "ManualClock",
    "PersistOutcome",
    "SchedulerStore",
    "SignalAlert",
    "SystemClock",
    "WorkerResult",
    "enqueue_due_agents",
    "request_manual_run",
    "retry_delay",
]
