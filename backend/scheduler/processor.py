"""Job processor: run one agent's instrument × timeframe × strategy matrix.

For every instrument (at most ``agent.concurrency`` at a time) and
timeframe the processor fetches candles, asks the signal generator for
each strategy, persists what comes back and hands new signals to the
notifier. A failed fetch or an empty series only skips that pair;
anything else (a persistence error, say) propagates so the worker can
retry the job. The first such error cancels the remaining instruments
and waits for them before it is raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from core.models.candle import Candle
from core.models.signal import TradingSignal
from core.signal_generator import SignalGenerator
from scheduler.models import AgentConfig, AgentJob, LogLevel, PersistOutcome, SignalAlert
from scheduler.store import AgentLogSink

logger = logging.getLogger(__name__)


class CandleFetcher(Protocol):
    async def fetch_candles(
        self, instrument: str, timeframe: str, since: datetime | None = None
    ) -> list[Candle]:
        ...


class SignalSink(Protocol):
    async def persist_signal(
        self,
        signal: TradingSignal,
        *,
        owner_id: str,
        instrument: str,
        timeframe: str,
        agent_id: str | None = None,
    ) -> PersistOutcome:
        ...


class AlertNotifier(Protocol):
    def notify_new_signal(self, alert: SignalAlert) -> None:
        """Fire-and-forget. Must return immediately."""
        ...


@dataclass
class JobRunSummary:
    """What one job run did."""

    pairs_analyzed: int = 0
    pairs_skipped: int = 0
    signals_created: int = 0
    signals_updated: int = 0
    skipped: list[str] = field(default_factory=list)

    @property
    def signals(self) -> int:
        return self.signals_created + self.signals_updated

    def as_context(self) -> dict:
        return {
            "pairs_analyzed": self.pairs_analyzed,
            "pairs_skipped": self.pairs_skipped,
            "signals_created": self.signals_created,
            "signals_updated": self.signals_updated,
            "skipped": list(self.skipped),
        }


class AgentJobProcessor:
    """Runs the analysis for a claimed job."""

    def __init__(
        self,
        fetcher: CandleFetcher,
        sink: SignalSink,
        logs: AgentLogSink,
        notifier: AlertNotifier | None = None,
    ):
        self._fetcher = fetcher
        self._sink = sink
        self._logs = logs
        self._notifier = notifier

    async def process(self, agent: AgentConfig, job: AgentJob) -> JobRunSummary:
        summary = JobRunSummary()
        generator = SignalGenerator(agent.min_confidence)
        semaphore = asyncio.Semaphore(agent.concurrency)

        async def run_instrument(instrument: str) -> None:
            async with semaphore:
                for timeframe in agent.timeframes:
                    await self._process_pair(agent, job, generator, instrument, timeframe, summary)

        tasks = [asyncio.create_task(run_instrument(i)) for i in agent.instruments]
        try:
            await asyncio.gather(*tasks)
        finally:
            # Instruments still in flight must not outlive a failed run
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(
            f"Agent {agent.id} job {job.id}: {summary.pairs_analyzed} pairs analyzed, "
            f"{summary.signals_created} new / {summary.signals_updated} updated signals"
        )
        return summary

    async def _process_pair(
        self,
        agent: AgentConfig,
        job: AgentJob,
        generator: SignalGenerator,
        instrument: str,
        timeframe: str,
        summary: JobRunSummary,
    ) -> None:
        pair = f"{instrument}@{timeframe}"
        try:
            candles = await self._fetcher.fetch_candles(instrument, timeframe)
        except Exception as e:
            logger.warning(f"[{pair}] Candle fetch failed: {e}", exc_info=True)
            await self._skip(agent, job, pair, summary, "Failed to fetch candles", str(e))
            return

        if not candles:
            await self._skip(agent, job, pair, summary, "No candle data", None)
            return

        summary.pairs_analyzed += 1
        for strategy in agent.strategies:
            signal = generator.generate(candles, strategy)
            if signal is None:
                continue

            outcome = await self._sink.persist_signal(
                signal,
                owner_id=agent.owner_id,
                instrument=instrument,
                timeframe=timeframe,
                agent_id=agent.id,
            )
            if outcome == PersistOutcome.CREATED:
                summary.signals_created += 1
                self._notify(
                    SignalAlert.from_signal(
                        signal,
                        owner_id=agent.owner_id,
                        instrument=instrument,
                        timeframe=timeframe,
                        agent_id=agent.id,
                    )
                )
            else:
                summary.signals_updated += 1

    async def _skip(
        self,
        agent: AgentConfig,
        job: AgentJob,
        pair: str,
        summary: JobRunSummary,
        message: str,
        error: str | None,
    ) -> None:
        summary.pairs_skipped += 1
        summary.skipped.append(pair)
        context = {"pair": pair}
        if error:
            context["error"] = error
        await self._logs.append_log(agent.id, job.id, LogLevel.WARN, message, context)

    def _notify(self, alert: SignalAlert) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify_new_signal(alert)
        except Exception:
            logger.error(f"Notifier rejected alert for {alert.instrument}", exc_info=True)
