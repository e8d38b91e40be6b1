"""
Graph Scheduling Module

Architectural Intent:
- Dependency-ordered execution of one task per service across a
  DependencyGraph, in either direction
- Automatically parallelizes independent services
- Isolates failures to the failing service's descendants

Parallelization Strategy:
- Every node becomes its own asyncio task the moment all of its
  predecessors have succeeded; there is no cap beyond the ready set
- A node does not wait for unrelated siblings of its predecessors
- Failed or declined nodes skip their descendants; unrelated branches keep
  running to completion

Cancellation:
- Setting cancel_event, or cancelling run() itself, stops new starts and
  cancels in-flight tasks; their subprocesses are terminated by the
  process runner's own CancelledError handling
"""

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from convoy.application.dtos.run_report import RunReport
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import Direction, PipelineState
from convoy.domain.errors import RunCancelledError, UserCancelledError
from convoy.domain.events.event_base import DomainEvent
from convoy.domain.events.service_events import (
    ServiceFailed,
    ServiceSkipped,
    ServiceStarted,
    ServiceSucceeded,
)
from convoy.domain.ports.event_bus_port import EventBusPort

logger = logging.getLogger(__name__)

ServiceTask = Callable[[str], Awaitable[None]]


@dataclass
class RunContext:
    graph: DependencyGraph
    direction: Direction
    task: ServiceTask
    cancel_event: asyncio.Event
    states: dict[str, PipelineState] = field(default_factory=dict)
    failures: dict[str, BaseException] = field(default_factory=dict)
    declined: list[str] = field(default_factory=list)
    running: dict[asyncio.Task, str] = field(default_factory=dict)
    started_at: dict[str, float] = field(default_factory=dict)
    cancelled: bool = False

    def report(self) -> RunReport:
        return RunReport(
            direction=self.direction,
            states=dict(self.states),
            failures=dict(self.failures),
            declined=tuple(self.declined),
            cancelled=self.cancelled,
        )

    def log_extra(self, name: str) -> dict[str, str]:
        return {"service": name, "direction": self.direction.name}


class GraphScheduler:
    def __init__(self, event_bus: Optional[EventBusPort] = None) -> None:
        self._event_bus = event_bus

    async def run(
        self,
        graph: DependencyGraph,
        direction: Direction,
        task: ServiceTask,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunReport:
        ctx = RunContext(
            graph=graph,
            direction=direction,
            task=task,
            cancel_event=cancel_event or asyncio.Event(),
            states={name: PipelineState.PENDING for name in graph.names},
        )
        logger.info(
            "Starting %s run over %d services", direction.name.lower(), len(graph)
        )

        cancel_waiter = asyncio.ensure_future(ctx.cancel_event.wait())
        try:
            if ctx.cancel_event.is_set():
                ctx.cancelled = True
            else:
                await self._start_ready(ctx)

            while ctx.running:
                waitables: set[asyncio.Future] = set(ctx.running)
                if not ctx.cancelled:
                    waitables.add(cancel_waiter)
                done, _ = await asyncio.wait(
                    waitables, return_when=asyncio.FIRST_COMPLETED
                )

                if cancel_waiter in done and not ctx.cancelled:
                    logger.warning("Cancellation requested; stopping in-flight services")
                    ctx.cancelled = True
                    for running_task in ctx.running:
                        running_task.cancel()

                for finished in sorted(
                    (t for t in done if t is not cancel_waiter),
                    key=lambda t: ctx.running[t],
                ):
                    await self._settle(ctx, finished)

                if not ctx.cancelled:
                    await self._start_ready(ctx)

            if ctx.cancelled:
                await self._skip_pending(ctx, "run cancelled")

        except asyncio.CancelledError:
            ctx.cancelled = True
            for running_task in ctx.running:
                running_task.cancel()
            if ctx.running:
                await asyncio.gather(*ctx.running, return_exceptions=True)
            for finished in list(ctx.running):
                await self._settle(ctx, finished)
            await self._skip_pending(ctx, "run cancelled")
            raise
        finally:
            cancel_waiter.cancel()

        report = ctx.report()
        logger.info(
            "Finished %s run: %d succeeded, %d failed, %d skipped",
            direction.name.lower(),
            len(report.names_in(PipelineState.SUCCEEDED)),
            len(report.failures),
            len(report.names_in(PipelineState.SKIPPED)),
        )
        return report

    async def _start_ready(self, ctx: RunContext) -> None:
        for name in ctx.graph.names:
            if ctx.states[name] is not PipelineState.PENDING:
                continue
            predecessors = ctx.graph.predecessors(name, ctx.direction)
            if all(ctx.states[p] is PipelineState.SUCCEEDED for p in predecessors):
                ctx.states[name] = PipelineState.RUNNING
                ctx.started_at[name] = time.monotonic()
                logger.debug("Starting %s", name, extra=ctx.log_extra(name))
                await self._publish(
                    ServiceStarted(aggregate_id=name, direction=ctx.direction.name)
                )
                ctx.running[asyncio.create_task(ctx.task(name), name=name)] = name

    async def _settle(self, ctx: RunContext, finished: asyncio.Task) -> None:
        name = ctx.running.pop(finished)
        duration_ms = (time.monotonic() - ctx.started_at[name]) * 1000

        if finished.cancelled():
            error: Optional[BaseException] = RunCancelledError(name)
        else:
            error = finished.exception()
            if isinstance(error, asyncio.CancelledError):
                error = RunCancelledError(name)

        if error is None:
            ctx.states[name] = PipelineState.SUCCEEDED
            logger.info(
                "%s succeeded in %.0fms", name, duration_ms, extra=ctx.log_extra(name)
            )
            await self._publish(
                ServiceSucceeded(
                    aggregate_id=name,
                    direction=ctx.direction.name,
                    duration_ms=duration_ms,
                )
            )
            return

        if isinstance(error, UserCancelledError):
            ctx.states[name] = PipelineState.SKIPPED
            ctx.declined.append(name)
            logger.info("%s declined by operator", name, extra=ctx.log_extra(name))
            await self._publish(
                ServiceSkipped(
                    aggregate_id=name, direction=ctx.direction.name, reason="declined"
                )
            )
            await self._skip_descendants(ctx, name, f"{name} declined")
            return

        ctx.states[name] = PipelineState.FAILED
        ctx.failures[name] = error
        logger.error("%s failed: %s", name, error, extra=ctx.log_extra(name))
        await self._publish(
            ServiceFailed(
                aggregate_id=name,
                direction=ctx.direction.name,
                duration_ms=duration_ms,
                error=str(error),
            )
        )
        await self._skip_descendants(ctx, name, f"{name} failed")

    async def _skip_descendants(self, ctx: RunContext, name: str, reason: str) -> None:
        for descendant in sorted(ctx.graph.descendants(name, ctx.direction)):
            if ctx.states[descendant] is PipelineState.PENDING:
                await self._skip(ctx, descendant, reason)

    async def _skip_pending(self, ctx: RunContext, reason: str) -> None:
        for name in ctx.graph.names:
            if ctx.states[name] is PipelineState.PENDING:
                await self._skip(ctx, name, reason)

    async def _skip(self, ctx: RunContext, name: str, reason: str) -> None:
        ctx.states[name] = PipelineState.SKIPPED
        logger.info("Skipping %s: %s", name, reason, extra=ctx.log_extra(name))
        await self._publish(
            ServiceSkipped(aggregate_id=name, direction=ctx.direction.name, reason=reason)
        )

    async def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is None:
            return
        try:
            await self._event_bus.publish([event])
        except Exception:
            logger.exception("Event handler failed for %s", type(event).__name__)
