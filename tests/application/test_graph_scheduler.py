"""
Graph Scheduler Tests

Architectural Intent:
- Verifies dependency ordering in both directions, concurrency of ready
  siblings, failure isolation, declines and cancellation
- Tasks are plain coroutines; no pipelines or adapters involved
"""

import asyncio

import pytest

from convoy.application.orchestration.graph_scheduler import GraphScheduler
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import Direction, PipelineState, ServiceNode
from convoy.domain.errors import RunCancelledError, UserCancelledError
from convoy.domain.events.service_events import (
    ServiceFailed,
    ServiceSkipped,
    ServiceStarted,
    ServiceSucceeded,
)
from convoy.infrastructure.event_bus import EventBus


def _graph(**edges):
    return DependencyGraph.build(
        ServiceNode.container(name, depends_on=deps) for name, deps in edges.items()
    )


class TestOrdering:
    """Tests for dependency-ordered, concurrent execution."""

    @pytest.mark.asyncio
    async def test_up_runs_dependencies_first_and_siblings_concurrently(self, db_web_worker):
        events = []
        both_started = asyncio.Event()
        started = set()

        async def task(name):
            events.append(f"{name}:start")
            if name in ("web", "worker"):
                started.add(name)
                if len(started) == 2:
                    both_started.set()
                await asyncio.wait_for(both_started.wait(), timeout=2)
            events.append(f"{name}:end")

        report = await GraphScheduler().run(db_web_worker, Direction.UP, task)

        assert report.succeeded
        assert events[:2] == ["db:start", "db:end"]
        assert set(events[2:4]) == {"web:start", "worker:start"}
        assert report.names_in(PipelineState.SUCCEEDED) == ["db", "web", "worker"]

    @pytest.mark.asyncio
    async def test_down_runs_dependents_first(self, db_web_worker):
        order = []

        async def task(name):
            order.append(name)

        report = await GraphScheduler().run(db_web_worker, Direction.DOWN, task)

        assert report.succeeded
        assert order[-1] == "db"
        assert set(order[:2]) == {"web", "worker"}

    @pytest.mark.asyncio
    async def test_node_does_not_wait_for_unrelated_siblings(self):
        graph = _graph(fast=[], slow=[], child=["fast"])
        release_slow = asyncio.Event()
        order = []

        async def task(name):
            if name == "slow":
                await asyncio.wait_for(release_slow.wait(), timeout=2)
            order.append(name)
            if name == "child":
                release_slow.set()

        report = await GraphScheduler().run(graph, Direction.UP, task)

        assert report.succeeded
        assert order == ["fast", "child", "slow"]


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_failure_skips_descendants_only(self):
        graph = _graph(db=[], web=["db"], proxy=["web"], cron=[])
        invoked = []

        async def task(name):
            invoked.append(name)
            if name == "db":
                raise RuntimeError("db exploded\nwith details")

        report = await GraphScheduler().run(graph, Direction.UP, task)

        assert sorted(invoked) == ["cron", "db"]
        assert report.states["db"] is PipelineState.FAILED
        assert report.states["web"] is PipelineState.SKIPPED
        assert report.states["proxy"] is PipelineState.SKIPPED
        assert report.states["cron"] is PipelineState.SUCCEEDED
        assert list(report.failures) == ["db"]
        assert report.failure_lines() == ["db: db exploded"]
        assert not report.succeeded

    @pytest.mark.asyncio
    async def test_down_failure_keeps_dependencies(self, db_web_worker):
        invoked = []

        async def task(name):
            invoked.append(name)
            if name == "web":
                raise RuntimeError("cannot destroy web")

        report = await GraphScheduler().run(db_web_worker, Direction.DOWN, task)

        assert "db" not in invoked
        assert report.states["db"] is PipelineState.SKIPPED
        assert report.states["worker"] is PipelineState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_declined_is_skipped_not_failed(self, db_web_worker):
        async def task(name):
            if name == "web":
                raise UserCancelledError(name)

        report = await GraphScheduler().run(db_web_worker, Direction.DOWN, task)

        assert report.declined == ("web",)
        assert report.failures == {}
        assert report.succeeded
        assert report.states["web"] is PipelineState.SKIPPED
        assert report.states["db"] is PipelineState.SKIPPED
        assert report.states["worker"] is PipelineState.SUCCEEDED


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_event_stops_in_flight_and_pending(self, db_web_worker):
        cancel_event = asyncio.Event()
        saw_cancel = []

        async def task(name):
            cancel_event.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                saw_cancel.append(name)
                raise

        report = await GraphScheduler().run(
            db_web_worker, Direction.UP, task, cancel_event=cancel_event
        )

        assert report.cancelled
        assert saw_cancel == ["db"]
        assert isinstance(report.failures["db"], RunCancelledError)
        assert report.states["web"] is PipelineState.SKIPPED
        assert report.states["worker"] is PipelineState.SKIPPED

    @pytest.mark.asyncio
    async def test_preset_cancel_event_runs_nothing(self, db_web_worker):
        cancel_event = asyncio.Event()
        cancel_event.set()
        invoked = []

        async def task(name):
            invoked.append(name)

        report = await GraphScheduler().run(
            db_web_worker, Direction.UP, task, cancel_event=cancel_event
        )

        assert invoked == []
        assert report.cancelled
        assert report.names_in(PipelineState.SKIPPED) == ["db", "web", "worker"]

    @pytest.mark.asyncio
    async def test_cancelling_run_cancels_tasks_and_reraises(self, db_web_worker):
        started = asyncio.Event()
        saw_cancel = []

        async def task(name):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                saw_cancel.append(name)
                raise

        run = asyncio.create_task(GraphScheduler().run(db_web_worker, Direction.UP, task))
        await asyncio.wait_for(started.wait(), timeout=2)
        run.cancel()

        with pytest.raises(asyncio.CancelledError):
            await run
        assert saw_cancel == ["db"]


class TestEvents:
    @pytest.mark.asyncio
    async def test_lifecycle_events_published(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append((type(event), event.aggregate_id))

        for event_type in (ServiceStarted, ServiceSucceeded, ServiceFailed, ServiceSkipped):
            bus.subscribe(event_type, handler)

        graph = _graph(db=[], web=["db"])

        async def task(name):
            raise RuntimeError("boom")

        await GraphScheduler(bus).run(graph, Direction.UP, task)

        assert received == [
            (ServiceStarted, "db"),
            (ServiceFailed, "db"),
            (ServiceSkipped, "web"),
        ]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_break_run(self, db_web_worker):
        bus = EventBus()

        async def handler(event):
            raise ValueError("handler bug")

        bus.subscribe(ServiceStarted, handler)

        async def task(name):
            return None

        report = await GraphScheduler(bus).run(db_web_worker, Direction.UP, task)
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_success_event_carries_duration(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(ServiceSucceeded, handler)

        async def task(name):
            return None

        await GraphScheduler(bus).run(_graph(db=[]), Direction.UP, task)

        assert len(received) == 1
        assert received[0].direction == "UP"
        assert received[0].duration_ms >= 0
