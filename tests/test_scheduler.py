"""Tests for the agent scheduler."""

from __future__ import annotations

import threading
import time

import pytest

from relcache.agents import CachingAgent, ClusterCachingAgent
from relcache.cache import Authority, CacheResult, Entity, ProviderCache
from relcache.keys import application_key
from relcache.scheduler import AgentRunResult, AgentScheduler, RunStatus


class StaticAgent(CachingAgent):
    """Agent returning one application entity, optionally after a delay."""

    provided_data_types = (Authority.AUTHORITATIVE.for_type("application"),)

    def __init__(self, account, delay=0.0, gate=None, error=None):
        super().__init__(account, "us-east-1")
        self.delay = delay
        self.gate = gate
        self.error = error

    def load_data(self):
        if self.gate is not None:
            self.gate.wait(5)
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        key = application_key(self.account)
        return CacheResult({"application": [Entity("application", key, {"name": self.account})]})


@pytest.fixture
def make_scheduler(store):
    created = []

    def factory(agents, **kwargs):
        scheduler = AgentScheduler(agents, ProviderCache(store), **kwargs)
        created.append(scheduler)
        return scheduler

    yield factory
    for scheduler in created:
        scheduler.stop(timeout=1)


class TestAgentScheduler:
    """Tests for AgentScheduler.run_once and friends."""

    def test_successful_run_is_written(self, store, make_scheduler):
        """Test a successful run reports counts and lands in the store."""
        results = make_scheduler([StaticAgent("web")]).run_once()

        assert [r.status for r in results] == [RunStatus.SUCCESS]
        assert results[0].written == {"application": 1}
        assert store.get("application", application_key("web")) is not None

    def test_results_follow_agent_order(self, make_scheduler):
        """Test results come back in agent order."""
        agents = [StaticAgent("b", delay=0.05), StaticAgent("a")]

        results = make_scheduler(agents, max_workers=2).run_once()

        assert [r.agent_type for r in results] == [a.agent_type for a in agents]

    def test_failed_run_keeps_previous_state(self, store, fetcher, make_scheduler):
        """Test a listing failure leaves last cycle's entities visible."""
        scheduler = make_scheduler([ClusterCachingAgent(fetcher, "prod", "us-east-1")])
        scheduler.run_once()
        before = store.stats()

        fetcher.fail_listing = True
        results = scheduler.run_once()

        assert results[0].status is RunStatus.FAILED
        assert "AccessDenied" in results[0].error
        assert store.stats() == before

    def test_crashing_agent_is_reported(self, make_scheduler):
        """Test an unexpected exception fails only that agent."""
        results = make_scheduler([StaticAgent("bad", error=RuntimeError("boom")), StaticAgent("good")]).run_once()

        assert [r.status for r in results] == [RunStatus.FAILED, RunStatus.SUCCESS]
        assert results[0].error == "boom"

    def test_timeout_is_not_written(self, store, make_scheduler):
        """Test a run exceeding the timeout writes nothing."""
        gate = threading.Event()
        scheduler = make_scheduler([StaticAgent("slow", gate=gate)], agent_timeout=0.2)
        try:
            results = scheduler.run_once()
        finally:
            gate.set()

        assert results[0].status is RunStatus.TIMEOUT
        assert store.get_identifiers("application") == set()

    def test_timeout_counts_from_agent_start(self, make_scheduler):
        """Test time spent queued behind another agent is not charged."""
        agents = [StaticAgent("first", delay=0.3), StaticAgent("second", delay=0.3)]

        results = make_scheduler(agents, agent_timeout=0.5, max_workers=1).run_once()

        assert [r.status for r in results] == [RunStatus.SUCCESS, RunStatus.SUCCESS]

    def test_hung_agent_does_not_stall_queued_agents(self, store, make_scheduler):
        """Test agents stuck behind a hung run time out at the cycle deadline instead of waiting forever."""
        gate = threading.Event()
        agents = [StaticAgent("hung", gate=gate), StaticAgent("queued")]
        scheduler = make_scheduler(agents, agent_timeout=0.3, max_workers=1)
        clock = time.monotonic()
        try:
            results = scheduler.run_once()
            elapsed = time.monotonic() - clock
        finally:
            gate.set()

        assert [r.status for r in results] == [RunStatus.TIMEOUT, RunStatus.TIMEOUT]
        assert elapsed < 2
        assert store.get_identifiers("application") == set()

    def test_statuses_keep_latest_run(self, make_scheduler):
        """Test statuses reports one latest result per agent."""
        scheduler = make_scheduler([StaticAgent("web")])
        scheduler.run_once()
        scheduler.run_once()

        statuses = scheduler.statuses()
        assert len(statuses) == 1
        assert statuses[0].ok

    def test_background_loop(self, make_scheduler):
        """Test start runs cycles until stop."""
        scheduler = make_scheduler([StaticAgent("web")])
        scheduler.start(interval=0.05)

        deadline = time.monotonic() + 5
        while not scheduler.statuses() and time.monotonic() < deadline:
            time.sleep(0.01)
        scheduler.stop(timeout=1)

        assert scheduler.statuses()[0].status is RunStatus.SUCCESS


class TestAgentRunResult:
    """Tests for AgentRunResult."""

    def test_to_dict(self):
        """Test the JSON shape of a run result."""
        run = AgentRunResult("a/b/C", RunStatus.TIMEOUT, "2024-01-01T00:00:00+00:00", duration=1.23456, error="timeout")

        assert run.to_dict() == {
            "agent_type": "a/b/C",
            "status": "timeout",
            "started_at": "2024-01-01T00:00:00+00:00",
            "duration": 1.235,
            "written": {},
            "error": "timeout",
        }
        assert not run.ok
