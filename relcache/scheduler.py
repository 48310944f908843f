"""Refresh cycles for caching agents.

Agents run concurrently on a thread pool. Each run is bounded by a
timeout measured from when the agent actually starts, and an agent still
queued when the cycle deadline passes times out without running. A run
that times out or fails is never written, so the previous cycle's
entities stay visible.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from relcache import metrics
from relcache.agents.base import CachingAgent
from relcache.cache.provider_cache import ProviderCache
from relcache.cache.result import CacheResult
from relcache.constants import DEFAULT_AGENT_TIMEOUT, DEFAULT_MAX_AGENT_WORKERS
from relcache.errors import AgentFetchFailure

logger = logging.getLogger(__name__)

# How long to wait for a queued agent to be picked up before checking again.
_START_POLL = 0.5


class RunStatus(Enum):
    """Outcome of one agent run."""
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class AgentRunResult:
    """Outcome of one agent run."""
    agent_type: str
    status: RunStatus
    started_at: str
    duration: float = 0.0
    written: Dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "agent_type": self.agent_type,
            "status": self.status.value,
            "started_at": self.started_at,
            "duration": round(self.duration, 3),
            "written": self.written,
            "error": self.error,
        }


class AgentScheduler:
    """Runs every agent once per cycle and writes successful results.

    Example:
        >>> scheduler = AgentScheduler(agents, ProviderCache(store), agent_timeout=60)
        >>> results = scheduler.run_once()
        >>> scheduler.start(interval=300)
        >>> scheduler.stop()
    """

    def __init__(
        self,
        agents: Iterable[CachingAgent],
        provider_cache: ProviderCache,
        agent_timeout: float = DEFAULT_AGENT_TIMEOUT,
        max_workers: int = DEFAULT_MAX_AGENT_WORKERS,
    ):
        self.agents: List[CachingAgent] = list(agents)
        self.provider_cache = provider_cache
        self.agent_timeout = agent_timeout
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="relcache-agent")
        self._statuses: Dict[str, AgentRunResult] = {}
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> List[AgentRunResult]:
        """Run one refresh cycle across all agents.

        Returns:
            One AgentRunResult per agent, in agent order
        """
        with self._cycle_lock:
            starts: Dict[int, float] = {}
            # agents still queued at this point time out without running
            waves = math.ceil(len(self.agents) / self.max_workers)
            queue_deadline = time.monotonic() + self.agent_timeout * waves
            submitted = [
                (agent, self._executor.submit(self._load, agent, starts)) for agent in self.agents
            ]
            results = [self._collect(agent, future, starts, queue_deadline) for agent, future in submitted]

        failed = sum(1 for r in results if not r.ok)
        logger.info("Refresh cycle finished: %d agents, %d failed", len(results), failed)
        return results

    def start(self, interval: float) -> None:
        """Repeat refresh cycles on a daemon thread until stop()."""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, args=(interval,), name="relcache-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
        self._executor.shutdown(wait=False, cancel_futures=True)

    def statuses(self) -> List[AgentRunResult]:
        """Latest run result per agent."""
        with self._lock:
            return list(self._statuses.values())

    def _loop(self, interval: float) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Refresh cycle crashed")
            self._stop.wait(interval)

    @staticmethod
    def _load(agent: CachingAgent, starts: Dict[int, float]) -> CacheResult:
        starts[id(agent)] = time.monotonic()
        return agent.load_data()

    def _wait(
        self, agent: CachingAgent, future: Future, starts: Dict[int, float], queue_deadline: float
    ) -> CacheResult:
        while True:
            started = starts.get(id(agent))
            if started is None:
                queued = queue_deadline - time.monotonic()
                if queued <= 0:
                    raise FutureTimeoutError()
                try:
                    return future.result(timeout=min(_START_POLL, queued))
                except FutureTimeoutError:
                    continue
            remaining = started + self.agent_timeout - time.monotonic()
            if remaining <= 0:
                raise FutureTimeoutError()
            return future.result(timeout=remaining)

    def _collect(
        self, agent: CachingAgent, future: Future, starts: Dict[int, float], queue_deadline: float
    ) -> AgentRunResult:
        agent_type = agent.agent_type
        started_at = datetime.now(timezone.utc).isoformat()
        clock = time.monotonic()

        try:
            result = self._wait(agent, future, starts, queue_deadline)
            written = self.provider_cache.put_cache_result(agent_type, agent.provided_data_types, result)
            run = AgentRunResult(agent_type, RunStatus.SUCCESS, started_at, written=written)
        except FutureTimeoutError:
            if future.cancel():
                logger.error("%s never got a worker before the cycle deadline; skipped", agent_type)
            else:
                logger.error("%s timed out after %ss; keeping previous cache state", agent_type, self.agent_timeout)
            run = AgentRunResult(agent_type, RunStatus.TIMEOUT, started_at, error="timeout")
        except AgentFetchFailure as e:
            logger.error("%s failed: %s; keeping previous cache state", agent_type, e)
            run = AgentRunResult(agent_type, RunStatus.FAILED, started_at, error=str(e))
        except Exception as e:
            logger.exception("%s crashed", agent_type)
            run = AgentRunResult(agent_type, RunStatus.FAILED, started_at, error=str(e))

        started = starts.get(id(agent))
        run.duration = time.monotonic() - (started if started is not None else clock)
        metrics.record_agent_run(agent_type, run.status.value, run.duration, run.written)
        with self._lock:
            self._statuses[agent_type] = run
        return run
