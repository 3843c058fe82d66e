"""
The simulation driver.

One tick runs in a fixed order:
  1. every upstream server advances its in-flight requests,
  2. completed responses are attributed back to their proxies and folded into
     the latency statistics, and the load spread is recorded,
  3. the completions of the tick are dropped,
  4. the frontend generates new arrivals.

A request sent in step 4 of tick T can therefore complete no earlier than
tick T+1.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, TextIO, Union

import numpy as np
import simpy

from .backend import DEFAULT_CONCURRENCY, DEFAULT_SERVICE_TIME, Backend, Completion
from .balancers import PolicyKind
from .errors import ConfigurationError
from .frontend import Frontend
from .metrics import DEFAULT_TAIL_FRACTION, MetricsCollector

logger = logging.getLogger(__name__)


class LBSimulator:
    def __init__(
        self,
        proxy_servers: int,
        backend_servers: int,
        lb_policy: Union[str, PolicyKind],
        concurrency: int = DEFAULT_CONCURRENCY,
        service_time: int = DEFAULT_SERVICE_TIME,
        seed: Optional[int] = None,
        output: Optional[TextIO] = None,
    ) -> None:
        # Validate everything before building any state.
        self.policy = PolicyKind.parse(lb_policy)
        if proxy_servers < 1:
            raise ConfigurationError(f"proxy_servers must be >= 1, got {proxy_servers}")
        if backend_servers < 1:
            raise ConfigurationError(f"backend_servers must be >= 1, got {backend_servers}")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
            raise ConfigurationError(f"seed must be a non-negative integer, got {seed!r}")

        self.rng = np.random.default_rng(seed)
        self.backend = Backend(backend_servers, concurrency=concurrency, service_time=service_time)
        self.frontend = Frontend(proxy_servers, self.backend, self.policy, rng=self.rng)
        self.metrics = MetricsCollector(backend_servers)
        self.output = output
        self.timer = 0
        logger.info(
            "simulator ready: policy=%s proxies=%d servers=%d concurrency=%d service_time=%d seed=%s",
            self.policy.value, proxy_servers, backend_servers, concurrency, service_time, seed,
        )

    # --------------- Tick loop ---------------
    def run_one_tick(self) -> List[Completion]:
        completions = self.backend.process_requests()
        self.collect_stats(completions)
        # Completions are not carried into the next tick.
        self.frontend.generate_arrivals()
        return completions

    def collect_stats(self, completions: List[Completion]) -> None:
        self.timer += 1
        self.metrics.record_tick()
        for c in completions:
            self.frontend.proxies[c.proxy_id].on_receive_response(c.server_id)
            self.metrics.record_completion(c.latency, c.server_id)
        spread = self.metrics.record_imbalance(self.backend.active_requests())
        if self.output is not None:
            self.output.write(f"{spread} ")

    def run(self, ticks: int, progress_interval: int = 0, tail_fraction: float = DEFAULT_TAIL_FRACTION) -> Dict[str, Any]:
        """Advance `ticks` ticks on a simpy timeline and return the report."""
        if ticks < 0:
            raise ConfigurationError(f"ticks must be >= 0, got {ticks}")
        self._wall_start = time.time()
        if ticks > 0:
            start = self.timer
            env = simpy.Environment(initial_time=start)
            end = start + ticks
            env.process(self._ticker(env))
            if progress_interval > 0:
                env.process(self._progress_logger(env, start, end, progress_interval))
            env.run(until=end)
        logger.info(
            "%s: ran %d ticks, %d requests completed in %.2fs wall time",
            self.policy.value, ticks, self.metrics.request_count, time.time() - self._wall_start,
        )
        return self.report(tail_fraction)

    def _ticker(self, env: simpy.Environment):
        while True:
            self.run_one_tick()
            yield env.timeout(1)

    def _progress_logger(self, env: simpy.Environment, start: int, end: int, interval: int):
        while True:
            yield env.timeout(interval)
            now = int(env.now)
            elapsed = now - start
            remaining = max(0, end - now)
            wall_elapsed = time.time() - self._wall_start
            est_wall_remaining = wall_elapsed * (remaining / float(elapsed)) if elapsed > 0 else 0.0
            logger.info(
                "[sim-progress] policy=%s tick=%d elapsed=%d remaining=%d completed=%d wall_elapsed_s=%.2f est_wall_remaining_s=%.2f",
                self.policy.value, now, elapsed, remaining, self.metrics.request_count, wall_elapsed, est_wall_remaining,
            )

    # --------------- Queries ---------------
    def mean_latency(self) -> int:
        return self.metrics.mean_latency()

    def tail_latency(self, fraction: float = DEFAULT_TAIL_FRACTION) -> int:
        return self.metrics.tail_latency(fraction)

    def in_flight(self) -> int:
        return sum(self.backend.active_requests())

    def report(self, tail_fraction: float = DEFAULT_TAIL_FRACTION) -> Dict[str, Any]:
        report = self.metrics.build_report(tail_fraction)
        report["summary"]["policy"] = self.policy.value
        report["summary"]["in_flight_at_end"] = self.in_flight()
        return report
