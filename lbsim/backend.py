"""
Upstream servers and the backend cluster that owns them.

Each upstream server works through its in-flight requests in arrival order,
advancing at most `concurrency` of the oldest ones per tick. A request that
reaches zero remaining service leaves from the front of the queue and is
reported as a Completion.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List

from .errors import ConfigurationError, InvariantViolation

# Number of requests an upstream server processes at the same time.
DEFAULT_CONCURRENCY = 6
# Ticks needed to serve one request.
DEFAULT_SERVICE_TIME = 100


# -----------------------------
# Request records
# -----------------------------
@dataclass
class InFlightRequest:
    proxy_id: int
    remaining: int
    latency: int = 0


@dataclass(frozen=True)
class Completion:
    latency: int
    proxy_id: int
    server_id: int


# -----------------------------
# Upstream server
# -----------------------------
class UpstreamServer:
    def __init__(
        self,
        server_id: int,
        concurrency: int = DEFAULT_CONCURRENCY,
        service_time: int = DEFAULT_SERVICE_TIME,
    ) -> None:
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")
        if service_time < 1:
            raise ConfigurationError(f"service_time must be >= 1, got {service_time}")
        self.server_id = server_id
        self.concurrency = concurrency
        self.service_time = service_time
        self._requests: Deque[InFlightRequest] = deque()

    def on_receive_request(self, proxy_id: int) -> None:
        self._requests.append(InFlightRequest(proxy_id=proxy_id, remaining=self.service_time))

    def process_requests(self) -> List[Completion]:
        """Advance every in-flight request by one tick and pop finished ones."""
        for req in self._requests:
            req.latency += 1
        for i, req in enumerate(self._requests):
            if i >= self.concurrency:
                break
            req.remaining -= 1
            if req.remaining < 0:
                raise InvariantViolation(
                    f"server {self.server_id}: request from proxy {req.proxy_id} "
                    f"has negative remaining service ({req.remaining})"
                )

        completions: List[Completion] = []
        while self._requests and self._requests[0].remaining == 0:
            done = self._requests.popleft()
            completions.append(Completion(latency=done.latency, proxy_id=done.proxy_id, server_id=self.server_id))
        return completions

    def active_requests(self) -> int:
        return len(self._requests)


# -----------------------------
# Backend cluster
# -----------------------------
class Backend:
    """The cluster of upstream servers that actually serve requests."""

    def __init__(
        self,
        num_servers: int,
        concurrency: int = DEFAULT_CONCURRENCY,
        service_time: int = DEFAULT_SERVICE_TIME,
    ) -> None:
        if num_servers < 1:
            raise ConfigurationError(f"backend needs at least one upstream server, got {num_servers}")
        self.upstream_servers: List[UpstreamServer] = [
            UpstreamServer(i, concurrency=concurrency, service_time=service_time) for i in range(num_servers)
        ]

    def num_servers(self) -> int:
        return len(self.upstream_servers)

    def on_receive_request(self, upstream_server: int, proxy_id: int) -> None:
        if not 0 <= upstream_server < len(self.upstream_servers):
            raise IndexError(f"upstream server {upstream_server} out of range [0, {len(self.upstream_servers)})")
        self.upstream_servers[upstream_server].on_receive_request(proxy_id)

    def process_requests(self) -> List[Completion]:
        completions: List[Completion] = []
        for server in self.upstream_servers:
            completions.extend(server.process_requests())
        return completions

    def active_requests(self) -> List[int]:
        """Number of in-flight requests on each upstream server."""
        return [server.active_requests() for server in self.upstream_servers]
