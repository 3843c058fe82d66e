"""
Load balancing policies used by proxy servers.

Every policy answers one question, `select_upstream_server(num_servers)`, and
keeps its own count of outstanding requests per upstream server. Those counts
are the proxy-local view of load: a proxy only knows about requests it sent
itself, never the true queue length of a server.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

import numpy as np

from .errors import ConfigurationError, InvariantViolation


class PolicyKind(str, Enum):
    ROUND_ROBIN = "round_robin"
    RANDOM_SELECT = "random_select"
    LEAST_REQUEST = "least_request"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, name: Union[str, "PolicyKind"]) -> "PolicyKind":
        """Resolve an enum value ("round_robin") or display name ("Round Robin")."""
        if isinstance(name, PolicyKind):
            return name
        key = str(name).strip()
        for kind in cls:
            if key == kind.value or key == kind.display_name:
                return kind
        valid = ", ".join(k.value for k in cls)
        raise ConfigurationError(f"unknown load balancing policy {name!r} (expected one of: {valid})")


_DISPLAY_NAMES = {
    PolicyKind.ROUND_ROBIN: "Round Robin",
    PolicyKind.RANDOM_SELECT: "Random Select",
    PolicyKind.LEAST_REQUEST: "Least Request",
}


# -----------------------------
# Base policy
# -----------------------------
class LoadBalancer:
    kind: PolicyKind

    def __init__(self, num_servers: int) -> None:
        self._active_requests: List[int] = [0] * num_servers

    def select_upstream_server(self, num_servers: int) -> int:
        raise NotImplementedError

    def on_send_request(self, upstream_server: int) -> None:
        self._active_requests[upstream_server] += 1

    def on_receive_response(self, upstream_server: int) -> None:
        if self._active_requests[upstream_server] <= 0:
            raise InvariantViolation(f"response from upstream server {upstream_server} with no request outstanding")
        self._active_requests[upstream_server] -= 1

    def active_requests(self, upstream_server: int) -> int:
        return self._active_requests[upstream_server]


class RoundRobin(LoadBalancer):
    kind = PolicyKind.ROUND_ROBIN

    def __init__(self, num_servers: int) -> None:
        super().__init__(num_servers)
        # Pre-incremented on every call, so the first pick is server 0.
        self._cur_idx = -1

    def select_upstream_server(self, num_servers: int) -> int:
        self._cur_idx = (self._cur_idx + 1) % num_servers
        return self._cur_idx


class RandomSelect(LoadBalancer):
    kind = PolicyKind.RANDOM_SELECT

    def __init__(self, num_servers: int, rng: np.random.Generator) -> None:
        super().__init__(num_servers)
        self.rng = rng

    def select_upstream_server(self, num_servers: int) -> int:
        return int(self.rng.integers(0, num_servers))


class LeastRequests(LoadBalancer):
    """Power of two choices: sample two distinct servers, keep the less loaded one.

    Ties go to the second sample.
    """

    kind = PolicyKind.LEAST_REQUEST

    def __init__(self, num_servers: int, rng: np.random.Generator) -> None:
        super().__init__(num_servers)
        self.rng = rng

    def select_upstream_server(self, num_servers: int) -> int:
        if num_servers == 1:
            return 0
        server1 = int(self.rng.integers(0, num_servers))
        server2 = server1
        while server2 == server1:
            server2 = int(self.rng.integers(0, num_servers))
        if self._active_requests[server1] < self._active_requests[server2]:
            return server1
        return server2


def create_load_balancer(
    policy: Union[str, PolicyKind],
    num_servers: int,
    rng: Optional[np.random.Generator] = None,
) -> LoadBalancer:
    kind = PolicyKind.parse(policy)
    if rng is None:
        rng = np.random.default_rng()
    if kind is PolicyKind.ROUND_ROBIN:
        return RoundRobin(num_servers)
    if kind is PolicyKind.RANDOM_SELECT:
        return RandomSelect(num_servers, rng)
    return LeastRequests(num_servers, rng)
