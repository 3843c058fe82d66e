"""
Proxy servers and the frontend tier that generates traffic.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Union

import numpy as np

from .backend import Backend
from .balancers import LoadBalancer, PolicyKind, create_load_balancer
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class ProxyServer:
    """A proxy forwarding requests through its own load balancer instance."""

    def __init__(
        self,
        backend: Backend,
        policy: Union[str, PolicyKind],
        proxy_id: int,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.backend = backend
        self.id = proxy_id
        self.load_balancer: LoadBalancer = create_load_balancer(policy, backend.num_servers(), rng)

    def send_one_request(self) -> int:
        selected = self.load_balancer.select_upstream_server(self.backend.num_servers())
        self.load_balancer.on_send_request(selected)
        self.backend.on_receive_request(selected, self.id)
        logger.debug("proxy %d -> upstream %d", self.id, selected)
        return selected

    def on_receive_response(self, upstream_server: int) -> None:
        self.load_balancer.on_receive_response(upstream_server)

    def in_flight(self, upstream_server: int) -> int:
        return self.load_balancer.active_requests(upstream_server)


class Frontend:
    """The tier of proxies; together they see about one new request per tick."""

    def __init__(
        self,
        num_proxies: int,
        backend: Backend,
        policy: Union[str, PolicyKind],
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if num_proxies < 1:
            raise ConfigurationError(f"frontend needs at least one proxy, got {num_proxies}")
        self.rng = rng if rng is not None else np.random.default_rng()
        self.proxies: List[ProxyServer] = [
            ProxyServer(backend, policy, i, rng=self.rng) for i in range(num_proxies)
        ]

    def generate_arrivals(self) -> int:
        """Each proxy sends a request with probability 1/num_proxies. Returns how many were sent."""
        n = len(self.proxies)
        sent = 0
        for proxy in self.proxies:
            if self.rng.integers(0, n) == 0:
                proxy.send_one_request()
                sent += 1
        return sent
