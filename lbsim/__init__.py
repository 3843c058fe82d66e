"""
lbsim package

Tick-driven simulation comparing load balancing policies between a tier of
proxies and a tier of upstream servers.
"""
import logging

from .backend import Backend, Completion, UpstreamServer
from .balancers import LeastRequests, LoadBalancer, PolicyKind, RandomSelect, RoundRobin, create_load_balancer
from .errors import ConfigurationError, InvariantViolation, LBSimError, NoCompletedRequestsError
from .frontend import Frontend, ProxyServer
from .logging_config import configure_from_env, enable_console_logging, enable_file_logging, set_level
from .simulator import LBSimulator

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Backend",
    "Completion",
    "ConfigurationError",
    "Frontend",
    "InvariantViolation",
    "LBSimError",
    "LBSimulator",
    "LeastRequests",
    "LoadBalancer",
    "NoCompletedRequestsError",
    "PolicyKind",
    "ProxyServer",
    "RandomSelect",
    "RoundRobin",
    "UpstreamServer",
    "configure_from_env",
    "create_load_balancer",
    "enable_console_logging",
    "enable_file_logging",
    "set_level",
]
__version__ = "0.1.0"
