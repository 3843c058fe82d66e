"""Exception types raised by lbsim."""

from __future__ import annotations


class LBSimError(Exception):
    """Base class for every error raised by the simulator."""


class ConfigurationError(LBSimError, ValueError):
    """Invalid simulator configuration (unknown policy, non-positive sizes, ...)."""


class NoCompletedRequestsError(LBSimError, LookupError):
    """A latency statistic was requested before any request completed."""


class InvariantViolation(LBSimError, AssertionError):
    """Internal bookkeeping is inconsistent; the run cannot be trusted."""
