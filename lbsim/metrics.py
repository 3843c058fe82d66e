"""
Statistics collected while a simulation runs, and report rendering.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np

from .errors import ConfigurationError, NoCompletedRequestsError

PERCENTILES = [50, 90, 99, 99.9, 100]
DEFAULT_TAIL_FRACTION = 0.001


def percentile(values: List[float], p: float) -> float:
    if not values:
        return float("nan")
    return float(np.percentile(values, p))


def _pkey(p: float) -> str:
    return f"p{p:g}"


def check_tail_fraction(fraction: float) -> None:
    if isinstance(fraction, bool) or not isinstance(fraction, (int, float)) or not 0 < fraction <= 1:
        raise ConfigurationError(f"tail fraction must be in (0, 1], got {fraction!r}")


class MetricsCollector:
    def __init__(self, num_servers: int) -> None:
        # Request-level
        self.latencies: List[int] = []
        self.request_count: int = 0
        self.total_latency: int = 0
        self.completed_per_server: List[int] = [0] * num_servers

        # One sample per tick: max(load) - min(load) across upstream servers
        self.imbalance_samples: List[int] = []
        self.ticks: int = 0

    def record_tick(self) -> None:
        self.ticks += 1

    def record_completion(self, latency: int, server_id: int) -> None:
        self.request_count += 1
        self.total_latency += latency
        self.latencies.append(latency)
        self.completed_per_server[server_id] += 1

    def record_imbalance(self, loads: List[int]) -> int:
        spread = max(loads) - min(loads)
        self.imbalance_samples.append(spread)
        return spread

    def mean_latency(self) -> int:
        if self.request_count == 0:
            raise NoCompletedRequestsError("mean latency requested before any request completed")
        return self.total_latency // self.request_count

    def tail_latency(self, fraction: float = DEFAULT_TAIL_FRACTION) -> int:
        """Latency at the top `fraction` of completed requests.

        With fewer than 1/fraction samples the offset rounds to zero and the
        maximum observed latency is returned.
        """
        check_tail_fraction(fraction)
        if not self.latencies:
            raise NoCompletedRequestsError("tail latency requested before any request completed")
        self.latencies.sort()
        size = len(self.latencies)
        offset = int(size * fraction)
        index = min(size - offset, size - 1)
        return self.latencies[index]

    def build_report(self, tail_fraction: float = DEFAULT_TAIL_FRACTION) -> Dict[str, Any]:
        check_tail_fraction(tail_fraction)
        completed = self.request_count > 0
        return {
            "summary": {
                "ticks": int(self.ticks),
                "completed_requests": int(self.request_count),
                "mean_latency": self.mean_latency() if completed else None,
                "tail_latency": self.tail_latency(tail_fraction) if completed else None,
                "tail_fraction": float(tail_fraction),
            },
            "latency_percentiles": {_pkey(p): percentile(self.latencies, p) for p in PERCENTILES},
            "imbalance": {
                "mean": float(np.mean(self.imbalance_samples)) if self.imbalance_samples else float("nan"),
                **{_pkey(p): percentile(self.imbalance_samples, p) for p in PERCENTILES},
            },
            "completed_per_server": {str(i): n for i, n in enumerate(self.completed_per_server)},
        }


# -----------------------------
# Rendering
# -----------------------------
def dict_to_table(d: Dict[str, Any]) -> str:
    keys_str = [str(k) for k in d.keys()]
    return (
        "| " + " | ".join(keys_str) + " |\n" +
        "| " + " | ".join(["---"] * len(keys_str)) + " |\n" +
        "| " + " | ".join(str(v) for v in d.values()) + " |\n"
    )


def report_markdown(reports: Dict[str, Dict[str, Any]], title: Optional[str] = None) -> str:
    """Render a {policy: report} mapping as a comparison document."""
    md = [f"# {title or 'lbsim Load Balancing Report'}\n"]
    if reports:
        md.append("\n## Comparison\n")
        rows = []
        for name, rep in reports.items():
            s = rep["summary"]
            rows.append(
                f"| {name} | {s['completed_requests']} | {s['mean_latency']} | "
                f"{s['tail_latency']} | {rep['imbalance']['mean']:.2f} |"
            )
        md.append("| policy | completed | mean latency | tail latency | mean imbalance |\n")
        md.append("| --- | --- | --- | --- | --- |\n")
        md.append("\n".join(rows) + "\n")

    for name, rep in reports.items():
        md.append(f"\n## {name}\n")
        md.append(dict_to_table(rep["summary"]))
        md.append("\nLatency (ticks) percentiles\n\n")
        md.append(dict_to_table(rep["latency_percentiles"]))
        md.append("\nLoad imbalance (max - min in-flight) per tick\n\n")
        md.append(dict_to_table(rep["imbalance"]))
        md.append("\nCompleted requests per upstream server\n\n")
        md.append(dict_to_table(rep["completed_per_server"]))
    return "".join(md)
