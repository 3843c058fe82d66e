#!/usr/bin/env python3
"""
lbsim command line

Runs the tick-driven load balancing simulation once per configured policy
(same seed for every policy) and writes:
- <output_dir>/<policy>.txt: one load-imbalance sample per tick
- report.json / report.md: latency and imbalance comparison across policies

Note:
- Time is measured in ticks throughout; no wall-clock time is simulated
"""
from __future__ import annotations

import argparse
import json
import math
import os
import sys
from typing import Any, Dict, List, Optional

from .balancers import PolicyKind
from .errors import ConfigurationError
from .logging_config import LOG_LEVELS, configure_from_env, enable_console_logging
from .metrics import check_tail_fraction, report_markdown
from .simulator import LBSimulator


# -----------------------------
# Config
# -----------------------------
DEFAULT_CONFIG = {
    "simulation": {
        "seed": 42,
        "ticks": 200_000,
        "progress_interval_ticks": 50_000,
    },
    "topology": {
        "proxies": 10,
        "nodes": 20,
    },
    "node": {
        "concurrency": 6,
        "service_time": 100,
    },
    "load_balancer": {
        "policies": [kind.value for kind in PolicyKind],
    },
    "reporting": {
        "output_dir": "reports",
        "writers": ["json", "markdown"],
        "tail_fraction": 0.001,
    },
}


def merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str]) -> Dict[str, Any]:
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))  # deep copy
    if path:
        try:
            with open(path, "r") as f:
                user_cfg = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"cannot read config {path}: {e}") from e
        if not isinstance(user_cfg, dict):
            raise ConfigurationError(f"config {path} must contain a JSON object")
        cfg = merge(cfg, user_cfg)
    return cfg


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _json_safe(value: Any) -> Any:
    # NaN percentiles (no samples) are written as null.
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    return value


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = cfg.setdefault(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"config section {name!r} must be an object, got {section!r}")
    return section


def _require_int(section: Dict[str, Any], name: str, key: str, minimum: int) -> None:
    value = section.get(key)
    # bool is an int subclass; JSON true/false is never a valid count.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name}.{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{name}.{key} must be >= {minimum}, got {value}")


def validate_config(cfg: Dict[str, Any]) -> List[PolicyKind]:
    """Check a merged config before any simulation runs. Returns the policies to run."""
    sim_cfg = _section(cfg, "simulation")
    topo_cfg = _section(cfg, "topology")
    node_cfg = _section(cfg, "node")
    lb_cfg = _section(cfg, "load_balancer")
    rep_cfg = _section(cfg, "reporting")

    _require_int(topo_cfg, "topology", "proxies", 1)
    _require_int(topo_cfg, "topology", "nodes", 1)
    _require_int(node_cfg, "node", "concurrency", 1)
    _require_int(node_cfg, "node", "service_time", 1)
    _require_int(sim_cfg, "simulation", "ticks", 0)
    _require_int(sim_cfg, "simulation", "progress_interval_ticks", 0)
    if sim_cfg.get("seed") is not None:
        _require_int(sim_cfg, "simulation", "seed", 0)
    check_tail_fraction(rep_cfg.get("tail_fraction"))
    if not isinstance(rep_cfg.get("output_dir"), str) or not rep_cfg["output_dir"]:
        raise ConfigurationError(f"reporting.output_dir must be a path, got {rep_cfg.get('output_dir')!r}")

    names = lb_cfg.get("policies")
    if not isinstance(names, list) or not names:
        raise ConfigurationError("load_balancer.policies must be a non-empty list")
    return [PolicyKind.parse(p) for p in names]


# -----------------------------
# Running and reporting
# -----------------------------
def run_policy(policy: PolicyKind, config: Dict[str, Any]) -> Dict[str, Any]:
    sim_cfg = config.get("simulation", {})
    topo_cfg = config.get("topology", {})
    node_cfg = config.get("node", {})
    rep_cfg = config.get("reporting", {})
    outdir = rep_cfg["output_dir"]
    ensure_dir(outdir)

    path = os.path.join(outdir, f"{policy.value}.txt")
    with open(path, "w") as output:
        sim = LBSimulator(
            proxy_servers=topo_cfg["proxies"],
            backend_servers=topo_cfg["nodes"],
            lb_policy=policy,
            concurrency=node_cfg["concurrency"],
            service_time=node_cfg["service_time"],
            seed=sim_cfg.get("seed"),
            output=output,
        )
        report = sim.run(
            sim_cfg["ticks"],
            progress_interval=sim_cfg["progress_interval_ticks"],
            tail_fraction=rep_cfg["tail_fraction"],
        )
    print(f"Wrote imbalance series: {path}")

    summary = report["summary"]
    print(f"[{policy.display_name}] mean latency: {summary['mean_latency']}")
    print(f"[{policy.display_name}] tail latency: {summary['tail_latency']}")
    return report


def write_reports(reports: Dict[str, Dict[str, Any]], config: Dict[str, Any]) -> None:
    rep_cfg = config.get("reporting", {})
    writers = rep_cfg.get("writers", ["json", "markdown"])
    outdir = rep_cfg.get("output_dir", "reports")
    ensure_dir(outdir)
    if "json" in writers:
        path = os.path.join(outdir, "report.json")
        with open(path, "w") as f:
            json.dump(_json_safe(reports), f, indent=2)
        print(f"Wrote JSON report: {path}")
    if "markdown" in writers:
        path = os.path.join(outdir, "report.md")
        with open(path, "w") as f:
            f.write(report_markdown(reports))
        print(f"Wrote Markdown report: {path}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="lbsim load balancing simulation")
    parser.add_argument("--config", type=str, help="Path to JSON config", default=None)
    parser.add_argument(
        "--policy",
        action="append",
        choices=[kind.value for kind in PolicyKind],
        help="Policy to simulate (repeatable; default: all)",
    )
    parser.add_argument("--proxies", type=int, help="Override number of proxies")
    parser.add_argument("--nodes", type=int, help="Override number of upstream servers")
    parser.add_argument("--ticks", type=int, help="Override number of ticks to simulate")
    parser.add_argument("--seed", type=int, help="Override RNG seed")
    parser.add_argument("--output-dir", type=str, help="Override report output dir")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=list(LOG_LEVELS),
        help="Enable console logging at this level",
    )
    args = parser.parse_args(argv)

    try:
        if args.log_level:
            enable_console_logging(level=args.log_level)
        else:
            configure_from_env()

        cfg = load_config(args.config)
        if args.policy:
            _section(cfg, "load_balancer")["policies"] = args.policy
        if args.proxies is not None:
            _section(cfg, "topology")["proxies"] = args.proxies
        if args.nodes is not None:
            _section(cfg, "topology")["nodes"] = args.nodes
        if args.ticks is not None:
            _section(cfg, "simulation")["ticks"] = args.ticks
        if args.seed is not None:
            _section(cfg, "simulation")["seed"] = int(args.seed)
        if args.output_dir:
            _section(cfg, "reporting")["output_dir"] = args.output_dir

        policies = validate_config(cfg)

        reports: Dict[str, Dict[str, Any]] = {}
        for policy in policies:
            reports[policy.value] = run_policy(policy, cfg)
    except ConfigurationError as e:
        print(f"lbsim: configuration error: {e}", file=sys.stderr)
        return 2

    write_reports(reports, cfg)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
