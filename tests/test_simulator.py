"""Tests for the tick-driven simulation driver."""

from __future__ import annotations

import io

import pytest

from lbsim.errors import ConfigurationError, NoCompletedRequestsError
from lbsim.simulator import LBSimulator


def advance_without_arrivals(sim: LBSimulator, ticks: int) -> None:
    for _ in range(ticks):
        sim.collect_stats(sim.backend.process_requests())


class TestRoundTrip:
    def test_single_request_latency(self):
        sim = LBSimulator(1, 1, "round_robin", concurrency=6, service_time=100)
        proxy = sim.frontend.proxies[0]
        proxy.send_one_request()

        advance_without_arrivals(sim, 99)
        assert sim.backend.active_requests() == [1]
        assert sim.metrics.request_count == 0

        advance_without_arrivals(sim, 1)
        assert sim.backend.active_requests() == [0]
        assert sim.metrics.latencies == [100]
        assert proxy.in_flight(0) == 0
        assert sim.mean_latency() == 100
        assert sim.tail_latency() == 100

    def test_arrivals_complete_no_earlier_than_next_tick(self):
        sim = LBSimulator(1, 1, "round_robin", service_time=1)

        assert sim.run_one_tick() == []
        done = sim.run_one_tick()
        assert len(done) == 1
        assert done[0].latency == 1


class TestConservation:
    @pytest.mark.parametrize("policy", ["round_robin", "random_select", "least_request"])
    def test_proxy_counters_sum_to_server_load(self, policy):
        sim = LBSimulator(5, 4, policy, service_time=20, seed=3)
        for _ in range(300):
            sim.run_one_tick()
            loads = sim.backend.active_requests()
            for server in range(4):
                counted = sum(p.in_flight(server) for p in sim.frontend.proxies)
                assert counted == loads[server]


class TestOutput:
    def test_one_imbalance_sample_per_tick(self):
        sink = io.StringIO()
        sim = LBSimulator(2, 3, "round_robin", seed=0, output=sink)
        for _ in range(5):
            sim.run_one_tick()

        values = [int(v) for v in sink.getvalue().split()]
        assert len(values) == 5
        assert values == sim.metrics.imbalance_samples
        assert all(v >= 0 for v in values)

    def test_spread_is_max_minus_min(self):
        sink = io.StringIO()
        sim = LBSimulator(1, 3, "round_robin", output=sink)
        sim.backend.on_receive_request(0, 0)
        sim.backend.on_receive_request(0, 0)
        sim.frontend.proxies[0].load_balancer.on_send_request(0)
        sim.frontend.proxies[0].load_balancer.on_send_request(0)
        advance_without_arrivals(sim, 1)

        assert sink.getvalue() == "2 "


class TestRun:
    def test_runs_requested_number_of_ticks(self):
        sim = LBSimulator(4, 4, "least_request", seed=1)
        report = sim.run(500)

        assert sim.timer == 500
        assert report["summary"]["ticks"] == 500
        assert report["summary"]["policy"] == "least_request"
        assert report["summary"]["completed_requests"] == sim.metrics.request_count
        assert len(sim.metrics.imbalance_samples) == 500

    def test_successive_runs_continue_the_timeline(self):
        sim = LBSimulator(2, 2, "round_robin", seed=1)
        sim.run(50)
        sim.run(25)
        assert sim.timer == 75

    def test_zero_ticks(self):
        sim = LBSimulator(1, 1, "round_robin")
        report = sim.run(0)
        assert report["summary"]["completed_requests"] == 0
        assert report["summary"]["mean_latency"] is None

    def test_same_seed_same_result(self):
        a = LBSimulator(5, 6, "random_select", seed=9).run(1000)
        b = LBSimulator(5, 6, "random_select", seed=9).run(1000)
        assert a["summary"] == b["summary"]
        assert a["completed_per_server"] == b["completed_per_server"]

    def test_progress_logging(self, caplog):
        sim = LBSimulator(2, 2, "round_robin", seed=1)
        with caplog.at_level("INFO", logger="lbsim"):
            sim.run(300, progress_interval=100)
        progress = [r for r in caplog.records if "[sim-progress]" in r.getMessage()]
        assert len(progress) == 2

    def test_every_request_accounted_for(self):
        sim = LBSimulator(3, 5, "least_request", service_time=10, seed=4)
        sent = 0
        for _ in range(400):
            sim.collect_stats(sim.backend.process_requests())
            sent += sim.frontend.generate_arrivals()
        assert sim.metrics.request_count + sim.in_flight() == sent


class TestConfiguration:
    def test_unknown_policy(self):
        with pytest.raises(ConfigurationError):
            LBSimulator(1, 1, "Weighted Round Robin")

    @pytest.mark.parametrize("proxies, servers", [(0, 1), (1, 0), (-1, 3)])
    def test_non_positive_sizes(self, proxies, servers):
        with pytest.raises(ConfigurationError):
            LBSimulator(proxies, servers, "round_robin")

    def test_negative_ticks(self):
        with pytest.raises(ConfigurationError):
            LBSimulator(1, 1, "round_robin").run(-1)


class TestQueries:
    def test_no_completions(self):
        sim = LBSimulator(1, 1, "round_robin")
        with pytest.raises(NoCompletedRequestsError):
            sim.mean_latency()
        with pytest.raises(NoCompletedRequestsError):
            sim.tail_latency()


class TestProgressAcrossRuns:
    def test_second_run_measures_elapsed_from_its_own_start(self, caplog):
        sim = LBSimulator(2, 2, "round_robin", seed=1)
        sim.run(200)
        with caplog.at_level("INFO", logger="lbsim"):
            sim.run(300, progress_interval=100)
        progress = [r.getMessage() for r in caplog.records if "[sim-progress]" in r.getMessage()]

        assert len(progress) == 2
        assert "tick=300 elapsed=100 remaining=200" in progress[0]
        assert "tick=400 elapsed=200 remaining=100" in progress[1]


@pytest.mark.parametrize("seed", [1.5, "7", -1, True])
def test_rejects_malformed_seed(seed):
    with pytest.raises(ConfigurationError):
        LBSimulator(1, 1, "round_robin", seed=seed)
