from __future__ import annotations

import numpy as np
import pytest

from ptp_sim.network import NetworkModel, advance_packets, progress_increment
from ptp_sim.packet import Packet, PacketType


def _packet(packet_id: str, progress: float) -> Packet:
    return Packet(
        id=packet_id,
        type=PacketType.SYNC,
        from_id="master",
        to_id="slave-1",
        timestamp=0.0,
        progress=progress,
    )


@pytest.mark.parametrize(
    "latency, expected",
    [(50.0, 0.02), (500.0, 0.002), (10.0, 0.1), (5.0, 0.1), (0.0, 0.1)],
)
def test_progress_increment_inverse_to_latency_with_floor(latency: float, expected: float) -> None:
    assert progress_increment(latency) == pytest.approx(expected)


def test_advance_packets_splits_arrivals_in_insertion_order() -> None:
    packets = (
        _packet("a", 0.99),
        _packet("b", 0.5),
        _packet("c", 0.985),
        _packet("d", -0.05),
    )
    result = advance_packets(packets, latency_ms=50.0)

    assert [p.id for p in result.arrived] == ["a", "c"]
    assert all(p.progress == 1.0 for p in result.arrived)
    assert [p.id for p in result.in_flight] == ["b", "d"]
    assert result.in_flight[0].progress == pytest.approx(0.52)
    assert result.in_flight[1].progress == pytest.approx(-0.03)
    # inputs untouched
    assert packets[0].progress == 0.99


def test_advance_packets_crossing_one_arrives() -> None:
    result = advance_packets((_packet("x", 0.95),), latency_ms=10.0)
    assert [p.id for p in result.arrived] == ["x"]
    assert result.in_flight == ()


def test_staggered_packet_trails_and_arrives_later() -> None:
    packets = (_packet("sync", 0.0), _packet("follow", -0.05))
    arrivals = []
    for tick in range(1, 200):
        result = advance_packets(packets, latency_ms=50.0)
        arrivals.extend((tick, p.id) for p in result.arrived)
        packets = result.in_flight
        if not packets:
            break
    assert [packet_id for _, packet_id in arrivals] == ["sync", "follow"]
    assert arrivals[0][0] < arrivals[1][0]


def test_network_model_clamps_settings() -> None:
    network = NetworkModel(base_latency_ms=5.0, jitter_ms=500.0)
    assert network.base_latency_ms == 10.0
    assert network.jitter_ms == 100.0
    assert network.set_latency(1000.0) == 500.0
    assert network.set_jitter(-3.0) == 0.0
    assert network.progress_increment() == pytest.approx(0.002)


def test_network_model_rejects_inverted_latency_range() -> None:
    with pytest.raises(ValueError):
        NetworkModel(min_latency_ms=100.0, max_latency_ms=50.0)


@pytest.mark.parametrize("latency", [10.0, 50.0, 123.4, 500.0])
def test_zero_jitter_delay_equals_base_latency(latency: float) -> None:
    network = NetworkModel(base_latency_ms=latency, jitter_ms=0.0, rng=np.random.default_rng(1))
    for _ in range(20):
        assert network.sample_delay() == latency


def test_jittered_delay_stays_within_band() -> None:
    network = NetworkModel(base_latency_ms=50.0, jitter_ms=20.0, rng=np.random.default_rng(7))
    samples = np.array([network.sample_delay() for _ in range(500)])
    assert samples.min() >= 30.0
    assert samples.max() <= 70.0
    assert samples.std() > 0.0
