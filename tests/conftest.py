from __future__ import annotations

from itertools import count
from typing import Any, Callable, Dict

import pytest

from ptp_sim.clock import Node
from ptp_sim.packet import PacketType


def _make_config(
    latency: float = 50.0,
    jitter: float = 0.0,
    sync_interval: float = 2000.0,
    sync_clock: str = "simulated",
) -> Dict[str, Any]:
    return {
        "simulation": {
            "tick_ms": 16,
            "sync_interval_ms": sync_interval,
            "follow_up_stagger": -0.05,
            "sync_clock": sync_clock,
        },
        "network": {"base_latency_ms": latency, "jitter_ms": jitter},
        "nodes": [
            {"id": "master", "name": "Grandmaster Clock", "is_master": True, "initial_offset_ms": 0, "drift": 1.0},
            {"id": "slave-1", "name": "IoT Sensor A (WiFi)", "initial_offset_ms": -5000, "drift": 1.0005},
            {"id": "slave-2", "name": "Edge Server B", "initial_offset_ms": 2000, "drift": 0.9998},
        ],
    }


@pytest.fixture
def make_config() -> Callable[..., Dict[str, Any]]:
    return _make_config


@pytest.fixture
def packet_ids() -> Callable[[PacketType], str]:
    counter = count(1)

    def next_id(packet_type: PacketType) -> str:
        return f"{packet_type.value}-{next(counter)}"

    return next_id


@pytest.fixture
def master() -> Node:
    return Node(id="master", name="Grandmaster", is_master=True, local_time=1_000_000.0, drift=1.0)


@pytest.fixture
def slave_a() -> Node:
    return Node(id="slave-a", name="Sensor A", is_master=False, local_time=995_000.0, drift=1.0005)


@pytest.fixture
def slave_b() -> Node:
    return Node(id="slave-b", name="Server B", is_master=False, local_time=1_002_000.0, drift=0.9998)
