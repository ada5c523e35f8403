from __future__ import annotations

import pytest

from ptp_sim.clock import Node, SyncPhase, advance_clock, find_master, find_node


def test_advance_clock_scales_elapsed_by_drift() -> None:
    node = Node(id="n", name="n", is_master=False, local_time=1000.0, drift=1.5)
    assert advance_clock(node, 16.0) == pytest.approx(1024.0)


def test_advance_clock_perfect_drift_and_negative_elapsed() -> None:
    node = Node(id="n", name="n", is_master=False, local_time=1000.0, drift=1.0)
    assert advance_clock(node, 16.0) == 1016.0
    assert advance_clock(node, -16.0) == 984.0


def test_advance_clock_is_pure() -> None:
    node = Node(id="n", name="n", is_master=False, local_time=1000.0, drift=0.9998)
    advance_clock(node, 16.0)
    assert node.local_time == 1000.0


def test_node_defaults() -> None:
    node = Node(id="n", name="n", is_master=False, local_time=0.0, drift=1.0)
    assert node.offset == 0.0
    assert node.delay == 0.0
    assert node.phase == SyncPhase.IDLE
    assert node.last_sync_time is None


def test_find_master_and_node(master: Node, slave_a: Node) -> None:
    nodes = (slave_a, master)
    assert find_master(nodes) is master
    assert find_node(nodes, "master") == 1
    assert find_node(nodes, "missing") is None
    assert find_master((slave_a,)) is None
