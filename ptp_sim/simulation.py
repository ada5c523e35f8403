from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .clock import Node, advance_clock, find_master
from .config import DEFAULT_CONFIG_PATH, SYNC_CLOCKS, build_nodes, load_config, validate_nodes
from .network import NetworkModel
from .packet import Packet, PacketType
from .protocol import emit_sync_round, on_arrival


@dataclass(frozen=True)
class SimulationSnapshot:
    """Read-only view of the simulation after a tick, for renderers."""

    nodes: Tuple[Node, ...]
    packets: Tuple[Packet, ...]
    tick: int
    elapsed_ms: float
    is_running: bool
    base_latency_ms: float
    jitter_ms: float


@dataclass(frozen=True)
class SimulationSummary:
    master_time_ms: Optional[float]
    slave_count: int
    base_latency_ms: float
    jitter_ms: float
    mean_abs_offset_ms: float

    def to_context(self) -> str:
        """Plain-text block handed to the assistant panel as background."""
        if self.master_time_ms is None:
            master_time = "unavailable"
        else:
            master_time = (
                (datetime.fromtimestamp(0, tz=timezone.utc) + timedelta(milliseconds=self.master_time_ms))
                .isoformat(timespec="milliseconds")
                .replace("+00:00", "Z")
            )
        return (
            f"Master Clock Time: {master_time}\n"
            f"Slave Nodes: {self.slave_count}\n"
            f"Current Network Latency Setting: {self.base_latency_ms:g}ms\n"
            f"Current Jitter Setting: {self.jitter_ms:g}ms\n"
            f"Average Slave Offset: {self.mean_abs_offset_ms:g}ms\n"
        )


@dataclass(frozen=True)
class HistoryEntry:
    tick: int
    elapsed_ms: float
    offsets: Dict[str, float]
    in_flight: int


class PtpSimulation:
    """
    Tick-driven simulation of one grandmaster synchronizing N slaves.

    Each tick runs, in order: packet transit, arrival handling (insertion
    order), clock advance, and the polled sync-interval check that starts a
    new SYNC/FOLLOW_UP round. Ticks only take effect while running.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        seed: Optional[int] = None,
        initial_nodes: Optional[Sequence[Node]] = None,
        epoch_ms: Optional[float] = None,
        wall_clock: Optional[Callable[[], float]] = None,
        record_history: bool = False,
        verbose: bool = False,
    ):
        if config is None:
            self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
            config = load_config(str(self.config_path))
        else:
            self.config_path = None
        self.config = config
        self.seed = seed
        self.record_history = record_history
        self.verbose = verbose
        self._wall_clock = wall_clock if wall_clock is not None else (lambda: time.time() * 1000.0)

        sim_cfg = self.config.get("simulation", {})
        self.tick_ms = float(sim_cfg.get("tick_ms", 16.0))
        self.sync_interval_ms = float(sim_cfg.get("sync_interval_ms", 2000.0))
        self.follow_up_stagger = float(sim_cfg.get("follow_up_stagger", -0.05))
        self.sync_clock = str(sim_cfg.get("sync_clock", "wall")).lower()
        if self.tick_ms <= 0:
            raise ValueError("simulation.tick_ms must be positive")
        if self.sync_interval_ms <= 0:
            raise ValueError("simulation.sync_interval_ms must be positive")
        if self.sync_clock not in SYNC_CLOCKS:
            raise ValueError("simulation.sync_clock must be 'wall' or 'simulated'")

        net_cfg = self.config.get("network", {})
        self.network = NetworkModel(
            base_latency_ms=float(net_cfg.get("base_latency_ms", 50.0)),
            jitter_ms=float(net_cfg.get("jitter_ms", 5.0)),
            min_latency_ms=float(net_cfg.get("min_latency_ms", 10.0)),
            max_latency_ms=float(net_cfg.get("max_latency_ms", 500.0)),
            max_jitter_ms=float(net_cfg.get("max_jitter_ms", 100.0)),
            packet_speed=float(net_cfg.get("packet_speed", 0.02)),
            reference_latency_ms=float(net_cfg.get("reference_latency_ms", 50.0)),
            rng=np.random.default_rng(seed),
        )

        self.epoch_ms = float(epoch_ms) if epoch_ms is not None else self._wall_clock()
        if initial_nodes is not None:
            seed_nodes = list(initial_nodes)
            validate_nodes(seed_nodes)
            seed_nodes = [replace(node, offset=0.0) if node.is_master else node for node in seed_nodes]
        else:
            seed_nodes = build_nodes(self.config.get("nodes", []), self.epoch_ms)
        self._seed_nodes: Tuple[Node, ...] = tuple(seed_nodes)

        self.is_running = False
        self._initialize_run_state()

    def _initialize_run_state(self) -> None:
        self.nodes: Tuple[Node, ...] = self._seed_nodes
        self.packets: Tuple[Packet, ...] = ()
        self.tick_count = 0
        self.elapsed_ms = 0.0
        self.last_sync_ms: Optional[float] = None
        self.history: List[HistoryEntry] = []
        self._packet_counter = count(1)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.is_running = True

    def pause(self) -> None:
        self.is_running = False

    def toggle(self) -> bool:
        self.is_running = not self.is_running
        return self.is_running

    def reset(self) -> SimulationSnapshot:
        """Stop and restore the seed nodes; all packets and timers are discarded."""
        self.is_running = False
        self.network.reset(np.random.default_rng(self.seed))
        self._initialize_run_state()
        return self.snapshot()

    def set_latency(self, latency_ms: float) -> float:
        return self.network.set_latency(latency_ms)

    def set_jitter(self, jitter_ms: float) -> float:
        return self.network.set_jitter(jitter_ms)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now_ms: Optional[float] = None) -> SimulationSnapshot:
        """
        Advance the simulation by one fixed increment.

        Args:
            now_ms: Time used for the sync-interval check. Defaults to the wall
                clock, or to simulated elapsed time when ``sync_clock`` is
                ``"simulated"``.

        The node set is never added to or removed from mid-run, so the
        single-master check made at construction holds for every tick.
        """
        if not self.is_running:
            return self.snapshot()

        self.tick_count += 1
        self.elapsed_ms += self.tick_ms
        now = self._resolve_now(now_ms)

        nodes, packets = self._deliver_packets(self.nodes, self.packets)
        nodes = self._advance_clocks(nodes)

        if self.last_sync_ms is None or now - self.last_sync_ms > self.sync_interval_ms:
            round_packets = emit_sync_round(nodes, self._next_packet_id, self.follow_up_stagger)
            if round_packets and self.verbose:
                print(f"[PTP] tick {self.tick_count}: sync round to {len(round_packets) // 2} slave(s)")
            packets = packets + tuple(round_packets)
            self.last_sync_ms = now

        self.nodes = nodes
        self.packets = packets
        if self.record_history:
            self._record_history()
        return self.snapshot()

    def run(self, n_ticks: int, now_ms: Optional[Callable[[int], float]] = None) -> SimulationSnapshot:
        """
        Run up to ``n_ticks`` ticks, stopping early if the simulation is paused.

        Args:
            n_ticks: Number of ticks to execute.
            now_ms: Optional mapping from tick number to the sync-check time.
        """
        snapshot = self.snapshot()
        for _ in range(max(0, int(n_ticks))):
            if not self.is_running:
                break
            now = now_ms(self.tick_count + 1) if now_ms is not None else None
            snapshot = self.tick(now)
        return snapshot

    def _resolve_now(self, now_ms: Optional[float]) -> float:
        if now_ms is not None:
            return float(now_ms)
        if self.sync_clock == "simulated":
            return self.elapsed_ms
        return float(self._wall_clock())

    def _deliver_packets(
        self, nodes: Tuple[Node, ...], packets: Tuple[Packet, ...]
    ) -> Tuple[Tuple[Node, ...], Tuple[Packet, ...]]:
        """Move packets and apply every arrival, in insertion order."""
        transit = self.network.advance(packets)
        in_flight: List[Packet] = list(transit.in_flight)
        for packet in transit.arrived:
            outcome = on_arrival(packet, nodes, self.network.sample_delay, self._next_packet_id)
            if self.verbose:
                self._report_arrival(packet, nodes, outcome.nodes, outcome.dropped)
            nodes = outcome.nodes
            in_flight.extend(outcome.new_packets)
        return nodes, tuple(in_flight)

    def _advance_clocks(self, nodes: Tuple[Node, ...]) -> Tuple[Node, ...]:
        master = find_master(nodes)
        master_time = advance_clock(master, self.tick_ms) if master is not None else None
        advanced: List[Node] = []
        for node in nodes:
            local_time = advance_clock(node, self.tick_ms)
            if node.is_master:
                offset = 0.0
            elif master_time is not None:
                offset = local_time - master_time
            else:
                offset = node.offset
            advanced.append(replace(node, local_time=local_time, offset=offset))
        return tuple(advanced)

    def _next_packet_id(self, packet_type: PacketType) -> str:
        return f"{packet_type.value.lower()}-{next(self._packet_counter):06d}"

    def _report_arrival(
        self, packet: Packet, before: Sequence[Node], after: Sequence[Node], dropped: bool
    ) -> None:
        if dropped:
            print(f"[PTP] dropped {packet.type.value} {packet.id} -> {packet.to_id}")
            return
        if packet.type != PacketType.DELAY_RESP:
            return
        for old, new in zip(before, after):
            if old.id == packet.to_id:
                correction = new.local_time - old.local_time
                print(
                    f"[PTP] {new.id} corrected by {correction:+.3f} ms "
                    f"(delay sample {new.delay:.2f} ms)"
                )

    def _record_history(self) -> None:
        self.history.append(
            HistoryEntry(
                tick=self.tick_count,
                elapsed_ms=self.elapsed_ms,
                offsets={node.id: node.offset for node in self.nodes},
                in_flight=len(self.packets),
            )
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> SimulationSnapshot:
        return SimulationSnapshot(
            nodes=self.nodes,
            packets=self.packets,
            tick=self.tick_count,
            elapsed_ms=self.elapsed_ms,
            is_running=self.is_running,
            base_latency_ms=self.network.base_latency_ms,
            jitter_ms=self.network.jitter_ms,
        )

    def summary(self) -> SimulationSummary:
        master = find_master(self.nodes)
        slaves = [node for node in self.nodes if not node.is_master]
        if slaves:
            mean_abs_offset = float(np.mean(np.abs([node.offset for node in slaves])))
        else:
            mean_abs_offset = 0.0
        return SimulationSummary(
            master_time_ms=master.local_time if master is not None else None,
            slave_count=len(slaves),
            base_latency_ms=self.network.base_latency_ms,
            jitter_ms=self.network.jitter_ms,
            mean_abs_offset_ms=mean_abs_offset,
        )

    def offset_trace(self) -> Tuple[np.ndarray, Dict[str, np.ndarray]]:
        """Recorded elapsed times and per-node offset series (needs ``record_history``)."""
        elapsed = np.asarray([entry.elapsed_ms for entry in self.history], dtype=np.float64)
        node_ids = [node.id for node in self._seed_nodes]
        offsets = {
            node_id: np.asarray(
                [entry.offsets.get(node_id, np.nan) for entry in self.history], dtype=np.float64
            )
            for node_id in node_ids
        }
        return elapsed, offsets
