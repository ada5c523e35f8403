from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .packet import Packet

DEFAULT_PACKET_SPEED = 0.02
DEFAULT_REFERENCE_LATENCY_MS = 50.0
DEFAULT_LATENCY_FLOOR_MS = 10.0


@dataclass(frozen=True)
class TransitResult:
    in_flight: Tuple[Packet, ...]
    arrived: Tuple[Packet, ...]


def progress_increment(
    latency_ms: float,
    packet_speed: float = DEFAULT_PACKET_SPEED,
    reference_latency_ms: float = DEFAULT_REFERENCE_LATENCY_MS,
    latency_floor_ms: float = DEFAULT_LATENCY_FLOOR_MS,
) -> float:
    """
    Per-tick progress added to every in-flight packet.

    Inversely proportional to the configured latency so that slow links are
    visibly slow; the floor keeps the increment finite near zero latency.
    """
    return packet_speed * (reference_latency_ms / max(float(latency_ms), latency_floor_ms))


def advance_packets(
    packets: Iterable[Packet],
    latency_ms: float,
    packet_speed: float = DEFAULT_PACKET_SPEED,
    reference_latency_ms: float = DEFAULT_REFERENCE_LATENCY_MS,
    latency_floor_ms: float = DEFAULT_LATENCY_FLOOR_MS,
) -> TransitResult:
    """Move every packet one tick forward and split off the ones that arrived."""
    step = progress_increment(latency_ms, packet_speed, reference_latency_ms, latency_floor_ms)
    in_flight: List[Packet] = []
    arrived: List[Packet] = []
    for packet in packets:
        next_progress = packet.progress + step
        if next_progress >= 1.0:
            arrived.append(replace(packet, progress=1.0))
        else:
            in_flight.append(replace(packet, progress=next_progress))
    return TransitResult(in_flight=tuple(in_flight), arrived=tuple(arrived))


class NetworkModel:
    """
    Shared medium between the grandmaster and its slaves.

    Holds the user-adjustable latency/jitter settings, moves packets along
    their links and draws one-way delay samples for the clock servo.
    """

    def __init__(
        self,
        base_latency_ms: float = 50.0,
        jitter_ms: float = 5.0,
        min_latency_ms: float = 10.0,
        max_latency_ms: float = 500.0,
        max_jitter_ms: float = 100.0,
        packet_speed: float = DEFAULT_PACKET_SPEED,
        reference_latency_ms: float = DEFAULT_REFERENCE_LATENCY_MS,
        rng: np.random.Generator = None,
    ):
        if max_latency_ms < min_latency_ms:
            raise ValueError("max_latency_ms must be >= min_latency_ms")
        if max_jitter_ms < 0:
            raise ValueError("max_jitter_ms must be >= 0")
        if packet_speed <= 0:
            raise ValueError("packet_speed must be positive")

        self.min_latency_ms = float(min_latency_ms)
        self.max_latency_ms = float(max_latency_ms)
        self.max_jitter_ms = float(max_jitter_ms)
        self.packet_speed = float(packet_speed)
        self.reference_latency_ms = float(reference_latency_ms)
        self.rng = rng if rng is not None else np.random.default_rng()

        self.base_latency_ms = self._clamp_latency(base_latency_ms)
        self.jitter_ms = self._clamp_jitter(jitter_ms)

    def _clamp_latency(self, value: float) -> float:
        return max(self.min_latency_ms, min(self.max_latency_ms, float(value)))

    def _clamp_jitter(self, value: float) -> float:
        return max(0.0, min(self.max_jitter_ms, float(value)))

    def set_latency(self, latency_ms: float) -> float:
        self.base_latency_ms = self._clamp_latency(latency_ms)
        return self.base_latency_ms

    def set_jitter(self, jitter_ms: float) -> float:
        self.jitter_ms = self._clamp_jitter(jitter_ms)
        return self.jitter_ms

    def progress_increment(self) -> float:
        return progress_increment(
            self.base_latency_ms,
            self.packet_speed,
            self.reference_latency_ms,
            self.min_latency_ms,
        )

    def advance(self, packets: Iterable[Packet]) -> TransitResult:
        """Advance all in-flight packets by one tick at the current latency."""
        return advance_packets(
            packets,
            self.base_latency_ms,
            self.packet_speed,
            self.reference_latency_ms,
            self.min_latency_ms,
        )

    def sample_delay(self) -> float:
        """Draw a one-way delay uniformly from base latency +/- jitter."""
        if self.jitter_ms == 0.0:
            return self.base_latency_ms
        low = self.base_latency_ms - self.jitter_ms
        high = self.base_latency_ms + self.jitter_ms
        return float(self.rng.uniform(low, high))

    def reset(self, rng: Optional[np.random.Generator] = None) -> None:
        """Swap in a fresh generator; latency/jitter settings are kept."""
        if rng is not None:
            self.rng = rng
