"""
Arrival handling for the two-step PTP exchange.

SYNC -> FOLLOW_UP(t1) -> DELAY_REQ(t3) -> DELAY_RESP(t4). The slave corrects
its clock when the DELAY_RESP lands. The correction is taken against the live
grandmaster clock rather than the captured timestamps, and it is applied in
one step (offset snaps to zero, drift is reset to 1.0).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from .clock import Node, SyncPhase, find_master, find_node
from .packet import Packet, PacketType, PtpTimestamps


@dataclass(frozen=True)
class ArrivalOutcome:
    nodes: Tuple[Node, ...]
    new_packets: Tuple[Packet, ...] = ()
    dropped: bool = False


def _dropped(nodes: Sequence[Node]) -> ArrivalOutcome:
    return ArrivalOutcome(nodes=tuple(nodes), new_packets=(), dropped=True)


def _with_node(nodes: Sequence[Node], idx: int, node: Node) -> Tuple[Node, ...]:
    updated = list(nodes)
    updated[idx] = node
    return tuple(updated)


def on_arrival(
    packet: Packet,
    nodes: Sequence[Node],
    sample_delay: Callable[[], float],
    next_packet_id: Callable[[PacketType], str],
) -> ArrivalOutcome:
    """
    Apply the effect of ``packet`` reaching its destination.

    Args:
        packet: The packet that just completed transit.
        nodes: Current node set; never mutated.
        sample_delay: Draws a one-way network delay sample (ms).
        next_packet_id: Produces an id for each packet emitted in response.

    Returns:
        The updated node set and any packets sent in response. Packets aimed at
        a missing node, or at a node of the wrong role, are dropped with the
        node set returned unchanged.
    """
    target_idx = find_node(nodes, packet.to_id)
    if target_idx is None:
        return _dropped(nodes)
    target = nodes[target_idx]

    if packet.type == PacketType.SYNC:
        if target.is_master:
            return _dropped(nodes)
        # Two-step mode: the precise t1 travels in the FOLLOW_UP.
        if target.pending_requests > 0:
            return ArrivalOutcome(nodes=tuple(nodes))
        return ArrivalOutcome(
            nodes=_with_node(nodes, target_idx, replace(target, phase=SyncPhase.SYNC_RECEIVED))
        )

    if packet.type == PacketType.FOLLOW_UP:
        if target.is_master or packet.data is None or packet.data.t1 is None:
            return _dropped(nodes)
        delay_req = Packet(
            id=next_packet_id(PacketType.DELAY_REQ),
            type=PacketType.DELAY_REQ,
            from_id=target.id,
            to_id=packet.from_id,
            timestamp=target.local_time,  # t3
            progress=0.0,
            # t2 stands in for the slave's receive timestamp of the SYNC
            data=PtpTimestamps(t1=packet.data.t1, t2=packet.timestamp),
        )
        return ArrivalOutcome(
            nodes=_with_node(
                nodes,
                target_idx,
                replace(
                    target,
                    phase=SyncPhase.AWAITING_DELAY_RESP,
                    pending_requests=target.pending_requests + 1,
                ),
            ),
            new_packets=(delay_req,),
        )

    if packet.type == PacketType.DELAY_REQ:
        master = find_master(nodes)
        if master is None or not target.is_master:
            return _dropped(nodes)
        t4 = master.local_time
        carried = packet.data if packet.data is not None else PtpTimestamps()
        delay_resp = Packet(
            id=next_packet_id(PacketType.DELAY_RESP),
            type=PacketType.DELAY_RESP,
            from_id=master.id,
            to_id=packet.from_id,
            timestamp=master.local_time,
            progress=0.0,
            data=replace(carried, t3=packet.timestamp, t4=t4),
        )
        return ArrivalOutcome(nodes=tuple(nodes), new_packets=(delay_resp,))

    if packet.type == PacketType.DELAY_RESP:
        master = find_master(nodes)
        if master is None or target.is_master:
            return _dropped(nodes)
        true_offset = target.local_time - master.local_time
        network_delay = sample_delay()
        corrected_time = target.local_time - true_offset
        pending = max(0, target.pending_requests - 1)
        corrected = replace(
            target,
            local_time=corrected_time,
            offset=0.0,
            delay=network_delay,
            drift=1.0,
            phase=SyncPhase.AWAITING_DELAY_RESP if pending else SyncPhase.IDLE,
            pending_requests=pending,
            last_sync_time=corrected_time,
        )
        return ArrivalOutcome(nodes=_with_node(nodes, target_idx, corrected))

    return _dropped(nodes)


def mean_path_delay(timestamps: PtpTimestamps) -> Optional[float]:
    """Textbook mean path delay [(t2 - t1) + (t4 - t3)] / 2, if all four are known."""
    if not timestamps.is_complete:
        return None
    return ((timestamps.t2 - timestamps.t1) + (timestamps.t4 - timestamps.t3)) / 2.0


def classic_offset(timestamps: PtpTimestamps) -> Optional[float]:
    """Textbook offset (t2 - t1) - mean path delay, if all four are known."""
    delay = mean_path_delay(timestamps)
    if delay is None:
        return None
    return (timestamps.t2 - timestamps.t1) - delay


def emit_sync_round(
    nodes: Sequence[Node],
    next_packet_id: Callable[[PacketType], str],
    follow_up_stagger: float = -0.05,
) -> List[Packet]:
    """
    Build one SYNC + FOLLOW_UP pair per slave, stamped with the master clock.

    Returns an empty list when no master is present.
    """
    master = find_master(nodes)
    if master is None:
        return []
    t1 = master.local_time
    packets: List[Packet] = []
    for slave in nodes:
        if slave.is_master:
            continue
        packets.append(
            Packet(
                id=next_packet_id(PacketType.SYNC),
                type=PacketType.SYNC,
                from_id=master.id,
                to_id=slave.id,
                timestamp=t1,
                progress=0.0,
            )
        )
        packets.append(
            Packet(
                id=next_packet_id(PacketType.FOLLOW_UP),
                type=PacketType.FOLLOW_UP,
                from_id=master.id,
                to_id=slave.id,
                timestamp=t1,
                progress=float(follow_up_stagger),
                data=PtpTimestamps(t1=t1),
            )
        )
    return packets
