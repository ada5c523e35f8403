from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class SyncPhase(Enum):
    """
    Where a slave currently sits in its four-message exchange.

    AWAITING_DELAY_RESP holds for as long as any DELAY_REQ from the slave is
    unanswered, even when a later round's SYNC lands in the meantime.
    """

    IDLE = 0
    SYNC_RECEIVED = 1
    AWAITING_DELAY_RESP = 2


@dataclass(frozen=True)
class Node:
    """One clock device (grandmaster or slave)."""

    id: str
    name: str
    is_master: bool
    local_time: float  # ms since epoch
    drift: float  # 1.0 = perfect, >1.0 runs fast
    offset: float = 0.0
    delay: float = 0.0
    phase: SyncPhase = SyncPhase.IDLE
    pending_requests: int = 0  # DELAY_REQs sent and not yet answered
    last_sync_time: Optional[float] = None


def advance_clock(node: Node, real_elapsed_ms: float) -> float:
    """Return the node's local time after ``real_elapsed_ms`` of real time."""
    return node.local_time + real_elapsed_ms * node.drift


def find_master(nodes: Sequence[Node]) -> Optional[Node]:
    for node in nodes:
        if node.is_master:
            return node
    return None


def find_node(nodes: Sequence[Node], node_id: str) -> Optional[int]:
    """Index of the node with ``node_id``, or None when it is not present."""
    for idx, node in enumerate(nodes):
        if node.id == node_id:
            return idx
    return None
