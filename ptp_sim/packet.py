from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PacketType(Enum):
    SYNC = "SYNC"
    FOLLOW_UP = "FOLLOW_UP"
    DELAY_REQ = "DELAY_REQ"
    DELAY_RESP = "DELAY_RESP"


@dataclass(frozen=True)
class PtpTimestamps:
    """
    Protocol timestamps accumulated across the two-step exchange.

    t1: master departure of SYNC (carried by FOLLOW_UP)
    t2: slave arrival of SYNC (approximated by the FOLLOW_UP timestamp)
    t3: slave departure of DELAY_REQ
    t4: master arrival of DELAY_REQ
    """

    t1: Optional[float] = None
    t2: Optional[float] = None
    t3: Optional[float] = None
    t4: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        return None not in (self.t1, self.t2, self.t3, self.t4)


@dataclass(frozen=True)
class Packet:
    """Protocol message in flight between two nodes."""

    id: str
    type: PacketType
    from_id: str
    to_id: str
    timestamp: float  # sender clock reading at send time
    progress: float = 0.0  # < 0 means not yet departed, >= 1 means arrived
    data: Optional[PtpTimestamps] = None

    @property
    def has_arrived(self) -> bool:
        return self.progress >= 1.0
