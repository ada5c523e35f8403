from .clock import Node, SyncPhase, advance_clock
from .network import NetworkModel, advance_packets
from .packet import Packet, PacketType, PtpTimestamps
from .protocol import on_arrival
from .simulation import PtpSimulation, SimulationSnapshot, SimulationSummary

__all__ = [
    "Node",
    "SyncPhase",
    "advance_clock",
    "NetworkModel",
    "advance_packets",
    "Packet",
    "PacketType",
    "PtpTimestamps",
    "on_arrival",
    "PtpSimulation",
    "SimulationSnapshot",
    "SimulationSummary",
]
