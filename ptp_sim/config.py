import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .clock import Node


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "default_config.json"

SYNC_CLOCKS = {"wall", "simulated"}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load simulation configuration from a JSON file.

    Args:
        config_path: Optional path to a JSON config. When omitted, the package
            default located next to this module is used.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def build_nodes(node_cfgs: Sequence[Mapping[str, Any]], epoch_ms: float) -> List[Node]:
    """
    Create the seed node set from the ``nodes`` config section.

    Each entry's ``initial_offset_ms`` is applied to ``epoch_ms`` so the seed is
    reproducible for a fixed epoch.
    """
    nodes: List[Node] = []
    for idx, entry in enumerate(node_cfgs):
        node_id = str(entry.get("id", f"node-{idx}"))
        nodes.append(
            Node(
                id=node_id,
                name=str(entry.get("name", node_id)),
                is_master=bool(entry.get("is_master", False)),
                local_time=float(epoch_ms) + float(entry.get("initial_offset_ms", 0.0)),
                drift=float(entry.get("drift", 1.0)),
            )
        )
    validate_nodes(nodes)
    return nodes


def validate_nodes(nodes: Sequence[Node]) -> None:
    """Reject node sets without exactly one master or with repeated ids."""
    if not nodes:
        raise ValueError("at least one node (the master) is required")
    masters = [node.id for node in nodes if node.is_master]
    if len(masters) != 1:
        raise ValueError(f"exactly one master node is required, got {len(masters)}")
    ids = [node.id for node in nodes]
    if len(set(ids)) != len(ids):
        raise ValueError("node ids must be unique")
