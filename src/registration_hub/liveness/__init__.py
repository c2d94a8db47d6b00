"""Spoke heartbeat liveness."""

from .controller import HeartbeatController
from .resources import ManagedClusterClient, decode_cluster, decode_lease
from .state_machine import LivenessVerdict, apply_taint, evaluate, remove_taint

__all__ = [
    "HeartbeatController",
    "LivenessVerdict",
    "ManagedClusterClient",
    "apply_taint",
    "decode_cluster",
    "decode_lease",
    "evaluate",
    "remove_taint",
]
