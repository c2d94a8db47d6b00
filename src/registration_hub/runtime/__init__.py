"""Controller runtime: work queue, informers and the worker-pool base."""

from .controller import Controller
from .informer import EventHandler, Informer
from .manager import ControllerManager
from .workqueue import WorkQueue

__all__ = [
    "Controller",
    "ControllerManager",
    "EventHandler",
    "Informer",
    "WorkQueue",
]
