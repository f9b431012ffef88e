"""
Lifecycle subsystem
-------------------

Exports the public API for:
- running one listener with graceful shutdown (LifecycleCoordinator)
- the cancellation source (ShutdownSignal)
- run results (Outcome)
- task tracking & introspection

External code should import from:
    from graceful_listener.lifecycle import LifecycleCoordinator, ShutdownSignal
"""

from .coordinator import LifecycleCoordinator
from .errors import ServeFault, RequestReadTimeout, ResponseWriteTimeout
from .outcome import Outcome
from .server_config import ServerConfig, SHUTDOWN_TIMEOUT
from .shutdown_signal import ShutdownSignal
from .task_registry import TaskRegistry, TaskCategory, TaskInfo, create_tracked_task
from .timeouts import ConnectionTimeouts, HeaderTimeoutProtocol

__all__ = [
    "LifecycleCoordinator",
    "ServerConfig",
    "SHUTDOWN_TIMEOUT",
    "Outcome",
    "ShutdownSignal",
    "ConnectionTimeouts",
    "HeaderTimeoutProtocol",
    "ServeFault",
    "RequestReadTimeout",
    "ResponseWriteTimeout",
    "TaskRegistry",
    "TaskCategory",
    "TaskInfo",
    "create_tracked_task",
]
