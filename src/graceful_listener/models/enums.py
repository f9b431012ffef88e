"""
Enumerations shared across the listener lifecycle subsystem.
"""

from enum import Enum, auto


class LogLevel(Enum):
    """Log severity levels"""
    DEBUG = auto()
    INFO = auto()
    WARN = auto()
    ERROR = auto()


class LogCategory(Enum):
    """Log categories for grouping related events"""
    CONFIG = auto()      # Configuration loading, validation
    LIFECYCLE = auto()   # Coordinator state changes, run outcome
    SHUTDOWN = auto()    # Drain, deadlines, forced close
    SERVER = auto()      # Listener bind, transport startup
    TASK = auto()        # Tracked asyncio tasks
    API = auto()         # Demo application
    SYSTEM = auto()      # Process startup, signals

    GENERAL = auto()    # Default general category


class LifecycleState(Enum):
    """
    States of a LifecycleCoordinator.

    IDLE -> RUNNING -> (DRAINING) -> TERMINATED, never backwards.
    """
    IDLE = auto()
    RUNNING = auto()
    DRAINING = auto()
    TERMINATED = auto()


class OutcomeKind(Enum):
    """Terminal result of one coordinator run"""
    CLEAN_EXIT = auto()
    ABNORMAL_EXIT = auto()
    SHUTDOWN_TIMEOUT = auto()
