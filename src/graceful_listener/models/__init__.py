from .enums import LogLevel, LogCategory, LifecycleState, OutcomeKind
from .config import AppConfig

__all__ = [
    'LogLevel',
    'LogCategory',
    'LifecycleState',
    'OutcomeKind',
    'AppConfig',
]
