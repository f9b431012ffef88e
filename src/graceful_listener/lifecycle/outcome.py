from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from graceful_listener.models.enums import OutcomeKind


@dataclass(frozen=True)
class Outcome:
    """
    Terminal result of one LifecycleCoordinator run.

    cause is set only for ABNORMAL_EXIT and abandoned only for
    SHUTDOWN_TIMEOUT (number of connections still open at the deadline).
    """
    kind: OutcomeKind
    cause: Optional[BaseException] = None
    abandoned: int = 0

    @classmethod
    def clean(cls) -> "Outcome":
        return cls(OutcomeKind.CLEAN_EXIT)

    @classmethod
    def abnormal(cls, cause: BaseException) -> "Outcome":
        return cls(OutcomeKind.ABNORMAL_EXIT, cause=cause)

    @classmethod
    def shutdown_timeout(cls, abandoned: int) -> "Outcome":
        return cls(OutcomeKind.SHUTDOWN_TIMEOUT, abandoned=abandoned)

    @property
    def is_clean(self) -> bool:
        return self.kind is OutcomeKind.CLEAN_EXIT

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 clean, 1 abnormal, 2 drain timeout."""
        return {
            OutcomeKind.CLEAN_EXIT: 0,
            OutcomeKind.ABNORMAL_EXIT: 1,
            OutcomeKind.SHUTDOWN_TIMEOUT: 2,
        }[self.kind]

    def describe(self) -> str:
        if self.kind is OutcomeKind.ABNORMAL_EXIT:
            return f"abnormal exit: {type(self.cause).__name__}: {self.cause}"
        if self.kind is OutcomeKind.SHUTDOWN_TIMEOUT:
            return f"shutdown timed out, {self.abandoned} connection(s) abandoned"
        return "clean exit"
