"""
Cancellation source for a coordinator run.

Translates OS signals, manual requests and deadlines into a single asyncio
event. The first trigger wins; its reason is kept for logging.

Example:
    stop = ShutdownSignal()
    stop.install(asyncio.get_running_loop())
    try:
        outcome = await coordinator.run(stop)
    finally:
        stop.uninstall()
"""

from __future__ import annotations

import asyncio
import signal
from typing import Iterable, List, Optional

from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.SYSTEM)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownSignal:
    """One-shot stop request shared between the caller and a coordinator."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: List[signal.Signals] = []
        self._deadline: Optional[asyncio.TimerHandle] = None

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def is_set(self) -> bool:
        return self._event.is_set()

    def trigger(self, reason: str = "manual") -> None:
        """Request shutdown. Later triggers do not overwrite the first reason."""
        if self._event.is_set():
            log.debug(f"Shutdown already requested ({self._reason}), ignoring {reason}")
            return
        self._reason = reason
        log.info(f"Shutdown requested → {reason}")
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def install(
        self,
        loop: asyncio.AbstractEventLoop,
        signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
    ) -> None:
        """
        Route OS signals to trigger().

        Args:
            loop: Running asyncio event loop
            signals: Signals to handle (default SIGINT and SIGTERM)
        """
        self._loop = loop
        for sig in signals:
            loop.add_signal_handler(sig, lambda s=sig: self.trigger(s.name))
            self._installed.append(sig)

        names = ", ".join(s.name for s in self._installed)
        log.info(f"Signal handlers installed ({names})")

    def uninstall(self) -> None:
        """Remove installed signal handlers and any pending deadline."""
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        if self._loop is None:
            return
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._installed.clear()
        self._loop = None

    def after(self, delay: float, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Trigger automatically once ``delay`` seconds have passed."""
        loop = loop or asyncio.get_running_loop()
        if self._deadline is not None:
            self._deadline.cancel()
        self._deadline = loop.call_later(delay, self.trigger, "deadline")
