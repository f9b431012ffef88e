"""
Lifecycle coordinator for a single uvicorn listener.

Runs the serve loop as a background task, races it against a stop source and,
when the stop source wins, drains in-flight requests under a fixed deadline.
Every run resolves into exactly one Outcome.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import inspect
import socket
from typing import Any, Optional, Union

import uvicorn

from graceful_listener.lifecycle.errors import ServeFault
from graceful_listener.lifecycle.outcome import Outcome
from graceful_listener.lifecycle.server_config import (
    ASGIApp,
    FORCE_CLOSE_GRACE,
    SHUTDOWN_TIMEOUT,
    ServerConfig,
)
from graceful_listener.lifecycle.task_registry import TaskCategory, create_tracked_task
from graceful_listener.lifecycle.timeouts import ConnectionTimeouts, HeaderTimeoutProtocol
from graceful_listener.models.enums import LifecycleState
from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.LIFECYCLE)

LISTEN_BACKLOG = 2048

# Slice length for blocking stop sources (threading.Event) polled off-loop.
STOP_POLL_INTERVAL = 0.1


class _CoordinatedServer(uvicorn.Server):
    """uvicorn.Server that leaves signal handling to the coordinator's caller."""

    def install_signal_handlers(self) -> None:  # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self):  # uvicorn >= 0.29
        yield


class LifecycleCoordinator:
    """
    Owns one listener and runs it exactly once.

    Example:
        coordinator = LifecycleCoordinator("8080", app)
        stop = ShutdownSignal()
        stop.install(asyncio.get_running_loop())
        outcome = await coordinator.run(stop)
    """

    shutdown_timeout: float = SHUTDOWN_TIMEOUT

    def __init__(self, port: Union[str, int], handler: ASGIApp):
        self._config = ServerConfig.for_port(str(port), handler)
        self._state = LifecycleState.IDLE
        self._server: Optional[_CoordinatedServer] = None
        self._socket: Optional[socket.socket] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._outcome: Optional[Outcome] = None
        # Set before the server is asked to stop, so a close caused by our own
        # drain is never reported as a fault.
        self._shutdown_requested = False

    # ----------------------------------------------------------------------
    # PROPERTIES
    # ----------------------------------------------------------------------
    def addr(self) -> str:
        """Return the address the listener is configured to bind."""
        return self._config.bind_address

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def server(self) -> Optional[uvicorn.Server]:
        return self._server

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port once bound (resolves port "0")."""
        if self._socket is None or self._socket.fileno() == -1:
            return None
        return self._socket.getsockname()[1]

    @property
    def serving(self) -> bool:
        """True once the transport finished startup and no drain has begun."""
        return (
            self._state is LifecycleState.RUNNING
            and self._server is not None
            and bool(getattr(self._server, "started", False))
        )

    # ----------------------------------------------------------------------
    # PUBLIC API
    # ----------------------------------------------------------------------
    async def run(self, stop: Any = None) -> Outcome:
        """
        Serve until the listener fails or ``stop`` fires.

        Args:
            stop: cancellation source. None never fires; an object with an
                async wait() (asyncio.Event, ShutdownSignal) fires when set;
                an object with a blocking wait(timeout) (threading.Event) is
                polled from the default executor; any other awaitable fires
                when it completes.

        Returns:
            CLEAN_EXIT, ABNORMAL_EXIT(cause) or SHUTDOWN_TIMEOUT.

        Raises:
            RuntimeError: if this coordinator has already been run.
            asyncio.CancelledError: if the run task itself is cancelled; the
                listener is drained first and the outcome stays on .outcome.
                A cancellation arriving during the drain closes the remaining
                connections at once and records SHUTDOWN_TIMEOUT.
        """
        if self._state is not LifecycleState.IDLE:
            raise RuntimeError(
                "LifecycleCoordinator can only run once; build a new one to restart"
            )
        self._state = LifecycleState.RUNNING

        try:
            self._socket = self._bind_socket()
        except (OSError, ValueError, OverflowError) as exc:
            log.error(f"Failed to bind {self.addr()}", error=f"{type(exc).__name__}: {exc}")
            return self._finish(Outcome.abnormal(exc))

        log.info(f"🌐 Listening on {self.addr()}", port=self.bound_port)

        self._server = self._create_server()
        self._serve_task = create_tracked_task(
            self._serve(),
            category=TaskCategory.SERVE,
            description=f"serve {self.addr()}",
        )
        stop_waiter = create_tracked_task(
            _wait_for_stop(stop),
            category=TaskCategory.SIGNAL,
            description=f"stop source for {self.addr()}",
        )

        try:
            try:
                done, _ = await asyncio.wait(
                    {self._serve_task, stop_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            except asyncio.CancelledError:
                log.debug("run() cancelled externally, draining before propagating")
                await self._drain("run cancelled")
                raise
            finally:
                if not stop_waiter.done():
                    stop_waiter.cancel()

            # The server already stopped; draining it would be pointless.
            if self._serve_task in done:
                return self._finish(self._classify_serve_exit())

            if not stop_waiter.cancelled() and stop_waiter.exception() is not None:
                log.warn("Stop source failed, treating as shutdown request",
                         error=repr(stop_waiter.exception()))
            return await self._drain("stop source fired")
        finally:
            self._release_listener()

    # ----------------------------------------------------------------------
    # INTERNAL
    # ----------------------------------------------------------------------
    def _bind_socket(self) -> socket.socket:
        port = int(self._config.port)
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._config.host, port))
            sock.listen(LISTEN_BACKLOG)
        except BaseException:
            sock.close()
            raise
        return sock

    def _create_server(self) -> _CoordinatedServer:
        app = ConnectionTimeouts(
            self._config.handler,
            read_timeout=self._config.read_timeout,
            write_timeout=self._config.write_timeout,
        )
        config = uvicorn.Config(
            app=app,
            host=self._config.host,
            port=self.bound_port or 0,
            loop="asyncio",
            log_level="warning",
            access_log=False,
            server_header=False,
            http=functools.partial(HeaderTimeoutProtocol, read_timeout=self._config.read_timeout),
            timeout_keep_alive=self._config.idle_timeout,
            backlog=LISTEN_BACKLOG,
        )
        return _CoordinatedServer(config)

    async def _serve(self) -> None:
        try:
            await self._server.serve(sockets=[self._socket])
        except SystemExit as exc:
            # Newer uvicorn exits the process when lifespan startup fails.
            raise ServeFault(f"listener exited during startup (code {exc.code})") from exc

    def _classify_serve_exit(self) -> Outcome:
        task = self._serve_task
        if task.cancelled():
            log.error("Serve loop was cancelled outside the coordinator")
            return Outcome.abnormal(ServeFault("serve loop cancelled"))

        exc = task.exception()
        if exc is not None:
            log.error(f"Serve loop failed on {self.addr()}", error=f"{type(exc).__name__}: {exc}")
            return Outcome.abnormal(exc)

        if self._shutdown_requested:
            return Outcome.clean()

        if not self._server.started:
            log.error("Serve loop exited before startup completed")
            return Outcome.abnormal(ServeFault("listener exited before startup completed"))

        log.info("Serve loop closed normally")
        return Outcome.clean()

    async def _drain(self, reason: str) -> Outcome:
        """Stop accepting, wait for in-flight requests, give up at the deadline."""
        self._state = LifecycleState.DRAINING
        self._shutdown_requested = True
        self._server.should_exit = True

        timeout = self.shutdown_timeout
        shutdown_log = log.with_category(LogCategory.SHUTDOWN)
        shutdown_log.info(f"🛑 Draining {self.addr()}", reason=reason, deadline=f"{timeout}s")

        try:
            done, _ = await asyncio.wait({self._serve_task}, timeout=timeout)
        except asyncio.CancelledError:
            abandoned = self._abort_connections()
            shutdown_log.warn("Drain cancelled, listener closed without waiting", abandoned=abandoned)
            self._finish(Outcome.shutdown_timeout(abandoned))
            raise

        if done:
            if not self._serve_task.cancelled() and self._serve_task.exception() is not None:
                shutdown_log.warn("Serve loop raised during drain",
                                  error=repr(self._serve_task.exception()))
            shutdown_log.info("✓ Drain complete")
            return self._finish(Outcome.clean())

        abandoned = await self._force_close()
        shutdown_log.warn(f"⚠️  Drain deadline exceeded ({timeout}s)", abandoned=abandoned)
        return self._finish(Outcome.shutdown_timeout(abandoned))

    def _abort_connections(self) -> int:
        """Cancel in-flight requests, close their transports and the serve task."""
        server = self._server
        state = server.server_state
        abandoned = len(state.connections)

        server.force_exit = True
        for task in list(state.tasks):
            task.cancel()
        for connection in list(state.connections):
            transport = getattr(connection, "transport", None)
            if transport is not None:
                transport.close()

        self._serve_task.cancel()
        return abandoned

    async def _force_close(self) -> int:
        abandoned = self._abort_connections()
        done, _ = await asyncio.wait({self._serve_task}, timeout=FORCE_CLOSE_GRACE)
        if not done:
            log.warn("Serve task did not stop after cancellation")
        return abandoned

    def _release_listener(self) -> None:
        # uvicorn skips its own shutdown when asked to exit during startup.
        for server in getattr(self._server, "servers", None) or []:
            server.close()
        if self._socket is not None:
            self._socket.close()

    def _finish(self, outcome: Outcome) -> Outcome:
        if self._state is LifecycleState.TERMINATED:
            raise RuntimeError("outcome already produced for this run")
        self._state = LifecycleState.TERMINATED
        self._outcome = outcome
        log.info(f"Run finished: {outcome.describe()}")
        return outcome


async def _wait_for_stop(stop: Any) -> None:
    if stop is None:
        await asyncio.get_running_loop().create_future()
    elif inspect.iscoroutinefunction(getattr(stop, "wait", None)):
        await stop.wait()
    elif callable(getattr(stop, "wait", None)):
        await _wait_in_executor(stop.wait)
    elif asyncio.isfuture(stop):
        # The caller owns the future; cancelling the waiter must not cancel it.
        await asyncio.shield(stop)
    else:
        await stop


async def _wait_in_executor(wait) -> None:
    """Poll a blocking ``wait(timeout)`` (threading.Event) from the default executor.

    Each call is bounded by STOP_POLL_INTERVAL, so cancelling the waiter never
    leaves a worker thread blocked indefinitely.
    """
    loop = asyncio.get_running_loop()
    while not await loop.run_in_executor(None, wait, STOP_POLL_INTERVAL):
        pass
