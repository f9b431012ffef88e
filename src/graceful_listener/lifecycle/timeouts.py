"""
Per-connection read and write timeouts.

uvicorn only bounds idle keep-alive connections. Two pieces close the gaps:

- HeaderTimeoutProtocol: h11 protocol that drops connections which do not
  deliver a complete request head within the read timeout
- ConnectionTimeouts: ASGI wrapper bounding the request body read and every
  chunk of the response write
"""

from __future__ import annotations

import asyncio
from typing import Optional

from uvicorn.protocols.http.h11_impl import H11Protocol

from graceful_listener.lifecycle.server_config import READ_TIMEOUT
from graceful_listener.lifecycle.errors import RequestReadTimeout, ResponseWriteTimeout
from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.SERVER)

_TIMEOUT_BODY = b"request read timeout"


class ConnectionTimeouts:
    """ASGI wrapper applying read and write timeouts to http scopes."""

    def __init__(self, app, read_timeout: float, write_timeout: float):
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        body_complete = False
        response_started = False

        async def timed_receive():
            nonlocal body_complete
            if body_complete:
                # Waiting for http.disconnect is not bounded.
                return await receive()
            try:
                message = await asyncio.wait_for(receive(), self.read_timeout)
            except asyncio.TimeoutError as exc:
                raise RequestReadTimeout(
                    f"no request data within {self.read_timeout}s"
                ) from exc
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def timed_send(message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            try:
                await asyncio.wait_for(send(message), self.write_timeout)
            except asyncio.TimeoutError as exc:
                raise ResponseWriteTimeout(
                    f"client did not accept response data within {self.write_timeout}s"
                ) from exc

        try:
            await self.app(scope, timed_receive, timed_send)
        except RequestReadTimeout as exc:
            client = scope.get("client")
            log.warn("Request read timed out", client=client, path=scope.get("path"))
            if response_started:
                raise
            await send({
                "type": "http.response.start",
                "status": 408,
                "headers": [
                    (b"content-type", b"text/plain; charset=utf-8"),
                    (b"content-length", str(len(_TIMEOUT_BODY)).encode()),
                    (b"connection", b"close"),
                ],
            })
            await send({"type": "http.response.body", "body": _TIMEOUT_BODY})
            log.debug(f"Sent 408 after {exc}")
        except ResponseWriteTimeout:
            log.warn("Response write timed out", client=scope.get("client"), path=scope.get("path"))
            raise


class HeaderTimeoutProtocol(H11Protocol):
    """
    H11Protocol with a deadline on receiving each request head.

    The clock starts when the connection is made, and again when bytes of a
    further request arrive on a kept-alive connection. It stops as soon as h11
    has parsed the request line and headers. Idle connections between
    requests stay under uvicorn's keep-alive timer.

    uvicorn builds protocols with keyword arguments only, so the coordinator
    passes ``functools.partial(HeaderTimeoutProtocol, read_timeout=...)`` as
    ``uvicorn.Config(http=...)``.
    """

    def __init__(self, *args, read_timeout: float = READ_TIMEOUT, **kwargs):
        super().__init__(*args, **kwargs)
        self.read_timeout = read_timeout
        self._head_timer: Optional[asyncio.TimerHandle] = None

    def connection_made(self, transport) -> None:
        super().connection_made(transport)
        self._arm_head_timer()

    def data_received(self, data: bytes) -> None:
        super().data_received(data)
        if not self._awaiting_head():
            self._cancel_head_timer()
        elif self._head_timer is None:
            self._arm_head_timer()

    def handle_websocket_upgrade(self, event) -> None:
        self._cancel_head_timer()
        super().handle_websocket_upgrade(event)

    def connection_lost(self, exc) -> None:
        self._cancel_head_timer()
        super().connection_lost(exc)

    def _awaiting_head(self) -> bool:
        return self.cycle is None or self.cycle.response_complete

    def _arm_head_timer(self) -> None:
        self._cancel_head_timer()
        self._head_timer = self.loop.call_later(self.read_timeout, self._on_head_timeout)

    def _cancel_head_timer(self) -> None:
        if self._head_timer is not None:
            self._head_timer.cancel()
            self._head_timer = None

    def _on_head_timeout(self) -> None:
        self._head_timer = None
        if self.transport.is_closing() or not self._awaiting_head():
            return
        log.warn("Request head not received in time, closing connection",
                 client=self.client, timeout=f"{self.read_timeout}s")
        self.transport.close()
