"""
Connection timeouts enforced by a running listener, exercised over real sockets.
"""

import asyncio
import contextlib

import pytest

from graceful_listener.lifecycle import LifecycleCoordinator, ResponseWriteTimeout, ShutdownSignal


async def _body_reading_app(scope, receive, send):
    """ASGI app that reads the whole request body before answering."""
    if scope["type"] != "http":
        return
    body = b""
    more_body = True
    while more_body:
        message = await receive()
        body += message.get("body", b"")
        more_body = message.get("more_body", False)
    await send({
        "type": "http.response.start",
        "status": 200,
        "headers": [(b"content-length", str(len(body)).encode())],
    })
    await send({"type": "http.response.body", "body": body})


class FloodApp:
    """ASGI app streaming far more data than a non-reading client can buffer."""

    CHUNK = b"x" * (1 << 20)
    CHUNKS = 256

    def __init__(self):
        self.chunks_sent = 0
        self.error = None

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return
        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"application/octet-stream")],
        })
        try:
            for _ in range(self.CHUNKS):
                await send({"type": "http.response.body", "body": self.CHUNK, "more_body": True})
                self.chunks_sent += 1
            await send({"type": "http.response.body", "body": b""})
        except ResponseWriteTimeout as exc:
            self.error = exc
            raise


@contextlib.asynccontextmanager
async def serving(coordinator, wait_until_serving):
    coordinator.shutdown_timeout = 2.0
    stop = ShutdownSignal()
    run_task = asyncio.create_task(coordinator.run(stop))
    await wait_until_serving(coordinator)
    try:
        yield coordinator.bound_port
    finally:
        stop.trigger("test finished")
        await asyncio.wait_for(run_task, timeout=15.0)


async def read_until_closed(reader, timeout: float = 5.0):
    """Return (data, seconds) read until the server closes the connection."""
    loop = asyncio.get_running_loop()
    started = loop.time()
    data = await asyncio.wait_for(reader.read(), timeout=timeout)
    return data, loop.time() - started


@pytest.mark.asyncio
async def test_silent_connection_is_closed_after_read_timeout(
    wait_until_serving, short_timeouts, noop_app
):
    coordinator = short_timeouts(LifecycleCoordinator("0", noop_app), read=0.5, idle=5.0)

    async with serving(coordinator, wait_until_serving) as port:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        data, elapsed = await read_until_closed(reader)
        writer.close()

    assert data == b""
    assert 0.4 <= elapsed < 3.0


@pytest.mark.asyncio
async def test_partial_request_head_is_closed_after_read_timeout(
    wait_until_serving, short_timeouts, noop_app
):
    coordinator = short_timeouts(LifecycleCoordinator("0", noop_app), read=0.5, idle=5.0)

    async with serving(coordinator, wait_until_serving) as port:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET / HTTP/1.1\r\nHost: x\r\n")
        await writer.drain()
        data, elapsed = await read_until_closed(reader)
        writer.close()

    assert data == b""
    assert 0.4 <= elapsed < 3.0


@pytest.mark.asyncio
async def test_head_completed_in_time_is_served(wait_until_serving, short_timeouts, noop_app):
    coordinator = short_timeouts(LifecycleCoordinator("0", noop_app), read=1.0)

    async with serving(coordinator, wait_until_serving) as port:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET / HTTP/1.1\r\nHost: x\r\n")
        await writer.drain()
        await asyncio.sleep(0.3)
        writer.write(b"\r\n")
        await writer.drain()
        head = await asyncio.wait_for(reader.readuntil(b"\r\n\r\n"), timeout=5.0)
        writer.close()

    assert head.startswith(b"HTTP/1.1 204")


@pytest.mark.asyncio
async def test_idle_keep_alive_connection_is_closed_after_idle_timeout(
    wait_until_serving, short_timeouts, noop_app
):
    coordinator = short_timeouts(LifecycleCoordinator("0", noop_app), read=10.0, idle=0.5)

    async with serving(coordinator, wait_until_serving) as port:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")
        await writer.drain()
        head = await asyncio.wait_for(reader.readuntil(b"\r\n\r\n"), timeout=5.0)
        data, elapsed = await read_until_closed(reader)
        writer.close()

    assert head.startswith(b"HTTP/1.1 204")
    assert data == b""
    assert 0.4 <= elapsed < 3.0


@pytest.mark.asyncio
async def test_stalled_request_body_gets_408(wait_until_serving, short_timeouts):
    coordinator = short_timeouts(LifecycleCoordinator("0", _body_reading_app), read=0.5)

    async with serving(coordinator, wait_until_serving) as port:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(
            b"POST /upload HTTP/1.1\r\nHost: x\r\nContent-Length: 100\r\n\r\n" + b"a" * 10
        )
        await writer.drain()
        data, elapsed = await read_until_closed(reader)
        writer.close()

    assert data.startswith(b"HTTP/1.1 408")
    assert data.endswith(b"request read timeout")
    assert 0.4 <= elapsed < 3.0


@pytest.mark.asyncio
async def test_client_not_reading_response_hits_write_timeout(wait_until_serving, short_timeouts):
    app = FloodApp()
    coordinator = short_timeouts(LifecycleCoordinator("0", app), write=0.5)

    async with serving(coordinator, wait_until_serving) as port:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET /download HTTP/1.1\r\nHost: x\r\n\r\n")
        await writer.drain()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + 10.0
        while app.error is None and loop.time() < deadline:
            await asyncio.sleep(0.1)
        writer.close()

    assert isinstance(app.error, ResponseWriteTimeout)
    assert app.chunks_sent < FloodApp.CHUNKS
