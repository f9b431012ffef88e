import asyncio
import dataclasses

import pytest


async def _noop_app(scope, receive, send):
    """ASGI app answering every request with 204 and ignoring lifespan."""
    if scope["type"] != "http":
        return
    await send({"type": "http.response.start", "status": 204, "headers": []})
    await send({"type": "http.response.body", "body": b""})


async def _failing_lifespan_app(scope, receive, send):
    """ASGI app whose lifespan startup fails."""
    if scope["type"] == "lifespan":
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.failed", "message": "boom"})
        return
    await _noop_app(scope, receive, send)


class SlowApp:
    """ASGI app that holds every request for ``delay`` seconds."""

    def __init__(self, delay: float):
        self.delay = delay
        self.entered = asyncio.Event()
        self.completed = 0

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return
        self.entered.set()
        await asyncio.sleep(self.delay)
        body = b"done"
        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-length", str(len(body)).encode())],
        })
        await send({"type": "http.response.body", "body": body})
        self.completed += 1


@pytest.fixture
def wait_until_serving():
    async def _wait(coordinator, timeout: float = 5.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not coordinator.serving:
            if loop.time() > deadline:
                raise AssertionError(f"listener not serving after {timeout}s")
            await asyncio.sleep(0.02)
    return _wait


@pytest.fixture
def noop_app():
    return _noop_app


@pytest.fixture
def failing_lifespan_app():
    return _failing_lifespan_app


@pytest.fixture
def slow_app():
    """Factory for SlowApp instances."""
    return SlowApp


@pytest.fixture
def short_timeouts():
    """Shrink a coordinator's connection timeouts so live-socket tests stay fast."""
    def _apply(coordinator, read: float = 0.5, write: float = 0.5, idle: float = 0.5):
        coordinator._config = dataclasses.replace(
            coordinator.config, read_timeout=read, write_timeout=write, idle_timeout=idle
        )
        return coordinator
    return _apply
