import socket

import pytest


@pytest.fixture
def occupied_port():
    """A port held by another listening socket on all interfaces."""
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("0.0.0.0", 0))
    blocker.listen(1)
    try:
        yield str(blocker.getsockname()[1])
    finally:
        blocker.close()
