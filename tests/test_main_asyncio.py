import errno

import pytest

from graceful_listener.lifecycle import ShutdownSignal
from graceful_listener.main_asyncio import main, run
from graceful_listener.models.enums import OutcomeKind


def write_config(tmp_path, port):
    path = tmp_path / "listener.yaml"
    path.write_text(
        f"server:\n  port: '{port}'\n"
        "logging:\n  level: WARN\n  use_colors: false\n"
        "api:\n  title: Test Listener\n",
        encoding="utf-8",
    )
    return str(path)


@pytest.mark.asyncio
async def test_main_stops_cleanly_on_signal(tmp_path):
    stop = ShutdownSignal()
    stop.after(0.3)

    outcome = await main(write_config(tmp_path, 0), stop)

    assert outcome.kind is OutcomeKind.CLEAN_EXIT
    assert stop.reason == "deadline"


@pytest.mark.asyncio
async def test_main_reports_bind_failure(tmp_path, occupied_port):
    stop = ShutdownSignal()

    outcome = await main(write_config(tmp_path, occupied_port), stop)

    assert outcome.kind is OutcomeKind.ABNORMAL_EXIT
    assert isinstance(outcome.cause, OSError)
    assert outcome.cause.errno == errno.EADDRINUSE
    assert not stop.is_set()


def test_run_returns_failure_exit_code(tmp_path, occupied_port):
    assert run([write_config(tmp_path, occupied_port)]) == 1
