"""
main_asyncio.py - command-line entry point
------------------------------------------

Responsible for:
- loading configuration and configuring the logger
- building the demo FastAPI application
- translating SIGINT/SIGTERM into a ShutdownSignal
- running one LifecycleCoordinator and turning its Outcome into an exit code
"""

import asyncio
import sys
from typing import List, Optional

from graceful_listener.api.main import create_app
from graceful_listener.lifecycle import LifecycleCoordinator, Outcome, ShutdownSignal
from graceful_listener.managers import ConfigManager
from graceful_listener.models.enums import LogCategory, OutcomeKind
from graceful_listener.utils.logger import get_logger, configure_logger

log = get_logger().for_category(LogCategory.SYSTEM)


async def main(
    config_path: Optional[str] = None,
    shutdown_signal: Optional[ShutdownSignal] = None,
) -> Outcome:
    """
    Run the listener until it fails or a shutdown is requested.

    Args:
        config_path: YAML file to load instead of the packaged config.yaml
        shutdown_signal: externally owned stop source; when omitted one is
            created and bound to SIGINT/SIGTERM
    """
    manager = ConfigManager(config_path) if config_path else ConfigManager()
    config = manager.load()
    configure_logger(config.log_level, config.use_colors)

    log.info("Starting listener...", port=config.port)

    app = create_app(title=config.title)
    coordinator = LifecycleCoordinator(config.port, app)

    owns_signal = shutdown_signal is None
    if owns_signal:
        shutdown_signal = ShutdownSignal()
        shutdown_signal.install(asyncio.get_running_loop())

    try:
        outcome = await coordinator.run(shutdown_signal)
    finally:
        if owns_signal:
            shutdown_signal.uninstall()

    if outcome.kind is OutcomeKind.ABNORMAL_EXIT:
        log.error(f"❌ Listener failed: {outcome.describe()}")
    elif outcome.kind is OutcomeKind.SHUTDOWN_TIMEOUT:
        log.warn(f"Listener stopped without a full drain: {outcome.describe()}")
    else:
        log.info("✓ Listener stopped cleanly", reason=shutdown_signal.reason or "transport closed")
    return outcome


def run(argv: Optional[List[str]] = None) -> int:
    """Console script: ``graceful-listener [CONFIG_PATH]``."""
    args = sys.argv[1:] if argv is None else argv
    config_path = args[0] if args else None
    outcome = asyncio.run(main(config_path))
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(run())
