#!/usr/bin/env python3
"""Release Reconciler entry point.

    python main.py reconcile --release-id 249504
    python main.py lookup-upc --query "Daft Punk Discovery" --upc 724384971423

Exit codes: 0 on success, 1 on configuration or fatal runtime errors,
130 when interrupted.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

# src/ must be importable before the application packages are
sys.path.insert(0, str(Path(__file__).parent / "src"))

from app.app_config import Config
from app.cli import CLI
from app.orchestrator import Orchestrator
from core.exceptions import ConfigurationError, MatchStoreError
from core.logger import get_loggers

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class Runtime:
    """Loggers and the command orchestrator for one invocation."""

    def __init__(self, args: argparse.Namespace) -> None:
        config = Config(args.config)
        app_config = config.load()
        self.console_logger, self.error_logger, self.listener = get_loggers(app_config)
        if args.trace_scores:
            self._enable_debug_console()

        self.console_logger.info("Configuration: %s", config.resolved_path)
        if config.get("store.backend") == "json":
            self.console_logger.info("Match store: %s", config.get_path("store.path"))
        self.orchestrator = Orchestrator(app_config, self.console_logger, self.error_logger, trace_scores=args.trace_scores)

    def _enable_debug_console(self) -> None:
        self.console_logger.setLevel(logging.DEBUG)
        for handler in self.console_logger.handlers:
            handler.setLevel(logging.DEBUG)

    def shutdown(self) -> None:
        """Flush and close the run log."""
        if self.listener is not None:
            self.listener.close_handlers()


def _fail(error: Exception, error_logger: logging.Logger | None = None) -> None:
    if error_logger is not None:
        error_logger.critical("Fatal error: %s", error, exc_info=True)
    print(f"Fatal error: {error}", file=sys.stderr)
    sys.exit(EXIT_FAILURE)


async def main_async() -> None:
    """Parse arguments, run one command and report the elapsed time."""
    args = CLI().parse_args()
    started = time.monotonic()

    try:
        runtime = Runtime(args)
    except (ConfigurationError, FileNotFoundError) as e:
        _fail(e)
        return

    try:
        await runtime.orchestrator.run_command(args)
    except KeyboardInterrupt:
        runtime.console_logger.info("Interrupted by user.")
        sys.exit(EXIT_INTERRUPTED)
    except (MatchStoreError, RuntimeError, ValueError, OSError) as e:
        _fail(e, runtime.error_logger)
    finally:
        runtime.console_logger.info("Finished in %.2f seconds", time.monotonic() - started)
        runtime.shutdown()


def main() -> None:
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
