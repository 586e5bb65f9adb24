"""
Hearth — local always-on assistant
Entry point. Run with: python main.py [--mode api|terminal|both]
"""

import argparse
import asyncio
import logging

import uvicorn

from hearth.core.config import get_settings
from hearth.core.log import configure_logging
from hearth.factory import create_app
from hearth.runtime import Runtime
from hearth.terminal import TerminalFrontend

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hearth — local always-on assistant")
    parser.add_argument(
        "--mode",
        choices=["api", "terminal", "both"],
        default="api",
        help="Front-end to run (default: api)",
    )
    return parser.parse_args()


async def run_terminal(runtime: Runtime) -> None:
    await runtime.start()
    try:
        await TerminalFrontend(runtime).run()
    finally:
        await runtime.stop()


async def run_both(runtime: Runtime) -> None:
    settings = runtime.settings
    await runtime.start()
    config = uvicorn.Config(
        create_app(runtime),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    api_task = asyncio.create_task(server.serve())
    try:
        await TerminalFrontend(runtime).run()
    finally:
        server.should_exit = True
        await api_task
        await runtime.stop()


def main() -> None:
    args = parse_args()
    settings = get_settings()

    if args.mode == "api":
        configure_logging(settings)
        uvicorn.run(
            create_app(),
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
        return

    # Keep the REPL clean: logs go to the log file
    configure_logging(settings, log_file=settings.log_file)
    runtime = Runtime(settings)
    if args.mode == "terminal":
        asyncio.run(run_terminal(runtime))
    else:
        asyncio.run(run_both(runtime))


if __name__ == "__main__":
    main()
