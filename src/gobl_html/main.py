"""
GOBL HTML Service entrypoint - parses flags and runs the server lifecycle.
"""

import argparse
import asyncio
import contextlib
import dataclasses
import logging
import signal
import sys

from gobl_html.config import ServeConfig
from gobl_html.errors import GoblHtmlError
from gobl_html.server import Lifecycle

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None, env: ServeConfig | None = None) -> ServeConfig:
    """Build the effective config: environment defaults overridden by flags."""
    base = env or ServeConfig.from_env()
    parser = argparse.ArgumentParser(
        prog="gobl-html",
        description="Serve GOBL envelopes POSTed to / as PDF documents.",
    )
    parser.add_argument("-p", "--port", type=int, default=base.port, help="port to listen on")
    parser.add_argument("--host", default=base.host, help="interface to bind")
    parser.add_argument("--pdf", default=base.pdf, help="PDF convertor to use (wkhtmltopdf, weasyprint, gotenberg)")
    parser.add_argument("--pdf-url", default=base.pdf_url, help="URL of the PDF convertor to use (if needed)")
    parser.add_argument("--log-level", default=base.log_level, help="logging level")
    args = parser.parse_args(argv)
    return dataclasses.replace(
        base,
        port=args.port,
        host=args.host,
        pdf=args.pdf,
        pdf_url=args.pdf_url or None,
        log_level=args.log_level.upper(),
    )


async def serve(config: ServeConfig) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is unavailable on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    await Lifecycle(config).run(stop)


def run(argv: list[str] | None = None) -> None:
    """Run the GOBL HTML server until interrupted.

    Exits with status 1 if the server could not start or did not shut down
    within its grace period.
    """
    config = parse_args(argv)
    try:
        asyncio.run(serve(config))
    except GoblHtmlError as e:
        logger.error("%s", e.message)
        sys.exit(1)


if __name__ == "__main__":
    run()
