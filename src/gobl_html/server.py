"""Server lifecycle: start the listener, stop it gracefully on request.

`Lifecycle.run` walks STARTING -> RUNNING -> SHUTTING_DOWN -> STOPPED. The
stop event is the only shutdown trigger; uvicorn's own signal handling is
disabled so the caller (see `gobl_html.main`) decides what a signal means.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

import uvicorn
from fastapi import FastAPI

from gobl_html.config import ServeConfig, configure_logging
from gobl_html.errors import ShutdownTimeoutError, StartupError
from gobl_html.rendering import DocumentService, HtmlRenderer
from gobl_html.rendering.adapters import ConvertorConfig, ConvertorConfigError, new_convertor
from gobl_html.rendering.html import JinjaRenderer
from gobl_html.webapi import build_app

logger = logging.getLogger(__name__)


class ServerState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ServerLike(Protocol):
    should_exit: bool
    force_exit: bool

    async def serve(self) -> None:
        ...

    async def abort(self) -> None:
        """Drop open connections and cancel the requests still running."""
        ...


class ListenerError(RuntimeError):
    pass


class _Server(uvicorn.Server):
    def install_signal_handlers(self) -> None:
        # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        # uvicorn >= 0.29
        yield

    async def abort(self) -> None:
        state = self.server_state
        for conn in list(state.connections):
            transport = getattr(conn, "transport", None)
            if transport is not None:
                transport.abort()
        tasks = list(state.tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.warning("abandoned %d in-flight request(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)


def uvicorn_server(config: ServeConfig) -> Callable[[FastAPI], ServerLike]:
    def factory(app: FastAPI) -> ServerLike:
        return _Server(
            uvicorn.Config(
                app,
                host=config.host,
                port=config.port,
                log_config=None,
                log_level=config.log_level.lower(),
            )
        )

    return factory


class Lifecycle:
    def __init__(
        self,
        config: ServeConfig,
        *,
        renderer: HtmlRenderer | None = None,
        server_factory: Callable[[FastAPI], ServerLike] | None = None,
    ) -> None:
        self._config = config
        self._renderer = renderer
        self._server_factory = server_factory or uvicorn_server(config)
        self._state = ServerState.STOPPED
        self.app: FastAPI | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    def _set_state(self, state: ServerState) -> None:
        logger.debug("server state %s -> %s", self._state.value, state.value)
        self._state = state

    async def run(self, stop: asyncio.Event) -> None:
        """Serve until `stop` is set or the listener fails.

        Raises StartupError for bad PDF backend configuration (before any
        socket is bound) or for a listener failure (after shutdown has
        completed), and ShutdownTimeoutError when in-flight requests outlive
        the grace period. A listener failure takes priority over a shutdown
        error.
        """
        self._set_state(ServerState.STARTING)
        configure_logging(self._config.log_level)
        try:
            convertor = new_convertor(ConvertorConfig.parse(self._config.pdf, self._config.pdf_url))
        except ConvertorConfigError as e:
            self._set_state(ServerState.STOPPED)
            raise StartupError(f"preparing PDF convertor: {e}") from e

        service = DocumentService(self._renderer or JinjaRenderer(), convertor)
        self.app = build_app(service, self._config)
        server = self._server_factory(self.app)

        serve_task = asyncio.create_task(_serve(server))
        stop_task = asyncio.create_task(stop.wait())
        self._set_state(ServerState.RUNNING)
        logger.info(
            "listening on %s:%d (pdf convertor: %s)",
            self._config.host,
            self._config.port,
            self._config.pdf or "none",
        )

        await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        stop_task.cancel()
        listener_err = _listener_error(serve_task)

        self._set_state(ServerState.SHUTTING_DOWN)
        shutdown_err: ShutdownTimeoutError | None = None
        try:
            await self._shutdown(server, serve_task)
        except ShutdownTimeoutError as e:
            shutdown_err = e
        finally:
            self._set_state(ServerState.STOPPED)

        if listener_err is None:
            listener_err = _listener_error(serve_task)
        if listener_err is not None:
            raise StartupError(f"starting server: {listener_err}") from listener_err
        if shutdown_err is not None:
            raise shutdown_err
        logger.info("server stopped")

    async def _shutdown(self, server: ServerLike, serve_task: asyncio.Task) -> None:
        if serve_task.done():
            return
        timeout = self._config.shutdown_timeout
        logger.info("shutting down, waiting up to %.1fs for in-flight requests", timeout)
        server.should_exit = True
        done, _ = await asyncio.wait({serve_task}, timeout=timeout)
        if done:
            return
        server.force_exit = True
        serve_task.cancel()
        await asyncio.gather(serve_task, return_exceptions=True)
        await server.abort()
        raise ShutdownTimeoutError(f"graceful shutdown did not complete within {timeout:g}s")


async def _serve(server: ServerLike) -> None:
    try:
        await server.serve()
    except SystemExit as e:
        # uvicorn exits the process on bind failures
        raise ListenerError(f"listener exited with status {e.code}") from e


def _listener_error(task: asyncio.Task) -> BaseException | None:
    if not task.done() or task.cancelled():
        return None
    return task.exception()
