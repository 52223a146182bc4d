import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.requests import ClientDisconnect

from gobl_html import __version__
from gobl_html.config import ServeConfig
from gobl_html.errors import GoblHtmlError, ReadError
from gobl_html.rendering import DocumentService
from gobl_html.rendering.html import STYLES_DIR

logger = logging.getLogger(__name__)

DISCONNECT_POLL_INTERVAL = 0.25


def build_app(service: DocumentService, config: ServeConfig | None = None) -> FastAPI:
    """Build the FastAPI application around a ready DocumentService.

    The service (and the convertor inside it) is created once by the caller
    and shared read-only by every request.
    """
    config = config or ServeConfig()
    app = FastAPI(
        title="GOBL HTML Service",
        version=__version__,
        description=(
            "Renders GOBL envelopes to HTML and returns them as PDF with the "
            "source JSON attached."
        ),
    )
    app.state.service = service
    app.state.config = config

    app.mount("/styles", StaticFiles(directory=str(STYLES_DIR)), name="styles")

    @app.exception_handler(GoblHtmlError)
    async def gobl_html_error_handler(request: Request, exc: GoblHtmlError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_dict()})

    @app.get("/health")
    def health() -> dict[str, object]:
        """Basic health check endpoint."""
        backend = config.pdf if service.has_convertor else None
        return {"status": "ok", "pdf": backend or None}

    @app.post("/")
    async def generate(request: Request) -> Response:
        """Render a GOBL envelope posted as the raw JSON body to PDF."""
        try:
            body = await request.body()
        except ClientDisconnect as e:
            raise ReadError("reading request body: client disconnected") from e

        pdf = await _until_disconnect(request, service.generate(body))
        return Response(content=pdf, media_type="application/pdf")

    return app


async def _until_disconnect(request: Request, coro):
    """Await coro, cancelling it if the client goes away first."""
    task = asyncio.ensure_future(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("client disconnected from %s, abandoning request", request.url.path)
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                raise ReadError("client disconnected")
    finally:
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
