import asyncio
import importlib
import io
import logging
import shutil
from dataclasses import dataclass
from enum import Enum

import httpx
from pypdf import PdfReader, PdfWriter

from .interfaces import Attachment, PdfConvertor

logger = logging.getLogger(__name__)


class ConvertorConfigError(ValueError):
    """Invalid PDF backend selection; raised at startup only."""


class ConvertorError(RuntimeError):
    """A configured PDF backend failed to produce a document."""


class BackendKind(str, Enum):
    NONE = "none"
    WKHTMLTOPDF = "wkhtmltopdf"
    WEASYPRINT = "weasyprint"
    GOTENBERG = "gotenberg"


@dataclass(frozen=True)
class ConvertorConfig:
    kind: BackendKind
    url: str | None = None
    executable: str = "wkhtmltopdf"

    @classmethod
    def parse(cls, name: str | None, url: str | None = None) -> "ConvertorConfig":
        key = (name or "").strip().lower()
        if not key:
            return cls(BackendKind.NONE, url=url or None)
        try:
            kind = BackendKind(key)
        except ValueError:
            known = ", ".join(k.value for k in BackendKind)
            raise ConvertorConfigError(f"unknown PDF convertor {name!r} (expected one of: {known})") from None
        return cls(kind, url=url or None)


def new_convertor(config: ConvertorConfig) -> PdfConvertor | None:
    """Resolve a backend selection into a ready-to-use convertor.

    Returns None for BackendKind.NONE. Missing prerequisites (binary not on
    PATH, weasyprint or its native libraries not loadable, remote URL not
    given) raise ConvertorConfigError.
    """
    if config.kind is BackendKind.NONE:
        return None
    if config.kind is BackendKind.WKHTMLTOPDF:
        exe = shutil.which(config.executable)
        if exe is None:
            raise ConvertorConfigError(f"{config.executable} executable not found in PATH")
        return WkhtmltopdfConvertor(exe)
    if config.kind is BackendKind.WEASYPRINT:
        try:
            importlib.import_module("weasyprint")
        except (ImportError, OSError) as e:
            # OSError: Pango/GObject missing
            raise ConvertorConfigError(f"weasyprint is not usable: {e}") from e
        return WeasyPrintConvertor()
    if config.kind is BackendKind.GOTENBERG:
        if not config.url:
            raise ConvertorConfigError("gotenberg convertor requires a URL")
        return GotenbergConvertor(config.url)
    raise ConvertorConfigError(f"unsupported PDF convertor {config.kind.value!r}")


def embed_attachment(pdf: bytes, attachment: Attachment) -> bytes:
    """Return a copy of the PDF with the attachment embedded as a file."""
    reader = PdfReader(io.BytesIO(pdf))
    writer = PdfWriter(clone_from=reader)
    writer.add_attachment(attachment.filename, attachment.data)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


class BaseConvertor(PdfConvertor):
    """Shared convert flow: backend render, then attachment embedding."""

    name = "base"

    async def convert(self, html: bytes, attachment: Attachment | None = None) -> bytes:
        pdf = await self._render(html)
        if not pdf:
            raise ConvertorError(f"{self.name} produced an empty document")
        if attachment is not None:
            pdf = await asyncio.to_thread(embed_attachment, pdf, attachment)
        logger.info("%s produced PDF: %d bytes", self.name, len(pdf))
        return pdf

    async def _render(self, html: bytes) -> bytes:
        raise NotImplementedError


class WkhtmltopdfConvertor(BaseConvertor):
    name = "wkhtmltopdf"

    def __init__(self, executable: str) -> None:
        self._executable = executable

    async def _render(self, html: bytes) -> bytes:
        proc = await asyncio.create_subprocess_exec(
            self._executable,
            "--quiet",
            "--encoding",
            "utf-8",
            "-",
            "-",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            out, err = await proc.communicate(html)
        except asyncio.CancelledError:
            # Don't leave the child running once the request is gone
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise
        if proc.returncode != 0:
            detail = err.decode("utf-8", errors="replace").strip()
            raise ConvertorError(f"wkhtmltopdf exited with status {proc.returncode}: {detail}")
        return out


class WeasyPrintConvertor(BaseConvertor):
    name = "weasyprint"

    async def _render(self, html: bytes) -> bytes:
        return await asyncio.to_thread(self._write_pdf, html)

    @staticmethod
    def _write_pdf(html: bytes) -> bytes:
        from weasyprint import HTML  # type: ignore

        return HTML(string=html.decode("utf-8")).write_pdf()


class GotenbergConvertor(BaseConvertor):
    """Remote conversion through a Gotenberg service's Chromium route."""

    name = "gotenberg"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = url.rstrip("/") + "/forms/chromium/convert/html"
        self._timeout = timeout
        self._transport = transport

    async def _render(self, html: bytes) -> bytes:
        files = {"files": ("index.html", html, "text/html")}
        data = {"preferCssPageSize": "true", "printBackground": "true"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._endpoint, files=files, data=data)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ConvertorError(
                f"gotenberg returned HTTP {e.response.status_code}: {e.response.text.strip()}"
            ) from e
        except httpx.HTTPError as e:
            raise ConvertorError(f"gotenberg request failed: {e}") from e
        return resp.content
