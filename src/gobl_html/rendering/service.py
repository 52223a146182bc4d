import logging

from ..errors import ClientInputError, ConvertError, ConvertUnavailable, RenderError
from .envelope import EnvelopeError, decode
from .interfaces import ATTACHMENT_FILENAME, Attachment, HtmlRenderer, PdfConvertor, RenderOptions

logger = logging.getLogger(__name__)


class DocumentService:
    """Core pipeline turning a GOBL envelope into a PDF.

    This service is framework-agnostic: it takes the raw request body and
    runs decode, HTML render and PDF conversion strictly in sequence, each
    exactly once. Failures are raised as GoblHtmlError subclasses carrying
    the HTTP status the web layer should answer with. Cancellation of the
    awaiting task propagates into the render and convert calls untouched.
    """

    def __init__(self, renderer: HtmlRenderer, convertor: PdfConvertor | None) -> None:
        self._renderer = renderer
        self._convertor = convertor

    @property
    def has_convertor(self) -> bool:
        return self._convertor is not None

    async def generate(self, body: bytes) -> bytes:
        try:
            envelope = decode(body)
        except EnvelopeError as e:
            raise ClientInputError(f"unmarshalling GOBL envelope: {e}") from e

        options = RenderOptions()
        try:
            html = await self._renderer.render(envelope, options)
        except Exception as e:
            raise RenderError(f"rendering HTML: {e}") from e

        return await self._render_pdf(body, html)

    async def _render_pdf(self, gobl_json: bytes, html: bytes) -> bytes:
        if self._convertor is None:
            raise ConvertUnavailable()

        # Attach the bytes as received, not a re-serialized envelope
        attachment = Attachment(filename=ATTACHMENT_FILENAME, data=gobl_json)
        try:
            return await self._convertor.convert(html, attachment=attachment)
        except Exception as e:
            raise ConvertError(f"converting to PDF: {e}") from e
