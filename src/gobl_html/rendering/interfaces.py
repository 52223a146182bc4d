from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .envelope import Envelope


ATTACHMENT_FILENAME = "gobl.json"


class Layout(str, Enum):
    A4 = "a4"
    LETTER = "letter"


@dataclass(frozen=True)
class RenderOptions:
    embed_stylesheets: bool = True
    layout: Layout = Layout.A4
    locale: str | None = None


@dataclass(frozen=True)
class Attachment:
    filename: str
    data: bytes


class HtmlRenderer(Protocol):
    async def render(self, envelope: "Envelope", options: RenderOptions) -> bytes:
        """Render the envelope's document as a complete UTF-8 HTML page.
        Cancelling the awaiting task must abort the render.
        """


class PdfConvertor(Protocol):
    async def convert(self, html: bytes, attachment: Attachment | None = None) -> bytes:
        """Convert an HTML page to PDF, embedding the attachment if given.
        Implementations are shared across concurrent requests and must not
        hold per-request state.
        """
