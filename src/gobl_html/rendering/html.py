import asyncio
import logging
from pathlib import Path

from jinja2 import ChainableUndefined, Environment, PackageLoader, select_autoescape

from .envelope import Envelope
from .interfaces import HtmlRenderer, Layout, RenderOptions

logger = logging.getLogger(__name__)

STYLES_DIR = Path(__file__).resolve().parent.parent / "assets" / "styles"

# Document kind -> (template, title key)
TEMPLATES: dict[str, tuple[str, str]] = {
    "bill/invoice": ("bill.html.j2", "invoice"),
    "bill/order": ("bill.html.j2", "order"),
    "bill/delivery": ("bill.html.j2", "delivery"),
}

LAYOUT_STYLESHEETS: dict[Layout, str] = {
    Layout.A4: "a4.css",
    Layout.LETTER: "letter.css",
}

DEFAULT_LOCALE = "en"

LABELS: dict[str, dict[str, str]] = {
    "en": {
        "invoice": "Invoice",
        "order": "Order",
        "delivery": "Delivery Note",
        "draft": "Draft",
        "issue_date": "Issue date",
        "currency": "Currency",
        "supplier": "Supplier",
        "customer": "Customer",
        "tax_id": "Tax ID",
        "description": "Description",
        "quantity": "Qty",
        "price": "Price",
        "discount": "Discount",
        "tax": "Tax",
        "amount": "Amount",
        "sum": "Sum",
        "total": "Total",
        "total_with_tax": "Total with tax",
        "payable": "Payable",
        "notes": "Notes",
        "payment": "Payment",
        "due": "Due",
        "reference": "Reference",
    },
    "es": {
        "invoice": "Factura",
        "order": "Pedido",
        "delivery": "Albarán",
        "draft": "Borrador",
        "issue_date": "Fecha de emisión",
        "currency": "Moneda",
        "supplier": "Proveedor",
        "customer": "Cliente",
        "tax_id": "NIF",
        "description": "Descripción",
        "quantity": "Cant.",
        "price": "Precio",
        "discount": "Descuento",
        "tax": "Impuesto",
        "amount": "Importe",
        "sum": "Suma",
        "total": "Total",
        "total_with_tax": "Total con impuestos",
        "payable": "A pagar",
        "notes": "Notas",
        "payment": "Pago",
        "due": "Vencimiento",
        "reference": "Referencia",
    },
}


class UnsupportedDocumentError(ValueError):
    """Raised for document kinds without a template."""


class JinjaRenderer(HtmlRenderer):
    """Renders GOBL bill documents with the packaged Jinja2 templates.

    Stylesheets are read once at construction; the renderer holds no
    per-request state and can be shared by concurrent requests.
    """

    def __init__(self, styles_dir: Path = STYLES_DIR) -> None:
        self._env = Environment(
            loader=PackageLoader("gobl_html", "templates"),
            autoescape=select_autoescape(["html", "j2"]),
            undefined=ChainableUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._styles = {
            name: (styles_dir / name).read_text(encoding="utf-8")
            for name in ("main.css", *LAYOUT_STYLESHEETS.values())
        }

    async def render(self, envelope: Envelope, options: RenderOptions) -> bytes:
        return await asyncio.to_thread(self._render, envelope, options)

    def _render(self, envelope: Envelope, options: RenderOptions) -> bytes:
        kind = envelope.doc.kind
        try:
            template_name, title_key = TEMPLATES[kind]
        except KeyError:
            raise UnsupportedDocumentError(f"unsupported document type {kind!r}") from None

        locale = options.locale if options.locale in LABELS else DEFAULT_LOCALE
        sheets = ["main.css", LAYOUT_STYLESHEETS[options.layout]]
        template = self._env.get_template(template_name)
        html = template.render(
            head=envelope.head,
            doc=envelope.doc.fields,
            kind=kind,
            title_key=title_key,
            labels=LABELS[locale],
            lang=locale,
            embed_stylesheets=options.embed_stylesheets,
            stylesheets=[(name, self._styles[name]) for name in sheets],
        )
        logger.debug("rendered %s %s (%d chars)", kind, envelope.head.uuid, len(html))
        return html.encode("utf-8")
