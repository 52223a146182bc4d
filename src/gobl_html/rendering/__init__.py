"""
Domain layer for GOBL document rendering.
Provides interfaces (gateways) and a service to orchestrate the
decode, HTML render and PDF convert pipeline, abstracting the template
engine and PDF backends so front-ends (HTTP or others) can use the same
core logic.
"""

from .interfaces import ATTACHMENT_FILENAME, Attachment, HtmlRenderer, Layout, PdfConvertor, RenderOptions
from .service import DocumentService
