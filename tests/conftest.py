"""
Shared fixtures: sample GOBL envelopes and fake pipeline collaborators.
"""

import io
import json

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfWriter

from gobl_html.rendering import DocumentService
from gobl_html.rendering.adapters import BaseConvertor
from gobl_html.rendering.html import JinjaRenderer
from gobl_html.webapi import build_app


def blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=595, height=842)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


class FakeConvertor(BaseConvertor):
    """Convertor producing a blank one-page PDF; attachments go through pypdf."""

    name = "fake"

    def __init__(self) -> None:
        self.calls: list[bytes] = []

    async def _render(self, html: bytes) -> bytes:
        self.calls.append(html)
        return blank_pdf()


class FailingConvertor(BaseConvertor):
    name = "failing"

    async def _render(self, html: bytes) -> bytes:
        raise RuntimeError("backend exploded")


class RecordingRenderer:
    """Wraps a real renderer and records every call."""

    def __init__(self, inner=None, fail: Exception | None = None) -> None:
        self.inner = inner or JinjaRenderer()
        self.fail = fail
        self.calls = []

    async def render(self, envelope, options):
        self.calls.append((envelope, options))
        if self.fail is not None:
            raise self.fail
        return await self.inner.render(envelope, options)


@pytest.fixture
def invoice_envelope() -> dict:
    return {
        "$schema": "https://gobl.org/draft-0/envelope",
        "head": {
            "uuid": "0190bb2b-4e1a-7d2c-9a5f-6a1a3c9c3f11",
            "dig": {
                "alg": "sha256",
                "val": "7d539c46ca03a4ecb1fcc4cb00d2ada34275708ee326caafee04d9dcfed862ee",
            },
        },
        "doc": {
            "$schema": "https://gobl.org/draft-0/bill/invoice",
            "type": "standard",
            "series": "SAMPLE",
            "code": "001",
            "issue_date": "2024-01-13",
            "currency": "EUR",
            "supplier": {
                "tax_id": {"country": "ES", "code": "B98602642"},
                "name": "Provide One S.L.",
                "emails": [{"addr": "billing@example.com"}],
                "addresses": [
                    {
                        "num": "42",
                        "street": "Calle Pradillo",
                        "locality": "Madrid",
                        "region": "Madrid",
                        "code": "28002",
                        "country": "ES",
                    }
                ],
            },
            "customer": {
                "tax_id": {"country": "ES", "code": "54387763P"},
                "name": "Sample Consumer",
            },
            "lines": [
                {
                    "i": 1,
                    "quantity": "20",
                    "item": {"name": "Development services", "price": "90.00", "unit": "h"},
                    "sum": "1800.00",
                    "discounts": [{"percent": "10%", "amount": "180.00"}],
                    "taxes": [{"cat": "VAT", "rate": "standard", "percent": "21.0%"}],
                    "total": "1620.00",
                }
            ],
            "totals": {
                "sum": "1620.00",
                "total": "1620.00",
                "taxes": {
                    "categories": [
                        {
                            "code": "VAT",
                            "rates": [
                                {"key": "standard", "base": "1620.00", "percent": "21.0%", "amount": "340.20"}
                            ],
                            "amount": "340.20",
                        }
                    ],
                    "sum": "340.20",
                },
                "tax": "340.20",
                "total_with_tax": "1960.20",
                "payable": "1960.20",
            },
            "notes": [{"key": "general", "text": "Thank you for your business."}],
        },
        "sigs": [],
    }


@pytest.fixture
def invoice_body(invoice_envelope) -> bytes:
    # Indented on purpose: the attachment must match these exact bytes
    return json.dumps(invoice_envelope, indent=2).encode("utf-8")


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def convertor() -> FakeConvertor:
    return FakeConvertor()


@pytest.fixture
def client(renderer, convertor) -> TestClient:
    app = build_app(DocumentService(renderer, convertor))
    return TestClient(app)


@pytest.fixture
def client_no_convertor(renderer) -> TestClient:
    app = build_app(DocumentService(renderer, None))
    return TestClient(app)
