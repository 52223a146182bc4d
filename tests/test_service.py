"""
Tests for the DocumentService pipeline.
"""

import asyncio
import io
import json

import pytest
from pypdf import PdfReader

from conftest import FailingConvertor, FakeConvertor, RecordingRenderer
from gobl_html.errors import ClientInputError, ConvertError, ConvertUnavailable, RenderError
from gobl_html.rendering import DocumentService, Layout


@pytest.mark.asyncio
async def test_generate_attaches_original_body(invoice_body):
    renderer, convertor = RecordingRenderer(), FakeConvertor()
    pdf = await DocumentService(renderer, convertor).generate(invoice_body)

    reader = PdfReader(io.BytesIO(pdf))
    assert reader.attachments["gobl.json"] == [invoice_body]
    assert len(renderer.calls) == 1
    assert len(convertor.calls) == 1
    assert b"Provide One S.L." in convertor.calls[0]


@pytest.mark.asyncio
async def test_generate_uses_fixed_render_options(invoice_body):
    renderer = RecordingRenderer()
    await DocumentService(renderer, FakeConvertor()).generate(invoice_body)

    _, options = renderer.calls[0]
    assert options.embed_stylesheets is True
    assert options.layout is Layout.A4
    assert options.locale is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b'{"bad": "json"', b"", b"null", b'{"bad": "json"}'])
async def test_invalid_input_stops_pipeline(body):
    renderer, convertor = RecordingRenderer(), FakeConvertor()
    with pytest.raises(ClientInputError) as exc:
        await DocumentService(renderer, convertor).generate(body)

    assert exc.value.http_status == 400
    assert exc.value.message.startswith("unmarshalling GOBL envelope: ")
    assert renderer.calls == []
    assert convertor.calls == []


@pytest.mark.asyncio
async def test_schema_failure_detail_in_message(invoice_envelope):
    del invoice_envelope["head"]["dig"]
    with pytest.raises(ClientInputError) as exc:
        await DocumentService(RecordingRenderer(), FakeConvertor()).generate(json.dumps(invoice_envelope).encode())
    assert "head.dig" in exc.value.message


@pytest.mark.asyncio
async def test_render_failure(invoice_body):
    convertor = FakeConvertor()
    renderer = RecordingRenderer(fail=ValueError("template blew up"))
    with pytest.raises(RenderError) as exc:
        await DocumentService(renderer, convertor).generate(invoice_body)

    assert exc.value.http_status == 500
    assert exc.value.message == "rendering HTML: template blew up"
    assert convertor.calls == []


@pytest.mark.asyncio
async def test_no_convertor_still_renders(invoice_body):
    renderer = RecordingRenderer()
    with pytest.raises(ConvertUnavailable) as exc:
        await DocumentService(renderer, None).generate(invoice_body)

    assert exc.value.message == "no PDF convertor available"
    assert len(renderer.calls) == 1


@pytest.mark.asyncio
async def test_convert_failure(invoice_body):
    with pytest.raises(ConvertError) as exc:
        await DocumentService(RecordingRenderer(), FailingConvertor()).generate(invoice_body)
    assert exc.value.message == "converting to PDF: backend exploded"


@pytest.mark.asyncio
async def test_repeated_requests_are_independent(invoice_body):
    convertor = FakeConvertor()
    service = DocumentService(RecordingRenderer(), convertor)

    first = await service.generate(invoice_body)
    second = await service.generate(invoice_body)

    assert len(convertor.calls) == 2
    for pdf in (first, second):
        assert PdfReader(io.BytesIO(pdf)).attachments["gobl.json"] == [invoice_body]


@pytest.mark.asyncio
async def test_cancellation_propagates_into_render(invoice_body):
    started = asyncio.Event()

    class SlowRenderer:
        async def render(self, envelope, options):
            started.set()
            await asyncio.sleep(10)

    convertor = FakeConvertor()
    task = asyncio.create_task(DocumentService(SlowRenderer(), convertor).generate(invoice_body))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert convertor.calls == []
