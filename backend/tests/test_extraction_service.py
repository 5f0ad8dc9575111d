"""
NatJus Backend — PDF Extraction Tests
=======================================

pdfplumber.open is patched with fake pages, so these tests exercise the
adapter's source selection and status contract rather than PDF parsing.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import httpx
import pytest

from natjus.services.extraction_service import PdfTextExtractor


@contextmanager
def fake_pdf(*page_texts):
    pdf = MagicMock()
    pdf.pages = [MagicMock(**{"extract_text.return_value": text}) for text in page_texts]
    pdf.__enter__.return_value = pdf
    with patch("natjus.services.extraction_service.pdfplumber.open", return_value=pdf) as opener:
        yield opener


async def test_text_from_in_memory_content(file_service, sample_pdf_bytes):
    with fake_pdf("Nota Técnica 2809/2024", None, "  Conclusão  ") as opener:
        result = await PdfTextExtractor(file_service).extract(
            "http://testserver/api/files/x.pdf", content=sample_pdf_bytes
        )

    assert result.ok
    assert result.output == {"texto": "Nota Técnica 2809/2024\n\nConclusão", "paginas": 3}
    assert opener.call_args.args[0].read() == sample_pdf_bytes


async def test_reads_local_file_when_no_content(file_service, sample_pdf_bytes):
    stored = await file_service.upload_file("nota.pdf", sample_pdf_bytes, "application/pdf")

    with fake_pdf("conteúdo") as opener:
        result = await PdfTextExtractor(file_service).extract(stored.file_url)

    assert result.ok
    assert opener.call_args.args[0] == file_service.resolve_path(stored.file_url)


async def test_downloads_drive_file(file_service, sample_pdf_bytes):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=sample_pdf_bytes)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with fake_pdf("conteúdo"):
        result = await PdfTextExtractor(file_service, http_client=client).extract(
            "https://drive.google.com/file/d/abc123/view"
        )

    assert result.ok
    assert seen == ["https://drive.google.com/uc?export=download&id=abc123"]


async def test_pdf_without_text_is_an_error(file_service, sample_pdf_bytes):
    with fake_pdf(None, ""):
        result = await PdfTextExtractor(file_service).extract("x", content=sample_pdf_bytes)

    assert result.status == "error"
    assert result.details == "PDF sem texto extraível"


async def test_unreadable_pdf_is_an_error(file_service):
    with patch(
        "natjus.services.extraction_service.pdfplumber.open",
        side_effect=ValueError("No /Root object! - Is this really a PDF?"),
    ):
        result = await PdfTextExtractor(file_service).extract("x", content=b"not a pdf")

    assert not result.ok
    assert "Root" in result.details


@pytest.mark.parametrize("status", [403, 404])
async def test_download_failure_is_an_error(file_service, status):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(status)))

    result = await PdfTextExtractor(file_service, http_client=client).extract("https://example.org/nota.pdf")

    assert result.status == "error"
