"""
NatJus Backend — PDF Text Extraction Adapter
==============================================

What:  Turns a stored PDF into text the LLM can structure.
How:   PdfTextExtractor opens the PDF with pdfplumber (in a worker thread,
       since pdfplumber is blocking) and joins the text of every page.
       Local files are read straight from STORAGE_ROOT; anything else is
       downloaded with httpx.

Contract:
    extract() never raises for content problems. It returns an
    ExtractionResult whose status is "success" or "error"; the pipeline
    aborts the file on "error".
"""

import asyncio
import io
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
import pdfplumber

from natjus.services.file_service import FileService

logger = logging.getLogger(__name__)

_DRIVE_VIEW = re.compile(r"https://drive\.google\.com/file/d/([^/]+)/view")


@dataclass
class ExtractionResult:
    status: str
    output: Dict[str, Any] = field(default_factory=dict)
    details: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class ExtractionAdapter(ABC):
    @abstractmethod
    async def extract(
        self,
        file_url: str,
        json_schema: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
    ) -> ExtractionResult:
        """
        Extract the document behind file_url.

        json_schema describes the record being built; adapters that do
        schema-guided extraction use it, plain-text adapters ignore it.
        content, when given, is the file's bytes and spares a download.
        """
        ...


def _read_pdf_text(source: Union[Path, bytes]) -> Dict[str, Any]:
    stream = io.BytesIO(source) if isinstance(source, bytes) else source
    with pdfplumber.open(stream) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return {"texto": "\n\n".join(p.strip() for p in pages if p.strip()), "paginas": len(pages)}


class PdfTextExtractor(ExtractionAdapter):
    def __init__(self, file_service: FileService, http_client: Optional[httpx.AsyncClient] = None):
        self.file_service = file_service
        self._http = http_client

    async def _download(self, file_url: str) -> bytes:
        match = _DRIVE_VIEW.match(file_url)
        url = f"https://drive.google.com/uc?export=download&id={match.group(1)}" if match else file_url
        client = self._http or httpx.AsyncClient(timeout=60.0, follow_redirects=True)
        try:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
        finally:
            if self._http is None:
                await client.aclose()

    async def extract(
        self,
        file_url: str,
        json_schema: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
    ) -> ExtractionResult:
        try:
            source: Union[Path, bytes, None] = content
            if source is None:
                source = self.file_service.resolve_path(file_url)
            if source is None:
                source = await self._download(file_url)
            output = await asyncio.to_thread(_read_pdf_text, source)
        except Exception as e:
            # pdfminer raises a wide family of parser errors; all mean "unreadable"
            logger.warning("Extraction failed for %s: %s", file_url, e)
            return ExtractionResult(status="error", details=str(e))

        if not output["texto"]:
            logger.warning("No extractable text in %s (%d pages)", file_url, output["paginas"])
            return ExtractionResult(
                status="error", output=output, details="PDF sem texto extraível"
            )

        logger.info(
            "Extracted %d chars from %d pages of %s",
            len(output["texto"]),
            output["paginas"],
            file_url,
        )
        return ExtractionResult(status="success", output=output)
