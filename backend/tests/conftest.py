"""
NatJus Backend — Test Configuration (conftest.py)
===================================================

What:  Shared fixtures: an on-disk SQLite database, a temporary storage
       root, stub LLM providers and an HTTP client bound to the app.
How:   Environment variables are set BEFORE any natjus import so the
       settings singleton, the engine and FileService all pick them up.

Fixture Overview:
    db_engine      creates every table, drops them afterwards
    db_session     AsyncSession on that database
    file_service   FileService rooted in a per-test tmp directory
    make_nota      factory that persists a NotaTecnica with sensible defaults
    test_client    httpx AsyncClient over ASGITransport
"""

import os
import tempfile
from datetime import date
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any natjus import)
# ══════════════════════════════════════════════════════════════════════════

_TEST_DIR = tempfile.mkdtemp(prefix="natjus_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/natjus_test.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "storage")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MAX_ATTEMPTS"] = "1"
os.environ["LLM_GATEWAY_API_KEY"] = "test-gateway-key"
for _secret in (
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_DRIVE_CREDENTIALS_JSON",
    "GOOGLE_DRIVE_CREDENTIALS_FILE",
    "GOOGLE_DRIVE_FOLDER_ID",
):
    os.environ[_secret] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from natjus.database import Base, async_session_factory, engine  # noqa: E402
from natjus.models import NotaTecnica  # noqa: E402
from natjus.services.extraction_service import ExtractionResult  # noqa: E402
from natjus.services.file_service import FileService  # noqa: E402
from natjus.services.llm_base import TextGenerator  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def nota_data() -> Dict[str, Any]:
    return {
        "numero": "2809/2024",
        "tipo": "processual",
        "titulo": "Canabidiol para epilepsia refratária",
        "data_emissao": date(2024, 5, 10),
        "demanda": "Vara Cível",
        "procedimento": "Fornecimento de medicamento",
        "representante_comarca": "Comarca de Natal",
        "resumo": "Avaliação do uso de canabidiol em epilepsia refratária.",
        "tags": ["epilepsia", "saude"],
        "conteudo_extraido": '{"texto": "Nota técnica sobre canabidiol"}',
        "arquivo_url": "http://testserver/api/files/2024/05/10/nota.pdf",
        "nome_arquivo": "nota.pdf",
        "storage_provider": "base44",
    }


@pytest_asyncio.fixture
async def make_nota(db_session, nota_data):
    """Persist a note; keyword arguments override the default nota_data."""

    async def _make(**overrides) -> NotaTecnica:
        nota = NotaTecnica(**{**nota_data, **overrides})
        db_session.add(nota)
        await db_session.commit()
        await db_session.refresh(nota)
        return nota

    return _make


# ══════════════════════════════════════════════════════════════════════════
# Storage and providers
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def file_service(tmp_path):
    return FileService(storage_root=str(tmp_path / "storage"), public_base_url="http://testserver")


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Header bytes only; extraction is mocked wherever these are used."""
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"


@pytest.fixture
def structured_payload() -> Dict[str, Any]:
    return {
        "numero": "1234/2024",
        "tipo": "pre-processual",
        "titulo": "Home care para paciente acamado",
        "data_emissao": "2024-03-15",
        "demanda": "Defensoria Pública",
        "procedimento": "Internação domiciliar",
        "representante_comarca": "Mossoró",
        "resumo": "Análise de pedido de home care.",
        "tags": ["home care", "idoso"],
    }


@pytest.fixture
def default_llm(structured_payload):
    """Default-gateway stand-in returning a valid structured note."""
    llm = MagicMock(spec=TextGenerator)
    llm.provider = "base44"
    llm.generate_content = AsyncMock(return_value=dict(structured_payload))
    return llm


@pytest.fixture
def extractor():
    adapter = MagicMock()
    adapter.extract = AsyncMock(
        return_value=ExtractionResult(status="success", output={"texto": "Nota técnica", "paginas": 1})
    )
    return adapter


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_engine):
    from natjus.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
