"""
NatJus Backend — Nota Técnica Schemas
=======================================

What:  Pydantic models for the note API contract and for validating the
       JSON an LLM returns when structuring a PDF.
Why separate from the ORM model:
    The API exposes dates as ISO strings and hides nothing today, but the
    structuring schema must tolerate sloppy LLM output (missing fields,
    "Pré-processual", dates in the wrong format) without failing the file.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_AI_TAGS = 5


class TipoNota(str, Enum):
    PROCESSUAL = "processual"
    PRE_PROCESSUAL = "pre-processual"


def normalize_tipo(value: Any) -> TipoNota:
    """
    Map free-form LLM output onto the tipo enum.

    "Pré-processual", "pre processual" and "PRE_PROCESSUAL" all mean
    pre-processual; anything else is processual.
    """
    if isinstance(value, TipoNota):
        return value
    raw = str(value or "").strip().lower()
    for accented, plain in (("é", "e"), ("_", "-"), (" ", "-")):
        raw = raw.replace(accented, plain)
    if raw.startswith("pre-processual") or raw == "preprocessual":
        return TipoNota.PRE_PROCESSUAL
    return TipoNota.PROCESSUAL


def _clean_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


class NotaStructured(BaseModel):
    """
    What:  Fields the LLM extracts from one technical note.
    Who:   LLMRouter.structure() validates every provider's output with it.

    Required by the extraction prompt: numero, tipo, titulo, resumo.
    Missing ones fall back to empty strings rather than failing, so a
    partially structured note is still persisted and can be edited later.
    """

    numero: str = ""
    tipo: TipoNota = TipoNota.PROCESSUAL
    titulo: str = ""
    data_emissao: Optional[date] = None
    demanda: Optional[str] = None
    procedimento: Optional[str] = None
    representante_comarca: Optional[str] = None
    resumo: str = ""
    tags: List[str] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    @field_validator("numero", "titulo", "resumo", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("tipo", mode="before")
    @classmethod
    def coerce_tipo(cls, v: Any) -> TipoNota:
        return normalize_tipo(v)

    @field_validator("data_emissao", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[date]:
        if v in (None, ""):
            return None
        if isinstance(v, date):
            return v
        try:
            return date.fromisoformat(str(v).strip()[:10])
        except ValueError:
            return None

    @field_validator("demanda", "procedimento", "representante_comarca", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> List[str]:
        return _clean_tags(v)[:MAX_AI_TAGS]


class NotaResponse(BaseModel):
    """Full representation of a persisted note."""

    id: uuid.UUID
    numero: str
    tipo: TipoNota
    titulo: str
    data_emissao: Optional[date] = None
    demanda: Optional[str] = None
    procedimento: Optional[str] = None
    representante_comarca: Optional[str] = None
    resumo: str
    tags: List[str] = Field(default_factory=list)
    conteudo_extraido: Optional[str] = None
    arquivo_url: str
    nome_arquivo: str
    storage_provider: str
    drive_file_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class NotaListResponse(BaseModel):
    notas: List[NotaResponse]
    total_count: int = Field(description="Total number of notes matching filters")


class NotaUpdate(BaseModel):
    """
    What:  Edits from the review step or from library/search edit flows.

    Tag lists are deduplicated preserving first occurrence, mirroring how
    the UI refuses to add a tag twice.
    """

    numero: Optional[str] = Field(default=None, max_length=100)
    tipo: Optional[TipoNota] = None
    titulo: Optional[str] = Field(default=None, max_length=500)
    data_emissao: Optional[date] = None
    demanda: Optional[str] = None
    procedimento: Optional[str] = None
    representante_comarca: Optional[str] = None
    resumo: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        seen: List[str] = []
        for tag in _clean_tags(v):
            if tag not in seen:
                seen.append(tag)
        return seen


class TagsResponse(BaseModel):
    tags: List[str]


class TipoCount(BaseModel):
    tipo: TipoNota
    total: int


class DashboardResponse(BaseModel):
    """
    Dashboard statistics.

    this_month counts notes whose data_emissao falls in the current
    calendar month, not notes uploaded this month.
    """

    total: int
    processuais: int
    pre_processuais: int
    this_month: int
    por_tipo: List[TipoCount]
    recentes: List[NotaResponse]


class ErrorResponse(BaseModel):
    """Standardized error body returned by every global exception handler."""

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional context")
    request_id: Optional[str] = Field(default=None, description="Correlation ID for log tracing")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy | degraded | unhealthy")
    version: str
    database: str
    llm: str = Field(description="Status of the default LLM gateway configuration")
    gemini: str
    uptime_seconds: float
