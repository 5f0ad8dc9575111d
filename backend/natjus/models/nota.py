"""
NatJus Backend — NotaTecnica SQLAlchemy Model
===============================================

What:  ORM model for the `notas_tecnicas` table.
Who:   Created by the upload pipeline's last stage; read and edited by
       NotaService (library, search, dashboard, chat context).

Table Design:
    - UUID primary key generated in Python (portable across PostgreSQL and SQLite)
    - tags: JSON array, order and exact values preserved, duplicates allowed
    - conteudo_extraido: raw extraction output serialized as a JSON string,
      kept for full-text search
    - arquivo_url / nome_arquivo: NOT NULL. A row only exists once its file
      has been stored.
    - data_emissao: DATE, nullable (the AI may not find one)

Indexes:
    idx_notas_data_emissao: library and chat context both sort on it
    idx_notas_tipo:         dashboard counts and tipo filters
"""

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Date, DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from natjus.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotaTecnica(Base):
    """
    One legal technical note derived from one uploaded PDF.

    Lifecycle:
        1. Created exactly once by the pipeline after store → extract → structure
        2. Edited afterwards only through explicit user updates (PATCH)
        3. Never deleted by the pipeline
    """

    __tablename__ = "notas_tecnicas"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Free format, usually "XXXX/AAAA"
    numero: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # "processual" | "pre-processual"
    tipo: Mapped[str] = mapped_column(String(20), nullable=False, default="processual")

    titulo: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    data_emissao: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    demanda: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    procedimento: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    representante_comarca: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resumo: Mapped[str] = mapped_column(Text, nullable=False, default="")

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    conteudo_extraido: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    arquivo_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    nome_arquivo: Mapped[str] = mapped_column(String(255), nullable=False)

    # "base44" | "google_drive" | "aws_s3"
    storage_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="base44")

    # Only set when the file actually landed on Google Drive
    drive_file_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_notas_data_emissao", "data_emissao"),
        Index("idx_notas_tipo", "tipo"),
    )

    def __repr__(self) -> str:
        return f"<NotaTecnica(numero={self.numero!r}, tipo={self.tipo!r}, arquivo={self.nome_arquivo!r})>"
