"""
NatJus Backend — Configuracao SQLAlchemy Model
================================================

Singleton-per-deployment row holding provider choices and UI customization.
Created on first save, updated in place afterwards. Credentials are NOT
stored here; they come from Settings (environment / secrets store).
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from natjus.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Configuracao(Base):
    __tablename__ = "configuracoes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ── UI customization ──────────────────────────────────────────────────
    logo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    cor_primaria: Mapped[str] = mapped_column(String(7), nullable=False, default="#2563EB")
    chat_greeting: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── LLM provider ──────────────────────────────────────────────────────
    llm_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="base44")
    openai_model: Mapped[str] = mapped_column(String(100), nullable=False, default="gpt-4")
    anthropic_model: Mapped[str] = mapped_column(
        String(100), nullable=False, default="claude-3-sonnet-20240229"
    )
    google_model: Mapped[str] = mapped_column(String(100), nullable=False, default="gemini-1.5-pro")

    # ── Storage provider ──────────────────────────────────────────────────
    storage_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="base44")
    google_drive_folder_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    aws_region: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    aws_bucket_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

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
