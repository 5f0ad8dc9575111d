"""
NatJus Backend — Nota Técnica Service
=======================================

What:  Persistence and queries for technical notes: create (pipeline),
       get/update (review and edit flows), library listing, search, tag
       inventory, dashboard statistics and the chat context list.
How:   Stateless service; every call receives the AsyncSession to use, so
       routes share the request session and the pipeline opens one session
       per persisted file.

Search semantics:
    - term: case-insensitive substring over titulo, numero, procedimento,
      conteudo_extraido and resumo
    - tipo: exact match; "todos" or None means all
    - tags: a note matches when it carries ANY of the selected tags
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.exceptions import DatabaseError, NotFoundError, ValidationError
from natjus.models.nota import NotaTecnica
from natjus.schemas.nota import NotaUpdate, TipoNota

logger = logging.getLogger(__name__)

# order parameter → ORDER BY clauses ("-" prefix = descending)
LIBRARY_ORDERS = {
    "-data_emissao": (NotaTecnica.data_emissao.desc().nulls_last(), NotaTecnica.created_at.desc()),
    "data_emissao": (NotaTecnica.data_emissao.asc().nulls_last(), NotaTecnica.created_at.asc()),
    "numero": (NotaTecnica.numero.asc(),),
    "-numero": (NotaTecnica.numero.desc(),),
    "titulo": (NotaTecnica.titulo.asc(),),
    "-titulo": (NotaTecnica.titulo.desc(),),
    "-created_at": (NotaTecnica.created_at.desc(),),
}

RECENT_LIMIT = 5

# NOT NULL columns: an explicit null in an update leaves them unchanged
REQUIRED_FIELDS = frozenset({"numero", "tipo", "titulo", "resumo", "tags"})


def _tipo_filter(tipo: Optional[str]):
    if not tipo or tipo == "todos":
        return None
    try:
        return NotaTecnica.tipo == TipoNota(tipo).value
    except ValueError:
        raise ValidationError(
            message=f"Tipo inválido '{tipo}'. Use processual, pre-processual ou todos.",
            field="tipo",
        ) from None


class NotaService:
    # ── Create / read / update ────────────────────────────────────────────

    async def create(self, db: AsyncSession, data: Dict[str, Any]) -> NotaTecnica:
        """
        Insert one note.

        Raises DatabaseError when the row cannot be written; the caller's
        session scope rolls back, so no partial record survives.
        """
        nota = NotaTecnica(**data)
        db.add(nota)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to persist nota for %s: %s", data.get("nome_arquivo"), e)
            raise DatabaseError(
                message=f"Falha ao salvar a nota {data.get('nome_arquivo')}",
                context={"nome_arquivo": data.get("nome_arquivo"), "db_error": str(e)},
            ) from e
        logger.info("Nota %s persisted (numero=%r, tipo=%s)", nota.id, nota.numero, nota.tipo)
        return nota

    async def get(self, db: AsyncSession, nota_id: UUID) -> NotaTecnica:
        nota = await db.get(NotaTecnica, nota_id)
        if nota is None:
            raise NotFoundError(resource="nota", resource_id=str(nota_id))
        return nota

    async def update(self, db: AsyncSession, nota_id: UUID, changes: NotaUpdate) -> NotaTecnica:
        nota = await self.get(db, nota_id)
        updates = changes.model_dump(exclude_unset=True)
        for field_name, value in updates.items():
            if value is None and field_name in REQUIRED_FIELDS:
                continue
            if field_name == "tipo":
                value = TipoNota(value).value
            setattr(nota, field_name, value)
        await db.flush()
        await db.refresh(nota)
        logger.info("Nota %s updated: %s", nota_id, sorted(updates))
        return nota

    # ── Library ───────────────────────────────────────────────────────────

    def _text_filter(self, term: str, include_content: bool):
        columns = [NotaTecnica.titulo, NotaTecnica.numero, NotaTecnica.procedimento]
        if include_content:
            columns += [NotaTecnica.conteudo_extraido, NotaTecnica.resumo]
        return or_(*(col.icontains(term, autoescape=True) for col in columns))

    async def list_notas(
        self,
        db: AsyncSession,
        order: str = "-data_emissao",
        tipo: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[NotaTecnica], int]:
        """
        Library view: ordered, optionally filtered by tipo and a search term
        over titulo/numero/procedimento.

        Returns (page, total matching).
        """
        if order not in LIBRARY_ORDERS:
            raise ValidationError(
                message=f"Ordenação inválida '{order}'. Opções: {', '.join(LIBRARY_ORDERS)}",
                field="order",
            )
        query: Select = select(NotaTecnica)
        tipo_clause = _tipo_filter(tipo)
        if tipo_clause is not None:
            query = query.where(tipo_clause)
        if search and search.strip():
            query = query.where(self._text_filter(search.strip(), include_content=False))

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

        query = query.order_by(*LIBRARY_ORDERS[order]).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        notas = list((await db.execute(query)).scalars().all())
        return notas, total

    async def search(
        self,
        db: AsyncSession,
        term: Optional[str] = None,
        tipo: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> List[NotaTecnica]:
        """Full search, newest data_emissao first."""
        query = select(NotaTecnica)
        tipo_clause = _tipo_filter(tipo)
        if tipo_clause is not None:
            query = query.where(tipo_clause)
        if term and term.strip():
            query = query.where(self._text_filter(term.strip(), include_content=True))
        query = query.order_by(*LIBRARY_ORDERS["-data_emissao"])
        notas = list((await db.execute(query)).scalars().all())

        # Tag matching runs in Python: JSON containment differs per dialect
        wanted = {t for t in (tags or []) if t}
        if wanted:
            notas = [n for n in notas if wanted.intersection(n.tags or [])]
        return notas

    async def all_tags(self, db: AsyncSession) -> List[str]:
        rows = (await db.execute(select(NotaTecnica.tags))).scalars().all()
        return sorted({tag for tags in rows for tag in (tags or [])})

    # ── Dashboard ─────────────────────────────────────────────────────────

    async def dashboard(self, db: AsyncSession, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Totals per tipo, notes issued this calendar month (by data_emissao)
        and the most recent notes.
        """
        today = today or date.today()
        month_start = today.replace(day=1)
        next_month = (
            month_start.replace(year=month_start.year + 1, month=1)
            if month_start.month == 12
            else month_start.replace(month=month_start.month + 1)
        )

        counts = dict(
            (await db.execute(
                select(NotaTecnica.tipo, func.count()).group_by(NotaTecnica.tipo)
            )).all()
        )
        this_month = (await db.execute(
            select(func.count()).where(
                NotaTecnica.data_emissao >= month_start,
                NotaTecnica.data_emissao < next_month,
            )
        )).scalar_one()
        recentes, _ = await self.list_notas(db, order="-data_emissao", limit=RECENT_LIMIT)

        processuais = counts.get(TipoNota.PROCESSUAL.value, 0)
        pre_processuais = counts.get(TipoNota.PRE_PROCESSUAL.value, 0)
        return {
            "total": sum(counts.values()),
            "processuais": processuais,
            "pre_processuais": pre_processuais,
            "this_month": this_month,
            "por_tipo": [
                {"tipo": TipoNota.PROCESSUAL, "total": processuais},
                {"tipo": TipoNota.PRE_PROCESSUAL, "total": pre_processuais},
            ],
            "recentes": recentes,
        }

    # ── Chat ──────────────────────────────────────────────────────────────

    async def context_notas(self, db: AsyncSession, limit: int = 100) -> List[NotaTecnica]:
        notas, _ = await self.list_notas(db, order="-data_emissao", limit=limit)
        return notas


nota_service = NotaService()
