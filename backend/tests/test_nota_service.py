"""
NatJus Backend — Nota Service Tests
=====================================

Runs against the SQLite test database, so ordering, filters and JSON tag
round-trips are exercised for real.
"""

from datetime import date
from uuid import uuid4

import pytest

from natjus.exceptions import NotFoundError, ValidationError
from natjus.schemas.nota import NotaUpdate
from natjus.services.nota_service import NotaService


@pytest.fixture
def service():
    return NotaService()


class TestCreateAndRead:
    async def test_tags_keep_order_and_values(self, service, db_session, nota_data):
        created = await service.create(db_session, dict(nota_data, tags=["epilepsia", "saude"]))
        await db_session.commit()

        notas, total = await service.list_notas(db_session)

        assert total == 1
        assert notas[0].id == created.id
        assert notas[0].tags == ["epilepsia", "saude"]

    async def test_get_missing_raises(self, service, db_session):
        with pytest.raises(NotFoundError):
            await service.get(db_session, uuid4())

    async def test_update_changes_only_sent_fields(self, service, db_session, make_nota):
        nota = await make_nota()

        updated = await service.update(
            db_session,
            nota.id,
            NotaUpdate(titulo="Novo título", tipo="pre-processual", tags=["a", "b", "a"]),
        )

        assert updated.titulo == "Novo título"
        assert updated.tipo == "pre-processual"
        assert updated.tags == ["a", "b"]
        assert updated.numero == "2809/2024"

    async def test_explicit_null_keeps_required_field(self, service, db_session, make_nota):
        nota = await make_nota()

        updated = await service.update(
            db_session, nota.id, NotaUpdate.model_validate({"titulo": None, "demanda": None})
        )

        assert updated.titulo == "Canabidiol para epilepsia refratária"
        assert updated.demanda is None


class TestLibrary:
    async def test_default_order_is_newest_data_emissao_first(self, service, db_session, make_nota):
        await make_nota(numero="1/2024", data_emissao=date(2024, 1, 1))
        await make_nota(numero="3/2024", data_emissao=date(2024, 3, 1))
        await make_nota(numero="sem-data", data_emissao=None)

        notas, _ = await service.list_notas(db_session)

        assert [n.numero for n in notas] == ["3/2024", "1/2024", "sem-data"]

    async def test_order_by_titulo(self, service, db_session, make_nota):
        await make_nota(titulo="Beta")
        await make_nota(titulo="Alfa")

        notas, _ = await service.list_notas(db_session, order="titulo")

        assert [n.titulo for n in notas] == ["Alfa", "Beta"]

    async def test_invalid_order_rejected(self, service, db_session):
        with pytest.raises(ValidationError):
            await service.list_notas(db_session, order="drop table")

    async def test_tipo_and_search_filters(self, service, db_session, make_nota):
        await make_nota(numero="1/2024", tipo="processual", procedimento="Cirurgia bariátrica")
        await make_nota(numero="2/2024", tipo="pre-processual", procedimento="Cirurgia cardíaca")
        await make_nota(numero="3/2024", tipo="pre-processual", procedimento="Medicamento")

        notas, total = await service.list_notas(db_session, tipo="pre-processual", search="cirurgia")

        assert total == 1
        assert notas[0].numero == "2/2024"

    async def test_limit_and_total(self, service, db_session, make_nota):
        for i in range(3):
            await make_nota(numero=f"{i}/2024")

        notas, total = await service.list_notas(db_session, limit=2)

        assert len(notas) == 2
        assert total == 3

    async def test_invalid_tipo_rejected(self, service, db_session):
        with pytest.raises(ValidationError, match="Tipo inválido"):
            await service.list_notas(db_session, tipo="administrativo")


class TestSearch:
    async def test_term_matches_content_and_resumo(self, service, db_session, make_nota):
        await make_nota(
            numero="1/2024", titulo="Primeira", conteudo_extraido='{"texto": "uso de CANABIDIOL"}', resumo="x"
        )
        await make_nota(numero="2/2024", titulo="Segunda", conteudo_extraido="{}", resumo="Avaliação de home care")
        await make_nota(numero="3/2024", conteudo_extraido="{}", resumo="outro", titulo="Outro")

        assert [n.numero for n in await service.search(db_session, term="canabidiol")] == ["1/2024"]
        assert [n.numero for n in await service.search(db_session, term="home care")] == ["2/2024"]

    async def test_percent_sign_is_literal(self, service, db_session, make_nota):
        await make_nota(titulo="Redução de 50% da dose")
        await make_nota(titulo="Sem porcentagem")

        notas = await service.search(db_session, term="50%")

        assert len(notas) == 1

    async def test_tags_any_match(self, service, db_session, make_nota):
        await make_nota(numero="1/2024", tags=["epilepsia"])
        await make_nota(numero="2/2024", tags=["oncologia", "saude"])
        await make_nota(numero="3/2024", tags=["ortopedia"])

        notas = await service.search(db_session, tags=["saude", "epilepsia"])

        assert sorted(n.numero for n in notas) == ["1/2024", "2/2024"]

    async def test_all_tags_sorted_unique(self, service, db_session, make_nota):
        await make_nota(tags=["saude", "epilepsia"])
        await make_nota(tags=["epilepsia", "canabidiol"])

        assert await service.all_tags(db_session) == ["canabidiol", "epilepsia", "saude"]


class TestDashboard:
    async def test_counts(self, service, db_session, make_nota):
        await make_nota(tipo="processual", data_emissao=date(2024, 5, 2))
        await make_nota(tipo="processual", data_emissao=date(2024, 4, 30))
        await make_nota(tipo="pre-processual", data_emissao=date(2024, 5, 31))
        await make_nota(tipo="pre-processual", data_emissao=None)

        stats = await service.dashboard(db_session, today=date(2024, 5, 15))

        assert stats["total"] == 4
        assert stats["processuais"] == 2
        assert stats["pre_processuais"] == 2
        assert stats["this_month"] == 2
        assert [row["total"] for row in stats["por_tipo"]] == [2, 2]
        assert len(stats["recentes"]) == 4

    async def test_december_boundary(self, service, db_session, make_nota):
        await make_nota(data_emissao=date(2024, 12, 31))
        await make_nota(data_emissao=date(2025, 1, 1))

        stats = await service.dashboard(db_session, today=date(2024, 12, 1))

        assert stats["this_month"] == 1

    async def test_empty_database(self, service, db_session):
        stats = await service.dashboard(db_session)
        assert stats["total"] == 0
        assert stats["recentes"] == []
