"""
NatJus Backend — Chat Service Tests
=====================================

Context block format, the download-link rule and the provider error path.
"""

from datetime import date
from unittest.mock import AsyncMock

from natjus.exceptions import ProviderError
from natjus.models.nota import NotaTecnica
from natjus.services.chat_service import ChatService, build_context, download_link, ensure_pdf_link
from natjus.services.runtime_config import RuntimeConfig

PDF_URL = "http://testserver/api/files/2024/05/10/nota.pdf"


def _nota(**overrides) -> NotaTecnica:
    values = dict(
        numero="2809/2024",
        tipo="processual",
        titulo="Canabidiol",
        data_emissao=date(2024, 5, 10),
        resumo="Resumo",
        tags=["epilepsia", "saude"],
        arquivo_url=PDF_URL,
        nome_arquivo="nota.pdf",
    )
    values.update(overrides)
    return NotaTecnica(**values)


class TestBuildContext:
    def test_block_lines(self):
        context = build_context([_nota()])

        assert context.splitlines() == [
            "Nota Número: 2809/2024",
            "Título: Canabidiol",
            "Tipo: processual",
            "Data: 2024-05-10",
            "Demanda: N/A",
            "Procedimento: N/A",
            "Representante: N/A",
            "Resumo: Resumo",
            "Tags: epilepsia, saude",
            f"URL_DO_PDF: {PDF_URL}",
            "Nome_do_Arquivo: nota.pdf",
        ]

    def test_missing_values_and_separator(self):
        context = build_context([_nota(), _nota(numero="1/2024", data_emissao=None, tags=[])])

        first, second = context.split("\n---\n")
        assert first.startswith("Nota Número: 2809/2024")
        assert "Data: N/A" in second
        assert "Tags: N/A" in second

    def test_empty(self):
        assert build_context([]) == ""


class TestEnsurePdfLink:
    def test_appends_link_when_missing(self):
        answer = ensure_pdf_link("Me envie o PDF da nota 2809", "A nota 2809/2024 trata de canabidiol.", [_nota()])

        assert answer.endswith(f"\n\n{download_link(PDF_URL)}")

    def test_inline_url_still_gets_closing_line(self):
        original = f"A nota 2809/2024 está em {PDF_URL} ."

        answer = ensure_pdf_link("quero o pdf da nota 2809", original, [_nota()])

        assert answer == f"{original}\n\n{download_link(PDF_URL)}"

    def test_keeps_answer_that_already_ends_with_link(self):
        original = f"A nota 2809/2024 trata de canabidiol.\n\n{download_link(PDF_URL)}\n"

        assert ensure_pdf_link("link da nota 2809?", original, [_nota()]) == original

    def test_number_must_match_whole(self):
        notas = [
            _nota(numero="1/2024", arquivo_url="http://testserver/api/files/A.pdf"),
            _nota(numero="11/2024", arquivo_url="http://testserver/api/files/B.pdf"),
        ]

        answer = ensure_pdf_link("quero o pdf", "A nota 11/2024 trata de home care.", notas)

        assert answer.endswith(download_link("http://testserver/api/files/B.pdf"))
        assert "A.pdf" not in answer

    def test_number_followed_by_punctuation_matches(self):
        answer = ensure_pdf_link("quero o pdf", "Veja a nota 2809/2024.", [_nota()])

        assert answer.endswith(download_link(PDF_URL))

    def test_ignored_when_no_file_requested(self):
        original = "A nota 2809/2024 trata de canabidiol."

        assert ensure_pdf_link("Do que trata a nota 2809?", original, [_nota()]) == original

    def test_ignored_when_no_note_mentioned(self):
        original = "Não encontrei essa nota."

        assert ensure_pdf_link("Quero o arquivo", original, [_nota()]) == original


class TestAnswer:
    async def test_answers_with_note_context(self, db_session, make_nota, default_llm):
        await make_nota()
        default_llm.generate_content = AsyncMock(return_value="A nota 2809/2024 trata de canabidiol.")
        service = ChatService(default_llm=default_llm)

        response = await service.answer(db_session, "Me mande o pdf da 2809", RuntimeConfig())

        assert response.provider == "base44"
        assert response.used_fallback is False
        assert response.response.endswith(download_link(PDF_URL))
        prompt = default_llm.generate_content.call_args.args[0]
        assert "Nota Número: 2809/2024" in prompt
        assert "Me mande o pdf da 2809" in prompt

    async def test_provider_error_becomes_apology(self, db_session, default_llm):
        default_llm.generate_content = AsyncMock(side_effect=ProviderError(message="gateway down"))
        service = ChatService(default_llm=default_llm)

        response = await service.answer(db_session, "Olá", RuntimeConfig())

        assert response.response.startswith("Desculpe, ocorreu um erro ao processar sua pergunta usando Base44.")

    async def test_missing_key_is_returned_inline(self, db_session, default_llm):
        service = ChatService(default_llm=default_llm)

        response = await service.answer(db_session, "Olá", RuntimeConfig(llm_provider="anthropic"))

        assert response.response == (
            "Erro: Chave API do Claude não configurada. Verifique as configurações."
        )
        default_llm.generate_content.assert_not_called()

    async def test_declared_provider_gets_model_tag(self, db_session, default_llm):
        default_llm.generate_content = AsyncMock(return_value="ok")
        service = ChatService(default_llm=default_llm)
        config = RuntimeConfig(llm_provider="openai", openai_api_key="sk-test", openai_model="gpt-4")

        response = await service.answer(db_session, "Olá", config)

        assert response.provider == "openai"
        assert default_llm.generate_content.call_args.args[0].startswith("[Usando gpt-4] ")


class TestGreeting:
    def test_default_greeting_names_provider(self):
        greeting = ChatService(default_llm=AsyncMock()).greeting(RuntimeConfig(llm_provider="google"))

        assert "(Gemini)" in greeting.greeting
        assert greeting.provider == "google"

    def test_configured_greeting_wins(self):
        greeting = ChatService(default_llm=AsyncMock()).greeting(RuntimeConfig(chat_greeting="Bem-vindo!"))

        assert greeting.greeting == "Bem-vindo!"
