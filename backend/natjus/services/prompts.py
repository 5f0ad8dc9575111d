"""
NatJus Backend — Prompt Templates and Output Schemas
======================================================

Prompts are Portuguese because the notes, and the people reading the
answers, are. The texts are shared by every provider so a fallback from
Gemini to the default gateway asks the same question.
"""

import json
from typing import Any, Dict

# Strict schema: Gemini structured output. numero/tipo/titulo/resumo required.
NOTA_TECNICA_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "numero": {"type": "string", "description": "Número da nota técnica"},
        "tipo": {"type": "string", "enum": ["processual", "pre-processual"]},
        "titulo": {"type": "string", "description": "Título principal da nota"},
        "data_emissao": {"type": "string", "description": "Data no formato YYYY-MM-DD"},
        "demanda": {"type": "string", "description": "Origem da demanda"},
        "procedimento": {"type": "string", "description": "Procedimento tratado"},
        "representante_comarca": {"type": "string", "description": "Representante ou comarca"},
        "resumo": {"type": "string", "description": "Resumo em 2-3 frases"},
        "tags": {
            "type": "array",
            "items": {"type": "string"},
            "maxItems": 5,
            "description": "Tags relevantes",
        },
    },
    "required": ["numero", "tipo", "titulo", "resumo"],
}

# Lenient schema: default gateway and the Gemini fallback path.
NOTA_TECNICA_FALLBACK_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "numero": {"type": "string"},
        "tipo": {"type": "string"},
        "titulo": {"type": "string"},
        "data_emissao": {"type": "string"},
        "demanda": {"type": "string"},
        "procedimento": {"type": "string"},
        "representante_comarca": {"type": "string"},
        "resumo": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
}

_ANALYSIS_TEMPLATE = """Analise esta nota técnica do NatJus e extraia as seguintes informações:

Texto do PDF: {extracted}

Extraia e estruture:
1. Número da nota técnica (formato: XXXX/AAAA)
2. Tipo: "processual" ou "pre-processual"
3. Título/assunto principal
4. Data de emissão (formato YYYY-MM-DD)
5. Demanda/origem
6. Procedimento tratado
7. Representante/comarca
8. Resumo em 2-3 frases
9. Tags relevantes (máximo 5)

{closing}"""

_CHAT_TEMPLATE = """Você é um assistente especialista em notas técnicas do NatJus. Responda à pergunta do usuário com base no contexto das notas técnicas fornecidas abaixo.

INSTRUÇÕES IMPORTANTES:
1. Seja conciso e direto
2. Se a informação não estiver no contexto, diga que não encontrou a informação nas notas disponíveis
3. Quando o usuário pedir o PDF, arquivo, documento ou link de uma nota específica, SEMPRE forneça a URL_DO_PDF correspondente
4. Quando mencionar uma nota técnica específica, inclua seu número e título
5. Se houver URL_DO_PDF disponível para a nota mencionada, sempre inclua no final da resposta: "🔗 [Baixar PDF](URL_DO_PDF)"

Contexto das Notas Técnicas:
---
{context}
---

Pergunta do usuário: "{message}\""""


def analysis_prompt(extracted: Any, strict: bool = True) -> str:
    """
    Structuring prompt for one note.

    strict=True asks for "APENAS um JSON válido" (schema-constrained
    providers); strict=False is the fallback wording.
    """
    closing = (
        "Retorne APENAS um JSON válido com estas informações."
        if strict
        else "Retorne um JSON estruturado."
    )
    return _ANALYSIS_TEMPLATE.format(
        extracted=json.dumps(extracted, ensure_ascii=False),
        closing=closing,
    )


def chat_prompt(message: str, context: str) -> str:
    return _CHAT_TEMPLATE.format(context=context, message=message)


def default_greeting(provider_name: str) -> str:
    return (
        f"Olá! Sou a assistente de IA do NatJus ({provider_name}). Faça perguntas sobre "
        "as notas técnicas e eu buscarei as informações para você."
    )
