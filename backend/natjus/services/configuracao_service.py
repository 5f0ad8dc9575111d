"""
NatJus Backend — Configuration Service
========================================

What:  Reads and saves the singleton Configuracao row, builds the
       RuntimeConfig snapshot used by the pipeline and chat, and runs the
       admin connection tests.
How:   get() returns the stored row or an unsaved row with defaults;
       save() creates the row on first save and updates it in place after.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.config import Settings, settings as app_settings
from natjus.exceptions import NatJusError
from natjus.models.configuracao import Configuracao
from natjus.schemas.configuracao import (
    ConfiguracaoResponse,
    ConfiguracaoUpdate,
    ConnectionTestResponse,
)
from natjus.services.gemini_service import get_gemini_service
from natjus.services.google_drive_service import get_drive_service
from natjus.services.runtime_config import RuntimeConfig

logger = logging.getLogger(__name__)

CONNECTION_TEST_PROMPT = 'Teste de conexão. Responda apenas "OK"'


class ConfiguracaoService:
    def __init__(self, source: Optional[Settings] = None):
        self.settings = source or app_settings

    async def get(self, db: AsyncSession) -> Configuracao:
        """Stored configuration, or an unsaved instance holding the defaults."""
        result = await db.execute(select(Configuracao).order_by(Configuracao.created_at).limit(1))
        config = result.scalar_one_or_none()
        if config is not None:
            return config
        defaults = Configuracao()
        for column in Configuracao.__table__.columns:
            if getattr(defaults, column.key) is None and column.default is not None:
                default = column.default.arg
                setattr(defaults, column.key, default(None) if callable(default) else default)
        return defaults

    async def save(self, db: AsyncSession, changes: ConfiguracaoUpdate) -> Configuracao:
        config = await self.get(db)
        created = config not in db
        for field_name, value in changes.model_dump(exclude_unset=True).items():
            if value is None and not Configuracao.__table__.columns[field_name].nullable:
                continue
            setattr(config, field_name, getattr(value, "value", value))
        if created:
            db.add(config)
        await db.flush()
        await db.refresh(config)
        logger.info(
            "Configuration %s (llm=%s, storage=%s)",
            "created" if created else "updated",
            config.llm_provider,
            config.storage_provider,
        )
        return config

    def _drive_credentials(self):
        try:
            return self.settings.google_drive_credentials()
        except (OSError, ValueError) as e:
            logger.warning("Google Drive credentials unavailable: %s", e)
            return None

    def snapshot_of(self, config: Configuracao) -> RuntimeConfig:
        return RuntimeConfig(
            llm_provider=config.llm_provider,
            storage_provider=config.storage_provider,
            google_model=config.google_model or self.settings.gemini_model,
            openai_model=config.openai_model,
            anthropic_model=config.anthropic_model,
            gemini_api_key=self.settings.gemini_api_key,
            openai_api_key=self.settings.openai_api_key,
            anthropic_api_key=self.settings.anthropic_api_key,
            google_drive_credentials=self._drive_credentials(),
            google_drive_folder_id=config.google_drive_folder_id or self.settings.google_drive_folder_id,
            chat_greeting=config.chat_greeting,
        )

    async def snapshot(self, db: AsyncSession) -> RuntimeConfig:
        """Immutable configuration for one queue run or chat request."""
        return self.snapshot_of(await self.get(db))

    def to_response(self, config: Configuracao) -> ConfiguracaoResponse:
        runtime = self.snapshot_of(config)
        response = ConfiguracaoResponse.model_validate(config)
        return response.model_copy(update={
            "gemini_configured": bool(runtime.gemini_api_key),
            "openai_configured": bool(runtime.openai_api_key),
            "anthropic_configured": bool(runtime.anthropic_api_key),
            "google_drive_configured": runtime.google_drive_ready,
        })

    # ── Connection tests ──────────────────────────────────────────────────

    async def test_gemini(self, db: AsyncSession) -> ConnectionTestResponse:
        runtime = await self.snapshot(db)
        if not runtime.gemini_api_key:
            return ConnectionTestResponse(status="error_no_key", message="Chave API não configurada")
        try:
            service = get_gemini_service(runtime.gemini_api_key, runtime.google_model)
            await service.generate_content(CONNECTION_TEST_PROMPT, max_output_tokens=16)
        except NatJusError as e:
            logger.warning("Gemini connection test failed: %s", e.message)
            return ConnectionTestResponse(status="error", message=e.message)
        return ConnectionTestResponse(status="success", message="Gemini conectado com sucesso!")

    async def test_google_drive(self, db: AsyncSession) -> ConnectionTestResponse:
        runtime = await self.snapshot(db)
        creds = runtime.google_drive_credentials
        if not creds or not runtime.google_drive_folder_id:
            return ConnectionTestResponse(
                status="error_no_config", message="Credenciais não configuradas"
            )
        if not creds.get("client_email") or not creds.get("private_key"):
            return ConnectionTestResponse(
                status="error", message="Credenciais sem client_email ou private_key"
            )
        drive = get_drive_service(creds, runtime.google_drive_folder_id)
        if drive is None:
            return ConnectionTestResponse(status="error", message="Chave privada inválida")
        try:
            await drive.authenticate()
            await drive.list_files(page_size=1)
        except NatJusError as e:
            return ConnectionTestResponse(status="error", message=e.message)
        except httpx.HTTPError as e:
            return ConnectionTestResponse(status="error", message=f"Falha de rede: {e}")
        return ConnectionTestResponse(status="success", message="Configuração válida!")


configuracao_service = ConfiguracaoService()
