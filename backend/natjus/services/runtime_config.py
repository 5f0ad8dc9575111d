"""
NatJus Backend — Runtime Configuration Snapshot
=================================================

What:  Immutable view of "which providers, with which credentials" for one
       queue run or one chat request.
How:   ConfiguracaoService.snapshot() merges the stored Configuracao row
       (provider choices, models, folder id) with Settings (secrets).
       The orchestrator receives it at queue start and never re-reads the
       database mid-run, so an admin saving the configuration cannot change
       the providers of files already in flight.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from natjus.config import Settings, settings as default_settings
from natjus.schemas.configuracao import llm_provider_name, storage_provider_name


@dataclass(frozen=True)
class RuntimeConfig:
    llm_provider: str = "base44"
    storage_provider: str = "base44"
    google_model: str = "gemini-1.5-pro"
    openai_model: str = "gpt-4"
    anthropic_model: str = "claude-3-sonnet-20240229"
    gemini_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_drive_credentials: Optional[Mapping[str, Any]] = field(default=None, repr=False)
    google_drive_folder_id: str = ""
    chat_greeting: Optional[str] = None

    def __post_init__(self) -> None:
        if self.google_drive_credentials is not None and not isinstance(
            self.google_drive_credentials, MappingProxyType
        ):
            object.__setattr__(
                self, "google_drive_credentials", MappingProxyType(dict(self.google_drive_credentials))
            )

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None, **overrides: Any) -> "RuntimeConfig":
        """Snapshot with secrets from Settings; provider choices default to base44."""
        s = source or default_settings
        try:
            credentials = s.google_drive_credentials()
        except (OSError, ValueError):
            credentials = None
        values = dict(
            google_model=s.gemini_model,
            gemini_api_key=s.gemini_api_key,
            openai_api_key=s.openai_api_key,
            anthropic_api_key=s.anthropic_api_key,
            google_drive_credentials=credentials,
            google_drive_folder_id=s.google_drive_folder_id,
        )
        values.update(overrides)
        return cls(**values)

    def api_key_for(self, provider: str) -> str:
        return {
            "google": self.gemini_api_key,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }.get(provider, "")

    def model_for(self, provider: str) -> str:
        return {
            "google": self.google_model,
            "openai": self.openai_model,
            "anthropic": self.anthropic_model,
        }.get(provider, "")

    @property
    def llm_provider_name(self) -> str:
        return llm_provider_name(self.llm_provider)

    @property
    def storage_provider_name(self) -> str:
        return storage_provider_name(self.storage_provider)

    @property
    def google_drive_ready(self) -> bool:
        creds = self.google_drive_credentials or {}
        return bool(
            creds.get("client_email") and creds.get("private_key") and self.google_drive_folder_id
        )
