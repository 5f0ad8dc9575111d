"""
NatJus Backend — Configuration Schemas
========================================

Provider enums, their display names, and the API contract for the
singleton configuration entity.
"""

import re
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator


class LLMProvider(str, Enum):
    BASE44 = "base44"
    GOOGLE = "google"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class StorageProvider(str, Enum):
    BASE44 = "base44"
    GOOGLE_DRIVE = "google_drive"
    AWS_S3 = "aws_s3"


# Display names used in user-facing messages ("...salvos com sucesso no Google Drive!")
LLM_PROVIDER_NAMES: Dict[str, str] = {
    LLMProvider.BASE44.value: "Base44",
    LLMProvider.OPENAI.value: "ChatGPT",
    LLMProvider.ANTHROPIC.value: "Claude",
    LLMProvider.GOOGLE.value: "Gemini",
}

STORAGE_PROVIDER_NAMES: Dict[str, str] = {
    StorageProvider.BASE44.value: "Base44",
    StorageProvider.GOOGLE_DRIVE.value: "Google Drive",
    StorageProvider.AWS_S3.value: "Amazon S3",
}

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def llm_provider_name(provider: str) -> str:
    return LLM_PROVIDER_NAMES.get(provider, "Base44")


def storage_provider_name(provider: str) -> str:
    return STORAGE_PROVIDER_NAMES.get(provider, "Base44")


class ConfiguracaoResponse(BaseModel):
    """
    What:  Current configuration plus which secrets are present.
    Who:   Returned by GET/PUT /api/configuracao.

    The *_configured flags tell the admin page whether a provider can be
    selected; the keys themselves are never returned.
    """

    logo_url: Optional[str] = None
    cor_primaria: str = "#2563EB"
    chat_greeting: Optional[str] = None
    llm_provider: LLMProvider = LLMProvider.BASE44
    openai_model: str = "gpt-4"
    anthropic_model: str = "claude-3-sonnet-20240229"
    google_model: str = "gemini-1.5-pro"
    storage_provider: StorageProvider = StorageProvider.BASE44
    google_drive_folder_id: Optional[str] = None
    aws_region: Optional[str] = None
    aws_bucket_name: Optional[str] = None

    gemini_configured: bool = False
    openai_configured: bool = False
    anthropic_configured: bool = False
    google_drive_configured: bool = False

    model_config = {"from_attributes": True}


class ConfiguracaoUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    logo_url: Optional[str] = Field(default=None, max_length=1024)
    cor_primaria: Optional[str] = None
    chat_greeting: Optional[str] = Field(default=None, max_length=2000)
    llm_provider: Optional[LLMProvider] = None
    openai_model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    anthropic_model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    google_model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    storage_provider: Optional[StorageProvider] = None
    google_drive_folder_id: Optional[str] = Field(default=None, max_length=255)
    aws_region: Optional[str] = Field(default=None, max_length=50)
    aws_bucket_name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("cor_primaria")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _HEX_COLOR.match(v):
            raise ValueError(f"Invalid color '{v}'. Expected #RRGGBB")
        return v


class ConnectionTestResponse(BaseModel):
    """
    Result of an admin connection test.

    status: "success" | "error" | "error_no_key" | "error_no_config"
    """

    status: str
    message: str
