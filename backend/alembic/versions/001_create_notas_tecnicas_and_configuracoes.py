"""Create notas_tecnicas and configuracoes tables

Revision ID: 001
Revises: None
Create Date: 2024-06-03 00:00:00.000000+00:00

notas_tecnicas: one row per processed PDF; arquivo_url and nome_arquivo
are NOT NULL because a row is only written after its file was stored.
configuracoes: a single row per deployment, created on first save.

Rollback: downgrade() drops both tables and all their data.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "notas_tecnicas",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("numero", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("tipo", sa.String(20), nullable=False, server_default=sa.text("'processual'")),
        sa.Column("titulo", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("data_emissao", sa.Date(), nullable=True),
        sa.Column("demanda", sa.Text(), nullable=True),
        sa.Column("procedimento", sa.Text(), nullable=True),
        sa.Column("representante_comarca", sa.Text(), nullable=True),
        sa.Column("resumo", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("conteudo_extraido", sa.Text(), nullable=True),
        sa.Column("arquivo_url", sa.String(1024), nullable=False),
        sa.Column("nome_arquivo", sa.String(255), nullable=False),
        sa.Column(
            "storage_provider", sa.String(20), nullable=False, server_default=sa.text("'base44'")
        ),
        sa.Column("drive_file_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    # Library and chat context sort on data_emissao; dashboard groups by tipo
    op.create_index("idx_notas_data_emissao", "notas_tecnicas", ["data_emissao"])
    op.create_index("idx_notas_tipo", "notas_tecnicas", ["tipo"])

    op.create_table(
        "configuracoes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("logo_url", sa.String(1024), nullable=True),
        sa.Column("cor_primaria", sa.String(7), nullable=False, server_default=sa.text("'#2563EB'")),
        sa.Column("chat_greeting", sa.Text(), nullable=True),
        sa.Column("llm_provider", sa.String(20), nullable=False, server_default=sa.text("'base44'")),
        sa.Column("openai_model", sa.String(100), nullable=False, server_default=sa.text("'gpt-4'")),
        sa.Column(
            "anthropic_model",
            sa.String(100),
            nullable=False,
            server_default=sa.text("'claude-3-sonnet-20240229'"),
        ),
        sa.Column(
            "google_model", sa.String(100), nullable=False, server_default=sa.text("'gemini-1.5-pro'")
        ),
        sa.Column(
            "storage_provider", sa.String(20), nullable=False, server_default=sa.text("'base44'")
        ),
        sa.Column("google_drive_folder_id", sa.String(255), nullable=True),
        sa.Column("aws_region", sa.String(50), nullable=True),
        sa.Column("aws_bucket_name", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("configuracoes")
    op.drop_index("idx_notas_tipo", table_name="notas_tecnicas")
    op.drop_index("idx_notas_data_emissao", table_name="notas_tecnicas")
    op.drop_table("notas_tecnicas")
