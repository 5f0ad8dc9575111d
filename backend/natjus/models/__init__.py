"""ORM models. Importing this package registers every table on Base.metadata."""

from natjus.models.configuracao import Configuracao
from natjus.models.nota import NotaTecnica

__all__ = ["Configuracao", "NotaTecnica"]
