"""
NatJus Backend — Upload Pipeline Orchestrator
===============================================

What:  Drives every queued PDF through store → extract → structure →
       persist and reports progress while it goes.
How:   PipelineOrchestrator is built once per queue run from an immutable
       RuntimeConfig; files are processed strictly one after another.
Who:   The /api/uploads route validates the batch, registers an UploadJob
       and schedules run_upload_job() as a FastAPI background task.

Per-file Flow:
    1. Store      StorageRouter (Drive or default; Drive failures fall back)
    2. Extract    ExtractionAdapter; a non-success status aborts the file
    3. Structure  LLMRouter (Gemini failures fall back to the default gateway)
    4. Persist    NotaService.create() in its own session scope

Failure Semantics:
    Any stage failure becomes a FileOutcome with an error message and the
    queue moves on. Nothing is persisted for a failed file, and a PDF left
    in default storage by a failed file is removed again.
"""

import json
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import session_scope
from natjus.exceptions import NatJusError, ValidationError
from natjus.schemas.upload import FileOutcomeSchema, UploadJobResponse
from natjus.services.extraction_service import ExtractionAdapter, PdfTextExtractor
from natjus.services.file_service import FileService, get_file_service
from natjus.services.llm_base import TextGenerator
from natjus.services.llm_router import LLMRouter
from natjus.services.nota_service import NotaService, nota_service as default_nota_service
from natjus.services.prompts import NOTA_TECNICA_SCHEMA
from natjus.services.runtime_config import RuntimeConfig
from natjus.services.storage_base import StoredFile
from natjus.services.storage_router import StorageRouter

logger = logging.getLogger(__name__)

PDF_ONLY_MESSAGE = "Apenas arquivos PDF são aceitos"
MAX_TRACKED_JOBS = 100


@dataclass(frozen=True)
class QueuedFile:
    """One file blob waiting in the queue."""

    name: str
    content: bytes = field(repr=False)
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)


def validate_batch(files: Sequence[QueuedFile], file_service: Optional[FileService] = None) -> None:
    """
    Reject the whole batch when any file is not a PDF, is empty or is too big.

    Raises:
        ValidationError: With the rejected file names in context["rejected"];
                         nothing from the batch is enqueued.
    """
    file_service = file_service or get_file_service()
    if not files:
        raise ValidationError(message="Nenhum arquivo enviado", field="files")

    rejected = [f.name for f in files if not file_service.is_pdf(f.mime_type)]
    if rejected:
        raise ValidationError(
            message=PDF_ONLY_MESSAGE,
            field="files",
            context={"rejected": rejected},
        )
    for f in files:
        file_service.validate_size(f.size, f.name)


# ═══════════════════════════════════════════════════════════════════════════
# Outcomes and progress
# ═══════════════════════════════════════════════════════════════════════════


class OutcomeStatus(str, Enum):
    STORED = "stored"
    STORE_FAILED = "store_failed"
    EXTRACT_FAILED = "extract_failed"
    STRUCTURE_FAILED = "structure_failed"
    PERSISTED = "persisted"
    PERSIST_FAILED = "persist_failed"


@dataclass
class FileOutcome:
    nome_arquivo: str
    status: OutcomeStatus = OutcomeStatus.STORED
    storage_provider: Optional[str] = None
    storage_fallback: bool = False
    llm_fallback: bool = False
    nota_id: Optional[uuid.UUID] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.PERSISTED

    def fail(self, status: OutcomeStatus, reason: str) -> "FileOutcome":
        self.status = status
        self.error = f"Erro ao processar {self.nome_arquivo}: {reason}. Pulando para o próximo."
        return self

    def to_schema(self) -> FileOutcomeSchema:
        return FileOutcomeSchema(
            nome_arquivo=self.nome_arquivo,
            status=self.status.value,
            storage_provider=self.storage_provider,
            storage_fallback=self.storage_fallback,
            llm_fallback=self.llm_fallback,
            nota_id=self.nota_id,
            error=self.error,
        )


@dataclass
class QueueProgress:
    """Counters a caller can poll while the queue runs."""

    total: int
    processed: int = 0
    status: str = "queued"
    current_file: Optional[str] = None
    outcomes: List[FileOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    message: Optional[str] = None


@dataclass(frozen=True)
class QueueReport:
    total: int
    processed: int
    outcomes: List[FileOutcome]
    errors: List[str]
    message: str

    @property
    def persisted(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)


def completion_message(config: RuntimeConfig) -> str:
    return (
        "Todos os arquivos foram processados e salvos com sucesso no "
        f"{config.storage_provider_name}!"
    )


# ═══════════════════════════════════════════════════════════════════════════
# Orchestrator
# ═══════════════════════════════════════════════════════════════════════════


class PipelineOrchestrator:
    """
    Runs one queue with one configuration.

    Attributes:
        config:          Snapshot taken when the queue started
        storage:         StorageRouter for config.storage_provider
        extractor:       Text extraction adapter
        llm:             LLMRouter for config.llm_provider
        notas:           Note store
        session_factory: Opens the transactional scope for each persist
    """

    def __init__(
        self,
        config: RuntimeConfig,
        storage: StorageRouter,
        extractor: ExtractionAdapter,
        llm: LLMRouter,
        notas: NotaService = default_nota_service,
        session_factory: Callable[[], AsyncContextManager[AsyncSession]] = session_scope,
    ):
        self.config = config
        self.storage = storage
        self.extractor = extractor
        self.llm = llm
        self.notas = notas
        self.session_factory = session_factory

    @classmethod
    def from_config(
        cls,
        config: RuntimeConfig,
        file_service: Optional[FileService] = None,
        extractor: Optional[ExtractionAdapter] = None,
        default_llm: Optional[TextGenerator] = None,
        **kwargs: Any,
    ) -> "PipelineOrchestrator":
        file_service = file_service or get_file_service()
        return cls(
            config,
            storage=StorageRouter.from_config(config, file_service),
            extractor=extractor or PdfTextExtractor(file_service),
            llm=LLMRouter.from_config(config, default=default_llm),
            **kwargs,
        )

    async def _discard(self, stored: StoredFile) -> None:
        try:
            await self.storage.discard(stored)
        except OSError as e:
            logger.warning("Could not discard %s: %s", stored.file_url, e)

    async def process_file(self, upload: QueuedFile) -> FileOutcome:
        """Run one file through all four stages; never raises."""
        outcome = FileOutcome(nome_arquivo=upload.name)
        logger.info("Processing %s (%d bytes)", upload.name, upload.size)

        # ── 1. Store ──
        try:
            result = await self.storage.upload(upload.name, upload.content, upload.mime_type)
        except Exception as e:
            logger.error("Storage failed for %s: %s", upload.name, e)
            return outcome.fail(OutcomeStatus.STORE_FAILED, _reason(e))
        stored = result.stored
        outcome.storage_provider = stored.storage_provider
        outcome.storage_fallback = result.used_fallback

        # ── 2. Extract ──
        try:
            extraction = await self.extractor.extract(
                stored.file_url, json_schema=NOTA_TECNICA_SCHEMA, content=upload.content
            )
        except Exception as e:
            logger.error("Extraction adapter raised for %s: %s", upload.name, e)
            extraction = None
        if extraction is None or not extraction.ok:
            await self._discard(stored)
            return outcome.fail(
                OutcomeStatus.EXTRACT_FAILED, f"Erro ao extrair conteúdo do PDF: {upload.name}"
            )

        # ── 3. Structure ──
        try:
            structured = await self.llm.structure(extraction.output)
        except Exception as e:
            logger.error("Structuring failed for %s: %s", upload.name, e)
            outcome.llm_fallback = self.llm.primary not in (None, self.llm.default)
            await self._discard(stored)
            return outcome.fail(OutcomeStatus.STRUCTURE_FAILED, _reason(e))
        outcome.llm_fallback = structured.used_fallback

        # ── 4. Persist ──
        data: Dict[str, Any] = structured.data.model_dump(mode="json")
        data.update(
            data_emissao=structured.data.data_emissao,
            conteudo_extraido=json.dumps(extraction.output, ensure_ascii=False),
            arquivo_url=stored.file_url,
            nome_arquivo=upload.name,
            storage_provider=stored.storage_provider,
            drive_file_id=stored.file_id,
        )
        try:
            async with self.session_factory() as db:
                nota = await self.notas.create(db, data)
        except Exception as e:
            logger.error("Persisting %s failed: %s", upload.name, e)
            await self._discard(stored)
            return outcome.fail(OutcomeStatus.PERSIST_FAILED, _reason(e))

        outcome.status = OutcomeStatus.PERSISTED
        outcome.nota_id = nota.id
        return outcome

    async def run(self, files: List[QueuedFile], progress: Optional[QueueProgress] = None) -> QueueReport:
        """
        Process the queue in order, index 0 first.

        progress.processed advances after every file whatever its outcome.
        The queue list is emptied once every file has been walked.
        """
        progress = progress or QueueProgress(total=len(files))
        progress.total = len(files)
        progress.processed = 0
        progress.status = "processing"
        logger.info(
            "Queue started: %d file(s), storage=%s, llm=%s",
            len(files),
            self.config.storage_provider,
            self.config.llm_provider,
        )

        for upload in files:
            progress.current_file = upload.name
            outcome = await self.process_file(upload)
            progress.outcomes.append(outcome)
            if outcome.error:
                progress.errors.append(outcome.error)
            progress.processed += 1

        files.clear()
        progress.current_file = None
        progress.status = "completed"
        progress.message = completion_message(self.config)
        logger.info(
            "Queue finished: %d/%d persisted, %d error(s)",
            sum(1 for o in progress.outcomes if o.ok),
            progress.total,
            len(progress.errors),
        )
        return QueueReport(
            total=progress.total,
            processed=progress.processed,
            outcomes=list(progress.outcomes),
            errors=list(progress.errors),
            message=progress.message,
        )


def _reason(error: Exception) -> str:
    return error.message if isinstance(error, NatJusError) else str(error)


# ═══════════════════════════════════════════════════════════════════════════
# Job registry (background runs)
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class UploadJob:
    job_id: uuid.UUID
    storage_provider: str
    progress: QueueProgress

    def to_response(self) -> UploadJobResponse:
        p = self.progress
        return UploadJobResponse(
            job_id=self.job_id,
            status=p.status,
            total=p.total,
            processed=p.processed,
            current_file=p.current_file,
            storage_provider=self.storage_provider,
            message=p.message,
            errors=list(p.errors),
            outcomes=[o.to_schema() for o in p.outcomes],
        )


class UploadJobRegistry:
    """
    In-memory index of queue runs for progress polling.

    Only the most recent MAX_TRACKED_JOBS runs are kept; state does not
    survive a restart.
    """

    def __init__(self, max_jobs: int = MAX_TRACKED_JOBS):
        self.max_jobs = max_jobs
        self._jobs: "OrderedDict[uuid.UUID, UploadJob]" = OrderedDict()

    def create(self, total: int, storage_provider: str) -> UploadJob:
        job = UploadJob(uuid.uuid4(), storage_provider, QueueProgress(total=total))
        self._jobs[job.job_id] = job
        while len(self._jobs) > self.max_jobs:
            self._jobs.popitem(last=False)
        return job

    def get(self, job_id: uuid.UUID) -> Optional[UploadJob]:
        return self._jobs.get(job_id)

    def __len__(self) -> int:
        return len(self._jobs)


upload_jobs = UploadJobRegistry()


async def run_upload_job(
    job: UploadJob,
    files: List[QueuedFile],
    config: RuntimeConfig,
    orchestrator: Optional[PipelineOrchestrator] = None,
) -> None:
    """Background task body for POST /api/uploads."""
    orchestrator = orchestrator or PipelineOrchestrator.from_config(config)
    try:
        await orchestrator.run(files, job.progress)
    except Exception:
        # process_file never raises; this only guards the bookkeeping around it
        logger.exception("Upload job %s aborted", job.job_id)
        job.progress.status = "completed"
        job.progress.current_file = None
        job.progress.errors.append("Erro inesperado ao processar a fila de arquivos.")
