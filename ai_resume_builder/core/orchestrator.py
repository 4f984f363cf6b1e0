"""
Generation pipeline orchestration.

Sequences one generation request through its states:

    Requested -> Authorized -> SnapshotReady -> Generated -> Persisted
              -> Settled (metering + quota) -> Done

Any failure before Persisted abandons the request with a caller-visible
error. Once the document is persisted the request has succeeded: metering
and quota consumption are best-effort, their failures are logged and
reported but never raised, and cancellation is ignored.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from structlog.contextvars import bound_contextvars
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ai_resume_builder.sdk.provider import (
    GeneratedContent,
    GenerationProvider,
    ProviderError,
)
from ai_resume_builder.storage.models import Document, GenerationHistoryRecord, User
from ai_resume_builder.storage.repository import (
    NotFoundError,
    ResumeRepository,
    UserNotFound,
    new_id,
)

from .documents import DocumentAssembler
from .errors import (
    GenerationCancelled,
    GenerationError,
    GenerationFailed,
    PersistenceFailed,
    ProfileIncomplete,
)
from .metering import UsageMeter
from .observability import FailureReporter, LogFailureReporter
from .profile import ProfileAggregator, ProfileSnapshot
from .quota import QuotaGate
from .request import DocumentKind, GenerationRequest

logger = structlog.get_logger().bind(module="orchestrator")


class GenerationState(Enum):
    """States of a single generation request."""
    REQUESTED = "requested"
    AUTHORIZED = "authorized"
    SNAPSHOT_READY = "snapshot_ready"
    GENERATED = "generated"
    PERSISTED = "persisted"
    SETTLED = "settled"
    DONE = "done"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry around the provider call only.

    ``max_attempts=1`` disables retrying.
    """
    max_attempts: int = 1
    backoff_multiplier: float = 1.0
    backoff_min_seconds: float = 1.0
    backoff_max_seconds: float = 10.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_min_seconds < 0 or self.backoff_max_seconds < self.backoff_min_seconds:
            raise ValueError("backoff bounds must satisfy 0 <= min <= max")


@dataclass
class GenerationResult:
    """Outcome of a successful generation."""
    document: Document
    history: Optional[GenerationHistoryRecord]
    quota_committed: bool
    states: List[GenerationState] = field(default_factory=list)

    @property
    def state(self) -> GenerationState:
        return self.states[-1]

    def to_response(self) -> Dict[str, Any]:
        """Return the artifact envelope for the caller."""
        return {
            "id": self.document.id,
            "status": "completed",
            "document": self.document.to_dict(),
        }


class GenerationOrchestrator:
    """Runs the generation pipeline for one request at a time per worker.

    Holds no per-request state, so one instance can serve concurrent
    requests from several threads.
    """

    def __init__(
        self,
        repository: ResumeRepository,
        provider: GenerationProvider,
        meter: UsageMeter,
        quota: Optional[QuotaGate] = None,
        aggregator: Optional[ProfileAggregator] = None,
        assembler: Optional[DocumentAssembler] = None,
        reporter: Optional[FailureReporter] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self.repository = repository
        self.provider = provider
        self.meter = meter
        self.quota = quota or QuotaGate(repository)
        self.aggregator = aggregator or ProfileAggregator(repository)
        self.assembler = assembler or DocumentAssembler()
        self.reporter = reporter or LogFailureReporter()
        self.retry = retry or RetryPolicy()

    def generate(
        self,
        user_id: str,
        request: GenerationRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        """Generate, persist and meter one document.

        Args:
            user_id: Authenticated user identifier
            request: Validated generation request
            cancel_event: Set by the caller to abandon the request; only
                honoured before the document is persisted

        Returns:
            GenerationResult for the persisted document

        Raises:
            QuotaExceeded: The user has no free generations left
            ProfileIncomplete: The user or their profile data could not be loaded
            GenerationFailed: The provider failed (after any configured retries)
            GenerationCancelled: ``cancel_event`` was set before persistence
            PersistenceFailed: The generated document could not be saved
        """
        states = [GenerationState.REQUESTED]
        with bound_contextvars(
            request_id=new_id(), user_id=user_id, document_kind=request.kind.value
        ):
            logger.info("generation_started")
            try:
                user = self._authorize(user_id, cancel_event)
                states.append(GenerationState.AUTHORIZED)

                snapshot = self._build_snapshot(user, cancel_event)
                states.append(GenerationState.SNAPSHOT_READY)

                generated = self._generate(request, snapshot, cancel_event)
                states.append(GenerationState.GENERATED)

                document = self._persist(request, generated, user_id, cancel_event)
                states.append(GenerationState.PERSISTED)
            except GenerationError as e:
                states.append(GenerationState.ABANDONED)
                logger.warning(
                    "generation_abandoned",
                    code=e.code,
                    category=e.category,
                    last_state=states[-2].value,
                    error=e.message,
                )
                raise

            history = self._record_usage(user_id, document, generated)
            committed = self._commit_quota(user, document)
            states.append(GenerationState.SETTLED)
            states.append(GenerationState.DONE)
            logger.info(
                "generation_completed",
                document_id=document.id,
                quota_committed=committed,
                metered=history is not None,
            )
        return GenerationResult(
            document=document, history=history, quota_committed=committed, states=states
        )

    # Pre-persistence steps: failures abandon the request

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled()

    def _authorize(self, user_id: str, cancel_event: Optional[threading.Event]) -> User:
        self._check_cancelled(cancel_event)
        try:
            user = self.repository.load_user(user_id)
        except UserNotFound as e:
            raise ProfileIncomplete(f"User not found: {user_id}") from e
        except Exception as e:
            raise ProfileIncomplete(f"Failed to load user: {e}") from e
        self.quota.enforce(user)
        logger.info("generation_authorized", is_premium=user.is_premium)
        return user

    def _build_snapshot(
        self, user: User, cancel_event: Optional[threading.Event]
    ) -> ProfileSnapshot:
        self._check_cancelled(cancel_event)
        try:
            snapshot = self.aggregator.build(user.id, user=user)
        except NotFoundError as e:
            raise ProfileIncomplete(str(e)) from e
        except Exception as e:
            raise ProfileIncomplete(f"Failed to load profile data: {e}") from e
        logger.info("snapshot_ready")
        return snapshot

    def _generate(
        self,
        request: GenerationRequest,
        snapshot: ProfileSnapshot,
        cancel_event: Optional[threading.Event],
    ) -> GeneratedContent:
        policy = self.retry

        def sleep(seconds: float) -> None:
            if cancel_event is not None:
                cancel_event.wait(seconds)
            else:
                time.sleep(seconds)

        def log_retry(retry_state) -> None:
            logger.warning(
                "provider_retry",
                attempt=retry_state.attempt_number,
                max_attempts=policy.max_attempts,
                error=str(retry_state.outcome.exception()),
            )

        retrying = Retrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.backoff_multiplier,
                min=policy.backoff_min_seconds,
                max=policy.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(ProviderError),
            before_sleep=log_retry,
            sleep=sleep,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._check_cancelled(cancel_event)
                    generated = self._call_provider(request, snapshot)
        except ProviderError as e:
            raise GenerationFailed(f"Failed to generate {request.kind.value}: {e}") from e
        except GenerationError:
            raise
        except Exception as e:
            # Only ProviderError is retried; anything else fails on first sight
            raise GenerationFailed(
                f"Unexpected error generating {request.kind.value}: {e}"
            ) from e

        logger.info(
            "content_generated",
            model=generated.model,
            total_tokens=generated.total_tokens,
            generation_time_ms=generated.generation_time_ms,
        )
        return generated

    def _call_provider(
        self, request: GenerationRequest, snapshot: ProfileSnapshot
    ) -> GeneratedContent:
        if request.kind is DocumentKind.RESUME:
            return self.provider.generate_resume(
                snapshot, request.job_description, request.custom_sections
            )
        return self.provider.generate_cover_letter(
            snapshot, request.job_description, request.company_name
        )

    def _persist(
        self,
        request: GenerationRequest,
        generated: GeneratedContent,
        user_id: str,
        cancel_event: Optional[threading.Event],
    ) -> Document:
        self._check_cancelled(cancel_event)
        try:
            document = self.assembler.assemble(request, generated, user_id)
        except (TypeError, ValueError) as e:
            raise GenerationFailed(f"Failed to assemble document: {e}") from e

        try:
            document = self.repository.save_document(document)
        except Exception as e:
            # The one case where generated work is lost
            logger.error(
                "document_persist_failed",
                total_tokens=generated.total_tokens,
                error=str(e),
            )
            raise PersistenceFailed() from e
        logger.info("document_persisted", document_id=document.id, title=document.title)
        return document

    # Post-persistence steps: best-effort, never raised

    def _report(self, event: str, **fields: Any) -> None:
        try:
            self.reporter.report(event, **fields)
        except Exception:
            logger.exception("failure_report_failed", reported_event=event)

    def _record_usage(
        self, user_id: str, document: Document, generated: GeneratedContent
    ) -> Optional[GenerationHistoryRecord]:
        try:
            return self.meter.record(user_id, document.id, generated)
        except Exception as e:
            logger.error("usage_record_failed", document_id=document.id, error=str(e))
            self._report(
                "usage_record_failed",
                user_id=user_id,
                document_id=document.id,
                error=str(e),
            )
            return None

    def _commit_quota(self, user: User, document: Document) -> bool:
        try:
            committed = self.quota.commit(user)
        except Exception as e:
            logger.error("quota_commit_failed", document_id=document.id, error=str(e))
            self._report(
                "quota_commit_failed",
                user_id=user.id,
                document_id=document.id,
                reason="error",
                error=str(e),
            )
            return False
        if not committed:
            self._report(
                "quota_commit_failed",
                user_id=user.id,
                document_id=document.id,
                reason="race_lost",
            )
        return committed

    # Read-side helpers

    def list_documents(self, user_id: str) -> List[Document]:
        return self.repository.list_documents(user_id)

    def get_document(self, user_id: str, document_id: str) -> Document:
        return self.repository.get_document(user_id, document_id)

    def quota_status(self, user_id: str) -> Dict[str, Any]:
        user = self.repository.load_user(user_id)
        return {
            "user_id": user.id,
            "is_premium": user.is_premium,
            "free_generations_left": user.free_generations_left,
            "can_generate": self.quota.authorize(user),
        }


def build_orchestrator(
    settings,
    provider: Optional[GenerationProvider] = None,
    reporter: Optional[FailureReporter] = None,
) -> GenerationOrchestrator:
    """Wire a pipeline from ``Settings``.

    Args:
        settings: Loaded application settings
        provider: Generation backend; defaults to OpenAI with the
            configured model and limits
        reporter: Observability collaborator; defaults to the log
    """
    from ai_resume_builder.sdk.openai_client import OpenAIGenerationProvider

    gen = settings.generation
    repository = ResumeRepository(settings.storage.database_path)
    if provider is None:
        provider = OpenAIGenerationProvider(
            model=gen.model,
            temperature=gen.temperature,
            resume_max_tokens=gen.resume_max_tokens,
            cover_letter_max_tokens=gen.cover_letter_max_tokens,
            timeout=gen.request_timeout_seconds,
        )
    meter = UsageMeter(repository, settings.pricing_table(), gen.model)
    retry = RetryPolicy(
        max_attempts=settings.retry.max_attempts,
        backoff_multiplier=settings.retry.backoff_multiplier,
        backoff_min_seconds=settings.retry.backoff_min_seconds,
        backoff_max_seconds=settings.retry.backoff_max_seconds,
    )
    return GenerationOrchestrator(
        repository=repository,
        provider=provider,
        meter=meter,
        reporter=reporter,
        retry=retry,
    )
