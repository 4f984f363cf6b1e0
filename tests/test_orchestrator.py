"""
Tests for the generation pipeline.

Covers the happy path, rejections before generation, upstream and
persistence failures, best-effort settlement and cancellation.
"""

import sqlite3
import threading
from unittest.mock import Mock, patch

import pytest
from structlog.testing import capture_logs

from ai_resume_builder.config.loader import Settings, StorageSettings
from ai_resume_builder.core.errors import (
    GenerationCancelled,
    GenerationFailed,
    PersistenceFailed,
    ProfileIncomplete,
    QuotaExceeded,
)
from ai_resume_builder.core.metering import UsageMeter
from ai_resume_builder.core.observability import RecordingFailureReporter
from ai_resume_builder.core.orchestrator import (
    GenerationOrchestrator,
    GenerationState,
    RetryPolicy,
    build_orchestrator,
)
from ai_resume_builder.core.quota import QuotaGate
from ai_resume_builder.core.request import DocumentKind, GenerationRequest
from ai_resume_builder.sdk.provider import CannedGenerationProvider, ProviderError

from conftest import StubProvider, make_user

RESUME = GenerationRequest(kind=DocumentKind.RESUME, job_description="Build scalable systems")
NO_WAIT = RetryPolicy(max_attempts=3, backoff_min_seconds=0, backoff_max_seconds=0)


class FailingQuotaGate(QuotaGate):
    def commit(self, user):
        raise sqlite3.OperationalError("database is locked")


def _orchestrator(repository, pricing, provider=None, **kwargs):
    return GenerationOrchestrator(
        repository=repository,
        provider=provider or StubProvider(),
        meter=kwargs.pop("meter", None) or UsageMeter(repository, pricing, "test-model"),
        reporter=kwargs.pop("reporter", None) or RecordingFailureReporter(),
        **kwargs,
    )


class TestHappyPath:
    """Test a successful generation end to end."""

    def test_resume_generation(self, repository, pricing):
        """Test a free user with one generation gets one final document."""
        user = make_user(repository, free_generations=1)
        provider = StubProvider()
        orchestrator = _orchestrator(repository, pricing, provider)

        result = orchestrator.generate(user.id, RESUME)

        assert result.document.status == "final"
        assert result.document.content == {"raw_content": "generated text"}
        assert result.document.title == "Resume"
        assert result.quota_committed is True
        assert result.state is GenerationState.DONE
        assert result.states == [
            GenerationState.REQUESTED,
            GenerationState.AUTHORIZED,
            GenerationState.SNAPSHOT_READY,
            GenerationState.GENERATED,
            GenerationState.PERSISTED,
            GenerationState.SETTLED,
            GenerationState.DONE,
        ]
        assert repository.load_user(user.id).free_generations_left == 0
        history = repository.list_history(user.id)
        assert len(history) == 1
        assert history[0].document_id == result.document.id
        assert history[0].total_cost == pytest.approx(0.002)
        assert provider.calls[0][0] == "resume"
        assert provider.calls[0][1]["job_description"] == "Build scalable systems"

    def test_cover_letter_uses_company(self, repository, pricing):
        """Test cover letters pass the company to the provider."""
        user = make_user(repository)
        provider = StubProvider()
        request = GenerationRequest(
            kind=DocumentKind.COVER_LETTER,
            job_description="jd",
            job_title="Engineer",
            company_name="Acme",
        )

        result = _orchestrator(repository, pricing, provider).generate(user.id, request)

        assert provider.calls[0][0] == "cover_letter"
        assert provider.calls[0][1]["company_name"] == "Acme"
        assert result.document.title == "Acme - Engineer"
        assert result.document.type == "cover_letter"

    def test_response_envelope(self, repository, pricing):
        """Test the caller envelope wraps the persisted document."""
        user = make_user(repository)
        result = _orchestrator(repository, pricing).generate(user.id, RESUME)

        response = result.to_response()

        assert response["id"] == result.document.id
        assert response["status"] == "completed"
        assert response["document"]["type"] == "resume"

    def test_premium_user_not_decremented(self, repository, pricing):
        """Test premium users keep their counter untouched."""
        user = make_user(repository, free_generations=0, is_premium=True)

        result = _orchestrator(repository, pricing).generate(user.id, RESUME)

        assert result.quota_committed is True
        assert repository.load_user(user.id).free_generations_left == 0
        assert len(repository.list_history(user.id)) == 1

    def test_read_helpers(self, repository, pricing):
        """Test list, get and quota status after a generation."""
        user = make_user(repository, free_generations=2)
        orchestrator = _orchestrator(repository, pricing)
        result = orchestrator.generate(user.id, RESUME)

        assert [d.id for d in orchestrator.list_documents(user.id)] == [result.document.id]
        assert orchestrator.get_document(user.id, result.document.id).title == "Resume"
        assert orchestrator.quota_status(user.id) == {
            "user_id": user.id,
            "is_premium": False,
            "free_generations_left": 1,
            "can_generate": True,
        }

    def test_completion_logged(self, repository, pricing):
        """Test the pipeline logs each step and the completed document."""
        user = make_user(repository)

        with capture_logs() as logs:
            result = _orchestrator(repository, pricing).generate(user.id, RESUME)

        events = [e["event"] for e in logs]
        for expected in ("generation_started", "snapshot_ready", "content_generated",
                         "document_persisted", "usage_recorded", "generation_completed"):
            assert expected in events
        completed = [e for e in logs if e["event"] == "generation_completed"]
        assert completed[0]["document_id"] == result.document.id
        assert completed[0]["quota_committed"] is True


class TestRejections:
    """Test failures before anything is generated."""

    def test_no_free_generations(self, repository, pricing):
        """Test a user with no allowance is rejected without a provider call."""
        user = make_user(repository, free_generations=0)
        provider = StubProvider()

        with pytest.raises(QuotaExceeded) as exc_info:
            _orchestrator(repository, pricing, provider).generate(user.id, RESUME)

        assert exc_info.value.code == "NO_FREE_GENERATIONS"
        assert provider.calls == []
        assert repository.list_documents(user.id) == []

    def test_unknown_user(self, repository, pricing):
        """Test an unknown user surfaces as an incomplete profile."""
        with pytest.raises(ProfileIncomplete):
            _orchestrator(repository, pricing).generate("nope", RESUME)

    def test_user_storage_error(self, repository, pricing):
        """Test a storage failure loading the user surfaces with a code."""
        provider = StubProvider()
        orchestrator = _orchestrator(repository, pricing, provider)

        with patch.object(
            repository, "load_user",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            with capture_logs() as logs:
                with pytest.raises(ProfileIncomplete) as exc_info:
                    orchestrator.generate("u1", RESUME)

        assert exc_info.value.code == "PROFILE_INCOMPLETE"
        assert "database is locked" in exc_info.value.message
        assert provider.calls == []
        assert "generation_abandoned" in [e["event"] for e in logs]

    def test_missing_profile(self, repository, pricing):
        """Test a user without profile data cannot generate."""
        user = repository.create_user("a@example.com", "Ann", free_generations=1)
        provider = StubProvider()

        with pytest.raises(ProfileIncomplete):
            _orchestrator(repository, pricing, provider).generate(user.id, RESUME)

        assert provider.calls == []
        assert repository.load_user(user.id).free_generations_left == 1


class TestUpstreamFailures:
    """Test provider failures and retries."""

    def test_provider_failure(self, repository, pricing):
        """Test a provider error leaves no document and consumes no quota."""
        user = make_user(repository, free_generations=1)

        with pytest.raises(GenerationFailed):
            _orchestrator(repository, pricing, StubProvider(failures=1)).generate(
                user.id, RESUME
            )

        assert repository.list_documents(user.id) == []
        assert repository.list_history(user.id) == []
        assert repository.load_user(user.id).free_generations_left == 1

    def test_retry_then_success(self, repository, pricing):
        """Test a transient failure is retried and persists one document."""
        user = make_user(repository, free_generations=1)
        provider = StubProvider(failures=2)

        result = _orchestrator(repository, pricing, provider, retry=NO_WAIT).generate(
            user.id, RESUME
        )

        assert len(provider.calls) == 3
        assert len(repository.list_documents(user.id)) == 1
        assert len(repository.list_history(user.id)) == 1
        assert result.quota_committed is True

    def test_retries_exhausted(self, repository, pricing):
        """Test the error surfaces after the last attempt."""
        user = make_user(repository)
        provider = StubProvider(failures=5)

        with pytest.raises(GenerationFailed):
            _orchestrator(repository, pricing, provider, retry=NO_WAIT).generate(
                user.id, RESUME
            )

        assert len(provider.calls) == 3

    def test_non_provider_errors_not_retried(self, repository, pricing):
        """Test unexpected provider exceptions fail once with a stable code."""
        user = make_user(repository, free_generations=1)
        provider = Mock()
        provider.generate_resume.side_effect = KeyError("bug")

        with pytest.raises(GenerationFailed) as exc_info:
            _orchestrator(repository, pricing, provider, retry=NO_WAIT).generate(
                user.id, RESUME
            )

        assert exc_info.value.code == "GENERATION_FAILED"
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert provider.generate_resume.call_count == 1
        assert repository.list_documents(user.id) == []
        assert repository.load_user(user.id).free_generations_left == 1

    def test_invalid_retry_policy(self):
        """Test a retry policy needs at least one attempt."""
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestPersistenceFailure:
    """Test failure to save a generated document."""

    def test_save_failure(self, repository, pricing):
        """Test nothing is metered or consumed when the save fails."""
        user = make_user(repository, free_generations=1)
        reporter = RecordingFailureReporter()
        orchestrator = _orchestrator(repository, pricing, reporter=reporter)

        with patch.object(
            repository, "save_document", side_effect=sqlite3.OperationalError("disk full")
        ):
            with pytest.raises(PersistenceFailed) as exc_info:
                orchestrator.generate(user.id, RESUME)

        assert exc_info.value.category == "persistence"
        assert repository.list_history(user.id) == []
        assert repository.load_user(user.id).free_generations_left == 1


class TestBestEffortSettlement:
    """Test failures after the document is persisted."""

    def test_meter_failure_is_reported(self, repository, pricing):
        """Test a metering failure still returns the document."""
        user = make_user(repository, free_generations=1)
        meter = Mock()
        meter.record.side_effect = sqlite3.OperationalError("database is locked")
        reporter = RecordingFailureReporter()

        result = _orchestrator(
            repository, pricing, meter=meter, reporter=reporter
        ).generate(user.id, RESUME)

        assert result.history is None
        assert result.quota_committed is True
        assert reporter.events() == ["usage_record_failed"]
        assert len(repository.list_documents(user.id)) == 1

    def test_quota_commit_failure_is_reported(self, repository, pricing):
        """Test a quota commit failure still returns the document."""
        user = make_user(repository, free_generations=1)
        reporter = RecordingFailureReporter()

        result = _orchestrator(
            repository, pricing, quota=FailingQuotaGate(repository), reporter=reporter
        ).generate(user.id, RESUME)

        assert result.quota_committed is False
        assert result.state is GenerationState.DONE
        assert reporter.events() == ["quota_commit_failed"]
        assert reporter.reports[0][1]["reason"] == "error"
        assert repository.load_user(user.id).free_generations_left == 1
        assert len(repository.list_history(user.id)) == 1

    def test_reporter_failure_does_not_raise(self, repository, pricing):
        """Test a broken reporter cannot fail a persisted generation."""
        user = make_user(repository)
        reporter = Mock()
        reporter.report.side_effect = RuntimeError("sink down")

        result = _orchestrator(
            repository, pricing, quota=FailingQuotaGate(repository), reporter=reporter
        ).generate(user.id, RESUME)

        assert result.quota_committed is False
        reporter.report.assert_called_once()

    def test_concurrent_generations_on_last_unit(self, repository, pricing):
        """Test at most one of two concurrent generations consumes the last unit."""
        user = make_user(repository, free_generations=1)
        reporter = RecordingFailureReporter()
        orchestrator = _orchestrator(repository, pricing, reporter=reporter)
        results, errors = [], []
        lock = threading.Lock()

        def worker():
            try:
                outcome = orchestrator.generate(user.id, RESUME)
            except QuotaExceeded as e:
                outcome = e
            with lock:
                (errors if isinstance(outcome, QuotaExceeded) else results).append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) + len(errors) == 2
        assert sum(r.quota_committed for r in results) == 1
        assert repository.load_user(user.id).free_generations_left == 0
        assert reporter.events().count("quota_commit_failed") == len(results) - 1


class TestCancellation:
    """Test cooperative cancellation before persistence."""

    def test_cancelled_before_start(self, repository, pricing):
        """Test a pre-set cancel event abandons the request."""
        user = make_user(repository, free_generations=1)
        provider = StubProvider()
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(GenerationCancelled):
            _orchestrator(repository, pricing, provider).generate(
                user.id, RESUME, cancel_event=cancel
            )

        assert provider.calls == []
        assert repository.load_user(user.id).free_generations_left == 1

    def test_cancelled_during_retry(self, repository, pricing):
        """Test cancellation between attempts stops further provider calls."""
        user = make_user(repository, free_generations=1)
        cancel = threading.Event()
        provider = StubProvider(failures=5)
        original = provider.generate_resume

        def failing_then_cancel(*args, **kwargs):
            cancel.set()
            return original(*args, **kwargs)

        provider.generate_resume = failing_then_cancel

        with pytest.raises(GenerationCancelled):
            _orchestrator(repository, pricing, provider, retry=NO_WAIT).generate(
                user.id, RESUME, cancel_event=cancel
            )

        assert len(provider.calls) == 1
        assert repository.list_documents(user.id) == []

    def test_cancel_after_persist_is_ignored(self, repository, pricing):
        """Test cancelling once the document is saved still meters and commits."""
        user = make_user(repository, free_generations=1)
        cancel = threading.Event()
        save_document = repository.save_document

        def save_then_cancel(document):
            saved = save_document(document)
            cancel.set()
            return saved

        with patch.object(repository, "save_document", side_effect=save_then_cancel):
            result = _orchestrator(repository, pricing).generate(
                user.id, RESUME, cancel_event=cancel
            )

        assert result.state is GenerationState.DONE
        assert result.history is not None
        assert result.quota_committed is True
        assert repository.load_user(user.id).free_generations_left == 0
        assert len(repository.list_history(user.id)) == 1

    def test_abandoned_state_logged(self, repository, pricing):
        """Test abandonment is logged with the error code."""
        user = make_user(repository, free_generations=0)

        with capture_logs() as logs:
            with pytest.raises(QuotaExceeded):
                _orchestrator(repository, pricing).generate(user.id, RESUME)

        abandoned = [e for e in logs if e["event"] == "generation_abandoned"]
        assert abandoned[0]["code"] == "NO_FREE_GENERATIONS"
        assert abandoned[0]["last_state"] == "requested"


class TestBuildOrchestrator:
    """Test wiring from settings."""

    def test_build_with_canned_provider(self, db_path):
        """Test a pipeline built from settings generates end to end."""
        settings = Settings(storage=StorageSettings(database_path=db_path))
        orchestrator = build_orchestrator(
            settings, provider=CannedGenerationProvider(model="gpt-4o-mini")
        )
        user = make_user(orchestrator.repository, free_generations=1)

        result = orchestrator.generate(user.id, RESUME)

        assert result.history.model == "gpt-4o-mini"
        assert result.history.total_cost > 0
        assert orchestrator.retry.max_attempts == settings.retry.max_attempts
