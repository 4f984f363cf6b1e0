"""
Shared fixtures for the test suite.
"""

import os
import shutil
import tempfile
from datetime import date

import pytest

from ai_resume_builder.core.pricing import PricingTable
from ai_resume_builder.sdk.provider import (
    GeneratedContent,
    GenerationProvider,
    ProviderError,
)
from ai_resume_builder.storage.repository import ResumeRepository, initialize_schema

TEST_RATES = {"test-model": {"input_per_1m": 1.0, "output_per_1m": 2.0}}


class StubProvider(GenerationProvider):
    """Provider double that records calls and can fail on demand."""

    def __init__(self, content="generated text", failures=0, model="test-model"):
        self.model = model
        self.content = content
        self.failures = failures
        self.calls = []

    def _respond(self, kind, **kwargs):
        self.calls.append((kind, kwargs))
        if self.failures > 0:
            self.failures -= 1
            raise ProviderError("upstream unavailable")
        return GeneratedContent(
            content=self.content,
            prompt_tokens=1000,
            completion_tokens=500,
            total_tokens=1500,
            generation_time_ms=42,
            model=self.model,
        )

    def generate_resume(self, snapshot, job_description, custom_sections=()):
        return self._respond(
            "resume",
            snapshot=snapshot,
            job_description=job_description,
            custom_sections=custom_sections,
        )

    def generate_cover_letter(self, snapshot, job_description, company_name=""):
        return self._respond(
            "cover_letter",
            snapshot=snapshot,
            job_description=job_description,
            company_name=company_name,
        )


@pytest.fixture
def db_path():
    """Path to a fresh, initialized SQLite database."""
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "test.db")
    initialize_schema(path)
    yield path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def repository(db_path):
    return ResumeRepository(db_path)


@pytest.fixture
def pricing():
    return PricingTable.from_rates(TEST_RATES)


def make_user(repository, free_generations=1, is_premium=False, email="jane@example.com"):
    """Create a user with a minimal profile, one experience and two skills."""
    user = repository.create_user(
        email=email,
        full_name="Jane Doe",
        free_generations=free_generations,
        is_premium=is_premium,
    )
    repository.save_profile(user.id, phone="+1 555 0199", location="Austin, TX")
    repository.add_experience(
        user.id,
        company="Initech",
        position="Engineer",
        start_date=date(2020, 1, 1),
        is_current=True,
    )
    repository.add_skill(user.id, name="Python", category="technical")
    repository.add_skill(user.id, name="Communication", category="soft")
    return user
