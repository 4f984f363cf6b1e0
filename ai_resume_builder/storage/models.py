"""
Data models for storage layer.

Defines the persisted records of the resume builder: accounts, profile
data, generated documents and the generation ledger.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class User:
    """Account and quota state."""
    id: str
    email: str
    full_name: str
    free_generations_left: int
    is_premium: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Profile:
    """Contact details and summary for one user."""
    id: str
    user_id: str
    phone: str = ""
    location: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    website_url: str = ""
    summary: str = ""


@dataclass(frozen=True)
class Experience:
    """A single work experience entry."""
    id: str
    profile_id: str
    company: str
    position: str
    start_date: date
    end_date: Optional[date] = None
    is_current: bool = False
    description: str = ""
    achievements: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Education:
    """A single education entry."""
    id: str
    profile_id: str
    institution: str
    degree: str
    start_date: date
    field_of_study: str = ""
    end_date: Optional[date] = None
    gpa: Optional[float] = None


@dataclass(frozen=True)
class Skill:
    """A named skill in a category (technical, soft, language)."""
    id: str
    profile_id: str
    name: str
    category: str
    proficiency_level: str = ""


@dataclass(frozen=True)
class Document:
    """A generated resume or cover letter.

    Created once by the generation pipeline; later edits go through
    ``ResumeRepository.update_document``.
    """
    id: str
    user_id: str
    type: str
    title: str
    content: Dict[str, Any]
    template_id: str
    status: str
    job_title: str = ""
    company_name: str = ""
    job_description: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-ready representation of the document."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "content": dict(self.content),
            "template_id": self.template_id,
            "job_title": self.job_title,
            "company_name": self.company_name,
            "job_description": self.job_description,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class GenerationHistoryRecord:
    """Immutable record of one generation for billing and usage tracking.

    Append-only: once written, these records must never be modified.
    """
    id: str
    user_id: str
    document_id: str
    prompt_tokens: int
    completion_tokens: int
    total_cost: float
    generation_time_ms: int
    model: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens
