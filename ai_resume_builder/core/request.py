"""
Generation request parsing.

Validates the inbound request shape and normalizes optional fields.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from .errors import InvalidDocumentType, InvalidRequest, MissingFields

DEFAULT_TEMPLATE_ID = "classic"


class DocumentKind(Enum):
    """Kinds of documents the pipeline can generate."""
    RESUME = "resume"
    COVER_LETTER = "cover_letter"

    @property
    def default_title(self) -> str:
        return "Resume" if self is DocumentKind.RESUME else "Cover Letter"


@dataclass(frozen=True)
class GenerationRequest:
    """Caller intent for one generation."""
    kind: DocumentKind
    job_description: str
    job_title: str = ""
    company_name: str = ""
    template_id: str = DEFAULT_TEMPLATE_ID
    custom_sections: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.job_description or not self.job_description.strip():
            raise MissingFields()

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], kind: Optional[DocumentKind] = None
    ) -> "GenerationRequest":
        """Build a request from a decoded request body.

        Args:
            payload: Mapping with ``type``, ``job_description`` and the
                optional ``job_title``, ``company_name``, ``template_id``
                and ``custom_sections`` keys
            kind: Overrides ``payload["type"]`` when given

        Raises:
            MissingFields: If the job description is absent or blank
            InvalidDocumentType: If the type is not a known document kind
        """
        job_description = payload.get("job_description") or ""
        if not isinstance(job_description, str) or not job_description.strip():
            raise MissingFields()

        if kind is None:
            try:
                kind = DocumentKind(payload.get("type"))
            except ValueError:
                raise InvalidDocumentType(
                    f"Unknown document type: {payload.get('type')!r}"
                ) from None

        sections = payload.get("custom_sections") or ()
        if isinstance(sections, str) or not all(isinstance(s, str) for s in sections):
            raise InvalidRequest("custom_sections must be a list of strings")

        return cls(
            kind=kind,
            job_description=job_description,
            job_title=(payload.get("job_title") or "").strip(),
            company_name=(payload.get("company_name") or "").strip(),
            template_id=payload.get("template_id") or DEFAULT_TEMPLATE_ID,
            custom_sections=tuple(s.strip() for s in sections if s.strip()),
        )
