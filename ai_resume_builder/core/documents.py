"""
Document assembly.

Pure transform from a request and generated content to a document record.
Persisting the record is the orchestrator's job.
"""

from datetime import datetime

from ai_resume_builder.sdk.provider import GeneratedContent
from ai_resume_builder.storage.models import Document
from ai_resume_builder.storage.repository import new_id

from .request import DocumentKind, GenerationRequest

STATUS_FINAL = "final"

RAW_CONTENT_KEY = "raw_content"


def derive_title(kind: DocumentKind, company_name: str = "", job_title: str = "") -> str:
    """Pick a human-readable title.

    Priority: "company - job title", company, job title, then the
    kind's default ("Resume" / "Cover Letter").
    """
    company_name = company_name.strip()
    job_title = job_title.strip()
    if company_name and job_title:
        return f"{company_name} - {job_title}"
    if company_name:
        return company_name
    if job_title:
        return job_title
    return kind.default_title


class DocumentAssembler:
    """Turns generated content and request metadata into a ``Document``."""

    def assemble(
        self, request: GenerationRequest, generated: GeneratedContent, user_id: str
    ) -> Document:
        now = datetime.now()
        return Document(
            id=new_id(),
            user_id=user_id,
            type=request.kind.value,
            title=derive_title(request.kind, request.company_name, request.job_title),
            # stored exactly as produced
            content={RAW_CONTENT_KEY: generated.content},
            template_id=request.template_id,
            status=STATUS_FINAL,
            job_title=request.job_title,
            company_name=request.company_name,
            job_description=request.job_description,
            created_at=now,
            updated_at=now,
        )
