"""
Caller-visible errors of the generation pipeline.

Every error carries a stable machine-readable code and a category:

- rejection: generation was never attempted (bad input, no quota)
- upstream: snapshot or provider failure before anything was persisted
- persistence: the document could not be saved after a successful
  generation, so the generated work is lost

Failures after the document is persisted are never raised to the caller.
"""

from typing import Any, Dict

REJECTION = "rejection"
UPSTREAM = "upstream"
PERSISTENCE = "persistence"


class GenerationError(Exception):
    """Base class for errors surfaced to the caller of the pipeline."""
    code = "GENERATION_FAILED"
    category = UPSTREAM
    default_message = "Failed to generate document"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_response(self) -> Dict[str, Any]:
        """Return the error envelope for this failure."""
        return {"error": {"code": self.code, "message": self.message}}


class InvalidRequest(GenerationError):
    code = "INVALID_REQUEST"
    category = REJECTION
    default_message = "Invalid request body"


class MissingFields(GenerationError):
    code = "MISSING_FIELDS"
    category = REJECTION
    default_message = "Job description is required"


class InvalidDocumentType(GenerationError):
    code = "INVALID_DOCUMENT_TYPE"
    category = REJECTION
    default_message = "Document type must be 'resume' or 'cover_letter'"


class QuotaExceeded(GenerationError):
    code = "NO_FREE_GENERATIONS"
    category = REJECTION
    default_message = "No free generations left. Please upgrade to premium."


class ProfileIncomplete(GenerationError):
    code = "PROFILE_INCOMPLETE"
    category = UPSTREAM
    default_message = "Profile data could not be loaded"


class GenerationFailed(GenerationError):
    code = "GENERATION_FAILED"
    category = UPSTREAM


class GenerationCancelled(GenerationError):
    code = "GENERATION_CANCELLED"
    category = UPSTREAM
    default_message = "Generation was cancelled before the document was saved"


class PersistenceFailed(GenerationError):
    code = "PERSISTENCE_FAILED"
    category = PERSISTENCE
    default_message = "Document was generated but could not be saved"
