"""
Document System Exceptions

Custom exceptions for document configuration, generation and persistence errors.
"""

from enum import Enum
from typing import Dict, List, Optional


class DocumentError(Exception):
    """Base exception for all document system errors."""

    correlation_id: Optional[str] = None


class ConfigurationError(DocumentError):
    """
    Raised when document configuration is invalid.

    This includes YAML syntax errors, schema validation failures,
    and referential integrity issues (e.g., a section key the builder
    does not know, or a style sheet missing a page block).
    """
    pass


class ValidationError(DocumentError):
    """
    Raised when a generation request fails field resolution.

    Always recoverable by the caller correcting input. Carries the exact
    field names that were missing and those whose values were rejected.
    """
    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        invalid_fields: Optional[Dict[str, str]] = None,
        document_slug: str = None,
    ):
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = dict(invalid_fields or {})
        self.document_slug = document_slug
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            'missing_fields': self.missing_fields,
            'invalid_fields': self.invalid_fields,
        }


class EntityNotFoundError(DocumentError):
    """Raised by the entity gateway when a referenced record does not exist."""
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class LayoutError(DocumentError):
    """
    Raised when a canonical document cannot be laid out.

    Indicates a programming or configuration defect: a section variant
    without a registered style, a style missing a text role, or a section
    that the document type does not permit.
    """
    def __init__(self, message: str, section: str = None):
        self.section = section
        super().__init__(message)


class PersistStep(Enum):
    """Which persistence step failed."""
    UPLOAD = "UploadFailed"
    URL_RESOLUTION = "UrlResolutionFailed"
    INDEX_WRITE = "IndexWriteFailed"


class PersistError(DocumentError):
    """
    Raised when storing a rendered artifact fails.

    `step` tells the caller whether anything was written: an UPLOAD failure
    leaves nothing behind, while URL_RESOLUTION and INDEX_WRITE failures
    leave an unindexed blob at `storage_path`.
    """
    def __init__(
        self,
        message: str,
        step: PersistStep,
        storage_path: str = None,
        url: str = None,
    ):
        self.step = step
        self.storage_path = storage_path
        self.url = url
        super().__init__(message)

    @property
    def blob_written(self) -> bool:
        return self.step != PersistStep.UPLOAD


class WizardError(DocumentError):
    """Raised on an invalid generator wizard transition."""
    pass
