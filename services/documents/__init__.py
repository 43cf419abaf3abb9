"""
Document Generation System

A configuration-driven engine for generating property-management
documents. Document types are defined in YAML files and every request
flows through the same pipeline of resolution, model building, layout
and persistence.

Usage:
    from services.documents import DocumentLoader, DocumentPipeline, DocumentRequest, DocumentType

    # On app startup
    DocumentLoader.load_all()

    # When generating a document
    request = DocumentRequest(DocumentType.SHOWING_SHEET, property_ref=property_id,
                              custom_fields={'showingDate': '2025-03-14', 'agentName': 'Dana Reyes'})
    entry = pipeline.generate(request, owner=current_user.company_id)
"""

from .types import (
    DocumentType,
    FieldKind,
    DisplayConfig,
    FieldDefinition,
    DocumentDefinition,
    PropertySnapshot,
    ApplicationSnapshot,
    CompanySnapshot,
    DocumentRequest,
    ResolvedContext,
    RenderedArtifact,
    HistoryEntry,
)

from .exceptions import (
    DocumentError,
    ConfigurationError,
    ValidationError,
    EntityNotFoundError,
    LayoutError,
    PersistError,
    PersistStep,
    WizardError,
)

from .loader import DocumentLoader
from .field_resolver import FieldResolver
from .sections import CanonicalDocument
from .builder import DocumentModelBuilder
from .copywriter import DocumentCopywriter
from .preview import PreviewNode, PreviewRenderer
from .styles import StyleSheet
from .layout import LayoutEngine, LayoutResult
from .pdf_writer import PdfWriter
from .artifact_store import ArtifactStore, SqlAlchemyHistoryIndex
from .inputs import (
    ShowingSheetInput,
    LeaseProposalInput,
    ApplicationSummaryInput,
    PropertySummaryInput,
    parse_request,
)
from .wizard import GeneratorWizard, WizardStep
from .pipeline import DocumentPipeline, get_pipeline

__all__ = [
    # Types
    'DocumentType',
    'FieldKind',
    'DisplayConfig',
    'FieldDefinition',
    'DocumentDefinition',
    'PropertySnapshot',
    'ApplicationSnapshot',
    'CompanySnapshot',
    'DocumentRequest',
    'ResolvedContext',
    'RenderedArtifact',
    'HistoryEntry',

    # Exceptions
    'DocumentError',
    'ConfigurationError',
    'ValidationError',
    'EntityNotFoundError',
    'LayoutError',
    'PersistError',
    'PersistStep',
    'WizardError',

    # Services
    'DocumentLoader',
    'FieldResolver',
    'CanonicalDocument',
    'DocumentModelBuilder',
    'DocumentCopywriter',
    'PreviewNode',
    'PreviewRenderer',
    'StyleSheet',
    'LayoutEngine',
    'LayoutResult',
    'PdfWriter',
    'ArtifactStore',
    'SqlAlchemyHistoryIndex',
    'DocumentPipeline',
    'get_pipeline',

    # Inputs and wizard
    'ShowingSheetInput',
    'LeaseProposalInput',
    'ApplicationSummaryInput',
    'PropertySummaryInput',
    'parse_request',
    'GeneratorWizard',
    'WizardStep',
]
