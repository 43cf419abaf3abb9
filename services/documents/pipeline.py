"""
Document Pipeline

Runs one generation request end to end:

    gateway -> FieldResolver -> DocumentCopywriter -> DocumentModelBuilder -> LayoutEngine -> ArtifactStore

Stateless between calls; everything a request needs is fetched, built and
stored inside generate(). Errors after resolution carry a correlation id
so the log lines of one failed request can be found from the response.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

import pytz
from flask import current_app

from .builder import DocumentModelBuilder
from .copywriter import DocumentCopywriter
from .exceptions import (
    DocumentError,
    EntityNotFoundError,
    LayoutError,
    PersistError,
    ValidationError,
)
from .field_resolver import FieldResolver
from .layout import DEFAULT_TIMEZONE, LayoutEngine
from .loader import DocumentLoader
from .preview import PreviewNode, PreviewRenderer
from .sections import CanonicalDocument
from .styles import StyleSheet
from .types import (
    DocumentDefinition,
    DocumentRequest,
    ENTITY_APPLICATION,
    ENTITY_PROPERTY,
    HistoryEntry,
    ResolvedContext,
)

logger = logging.getLogger(__name__)

ISSUE_DATE_FIELD = 'issueDate'


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


class DocumentPipeline:
    """
    Orchestrates document generation for one company at a time.

    Usage:
        pipeline = DocumentPipeline(EntityGateway(), store, StyleSheet.load())
        entry = pipeline.generate(request, owner=current_user.company_id)
    """

    def __init__(self, gateway, store, style: StyleSheet, timezone: str = DEFAULT_TIMEZONE,
                 clock: Callable[[], datetime] = utc_now,
                 copywriter: Optional[DocumentCopywriter] = None):
        self.gateway = gateway
        self.store = store
        self.style = style
        self.timezone = timezone
        self.clock = clock
        self.copywriter = copywriter or DocumentCopywriter()

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def generate(self, request: DocumentRequest, owner: str) -> HistoryEntry:
        """
        Resolve, build, lay out and persist one document.

        Raises:
            ValidationError: bad or missing input, or a reference that does not exist
            LayoutError: the document could not be laid out
            PersistError: storing or indexing failed (see its step)
        """
        generated_at = self.clock()
        context = self.resolve(request, owner, generated_at)
        correlation_id = new_correlation_id()

        try:
            document = DocumentModelBuilder.build(context)
            artifact = self._engine_for(context).render_to_artifact(document, generated_at)
        except LayoutError as e:
            e.correlation_id = correlation_id
            logger.error(f"[{correlation_id}] Layout failed for {request.type.value} (section {e.section}): {e}")
            raise

        try:
            entry = self.store.persist(artifact, owner)
        except PersistError as e:
            e.correlation_id = correlation_id
            logger.error(
                f"[{correlation_id}] Persist failed for {artifact.document_id} "
                f"at {e.step.value} (storage_path={e.storage_path})"
            )
            raise

        logger.info(
            f"Generated {entry.document_type.value} {entry.document_id} for {owner}: "
            f"{artifact.page_count} page(s), {artifact.size_bytes} bytes"
        )
        return entry

    def preview(self, request: DocumentRequest, owner: str) -> PreviewNode:
        """Resolve and build a document and render it for screen. Nothing is stored."""
        context = self.resolve(request, owner, self.clock())
        try:
            return PreviewRenderer.render(DocumentModelBuilder.build(context))
        except LayoutError as e:
            e.correlation_id = new_correlation_id()
            logger.error(f"[{e.correlation_id}] Preview failed for {request.type.value}: {e}")
            raise

    def build(self, request: DocumentRequest, owner: str) -> Tuple[ResolvedContext, CanonicalDocument]:
        context = self.resolve(request, owner, self.clock())
        return context, DocumentModelBuilder.build(context)

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, request: DocumentRequest, owner: str, now: datetime) -> ResolvedContext:
        """Fetch linked entities for the owner and resolve the request's fields."""
        definition = DocumentLoader.get_or_raise(request.type)

        company = self._fetch_company(owner)
        invalid: Dict[str, str] = {}
        property_snapshot = None
        application_snapshot = None

        if request.application_ref and definition.accepts_entity(ENTITY_APPLICATION):
            try:
                application_snapshot = self.gateway.get_application(request.application_ref, owner)
            except EntityNotFoundError:
                invalid['applicationRef'] = f"application {request.application_ref} not found"

        # An application brings its property along unless one was picked explicitly
        property_ref = request.property_ref
        if not property_ref and application_snapshot and definition.accepts_entity(ENTITY_PROPERTY):
            property_ref = application_snapshot.property_id

        if property_ref and definition.accepts_entity(ENTITY_PROPERTY):
            try:
                property_snapshot = self.gateway.get_property(property_ref, owner)
            except EntityNotFoundError:
                invalid['propertyRef'] = f"property {property_ref} not found"

        if invalid:
            message = f"Cannot generate {definition.name}: " + "; ".join(invalid.values())
            logger.info(message)
            raise ValidationError(message, invalid_fields=invalid, document_slug=definition.slug)

        context = FieldResolver.resolve(
            definition,
            self._with_issue_date(definition, request, now),
            property=property_snapshot,
            application=application_snapshot,
            company=company
        )
        return self.copywriter.fill(context)

    def _fetch_company(self, owner: str):
        try:
            return self.gateway.get_company(owner)
        except EntityNotFoundError:
            logger.warning(f"No company record for owner {owner}; generating without branding")
            return None

    def _with_issue_date(self, definition: DocumentDefinition, request: DocumentRequest,
                         now: datetime) -> DocumentRequest:
        """Documents are dated the day they are generated unless the operator set a date."""
        if definition.get_field(ISSUE_DATE_FIELD) is None or request.custom_fields.get(ISSUE_DATE_FIELD):
            return request
        custom_fields = dict(request.custom_fields)
        custom_fields[ISSUE_DATE_FIELD] = self._local_date(now)
        return DocumentRequest(
            type=request.type,
            property_ref=request.property_ref,
            application_ref=request.application_ref,
            custom_fields=custom_fields
        )

    def _local_date(self, now: datetime):
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        return now.astimezone(pytz.timezone(self.timezone)).date()

    def _engine_for(self, context: ResolvedContext) -> LayoutEngine:
        brand_color = context.company.brand_color if context.company else None
        return LayoutEngine(self.style.with_accent(brand_color), self.timezone)


def get_pipeline() -> DocumentPipeline:
    """The pipeline built for the current app by create_app()."""
    pipeline: Optional[DocumentPipeline] = current_app.extensions.get('document_pipeline')
    if pipeline is None:
        raise DocumentError("Document pipeline is not configured for this app")
    return pipeline
