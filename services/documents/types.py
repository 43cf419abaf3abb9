"""
Document System Type Definitions

Dataclasses representing document definitions loaded from YAML, the
read-only entity snapshots handed over by the entity gateway, and the
values that flow between the pipeline stages. Everything here is
immutable once created.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class DocumentType(Enum):
    """The document templates the engine can produce."""
    SHOWING_SHEET = "showing_sheet"
    LEASE_PROPOSAL = "lease_proposal"
    APPLICATION_SUMMARY = "application_summary"
    PROPERTY_SUMMARY = "property_summary"

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').title()


class FieldKind(Enum):
    """Value kinds a document field can be coerced to."""
    TEXT = "text"
    LONGTEXT = "longtext"
    EMAIL = "email"
    PHONE = "phone"
    INTEGER = "integer"
    DECIMAL = "decimal"
    MONEY = "money"
    PERCENT = "percent"
    DATE = "date"
    TIME = "time"
    BOOLEAN = "boolean"
    LIST = "list"

    @property
    def is_numeric(self) -> bool:
        return self in (FieldKind.INTEGER, FieldKind.DECIMAL, FieldKind.MONEY, FieldKind.PERCENT)


# Linked entities a document may reference
ENTITY_PROPERTY = 'property'
ENTITY_APPLICATION = 'application'
ENTITY_COMPANY = 'company'


@dataclass(frozen=True)
class DisplayConfig:
    """Display/UI configuration for a document type."""
    color: str
    icon: str
    sort_order: int


@dataclass(frozen=True)
class FieldDefinition:
    """
    A document field and where its value comes from.

    Attributes:
        key: Stable field identifier (camelCase, matches posted form keys)
        label: Human readable label
        kind: Value kind used for coercion and formatting
        required: Resolution fails if no source supplies a value
        source: Entity path for auto-fill (e.g., "property.rent"), None for manual
        default: Static default applied when neither input nor source supply a value
        min: Inclusive lower bound for numeric kinds
        max: Inclusive upper bound for numeric kinds
        exclusive_min: If True, the lower bound itself is rejected (rent > 0)
    """
    key: str
    label: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    source: Optional[str] = None
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    exclusive_min: bool = False


@dataclass(frozen=True)
class DocumentDefinition:
    """
    Complete definition of a document type loaded from YAML.

    One YAML file = one DocumentDefinition. The `sections` tuple is the
    closed set of section keys the model builder may emit for this type.
    """
    schema_version: str
    slug: str
    type: DocumentType
    name: str
    description: str
    display: DisplayConfig
    entities: Tuple[str, ...]
    fields: Tuple[FieldDefinition, ...]
    sections: Tuple[str, ...]

    @property
    def required_fields(self) -> List[str]:
        return [f.key for f in self.fields if f.required]

    @property
    def optional_fields(self) -> List[str]:
        return [f.key for f in self.fields if not f.required]

    def get_field(self, key: str) -> Optional[FieldDefinition]:
        """Get a field definition by its key."""
        return next((f for f in self.fields if f.key == key), None)

    def accepts_entity(self, entity: str) -> bool:
        return entity in self.entities

    def permits_section(self, section_key: str) -> bool:
        return section_key in self.sections

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentDefinition':
        """
        Create a DocumentDefinition from a parsed YAML dict.

        This handles the conversion from raw dict to typed dataclasses.
        """
        display_data = data.get('display', {})
        display = DisplayConfig(
            color=display_data.get('color', '#64748b'),
            icon=display_data.get('icon', 'fa-file'),
            sort_order=display_data.get('sort_order', 999)
        )

        fields = []
        for field_data in data.get('fields', []):
            fields.append(FieldDefinition(
                key=field_data['key'],
                label=field_data.get('label', field_data['key']),
                kind=FieldKind(field_data.get('kind', 'text')),
                required=field_data.get('required', False),
                source=field_data.get('source'),
                default=field_data.get('default'),
                min=field_data.get('min'),
                max=field_data.get('max'),
                exclusive_min=field_data.get('exclusive_min', False)
            ))

        return cls(
            schema_version=str(data['schema_version']),
            slug=data['slug'],
            type=DocumentType(data['slug']),
            name=data['name'],
            description=data.get('description', ''),
            display=display,
            entities=tuple(data.get('entities', [])),
            fields=tuple(fields),
            sections=tuple(data.get('sections', []))
        )


# =============================================================================
# ENTITY SNAPSHOTS
# =============================================================================
# Point-in-time, read-only copies of gateway records. The resolver and the
# builder only ever see these, never live ORM objects.

@dataclass(frozen=True)
class PropertySnapshot:
    id: str
    company_id: str
    address: str
    rent: Optional[float] = None
    unit_number: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    square_feet: Optional[int] = None
    description: Optional[str] = None
    lockbox_code: Optional[str] = None
    amenities: Tuple[str, ...] = ()
    building_name: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class ApplicationSnapshot:
    id: str
    company_id: str
    applicant_name: str
    property_id: Optional[str] = None
    applicant_email: Optional[str] = None
    applicant_phone: Optional[str] = None
    monthly_income: Optional[float] = None
    monthly_debt: Optional[float] = None
    credit_score: Optional[int] = None
    employer: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class CompanySnapshot:
    id: str
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None
    brand_color: Optional[str] = None


# =============================================================================
# PIPELINE VALUES
# =============================================================================

@dataclass(frozen=True)
class DocumentRequest:
    """Input to the generation pipeline. Created per call, never persisted."""
    type: DocumentType
    property_ref: Optional[str] = None
    application_ref: Optional[str] = None
    custom_fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'custom_fields', MappingProxyType(dict(self.custom_fields)))


@dataclass(frozen=True)
class ResolvedContext:
    """
    The merged and validated field set for one generation request.

    Every field the definition marks as required is present in `fields`.
    """
    type: DocumentType
    definition: DocumentDefinition
    fields: Mapping[str, Any]
    property: Optional[PropertySnapshot] = None
    application: Optional[ApplicationSnapshot] = None
    company: Optional[CompanySnapshot] = None

    def __post_init__(self):
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))


@dataclass(frozen=True)
class RenderedArtifact:
    """Rendered byte output of the layout engine."""
    document_id: str
    document_type: DocumentType
    title: str
    data: bytes
    mime_type: str
    page_count: int
    created_at: datetime

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class HistoryEntry:
    """A durable record pointing at a persisted artifact."""
    document_id: str
    company_id: str
    document_type: DocumentType
    title: str
    url: str
    storage_path: str
    size_bytes: int
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'company_id': self.company_id,
            'type': self.document_type.value,
            'title': self.title,
            'url': self.url,
            'size_bytes': self.size_bytes,
            'created_at': self.created_at.isoformat(),
        }
