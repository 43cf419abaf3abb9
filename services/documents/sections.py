"""
Canonical Document Model

The renderer-agnostic tree a document instance is built into. Every node
is a frozen dataclass holding tuples, so one CanonicalDocument can be
handed to the preview renderer and the layout engine at the same time.

Section variants:
    HeaderSection       title block with company, reference and date
    KeyValueGrid        labelled values laid out in columns
    NarrativeBlock      heading plus free-flowing paragraphs
    TableSection        columnar rows; the only variant that may split across pages
    SignatureBlock      signature lines
    ConditionalSection  wrapper for sections that exist only when a predicate held
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from .types import DocumentType


@dataclass(frozen=True)
class HeaderSection:
    key: str
    title: str
    subtitle: Optional[str] = None
    company_name: Optional[str] = None
    reference: Optional[str] = None
    issued_on: Optional[str] = None

    variant = 'HeaderSection'


@dataclass(frozen=True)
class KeyValueItem:
    label: str
    value: str


@dataclass(frozen=True)
class KeyValueGrid:
    key: str
    heading: str
    items: Tuple[KeyValueItem, ...]
    columns: int = 2

    variant = 'KeyValueGrid'


@dataclass(frozen=True)
class NarrativeBlock:
    key: str
    heading: Optional[str]
    paragraphs: Tuple[str, ...]

    variant = 'NarrativeBlock'


@dataclass(frozen=True)
class TableColumn:
    """A table column. Numeric columns right-align in every renderer."""
    label: str
    numeric: bool = False
    width: float = 1.0

    @property
    def align(self) -> str:
        return 'right' if self.numeric else 'left'


@dataclass(frozen=True)
class TableSection:
    key: str
    heading: str
    columns: Tuple[TableColumn, ...]
    rows: Tuple[Tuple[str, ...], ...]

    variant = 'TableSection'

    def __post_init__(self):
        for index, row in enumerate(self.rows):
            if len(row) != len(self.columns):
                raise ValueError(
                    f"Row {index} of table '{self.key}' has {len(row)} cells, "
                    f"expected {len(self.columns)}"
                )


@dataclass(frozen=True)
class Signatory:
    role: str
    name: Optional[str] = None


@dataclass(frozen=True)
class SignatureBlock:
    key: str
    heading: Optional[str]
    signatories: Tuple[Signatory, ...]

    variant = 'SignatureBlock'


@dataclass(frozen=True)
class ConditionalSection:
    """
    Sections included because `condition` held at build time.

    Only ever present in a tree when the predicate was true; a false
    predicate means the builder never created the node.
    """
    key: str
    condition: str
    body: Tuple['Section', ...]

    variant = 'ConditionalSection'


Section = Union[HeaderSection, KeyValueGrid, NarrativeBlock, TableSection, SignatureBlock, ConditionalSection]

SECTION_VARIANTS = (
    'HeaderSection',
    'KeyValueGrid',
    'NarrativeBlock',
    'TableSection',
    'SignatureBlock',
    'ConditionalSection',
)


@dataclass(frozen=True)
class CanonicalDocument:
    """An immutable, validated document instance."""
    document_type: DocumentType
    title: str
    reference: Optional[str]
    sections: Tuple[Section, ...]

    def walk(self) -> Iterator[Section]:
        """Yield every section depth-first, conditional wrappers before their body."""
        def _walk(sections):
            for section in sections:
                yield section
                if isinstance(section, ConditionalSection):
                    yield from _walk(section.body)
        return _walk(self.sections)

    def section_keys(self) -> Tuple[str, ...]:
        return tuple(section.key for section in self.walk())

    def find(self, key: str) -> Optional[Section]:
        return next((s for s in self.walk() if s.key == key), None)
