"""
Preview Renderer

Turns a CanonicalDocument into a tree of PreviewNodes the dashboard
renders as an on-screen preview. Read-only: the document is walked, never
changed, and the same document may be laid out for print concurrently.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from .exceptions import LayoutError
from .sections import (
    CanonicalDocument,
    ConditionalSection,
    HeaderSection,
    KeyValueGrid,
    NarrativeBlock,
    Section,
    SignatureBlock,
    TableSection,
)


@dataclass(frozen=True)
class PreviewNode:
    """One node of the preview tree: a kind, its props and child nodes."""
    kind: str
    key: str
    props: Mapping[str, Any] = field(default_factory=dict)
    children: Tuple['PreviewNode', ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'props', MappingProxyType(dict(self.props)))

    def find(self, key: str):
        if self.key == key:
            return self
        for child in self.children:
            found = child.find(key)
            if found is not None:
                return found
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = {'kind': self.kind, 'key': self.key}
        data.update(_plain(dict(self.props)))
        if self.children:
            data['children'] = [child.to_dict() for child in self.children]
        return data


def _plain(value):
    """Convert tuples and mapping proxies in props into JSON-friendly lists and dicts."""
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    return value


class PreviewRenderer:
    """
    Maps each section variant to a preview node.

    Usage:
        node = PreviewRenderer.render(document)
        return jsonify(node.to_dict())
    """

    @classmethod
    def render(cls, document: CanonicalDocument) -> PreviewNode:
        return PreviewNode(
            kind='document',
            key='document',
            props={
                'type': document.document_type.value,
                'title': document.title,
                'reference': document.reference,
            },
            children=tuple(cls.render_section(s) for s in document.sections)
        )

    @classmethod
    def render_section(cls, section: Section) -> PreviewNode:
        renderer = {
            HeaderSection: cls._header,
            KeyValueGrid: cls._grid,
            NarrativeBlock: cls._narrative,
            TableSection: cls._table,
            SignatureBlock: cls._signatures,
            ConditionalSection: cls._conditional,
        }.get(type(section))
        if renderer is None:
            raise LayoutError(f"No preview renderer for {type(section).__name__}", section=getattr(section, 'key', None))
        return renderer(section)

    @classmethod
    def _header(cls, section: HeaderSection) -> PreviewNode:
        return PreviewNode('header', section.key, {
            'title': section.title,
            'subtitle': section.subtitle,
            'company': section.company_name,
            'reference': section.reference,
            'issued_on': section.issued_on,
        })

    @classmethod
    def _grid(cls, section: KeyValueGrid) -> PreviewNode:
        return PreviewNode('grid', section.key, {
            'heading': section.heading,
            'columns': section.columns,
            'items': tuple({'label': i.label, 'value': i.value} for i in section.items),
        })

    @classmethod
    def _narrative(cls, section: NarrativeBlock) -> PreviewNode:
        return PreviewNode('narrative', section.key, {
            'heading': section.heading,
            'paragraphs': section.paragraphs,
        })

    @classmethod
    def _table(cls, section: TableSection) -> PreviewNode:
        return PreviewNode('table', section.key, {
            'heading': section.heading,
            'columns': tuple({'label': c.label, 'align': c.align} for c in section.columns),
            'rows': tuple(
                {'cells': row, 'shaded': index % 2 == 1}
                for index, row in enumerate(section.rows)
            ),
        })

    @classmethod
    def _signatures(cls, section: SignatureBlock) -> PreviewNode:
        return PreviewNode('signatures', section.key, {
            'heading': section.heading,
            'signatories': tuple({'role': s.role, 'name': s.name} for s in section.signatories),
        })

    @classmethod
    def _conditional(cls, section: ConditionalSection) -> PreviewNode:
        return PreviewNode(
            'conditional',
            section.key,
            {'condition': section.condition},
            tuple(cls.render_section(child) for child in section.body)
        )
