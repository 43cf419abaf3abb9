"""
Preview renderer tests: one node per section, same structure as print.
"""

import json

import pytest

from services.documents import (
    DocumentLoader,
    DocumentModelBuilder,
    DocumentRequest,
    DocumentType,
    FieldResolver,
    LayoutError,
    PreviewRenderer,
)
from services.documents.sections import CanonicalDocument

from conftest import make_application, make_company, make_property


def lease_document(**custom):
    definition = DocumentLoader.get(DocumentType.LEASE_PROPOSAL)
    request = DocumentRequest(DocumentType.LEASE_PROPOSAL, custom_fields=custom)
    context = FieldResolver.resolve(definition, request, property=make_property(),
                                    application=make_application(), company=make_company())
    return DocumentModelBuilder.build(context)


@pytest.mark.usefixtures('documents_loaded')
class TestPreviewRenderer:

    def test_root_node(self):
        node = PreviewRenderer.render(lease_document())
        assert node.kind == 'document'
        assert node.props['type'] == 'lease_proposal'
        assert node.props['reference'] == 'A1B2C3D4'

    def test_one_child_per_section(self):
        document = lease_document(includePetClause=True)
        node = PreviewRenderer.render(document)
        assert [c.key for c in node.children] == [s.key for s in document.sections]

    def test_conditional_node_wraps_body(self):
        node = PreviewRenderer.render(lease_document(includePetClause=True))
        pet = node.find('pet_clause')
        assert pet.kind == 'conditional'
        assert pet.props['condition'] == 'includePetClause'
        assert [c.kind for c in pet.children] == ['grid', 'narrative']

    def test_omitted_conditional_has_no_node(self):
        node = PreviewRenderer.render(lease_document())
        assert node.find('pet_clause') is None

    def test_header_props(self):
        header = PreviewRenderer.render(lease_document()).find('header')
        assert header.props['title'] == 'Lease Proposal'
        assert header.props['company'] == 'Maple Property Group'

    def test_table_rows_are_shaded_alternately(self):
        definition = DocumentLoader.get(DocumentType.APPLICATION_SUMMARY)
        context = FieldResolver.resolve(
            definition, DocumentRequest(DocumentType.APPLICATION_SUMMARY),
            property=make_property(), application=make_application()
        )
        node = PreviewRenderer.render(DocumentModelBuilder.build(context))
        table = node.find('qualification_checklist')
        assert [r['shaded'] for r in table.props['rows']] == [False, True, False]
        assert [c['align'] for c in table.props['columns']] == ['left', 'left', 'right', 'left']

    def test_to_dict_is_json_ready(self):
        data = PreviewRenderer.render(lease_document(includeParking=True)).to_dict()
        encoded = json.dumps(data)
        assert '"kind": "conditional"' in encoded
        assert data['children'][0]['kind'] == 'header'

    def test_document_is_not_changed(self):
        document = lease_document(includePetClause=True)
        before = document.section_keys()
        PreviewRenderer.render(document)
        assert document.section_keys() == before

    def test_unknown_section_type(self):
        document = CanonicalDocument(DocumentType.LEASE_PROPOSAL, 'Broken', None, (object(),))
        with pytest.raises(LayoutError):
            PreviewRenderer.render(document)
