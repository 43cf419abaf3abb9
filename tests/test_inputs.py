"""
Typed input tests: posted form data to DocumentRequest.
"""

import pytest

from services.documents import (
    DocumentType,
    LeaseProposalInput,
    PropertySummaryInput,
    ShowingSheetInput,
    ValidationError,
    parse_request,
)
from services.documents.inputs import INPUT_CLASSES, camel_case, flatten_custom_fields, parse_flag


class TestHelpers:

    def test_camel_case(self):
        assert camel_case('include_access_instructions') == 'includeAccessInstructions'
        assert camel_case('highlight') == 'highlight'

    @pytest.mark.parametrize('raw, expected', [
        ('on', True), ('true', True), ('Yes', True), (True, True),
        ('off', False), ('0', False), (False, False),
        ('', None), (None, None),
    ])
    def test_parse_flag(self, raw, expected):
        assert parse_flag(raw) is expected

    def test_parse_flag_rejects_other_text(self):
        with pytest.raises(ValueError):
            parse_flag('maybe')


class TestFromForm:

    def test_form_keys_map_to_attributes(self):
        form_input = ShowingSheetInput.from_form({
            'propertyRef': 'abc',
            'showingDate': '2025-03-14',
            'agentName': '  Dana Reyes  ',
            'includeAccessInstructions': 'on',
        })
        assert form_input.property_ref == 'abc'
        assert form_input.showing_date == '2025-03-14'
        assert form_input.agent_name == 'Dana Reyes'
        assert form_input.include_access_instructions is True

    def test_blank_values_become_none(self):
        form_input = LeaseProposalInput.from_form({'tenantName': '   ', 'offerRent': ''})
        assert form_input.tenant_name is None
        assert form_input.offer_rent is None

    def test_reference_the_type_does_not_use(self):
        with pytest.raises(ValidationError) as exc_info:
            PropertySummaryInput.from_form({'propertyRef': 'abc', 'applicationRef': 'xyz'})
        assert list(exc_info.value.invalid_fields) == ['applicationRef']
        assert exc_info.value.document_slug == 'property_summary'

    def test_bad_flag_is_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            LeaseProposalInput.from_form({'includePetClause': 'sometimes'})
        assert 'includePetClause' in exc_info.value.invalid_fields

    def test_unknown_keys_are_dropped(self):
        form_input = ShowingSheetInput.from_form({'showingDate': '2025-03-14', 'csrf_token': 'x'})
        assert 'csrf_token' not in form_input.to_request().custom_fields

    def test_every_type_has_an_input_class(self):
        assert set(INPUT_CLASSES) == set(DocumentType)


class TestToRequest:

    def test_request_carries_refs_and_camel_case_fields(self):
        request = parse_request(DocumentType.LEASE_PROPOSAL, {
            'propertyRef': 'prop-1',
            'applicationRef': 'app-1',
            'offerRent': '2100',
            'includeParking': 'true',
        })
        assert request.type == DocumentType.LEASE_PROPOSAL
        assert request.property_ref == 'prop-1'
        assert request.application_ref == 'app-1'
        assert dict(request.custom_fields) == {'offerRent': '2100', 'includeParking': True}

    def test_false_flags_are_kept(self):
        request = parse_request(DocumentType.SHOWING_SHEET, {'includeAccessInstructions': 'off'})
        assert request.custom_fields['includeAccessInstructions'] is False

    def test_json_lists_pass_through(self):
        request = parse_request(DocumentType.PROPERTY_SUMMARY, {'amenities': ['Pool', 'Gym']})
        assert request.custom_fields['amenities'] == ['Pool', 'Gym']


class TestNestedCustomFields:

    def test_nested_object_is_lifted(self):
        request = parse_request(DocumentType.LEASE_PROPOSAL, {
            'type': 'lease_proposal',
            'propertyRef': 'prop-1',
            'customFields': {'tenantName': 'Jordan Avery', 'offerRent': '2100'},
        })
        assert request.property_ref == 'prop-1'
        assert dict(request.custom_fields) == {'tenantName': 'Jordan Avery', 'offerRent': '2100'}

    def test_json_string_from_a_form_post(self):
        request = parse_request(DocumentType.SHOWING_SHEET, {
            'customFields': '{"showingDate": "2025-03-20", "agentName": "Dana Reyes"}',
        })
        assert request.custom_fields['agentName'] == 'Dana Reyes'

    def test_top_level_key_wins(self):
        request = parse_request(DocumentType.LEASE_PROPOSAL, {
            'offerRent': '2200',
            'customFields': {'offerRent': '2100'},
        })
        assert request.custom_fields['offerRent'] == '2200'

    def test_blank_top_level_key_does_not_hide_nested_value(self):
        request = parse_request(DocumentType.LEASE_PROPOSAL, {
            'offerRent': '',
            'customFields': {'offerRent': '2100'},
        })
        assert request.custom_fields['offerRent'] == '2100'

    def test_nested_reference_still_checked(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(DocumentType.SHOWING_SHEET, {'customFields': {'applicationRef': 'app-1'}})
        assert 'applicationRef' in exc_info.value.invalid_fields

    @pytest.mark.parametrize('nested', ['not json', '[1, 2]', ['tenantName']])
    def test_non_object_is_invalid(self, nested):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(DocumentType.LEASE_PROPOSAL, {'customFields': nested})
        assert exc_info.value.invalid_fields == {'customFields': 'not an object'}

    def test_flatten_leaves_plain_posts_alone(self):
        assert flatten_custom_fields({'type': 'showing_sheet', 'agentName': 'Dana'}) == {
            'type': 'showing_sheet', 'agentName': 'Dana',
        }
