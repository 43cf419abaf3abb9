"""
Field resolver tests: precedence, coercion, range checks and error reporting.
"""

from datetime import date, time
import time as time_module

import pytest

from services.documents import (
    DocumentLoader,
    DocumentRequest,
    DocumentType,
    FieldResolver,
    ValidationError,
)
from services.documents.transforms import coerce_integer

from conftest import make_application, make_company, make_property


def resolve(doc_type, custom=None, property_ref=None, application_ref=None, **entities):
    definition = DocumentLoader.get(doc_type)
    request = DocumentRequest(
        doc_type,
        property_ref=property_ref,
        application_ref=application_ref,
        custom_fields=custom or {}
    )
    return FieldResolver.resolve(definition, request, **entities)


@pytest.mark.usefixtures('documents_loaded')
class TestPrecedence:

    def test_custom_value_beats_entity_value(self):
        ctx = resolve(DocumentType.LEASE_PROPOSAL, {'offerRent': '2,100'},
                      property=make_property(), application=make_application())
        assert ctx.fields['offerRent'] == 2100.0

    def test_entity_value_beats_default(self):
        ctx = resolve(DocumentType.SHOWING_SHEET, {'showingDate': '2025-03-14'}, property=make_property())
        assert ctx.fields['lockboxCode'] == '4821'

    def test_default_used_when_entity_has_no_value(self):
        ctx = resolve(DocumentType.SHOWING_SHEET, {'showingDate': '2025-03-14'},
                      property=make_property(lockbox_code=None))
        assert ctx.fields['lockboxCode'] == 'N/A'
        assert ctx.fields['showingTime'] == time(12, 0)
        assert ctx.fields['agentName'] == 'TBD'

    def test_blank_custom_value_falls_through_to_entity(self):
        ctx = resolve(DocumentType.LEASE_PROPOSAL, {'offerRent': '   '},
                      property=make_property(), application=make_application())
        assert ctx.fields['offerRent'] == 2000.0

    def test_false_is_a_value_not_an_absence(self):
        ctx = resolve(DocumentType.SHOWING_SHEET,
                      {'showingDate': '2025-03-14', 'includeAccessInstructions': False},
                      property=make_property())
        assert ctx.fields['includeAccessInstructions'] is False

    def test_zero_is_a_value_not_an_absence(self):
        ctx = resolve(DocumentType.LEASE_PROPOSAL, {'parkingFee': 0},
                      property=make_property(), application=make_application())
        assert ctx.fields['parkingFee'] == 0.0

    def test_optional_field_with_no_source_is_absent(self):
        ctx = resolve(DocumentType.LEASE_PROPOSAL, {}, property=make_property(), application=make_application())
        assert 'securityDeposit' not in ctx.fields

    def test_company_values_fill_contact_fields(self):
        ctx = resolve(DocumentType.PROPERTY_SUMMARY, {}, property=make_property(), company=make_company())
        assert ctx.fields['contactName'] == 'Maple Property Group'
        assert ctx.fields['contactPhone'] == '5125550100'
        assert ctx.fields['amenities'] == ('In-unit laundry', 'Rooftop deck', 'Bike storage')


@pytest.mark.usefixtures('documents_loaded')
class TestCoercion:

    def test_values_are_coerced_to_their_kind(self):
        ctx = resolve(DocumentType.SHOWING_SHEET,
                      {'showingDate': '03/14/2025', 'showingTime': '2:30 PM', 'bathrooms': '2.5'},
                      property=make_property())
        assert ctx.fields['showingDate'] == date(2025, 3, 14)
        assert ctx.fields['showingTime'] == time(14, 30)
        assert ctx.fields['bathrooms'] == 2.5

    def test_unparseable_value_is_invalid_not_defaulted(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'leaseTerm': 'a year'},
                    property=make_property(), application=make_application())
        assert 'leaseTerm' in exc_info.value.invalid_fields
        assert exc_info.value.missing_fields == []

    def test_fractional_integer_is_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'leaseTerm': '12.5'},
                    property=make_property(), application=make_application())
        assert 'leaseTerm' in exc_info.value.invalid_fields

    def test_huge_exponent_is_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'leaseTerm': '1e30000000'},
                    property=make_property(), application=make_application())
        assert 'too large' in exc_info.value.invalid_fields['leaseTerm']

    def test_integer_exponent_is_bounded_before_expansion(self):
        started = time_module.monotonic()
        with pytest.raises(ValueError, match='too large'):
            coerce_integer('1e30000000')
        assert time_module.monotonic() - started < 1.0

    def test_integer_exponent_within_bound(self):
        assert coerce_integer('1.2e3') == 1200
        assert coerce_integer('1e15') == 10 ** 15

    def test_bad_email_is_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'tenantEmail': 'not-an-email'},
                    property=make_property(), application=make_application())
        assert 'tenantEmail' in exc_info.value.invalid_fields


@pytest.mark.usefixtures('documents_loaded')
class TestRanges:

    def test_rent_of_zero_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'offerRent': '0'},
                    property=make_property(), application=make_application())
        assert exc_info.value.invalid_fields['offerRent'] == 'must be greater than 0'

    def test_negative_rent_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'offerRent': '-5'},
                    property=make_property(), application=make_application())
        assert 'offerRent' in exc_info.value.invalid_fields

    def test_term_above_maximum(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'leaseTerm': 61},
                    property=make_property(), application=make_application())
        assert exc_info.value.invalid_fields['leaseTerm'] == 'must be at most 60'

    def test_credit_score_below_minimum(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.APPLICATION_SUMMARY, {'creditScore': 299},
                    property=make_property(), application=make_application())
        assert exc_info.value.invalid_fields['creditScore'] == 'must be at least 300'

    def test_bounds_are_inclusive(self):
        ctx = resolve(DocumentType.APPLICATION_SUMMARY, {'creditScore': 850},
                      property=make_property(), application=make_application())
        assert ctx.fields['creditScore'] == 850


@pytest.mark.usefixtures('documents_loaded')
class TestRequiredFields:

    def test_missing_required_fields_listed_in_definition_order(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {})
        assert exc_info.value.missing_fields == ['tenantName', 'propertyAddress', 'offerRent']

    def test_missing_and_invalid_reported_together(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.LEASE_PROPOSAL, {'offerRent': 'lots', 'propertyAddress': '1 Elm St'})
        error = exc_info.value
        assert error.missing_fields == ['tenantName']
        assert set(error.invalid_fields) == {'offerRent'}
        assert 'tenantName' in str(error)
        assert 'offerRent' in str(error)

    def test_every_required_field_present_after_success(self):
        definition = DocumentLoader.get(DocumentType.APPLICATION_SUMMARY)
        ctx = resolve(DocumentType.APPLICATION_SUMMARY, {},
                      property=make_property(), application=make_application(), company=make_company())
        for key in definition.required_fields:
            assert key in ctx.fields

    def test_showing_sheet_needs_a_date(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.SHOWING_SHEET, {}, property=make_property())
        assert exc_info.value.missing_fields == ['showingDate']

    def test_error_carries_document_slug(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.SHOWING_SHEET, {})
        assert exc_info.value.document_slug == 'showing_sheet'
        assert exc_info.value.to_dict()['missing_fields'] == ['propertyAddress', 'monthlyRent', 'showingDate']


@pytest.mark.usefixtures('documents_loaded')
class TestRequestChecks:

    def test_application_reference_on_property_summary_is_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve(DocumentType.PROPERTY_SUMMARY, {}, application_ref='anything', property=make_property())
        assert 'applicationRef' in exc_info.value.invalid_fields

    def test_unknown_custom_fields_are_ignored(self):
        ctx = resolve(DocumentType.SHOWING_SHEET, {'showingDate': '2025-03-14', 'favouriteColor': 'teal'},
                      property=make_property())
        assert 'favouriteColor' not in ctx.fields

    def test_resolved_fields_are_read_only(self):
        ctx = resolve(DocumentType.SHOWING_SHEET, {'showingDate': '2025-03-14'}, property=make_property())
        with pytest.raises(TypeError):
            ctx.fields['agentName'] = 'Someone else'

    def test_same_input_resolves_identically(self):
        args = (DocumentType.LEASE_PROPOSAL, {'leaseTerm': '18'})
        first = resolve(*args, property=make_property(), application=make_application())
        second = resolve(*args, property=make_property(), application=make_application())
        assert dict(first.fields) == dict(second.fields)
