"""
Generator wizard tests: select -> configure -> preview transitions.
"""

import pytest

from services.documents import (
    DocumentType,
    GeneratorWizard,
    ValidationError,
    WizardError,
    WizardStep,
)

FORM = {'propertyRef': 'prop-1', 'showingDate': '2025-03-14'}


def at_preview():
    return GeneratorWizard().select_type(DocumentType.SHOWING_SHEET).configure(FORM)


class TestTransitions:

    def test_starts_at_select(self):
        wizard = GeneratorWizard()
        assert wizard.step == WizardStep.SELECT
        assert wizard.document_type is None

    def test_select_moves_to_configure(self):
        wizard = GeneratorWizard().select_type(DocumentType.LEASE_PROPOSAL)
        assert wizard.step == WizardStep.CONFIGURE
        assert wizard.document_type == DocumentType.LEASE_PROPOSAL

    def test_select_accepts_slug(self):
        wizard = GeneratorWizard().select_type('property_summary')
        assert wizard.document_type == DocumentType.PROPERTY_SUMMARY

    def test_configure_moves_to_preview_with_request(self):
        wizard = at_preview()
        assert wizard.step == WizardStep.PREVIEW
        assert wizard.request.property_ref == 'prop-1'
        assert wizard.request.custom_fields['showingDate'] == '2025-03-14'

    def test_back_from_preview_keeps_form(self):
        wizard = at_preview().back()
        assert wizard.step == WizardStep.CONFIGURE
        assert dict(wizard.form) == FORM
        assert wizard.request is None

    def test_back_from_configure_clears_type(self):
        wizard = GeneratorWizard().select_type(DocumentType.SHOWING_SHEET).back()
        assert wizard == GeneratorWizard()

    def test_reset(self):
        assert at_preview().reset().step == WizardStep.SELECT


class TestInvalidTransitions:

    def test_back_from_select(self):
        with pytest.raises(WizardError):
            GeneratorWizard().back()

    def test_configure_before_select(self):
        with pytest.raises(WizardError):
            GeneratorWizard().configure(FORM)

    def test_select_twice(self):
        with pytest.raises(WizardError):
            GeneratorWizard().select_type(DocumentType.SHOWING_SHEET).select_type(DocumentType.LEASE_PROPOSAL)

    def test_invalid_form_leaves_state_unchanged(self):
        wizard = GeneratorWizard().select_type(DocumentType.SHOWING_SHEET)
        with pytest.raises(ValidationError):
            wizard.configure({'applicationRef': 'app-1'})
        assert wizard.step == WizardStep.CONFIGURE
        assert wizard.request is None

    def test_transitions_do_not_mutate(self):
        wizard = GeneratorWizard()
        wizard.select_type(DocumentType.SHOWING_SHEET)
        assert wizard.step == WizardStep.SELECT
