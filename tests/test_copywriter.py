"""
Copywriter tests: operator copy wins, AI copy when enabled, and the
standard paragraph when AI is off or fails.
"""

import logging

import httpx
import openai
import pytest

from services.documents import (
    ArtifactStore,
    DocumentCopywriter,
    DocumentLoader,
    DocumentPipeline,
    DocumentRequest,
    DocumentType,
    FieldResolver,
)
from services.documents.copywriter import fallback_highlight, fallback_intro

from conftest import (
    APPLICATION_ID,
    COMPANY_ID,
    GENERATED_AT,
    InMemoryStorage,
    MemoryHistoryIndex,
    make_application,
    make_company,
    make_property,
)


def make_pipeline(gateway, style, copywriter=None):
    store = ArtifactStore(InMemoryStorage(), MemoryHistoryIndex())
    return DocumentPipeline(gateway, store, style, timezone='America/Chicago',
                            clock=lambda: GENERATED_AT, copywriter=copywriter)


def resolve(doc_type, custom=None, **entities):
    definition = DocumentLoader.get(doc_type)
    request = DocumentRequest(doc_type, custom_fields=custom or {})
    return FieldResolver.resolve(definition, request, **entities)


def summary_context(custom=None):
    return resolve(DocumentType.PROPERTY_SUMMARY, custom, property=make_property(), company=make_company())


def lease_context(custom=None):
    return resolve(DocumentType.LEASE_PROPOSAL, custom, property=make_property(), application=make_application())


class RecordingGenerator:
    """Stands in for generate_ai_response and remembers each call."""

    def __init__(self, reply='Sunny two bedroom steps from the park.', error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, system_prompt, user_prompt, api_key=None):
        self.calls.append({'system_prompt': system_prompt, 'user_prompt': user_prompt, 'api_key': api_key})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.mark.usefixtures('documents_loaded')
class TestStandardCopy:

    def test_highlight_from_property_fields(self):
        context = DocumentCopywriter().fill(summary_context())
        assert context.fields['highlight'] == (
            '2 bed / 1.5 bath at 742 Evergreen Terrace for $2,000.00/month. '
            'Amenities include In-unit laundry, Rooftop deck, Bike storage.'
        )

    def test_intro_from_lease_fields(self):
        context = DocumentCopywriter().fill(lease_context())
        assert context.fields['intro'] == (
            'Dear Jordan Avery, thank you for your interest in 742 Evergreen Terrace. '
            'We are pleased to offer a 12-month lease at $2,000.00 per month on the terms set out below.'
        )

    def test_highlight_without_rooms_or_amenities(self):
        fields = {'propertyAddress': '9 Oak Lane'}
        assert fallback_highlight(fields) == 'Home at 9 Oak Lane.'

    def test_intro_with_nothing_known(self):
        assert fallback_intro({}).startswith('Dear Applicant, thank you for your interest in the property.')

    def test_same_fields_give_same_copy(self):
        first = DocumentCopywriter().fill(lease_context())
        second = DocumentCopywriter().fill(lease_context())
        assert first.fields['intro'] == second.fields['intro']

    def test_filled_fields_stay_read_only(self):
        context = DocumentCopywriter().fill(summary_context())
        with pytest.raises(TypeError):
            context.fields['highlight'] = 'Something else'

    def test_types_without_copy_are_unchanged(self):
        context = resolve(DocumentType.SHOWING_SHEET, {'showingDate': '2025-03-14'}, property=make_property())
        assert DocumentCopywriter().fill(context) is context


@pytest.mark.usefixtures('documents_loaded')
class TestOperatorCopy:

    def test_operator_highlight_is_kept(self):
        generate = RecordingGenerator()
        context = DocumentCopywriter(enabled=True, generate=generate).fill(
            summary_context({'highlight': 'Corner unit with river views.'})
        )
        assert context.fields['highlight'] == 'Corner unit with river views.'
        assert generate.calls == []

    def test_operator_intro_is_kept(self):
        generate = RecordingGenerator()
        context = DocumentCopywriter(enabled=True, generate=generate).fill(
            lease_context({'intro': 'Thanks for touring with us last week.'})
        )
        assert context.fields['intro'] == 'Thanks for touring with us last week.'
        assert generate.calls == []


@pytest.mark.usefixtures('documents_loaded')
class TestGeneratedCopy:

    def test_generated_highlight_is_used(self):
        generate = RecordingGenerator()
        copywriter = DocumentCopywriter(enabled=True, api_key='sk-test', generate=generate)

        context = copywriter.fill(summary_context())

        assert context.fields['highlight'] == 'Sunny two bedroom steps from the park.'
        assert len(generate.calls) == 1
        call = generate.calls[0]
        assert call['api_key'] == 'sk-test'
        assert 'Property: 742 Evergreen Terrace' in call['user_prompt']
        assert 'Rent: $2,000.00/month' in call['user_prompt']

    def test_intro_prompt_names_tenant_and_term(self):
        generate = RecordingGenerator(reply='We are delighted to welcome you.')
        context = DocumentCopywriter(enabled=True, generate=generate).fill(lease_context())

        assert context.fields['intro'] == 'We are delighted to welcome you.'
        prompt = generate.calls[0]['user_prompt']
        assert 'The tenant is Jordan Avery' in prompt
        assert 'for a 12-month term' in prompt

    def test_disabled_copywriter_never_calls_the_generator(self):
        generate = RecordingGenerator()
        DocumentCopywriter(enabled=False, generate=generate).fill(summary_context())
        assert generate.calls == []

    def test_empty_reply_uses_standard_copy(self):
        generate = RecordingGenerator(reply='')
        context = DocumentCopywriter(enabled=True, generate=generate).fill(summary_context())
        assert context.fields['highlight'].startswith('2 bed / 1.5 bath')

    @pytest.mark.parametrize('error', [
        openai.APIConnectionError(request=httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')),
        ValueError('OpenAI API key is not configured'),
    ])
    def test_failure_uses_standard_copy(self, error, caplog):
        copywriter = DocumentCopywriter(enabled=True, generate=RecordingGenerator(error=error))

        with caplog.at_level(logging.WARNING, logger='services.documents.copywriter'):
            context = copywriter.fill(lease_context())

        assert context.fields['intro'].startswith('Dear Jordan Avery,')
        assert 'AI copy for lease_proposal failed' in caplog.text

    def test_unexpected_errors_propagate(self):
        copywriter = DocumentCopywriter(enabled=True, generate=RecordingGenerator(error=KeyError('choices')))
        with pytest.raises(KeyError):
            copywriter.fill(summary_context())


@pytest.mark.usefixtures('documents_loaded')
class TestPipelineCopy:

    def test_lease_gets_an_introduction(self, gateway, style):
        pipeline = make_pipeline(gateway, style)
        request = DocumentRequest(DocumentType.LEASE_PROPOSAL, application_ref=APPLICATION_ID)

        context, document = pipeline.build(request, COMPANY_ID)

        assert context.fields['intro'].startswith('Dear Jordan Avery,')
        assert document.find('introduction.body').paragraphs == (context.fields['intro'],)

    def test_preview_carries_generated_copy(self, gateway, style):
        copywriter = DocumentCopywriter(enabled=True, generate=RecordingGenerator(reply='Welcome home.'))
        pipeline = make_pipeline(gateway, style, copywriter)
        request = DocumentRequest(DocumentType.LEASE_PROPOSAL, application_ref=APPLICATION_ID)

        node = pipeline.preview(request, COMPANY_ID)

        assert node.find('introduction.body').props['paragraphs'] == ('Welcome home.',)
