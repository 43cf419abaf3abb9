"""
Document Copywriter

Fills the written copy a few document types carry: the marketing
highlight of a property summary and the opening paragraph of a lease
proposal. Runs after field resolution, so an operator who typed their own
highlight or intro keeps it and nothing is generated.

With AI enabled the copy comes from services.ai_service. When AI is off,
or the call fails, a plain paragraph is assembled from the resolved
fields instead; the same fields always give the same fallback text.
"""

import dataclasses
import logging
from typing import Callable, Dict, Optional

import openai

from .transforms import format_currency, format_list, format_number, is_empty
from .types import DocumentType, ResolvedContext

logger = logging.getLogger(__name__)

HIGHLIGHT_FIELD = 'highlight'
INTRO_FIELD = 'intro'

HIGHLIGHT_SYSTEM_PROMPT = (
    "You write marketing copy for residential rental listings. "
    "Reply with plain text only, no headings or lists."
)
INTRO_SYSTEM_PROMPT = (
    "You write correspondence for a property management company. "
    "Reply with plain text only, no greeting line or signature."
)


def _value(fields, key: str, formatter=None, fallback: str = 'N/A') -> str:
    value = fields.get(key)
    if is_empty(value):
        return fallback
    return formatter(value) if formatter else str(value)


# =============================================================================
# PROMPTS
# =============================================================================

def highlight_prompt(fields) -> str:
    return (
        "Write a compelling 2-3 sentence marketing highlight for this property. "
        "Focus on the best features and lifestyle benefits. Be specific and avoid generic phrases.\n\n"
        f"Property: {_value(fields, 'propertyAddress')}\n"
        f"Rent: {_value(fields, 'monthlyRent', format_currency)}/month\n"
        f"Bedrooms: {_value(fields, 'bedrooms', format_number)}\n"
        f"Bathrooms: {_value(fields, 'bathrooms', format_number)}\n"
        f"Description: {_value(fields, 'description')}\n"
        f"Building Amenities: {_value(fields, 'amenities', format_list)}"
    )


def intro_prompt(fields) -> str:
    return (
        "Write a professional opening paragraph for a lease proposal letter. "
        f"The tenant is {_value(fields, 'tenantName', fallback='the applicant')}, "
        f"the property is {_value(fields, 'propertyAddress', fallback='the property')}, "
        f"and the proposed rent is {_value(fields, 'offerRent', format_currency)}/month "
        f"for a {_value(fields, 'leaseTerm')}-month term. Be warm but professional."
    )


# =============================================================================
# FALLBACK COPY
# =============================================================================

def fallback_highlight(fields) -> str:
    """'2 bed / 1.5 bath at 742 Evergreen Terrace for $2,000.00/month. Amenities include ...'"""
    parts = []
    if not is_empty(fields.get('bedrooms')):
        parts.append(f"{format_number(fields['bedrooms'])} bed")
    if not is_empty(fields.get('bathrooms')):
        parts.append(f"{format_number(fields['bathrooms'])} bath")
    layout = " / ".join(parts) or "Home"

    text = f"{layout} at {_value(fields, 'propertyAddress', fallback='this property')}"
    if not is_empty(fields.get('monthlyRent')):
        text += f" for {format_currency(fields['monthlyRent'])}/month"
    text += "."
    if not is_empty(fields.get('amenities')):
        text += f" Amenities include {format_list(fields['amenities'])}."
    return text


def fallback_intro(fields) -> str:
    tenant = _value(fields, 'tenantName', fallback='Applicant')
    address = _value(fields, 'propertyAddress', fallback='the property')
    return (
        f"Dear {tenant}, thank you for your interest in {address}. "
        f"We are pleased to offer a {_value(fields, 'leaseTerm')}-month lease at "
        f"{_value(fields, 'offerRent', format_currency)} per month on the terms set out below."
    )


# (field, system prompt, prompt builder, fallback builder) per document type
COPY: Dict[DocumentType, tuple] = {
    DocumentType.PROPERTY_SUMMARY: (HIGHLIGHT_FIELD, HIGHLIGHT_SYSTEM_PROMPT, highlight_prompt, fallback_highlight),
    DocumentType.LEASE_PROPOSAL: (INTRO_FIELD, INTRO_SYSTEM_PROMPT, intro_prompt, fallback_intro),
}


class DocumentCopywriter:
    """
    Adds generated copy to resolved contexts.

    Usage:
        copywriter = DocumentCopywriter(enabled=True, api_key=Config.OPENAI_API_KEY)
        context = copywriter.fill(context)
    """

    def __init__(self, enabled: bool = False, api_key: Optional[str] = None,
                 generate: Optional[Callable[..., str]] = None):
        self.enabled = enabled
        self.api_key = api_key
        self._generate = generate

    def fill(self, context: ResolvedContext) -> ResolvedContext:
        """Return the context with its copy field set, unless the operator already set it."""
        spec = COPY.get(context.type)
        if spec is None:
            return context

        key, system_prompt, build_prompt, build_fallback = spec
        if context.definition.get_field(key) is None or not is_empty(context.fields.get(key)):
            return context

        text = None
        if self.enabled:
            text = self._ask(context, system_prompt, build_prompt(context.fields))
        if not text:
            text = build_fallback(context.fields)

        fields = dict(context.fields)
        fields[key] = text
        return dataclasses.replace(context, fields=fields)

    def _ask(self, context: ResolvedContext, system_prompt: str, user_prompt: str) -> Optional[str]:
        generate = self._generate
        if generate is None:
            from services.ai_service import generate_ai_response
            generate = generate_ai_response

        try:
            return generate(system_prompt=system_prompt, user_prompt=user_prompt, api_key=self.api_key)
        except (openai.OpenAIError, ValueError) as e:
            logger.warning(f"AI copy for {context.type.value} failed, using standard text: {e}")
            return None
