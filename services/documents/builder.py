"""
Document Model Builder

Turns a ResolvedContext into a CanonicalDocument using a fixed, ordered
section template per document type. The builder is the only place that
knows which sections a document type has; renderers just walk the tree.

Conditional sections evaluate their predicate here, at build time. A
false predicate means the section never enters the tree.
"""

import logging
import math
import re
from typing import Callable, Dict, List, Optional, Tuple

from .types import DocumentDefinition, DocumentType, ResolvedContext
from .sections import (
    CanonicalDocument,
    ConditionalSection,
    HeaderSection,
    KeyValueGrid,
    KeyValueItem,
    NarrativeBlock,
    Section,
    Signatory,
    SignatureBlock,
    TableColumn,
    TableSection,
)
from .transforms import format_currency, format_value, is_empty
from .exceptions import ConfigurationError, LayoutError
from . import derived

logger = logging.getLogger(__name__)

# Factories receive the context and the derived values computed for this build
SectionFactory = Callable[[ResolvedContext, Dict[str, object]], Optional[Section]]

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


# =============================================================================
# HELPERS
# =============================================================================

def fmt(ctx: ResolvedContext, key: str, fallback: Optional[str] = None) -> str:
    """Format a resolved field for display using its declared kind."""
    field_def = ctx.definition.get_field(key)
    if field_def is None:
        raise ConfigurationError(f"{ctx.definition.slug} has no field '{key}'")
    return format_value(field_def.kind, ctx.fields.get(key), fallback)


def item(ctx: ResolvedContext, key: str, label: str = None, fallback: Optional[str] = None) -> Optional[KeyValueItem]:
    value = fmt(ctx, key, fallback)
    if not value:
        return None
    return KeyValueItem(label=label or ctx.definition.get_field(key).label, value=value)


def grid(key: str, heading: str, items: List[Optional[KeyValueItem]], columns: int = 2) -> KeyValueGrid:
    return KeyValueGrid(
        key=key,
        heading=heading,
        items=tuple(i for i in items if i is not None),
        columns=columns
    )


def paragraphs(text: Optional[str]) -> Tuple[str, ...]:
    """Split long text on blank lines; single newlines inside a paragraph become spaces."""
    if is_empty(text):
        return ()
    return tuple(
        ' '.join(line.strip() for line in block.splitlines() if line.strip())
        for block in PARAGRAPH_BREAK.split(text.strip())
    )


def address_line(ctx: ResolvedContext) -> str:
    address = fmt(ctx, 'propertyAddress')
    unit = ctx.fields.get('unitNumber')
    return f"{address}, Unit {unit}" if unit else address


def reference(ctx: ResolvedContext) -> Optional[str]:
    """Short reference shown in the header, taken from the primary linked record."""
    if ctx.type == DocumentType.APPLICATION_SUMMARY and ctx.application:
        return ctx.application.id[:8].upper()
    if ctx.property:
        return ctx.property.id[:8].upper()
    if ctx.application:
        return ctx.application.id[:8].upper()
    return None


def flag(key: str) -> Callable[[ResolvedContext], bool]:
    return lambda ctx: ctx.fields.get(key) is True


def present(key: str) -> Callable[[ResolvedContext], bool]:
    return lambda ctx: not is_empty(ctx.fields.get(key))


def conditional(key: str, condition: str, predicate: Callable[[ResolvedContext], bool],
                *body: SectionFactory) -> SectionFactory:
    """Wrap body factories so they only produce sections when `predicate` holds."""
    def factory(ctx: ResolvedContext, metrics: Dict[str, object]) -> Optional[ConditionalSection]:
        if not predicate(ctx):
            logger.debug(f"Omitting conditional section {key}: {condition} is false")
            return None
        sections = tuple(s for s in (make(ctx, metrics) for make in body) if s is not None)
        if not sections:
            return None
        return ConditionalSection(key=key, condition=condition, body=sections)
    return factory


def header(subtitle: Callable[[ResolvedContext], str]) -> SectionFactory:
    def factory(ctx: ResolvedContext, metrics: Dict[str, object]) -> HeaderSection:
        return HeaderSection(
            key='header',
            title=ctx.definition.name,
            subtitle=subtitle(ctx),
            company_name=ctx.company.name if ctx.company else None,
            reference=reference(ctx),
            issued_on=fmt(ctx, 'issueDate') or None
        )
    return factory


# =============================================================================
# SHOWING SHEET
# =============================================================================

def showing_walkthrough(ctx, metrics):
    scheduled = f"{fmt(ctx, 'showingDate')} at {fmt(ctx, 'showingTime')}"
    return grid('walkthrough', 'Property Walkthrough', [
        KeyValueItem('Scheduled For', scheduled),
        item(ctx, 'agentName'),
    ])


def showing_unit_details(ctx, metrics):
    return grid('unit_details', 'Unit Details', [
        item(ctx, 'propertyAddress'),
        item(ctx, 'unitNumber', fallback='N/A'),
        item(ctx, 'monthlyRent'),
        item(ctx, 'bedrooms'),
        item(ctx, 'bathrooms'),
    ], columns=3)


def showing_access(ctx, metrics):
    return NarrativeBlock(
        key='access_instructions.lockbox',
        heading='Access Instructions',
        paragraphs=(
            f"Secure lockbox code: {fmt(ctx, 'lockboxCode', 'N/A')}",
            "Return the key to the lockbox and confirm all doors and windows are locked before leaving.",
        )
    )


def walkthrough_areas(bedrooms: Optional[int], bathrooms: Optional[float]) -> List[str]:
    """Rooms to inspect, one checklist row each."""
    areas = ['Entry / Living Area', 'Kitchen']
    areas.extend(f"Bedroom {n}" for n in range(1, (bedrooms or 0) + 1))
    full_baths = int(math.floor(bathrooms or 0))
    areas.extend(f"Bathroom {n}" for n in range(1, full_baths + 1))
    if (bathrooms or 0) - full_baths >= 0.5:
        areas.append('Half Bath')
    return areas


def showing_checklist(ctx, metrics):
    areas = walkthrough_areas(ctx.fields.get('bedrooms'), ctx.fields.get('bathrooms'))
    return TableSection(
        key='walkthrough_checklist',
        heading='Walkthrough Checklist',
        columns=(
            TableColumn('Area', width=2.0),
            TableColumn('Condition', width=1.2),
            TableColumn('Notes', width=3.0),
        ),
        rows=tuple((area, '', '') for area in areas)
    )


def showing_notes(ctx, metrics):
    return NarrativeBlock(
        key='agent_notes.body',
        heading='Agent Notes',
        paragraphs=paragraphs(ctx.fields.get('accessNotes'))
    )


def showing_signatures(ctx, metrics):
    return SignatureBlock(
        key='signatures',
        heading=None,
        signatories=(
            Signatory('Showing Agent', ctx.fields.get('agentName')),
            Signatory('Prospective Tenant'),
        )
    )


# =============================================================================
# LEASE PROPOSAL
# =============================================================================

def lease_tenant_info(ctx, metrics):
    return grid('tenant_info', 'Tenant Information', [
        item(ctx, 'tenantName', label='To'),
        item(ctx, 'tenantEmail'),
        item(ctx, 'tenantPhone'),
        KeyValueItem('Re', f"Residential Lease Proposal for {address_line(ctx)}"),
    ])


def lease_introduction(ctx, metrics):
    return NarrativeBlock(
        key='introduction.body',
        heading=None,
        paragraphs=paragraphs(ctx.fields.get('intro'))
    )


def lease_financial_terms(ctx, metrics):
    rent = ctx.fields['offerRent']
    term = ctx.fields['leaseTerm']
    deposit = ctx.fields.get('securityDeposit')
    if deposit is None:
        deposit_text = f"{format_currency(rent)} (1 Month Rent)"
    else:
        deposit_text = format_currency(deposit)

    return grid('financial_terms', 'Financial Terms', [
        item(ctx, 'offerRent'),
        KeyValueItem('Term Duration', f"{term} Months"),
        KeyValueItem('Security Deposit', deposit_text),
        item(ctx, 'moveInDate', fallback='To be agreed'),
        KeyValueItem('Total Lease Value', format_currency(derived.lease_total(rent, term))),
    ])


def lease_pet_fees(ctx, metrics):
    return grid('pet_clause.fees', 'Pet Clause', [
        item(ctx, 'petDeposit', fallback='None'),
        item(ctx, 'petRent', fallback='None'),
    ])


def lease_pet_policy(ctx, metrics):
    return NarrativeBlock(
        key='pet_clause.policy',
        heading=None,
        paragraphs=paragraphs(ctx.fields.get('petPolicy'))
    )


def lease_parking(ctx, metrics):
    return grid('parking.terms', 'Parking', [
        item(ctx, 'parkingSpaces'),
        item(ctx, 'parkingFee', fallback='Included'),
    ])


def lease_special_conditions(ctx, metrics):
    return NarrativeBlock(
        key='special_conditions',
        heading='Subject Conditions',
        paragraphs=paragraphs(ctx.fields.get('specialConditions')) or ('None.',)
    )


def lease_signatures(ctx, metrics):
    return SignatureBlock(
        key='signatures',
        heading=None,
        signatories=(
            Signatory('Landlord / Agent Signature', ctx.company.name if ctx.company else None),
            Signatory('Tenant Acknowledgment', ctx.fields.get('tenantName')),
        )
    )


# =============================================================================
# APPLICATION SUMMARY
# =============================================================================

def screening_metrics(ctx: ResolvedContext) -> Dict[str, object]:
    """Derived screening numbers, computed once per build."""
    income = ctx.fields['monthlyIncome']
    rent = ctx.fields['monthlyRent']
    debt = ctx.fields.get('monthlyDebt', 0.0)
    credit = ctx.fields['creditScore']
    ratio = derived.income_to_rent_ratio(income, rent)
    dti = derived.debt_to_income_percent(debt, rent, income)
    return {
        'ratio': ratio,
        'rent_share': derived.rent_to_income_percent(rent, income),
        'dti': dti,
        'credit': credit,
        'tier': derived.risk_tier(dti, credit),
        'drivers': derived.risk_drivers(dti, credit),
    }


def application_profile(ctx, metrics):
    return grid('applicant_profile', 'Applicant Profile', [
        item(ctx, 'applicantName'),
        item(ctx, 'applicantEmail', fallback='N/A'),
        item(ctx, 'applicantPhone'),
        item(ctx, 'employer'),
        KeyValueItem('Property', address_line(ctx)),
    ])


def application_financials(ctx, metrics):
    return grid('financial_status', 'Financial Status', [
        item(ctx, 'creditScore'),
        item(ctx, 'monthlyIncome'),
        item(ctx, 'monthlyRent'),
        item(ctx, 'monthlyDebt'),
        KeyValueItem('Rent/Income %', f"{metrics['rent_share']}%"),
        KeyValueItem('Income/Rent Ratio', derived.format_ratio(metrics['ratio'])),
        KeyValueItem('Debt-to-Income', f"{metrics['dti']:.1f}%"),
    ], columns=3)


def application_risk(ctx, metrics):
    return grid('risk_assessment', 'Risk Assessment', [
        KeyValueItem('Risk Tier', metrics['tier']),
        KeyValueItem('Drivers', metrics['drivers'] or 'Meets all screening guidelines'),
    ])


def application_checklist(ctx, metrics):

    def result(ok: bool) -> str:
        return 'Pass' if ok else 'Review'

    return TableSection(
        key='qualification_checklist',
        heading='Qualification Checklist',
        columns=(
            TableColumn('Criterion', width=2.0),
            TableColumn('Guideline', width=1.6),
            TableColumn('Applicant', numeric=True, width=1.2),
            TableColumn('Result', width=1.0),
        ),
        rows=(
            ('Income to rent', f"{derived.MIN_INCOME_MULTIPLE:.1f}x or more",
             derived.format_ratio(metrics['ratio']),
             result(metrics['ratio'] >= derived.MIN_INCOME_MULTIPLE)),
            ('Credit score', f"{derived.PREFERRED_CREDIT_SCORE} or higher",
             str(metrics['credit']),
             result(metrics['credit'] >= derived.PREFERRED_CREDIT_SCORE)),
            ('Debt to income', f"{derived.MAX_PREFERRED_DTI:g}% or less",
             f"{metrics['dti']:.1f}%",
             result(metrics['dti'] <= derived.MAX_PREFERRED_DTI)),
        )
    )


def application_notes(ctx, metrics):
    return NarrativeBlock(
        key='screening_notes.body',
        heading='Screening Notes',
        paragraphs=paragraphs(ctx.fields.get('screeningNotes'))
    )


def application_signatures(ctx, metrics):
    return SignatureBlock(
        key='signatures',
        heading=None,
        signatories=(Signatory('Reviewed By', ctx.fields.get('reviewerName')),)
    )


# =============================================================================
# PROPERTY SUMMARY
# =============================================================================

def property_overview(ctx, metrics):
    return NarrativeBlock(
        key='overview',
        heading=address_line(ctx),
        paragraphs=paragraphs(ctx.fields.get('description'))
    )


def property_highlights(ctx, metrics):
    return NarrativeBlock(
        key='highlights.body',
        heading='Highlights',
        paragraphs=paragraphs(ctx.fields.get('highlight'))
    )


def property_key_facts(ctx, metrics):
    return grid('key_facts', 'Key Facts', [
        KeyValueItem('Lease Price', f"{fmt(ctx, 'monthlyRent')}/mo"),
        item(ctx, 'bedrooms'),
        item(ctx, 'bathrooms'),
        item(ctx, 'squareFeet'),
        item(ctx, 'availability'),
        item(ctx, 'buildingName'),
    ], columns=3)


def property_amenities(ctx, metrics):
    amenities = ctx.fields.get('amenities') or ()
    return TableSection(
        key='amenities.list',
        heading='Amenities',
        columns=(
            TableColumn('#', numeric=True, width=0.4),
            TableColumn('Amenity', width=4.0),
        ),
        rows=tuple((str(n), name) for n, name in enumerate(amenities, start=1))
    )


def property_contact(ctx, metrics):
    return grid('contact', 'Contact', [
        item(ctx, 'contactName'),
        item(ctx, 'contactPhone'),
        item(ctx, 'contactEmail'),
    ], columns=3)


# =============================================================================
# TEMPLATES
# =============================================================================

TEMPLATES: Dict[DocumentType, Tuple[SectionFactory, ...]] = {
    DocumentType.SHOWING_SHEET: (
        header(lambda ctx: f"Property Walkthrough for {address_line(ctx)}"),
        showing_walkthrough,
        showing_unit_details,
        conditional('access_instructions', 'includeAccessInstructions',
                    flag('includeAccessInstructions'), showing_access),
        showing_checklist,
        conditional('agent_notes', 'accessNotes present', present('accessNotes'), showing_notes),
        showing_signatures,
    ),
    DocumentType.LEASE_PROPOSAL: (
        header(lambda ctx: f"Residential Lease Proposal for {address_line(ctx)}"),
        lease_tenant_info,
        conditional('introduction', 'intro present', present('intro'), lease_introduction),
        lease_financial_terms,
        conditional('pet_clause', 'includePetClause', flag('includePetClause'),
                    lease_pet_fees, lease_pet_policy),
        conditional('parking', 'includeParking', flag('includeParking'), lease_parking),
        lease_special_conditions,
        lease_signatures,
    ),
    DocumentType.APPLICATION_SUMMARY: (
        header(lambda ctx: f"Applicant Screening for {address_line(ctx)}"),
        application_profile,
        application_financials,
        application_risk,
        application_checklist,
        conditional('screening_notes', 'includeScreeningNotes',
                    flag('includeScreeningNotes'), application_notes),
        application_signatures,
    ),
    DocumentType.PROPERTY_SUMMARY: (
        header(lambda ctx: ctx.fields.get('availability')),
        property_overview,
        conditional('highlights', 'highlight present', present('highlight'), property_highlights),
        property_key_facts,
        conditional('amenities', 'includeAmenities and amenities present',
                    lambda ctx: flag('includeAmenities')(ctx) and present('amenities')(ctx),
                    property_amenities),
        property_contact,
    ),
}


# Derived values computed once per build, before any section factory runs
DERIVED: Dict[DocumentType, Callable[[ResolvedContext], Dict[str, object]]] = {
    DocumentType.APPLICATION_SUMMARY: screening_metrics,
}


class DocumentModelBuilder:
    """
    Builds canonical documents from resolved contexts.

    Usage:
        context = FieldResolver.resolve(definition, request, property=...)
        document = DocumentModelBuilder.build(context)
    """

    @classmethod
    def build(cls, context: ResolvedContext) -> CanonicalDocument:
        """
        Build the canonical document for a resolved context.

        Same context in, structurally identical document out.

        Raises:
            LayoutError if the template emits a section the type's
            definition does not permit
        """
        template = TEMPLATES.get(context.type)
        if template is None:
            raise ConfigurationError(f"No section template for document type: {context.type.value}")

        derive = DERIVED.get(context.type)
        metrics = derive(context) if derive else {}

        sections = []
        for factory in template:
            section = factory(context, metrics)
            if section is None:
                continue
            cls.check_permitted(context.definition, section)
            sections.append(section)

        return CanonicalDocument(
            document_type=context.type,
            title=f"{context.definition.name}: {address_line(context)}",
            reference=reference(context),
            sections=tuple(sections)
        )

    @classmethod
    def check_permitted(cls, definition: DocumentDefinition, section: Section) -> None:
        """Top-level keys must be declared; conditional bodies live under their wrapper's key."""
        if not definition.permits_section(section.key):
            raise LayoutError(
                f"Section '{section.key}' is not permitted for document type '{definition.slug}'",
                section=section.key
            )
        if isinstance(section, ConditionalSection):
            for child in section.body:
                if not child.key.startswith(f"{section.key}."):
                    raise LayoutError(
                        f"Section '{child.key}' is not part of conditional section '{section.key}'",
                        section=child.key
                    )
