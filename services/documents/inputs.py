"""
Typed Document Inputs

One input class per document type, built from posted form data. Each
class only has the entity references its document type accepts, so a
stray applicationRef on a showing sheet is rejected before resolution
starts.

Attribute names are the snake_case form of the field keys in the YAML
definitions (issue_date -> issueDate). Values stay close to what was
posted; coercion and range checks happen in the FieldResolver.

Usage:
    form_input = input_class_for(DocumentType.LEASE_PROPOSAL).from_form(request.form)
    document_request = form_input.to_request()
"""

import json
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from .exceptions import ValidationError
from .types import DocumentRequest, DocumentType

Text = Optional[str]
Number = Optional[Union[str, int, float]]
Flag = Optional[bool]
Items = Optional[Union[str, List[str]]]

TRUE_VALUES = {'true', 'on', 'yes', '1'}
FALSE_VALUES = {'false', 'off', 'no', '0'}

REFERENCE_KEYS = {
    'property_ref': 'propertyRef',
    'application_ref': 'applicationRef',
}

CUSTOM_FIELDS_KEY = 'customFields'


def camel_case(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def parse_flag(value: Any) -> Optional[bool]:
    """Checkbox and JSON booleans. Raises ValueError for anything else."""
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return None
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"'{value}' is not a yes/no value")


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


@dataclass(frozen=True)
class DocumentInput:
    """Base for typed inputs. Subclasses declare their fields as dataclass attributes."""

    document_type: ClassVar[DocumentType]

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> 'DocumentInput':
        """
        Build a typed input from posted form or JSON data.

        Raises:
            ValidationError if a reference the type does not accept was
            posted or a yes/no field holds something else
        """
        known = {f.name for f in fields(cls)}
        invalid: Dict[str, str] = {}

        for attr, key in REFERENCE_KEYS.items():
            if attr not in known and _clean(form.get(key)) is not None:
                invalid[key] = f"{cls.document_type.label} does not use {key}"

        values = {}
        for f in fields(cls):
            key = REFERENCE_KEYS.get(f.name, camel_case(f.name))
            raw = form.get(key)
            if f.type == Flag:
                try:
                    values[f.name] = parse_flag(raw)
                except ValueError as e:
                    invalid[key] = str(e)
            else:
                values[f.name] = _clean(raw)

        if invalid:
            raise ValidationError(
                f"Invalid {cls.document_type.label} input: {', '.join(sorted(invalid))}",
                invalid_fields=invalid,
                document_slug=cls.document_type.value
            )
        return cls(**values)

    def to_request(self) -> DocumentRequest:
        custom_fields = {}
        refs = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in REFERENCE_KEYS:
                refs[f.name] = value
            elif value is not None:
                custom_fields[camel_case(f.name)] = value
        return DocumentRequest(type=self.document_type, custom_fields=custom_fields, **refs)


@dataclass(frozen=True)
class ShowingSheetInput(DocumentInput):
    document_type: ClassVar[DocumentType] = DocumentType.SHOWING_SHEET

    property_ref: Text = None
    property_address: Text = None
    unit_number: Text = None
    monthly_rent: Number = None
    bedrooms: Number = None
    bathrooms: Number = None
    showing_date: Text = None
    showing_time: Text = None
    agent_name: Text = None
    lockbox_code: Text = None
    include_access_instructions: Flag = None
    access_notes: Text = None
    issue_date: Text = None


@dataclass(frozen=True)
class LeaseProposalInput(DocumentInput):
    document_type: ClassVar[DocumentType] = DocumentType.LEASE_PROPOSAL

    property_ref: Text = None
    application_ref: Text = None
    tenant_name: Text = None
    tenant_email: Text = None
    tenant_phone: Text = None
    intro: Text = None
    property_address: Text = None
    unit_number: Text = None
    offer_rent: Number = None
    lease_term: Number = None
    security_deposit: Number = None
    move_in_date: Text = None
    include_pet_clause: Flag = None
    pet_deposit: Number = None
    pet_rent: Number = None
    pet_policy: Text = None
    include_parking: Flag = None
    parking_spaces: Number = None
    parking_fee: Number = None
    special_conditions: Text = None
    issue_date: Text = None


@dataclass(frozen=True)
class ApplicationSummaryInput(DocumentInput):
    document_type: ClassVar[DocumentType] = DocumentType.APPLICATION_SUMMARY

    property_ref: Text = None
    application_ref: Text = None
    applicant_name: Text = None
    applicant_email: Text = None
    applicant_phone: Text = None
    employer: Text = None
    property_address: Text = None
    monthly_rent: Number = None
    monthly_income: Number = None
    monthly_debt: Number = None
    credit_score: Number = None
    include_screening_notes: Flag = None
    screening_notes: Text = None
    reviewer_name: Text = None
    issue_date: Text = None


@dataclass(frozen=True)
class PropertySummaryInput(DocumentInput):
    document_type: ClassVar[DocumentType] = DocumentType.PROPERTY_SUMMARY

    property_ref: Text = None
    property_address: Text = None
    unit_number: Text = None
    building_name: Text = None
    monthly_rent: Number = None
    bedrooms: Number = None
    bathrooms: Number = None
    square_feet: Number = None
    availability: Text = None
    description: Text = None
    highlight: Text = None
    amenities: Items = None
    include_amenities: Flag = None
    contact_name: Text = None
    contact_phone: Text = None
    contact_email: Text = None
    issue_date: Text = None


INPUT_CLASSES = {
    cls.document_type: cls
    for cls in (ShowingSheetInput, LeaseProposalInput, ApplicationSummaryInput, PropertySummaryInput)
}


def input_class_for(document_type: DocumentType):
    return INPUT_CLASSES[document_type]


def flatten_custom_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Lift a nested customFields object up next to type and the references.

    JSON clients post {"type": ..., "customFields": {...}}; regular form
    posts can only carry it as a JSON string. A non-blank key posted at the
    top level wins over the same key inside customFields.
    """
    flat = dict(data)
    nested = flat.pop(CUSTOM_FIELDS_KEY, None)
    if nested is None or nested == '':
        return flat

    if isinstance(nested, str):
        try:
            nested = json.loads(nested)
        except ValueError:
            nested = None
    if not isinstance(nested, dict):
        raise ValidationError(
            "customFields must be an object of field values",
            invalid_fields={CUSTOM_FIELDS_KEY: 'not an object'}
        )

    merged = dict(nested)
    merged.update({k: v for k, v in flat.items() if _clean(v) is not None})
    return merged


def parse_request(document_type: DocumentType, form: Mapping[str, Any]) -> DocumentRequest:
    """Posted data -> validated typed input -> DocumentRequest."""
    return input_class_for(document_type).from_form(flatten_custom_fields(form)).to_request()
