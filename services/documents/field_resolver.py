"""
Field Resolver

Merges operator input with values auto-filled from linked entity snapshots
and validates the result against the document definition.

Precedence per field:
    1. explicit custom field value, if present and non-empty
    2. value at the field's source path in the linked snapshots
    3. the definition's static default
    4. absent

Source path syntax:
    property.rent               -> context['property'].rent
    application.applicant_name  -> context['application'].applicant_name
    property.amenities[0]       -> context['property'].amenities[0]
    company.name                -> context['company'].name
"""

import logging
import re
from typing import Any, Dict, List, Optional

from .types import (
    ApplicationSnapshot,
    CompanySnapshot,
    DocumentDefinition,
    DocumentRequest,
    ENTITY_APPLICATION,
    ENTITY_PROPERTY,
    FieldDefinition,
    PropertySnapshot,
    ResolvedContext,
)
from .transforms import coerce, is_empty
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

# Sentinel for "no source supplied a value"
ABSENT = object()


class FieldResolver:
    """
    Resolves a DocumentRequest into a ResolvedContext.

    Pure: every entity has already been fetched by the gateway and is
    passed in as a snapshot. Nothing here performs I/O.
    """

    # Pattern for bracket notation: name[index]
    BRACKET_PATTERN = re.compile(r'^([a-zA-Z_][a-zA-Z0-9_]*)\[(\d+)\]$')

    @classmethod
    def resolve(
        cls,
        definition: DocumentDefinition,
        request: DocumentRequest,
        property: Optional[PropertySnapshot] = None,
        application: Optional[ApplicationSnapshot] = None,
        company: Optional[CompanySnapshot] = None,
    ) -> ResolvedContext:
        """
        Resolve every field in a document definition.

        Args:
            definition: The definition for request.type
            request: The generation request
            property/application/company: Snapshots of the linked entities

        Returns:
            ResolvedContext with coerced values for every present field

        Raises:
            ValidationError naming every missing required field and every
            value that failed coercion or range checks
        """
        invalid: Dict[str, str] = cls.check_references(definition, request)

        context = {
            'property': property,
            'application': application,
            'company': company,
        }

        unknown = set(request.custom_fields) - {f.key for f in definition.fields}
        if unknown:
            logger.debug(f"Ignoring unknown fields for {definition.slug}: {sorted(unknown)}")

        fields: Dict[str, Any] = {}
        missing: List[str] = []

        for field_def in definition.fields:
            raw = cls.pick_value(field_def, request.custom_fields, context)

            if raw is ABSENT:
                if field_def.required:
                    missing.append(field_def.key)
                continue

            try:
                value = coerce(field_def.kind, raw)
                cls.check_range(field_def, value)
            except ValueError as e:
                invalid[field_def.key] = str(e)
                continue

            if is_empty(value):
                if field_def.required:
                    missing.append(field_def.key)
                continue

            fields[field_def.key] = value

        if missing or invalid:
            parts = []
            if missing:
                parts.append(f"missing required fields: {', '.join(missing)}")
            if invalid:
                parts.append(f"invalid fields: {', '.join(sorted(invalid))}")
            message = f"Cannot generate {definition.name}: " + "; ".join(parts)
            logger.info(message)
            raise ValidationError(
                message,
                missing_fields=missing,
                invalid_fields=invalid,
                document_slug=definition.slug
            )

        return ResolvedContext(
            type=definition.type,
            definition=definition,
            fields=fields,
            property=property,
            application=application,
            company=company
        )

    @classmethod
    def check_references(cls, definition: DocumentDefinition, request: DocumentRequest) -> Dict[str, str]:
        """Entity references the document type does not accept are invalid input."""
        invalid = {}
        if request.property_ref and not definition.accepts_entity(ENTITY_PROPERTY):
            invalid['propertyRef'] = f"{definition.name} does not use a property"
        if request.application_ref and not definition.accepts_entity(ENTITY_APPLICATION):
            invalid['applicationRef'] = f"{definition.name} does not use an application"
        return invalid

    @classmethod
    def pick_value(cls, field_def: FieldDefinition, custom_fields, context: Dict[str, Any]) -> Any:
        """Apply the precedence order for a single field. Returns ABSENT if nothing supplies it."""
        explicit = custom_fields.get(field_def.key)
        if not is_empty(explicit):
            return explicit

        if field_def.source:
            derived = cls.resolve_path(field_def.source, context)
            if not is_empty(derived):
                return derived

        if not is_empty(field_def.default):
            return field_def.default

        return ABSENT

    @classmethod
    def check_range(cls, field_def: FieldDefinition, value: Any) -> None:
        """Range-check numeric values against the definition bounds."""
        if not field_def.kind.is_numeric or value is None:
            return

        if field_def.min is not None:
            if field_def.exclusive_min and value <= field_def.min:
                raise ValueError(f"must be greater than {field_def.min:g}")
            if not field_def.exclusive_min and value < field_def.min:
                raise ValueError(f"must be at least {field_def.min:g}")

        if field_def.max is not None and value > field_def.max:
            raise ValueError(f"must be at most {field_def.max:g}")

    @classmethod
    def resolve_path(cls, source_path: str, context: Dict[str, Any]) -> Any:
        """
        Resolve a source path to a value.

        Args:
            source_path: Path like "property.rent" or "property.amenities[0]"
            context: Dict containing the snapshots

        Returns:
            The resolved value, or None if not found
        """
        if not source_path:
            return None

        parts = cls._parse_path(source_path)

        if not parts:
            return None

        root_key = parts[0]
        if root_key not in context:
            logger.debug(f"Root key '{root_key}' not in context")
            return None

        current = context[root_key]

        for part in parts[1:]:
            if current is None:
                return None

            current = cls._get_value(current, part)

        return current

    @classmethod
    def _parse_path(cls, path: str) -> List[str]:
        """
        Parse a source path into parts.

        Examples:
            "property.rent" -> ["property", "rent"]
            "property.amenities[0]" -> ["property", "amenities[0]"]
        """
        parts = []
        current = ""
        in_bracket = False

        for char in path:
            if char == '[':
                in_bracket = True
                current += char
            elif char == ']':
                in_bracket = False
                current += char
            elif char == '.' and not in_bracket:
                if current:
                    parts.append(current)
                current = ""
            else:
                current += char

        if current:
            parts.append(current)

        return parts

    @classmethod
    def _get_value(cls, obj: Any, part: str) -> Any:
        """Get a value from an object by attribute name, dict key or index."""
        bracket_match = cls.BRACKET_PATTERN.match(part)
        if bracket_match:
            collection = cls._get_attr_or_key(obj, bracket_match.group(1))
            index = int(bracket_match.group(2))

            if isinstance(collection, (list, tuple)) and 0 <= index < len(collection):
                return collection[index]
            return None

        return cls._get_attr_or_key(obj, part)

    @classmethod
    def _get_attr_or_key(cls, obj: Any, key: str) -> Any:
        """Get a value by attribute or dict key."""
        if isinstance(obj, dict):
            return obj.get(key)
        return getattr(obj, key, None)

    @classmethod
    def resolve_single(cls, source_path: str, context: Dict[str, Any]) -> Any:
        """Convenience method to resolve a single source path."""
        return cls.resolve_path(source_path, context)
