"""
Document Loader

Reads the YAML document definitions under documents/, checks them against
the versioned JSON schema plus a few rules the schema cannot express, and
keeps the result in memory for the lifetime of the process.

Loading is all-or-nothing: one bad file, or a DocumentType with no file,
stops the app from starting.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

from .types import DocumentDefinition, DocumentType, FieldKind
from .transforms import coerce
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DOCUMENTS_DIR = Path(__file__).parent.parent.parent / 'documents'

# entity.attribute, optionally indexed: property.amenities[0]
SOURCE_PATTERN = re.compile(r'^[a-z_]+(\.[a-z_][a-z0-9_]*(\[\d+\])?)+$')

BOUND_KEYS = ('min', 'max', 'exclusive_min')


class DocumentLoader:
    """
    Process-wide registry of document definitions.

    Usage:
        # create_app()
        DocumentLoader.load_all()

        # per request
        definition = DocumentLoader.get_or_raise(DocumentType.LEASE_PROPOSAL)
    """

    _definitions: Dict[DocumentType, DocumentDefinition] = {}
    _schemas: Dict[str, dict] = {}
    _validated: bool = False

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    def load_all(cls, directory: Path = None) -> None:
        """
        Load every *.yml / *.yaml file in `directory` (documents/ by default).

        Raises:
            ConfigurationError listing every problem found, across all files
        """
        directory = Path(directory or DOCUMENTS_DIR)
        cls.clear()
        cls._schemas = cls._read_schemas(directory / 'schema')

        problems: List[str] = []
        loaded: Dict[DocumentType, DocumentDefinition] = {}

        for path in sorted(directory.glob('*.yml')) + sorted(directory.glob('*.yaml')):
            try:
                definition = cls._read_definition(path)
            except ConfigurationError as e:
                problems.append(f"{path.name}: {e}")
                continue

            if definition.type in loaded:
                problems.append(f"{path.name}: '{definition.slug}' is already defined by another file")
                continue
            loaded[definition.type] = definition
            logger.debug(f"Loaded document definition {definition.slug} from {path.name}")

        for doc_type in DocumentType:
            if doc_type not in loaded and not any(doc_type.value in p for p in problems):
                problems.append(f"No definition found for document type '{doc_type.value}'")

        if problems:
            message = "Document configuration errors:\n" + "\n".join(f"  - {p}" for p in problems)
            logger.error(message)
            raise ConfigurationError(message)

        cls._definitions = loaded
        cls._validated = True
        logger.info(f"Loaded {len(loaded)} document definition(s) from {directory}")

    @classmethod
    def _read_schemas(cls, schema_dir: Path) -> Dict[str, dict]:
        if not schema_dir.is_dir():
            raise ConfigurationError(f"Schema directory not found: {schema_dir}")

        schemas = {}
        for schema_file in schema_dir.glob('v*.json'):
            try:
                schemas[schema_file.stem] = json.loads(schema_file.read_text())
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid schema {schema_file.name}: {e}")
        if not schemas:
            raise ConfigurationError(f"No definition schemas in {schema_dir}")
        return schemas

    @classmethod
    def _read_definition(cls, path: Path) -> DocumentDefinition:
        try:
            raw = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML syntax error: {e}")

        problems = cls.check(raw)
        if problems:
            raise ConfigurationError("; ".join(problems))

        try:
            return DocumentDefinition.from_dict(raw)
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigurationError(f"Unexpected error - {e}")

    # =========================================================================
    # CHECKS
    # =========================================================================

    @classmethod
    def check(cls, raw: Any) -> List[str]:
        """
        Every problem with one parsed definition, as messages. Empty when valid.

        Schema errors stop the checks early; the later rules assume the
        document has the schema's shape.
        """
        if not raw:
            return ["Empty document definition"]
        if not isinstance(raw, dict):
            return ["Document definition must be a mapping"]

        version = f"v{raw.get('schema_version', '1.0')}"
        schema = cls._schemas.get(version)
        if schema is None:
            return [f"Unknown schema version: {raw.get('schema_version')}"]
        try:
            jsonschema.validate(raw, schema)
        except jsonschema.ValidationError as e:
            return [f"Schema validation: {e.message}"]

        return cls._check_sources(raw) + cls._check_fields(raw)

    @classmethod
    def _check_sources(cls, raw: dict) -> List[str]:
        """Sources must be well formed and point at an entity the type declares."""
        problems = []
        entities = set(raw.get('entities', []))

        for field in raw.get('fields', []):
            source = field.get('source')
            if not source:
                continue
            if not SOURCE_PATTERN.match(source):
                problems.append(
                    f"Field '{field['key']}' has invalid source '{source}'; "
                    f"use entity.attribute or entity.attribute[0]"
                )
                continue
            entity = source.split('.', 1)[0]
            if entity not in entities:
                problems.append(
                    f"Field '{field['key']}' reads from '{entity}', "
                    f"which is not one of the declared entities {sorted(entities)}"
                )
        return problems

    @classmethod
    def _check_fields(cls, raw: dict) -> List[str]:
        problems = []
        keys = [f['key'] for f in raw.get('fields', [])]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            problems.append(f"Duplicate field keys: {', '.join(duplicates)}")

        for field in raw.get('fields', []):
            key = field['key']
            kind = FieldKind(field.get('kind', 'text'))

            if any(b in field for b in BOUND_KEYS) and not kind.is_numeric:
                problems.append(f"Field '{key}' declares min/max but is of kind '{kind.value}'")
            elif 'min' in field and 'max' in field and field['min'] > field['max']:
                problems.append(f"Field '{key}' has min greater than max")

            # Defaults go through the same coercion as operator input
            if field.get('default') is not None:
                try:
                    coerce(kind, field['default'])
                except ValueError as e:
                    problems.append(f"Field '{key}' has an invalid default: {e}")
        return problems

    @classmethod
    def validate_yaml_content(cls, yaml_content: str) -> List[str]:
        """Check a YAML string without registering it. Returns problem messages."""
        try:
            raw = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            return [f"YAML syntax error: {e}"]
        return cls.check(raw)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    @classmethod
    def get(cls, doc_type: DocumentType) -> Optional[DocumentDefinition]:
        return cls._definitions.get(doc_type)

    @classmethod
    def get_or_raise(cls, doc_type: DocumentType) -> DocumentDefinition:
        definition = cls.get(doc_type)
        if definition is None:
            raise ConfigurationError(f"No definition loaded for document type: {doc_type.value}")
        return definition

    @classmethod
    def all_slugs(cls) -> List[str]:
        return [d.slug for d in cls._definitions.values()]

    @classmethod
    def get_sorted(cls) -> List[DocumentDefinition]:
        """Definitions in display order, as the generator's type picker lists them."""
        return sorted(cls._definitions.values(), key=lambda d: d.display.sort_order)

    @classmethod
    def is_loaded(cls) -> bool:
        return cls._validated

    @classmethod
    def clear(cls) -> None:
        """Forget everything loaded. Tests call this between runs."""
        cls._definitions = {}
        cls._validated = False
