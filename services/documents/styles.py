"""
Style Sheets

Declarative print styling for the layout engine, keyed by section
variant. Loaded from YAML and validated against
documents/schema/stylesheet.json. Changing how a document looks is a
change to the YAML, not to the engine.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema
import yaml
from reportlab.pdfbase import pdfmetrics

from .exceptions import ConfigurationError, LayoutError

logger = logging.getLogger(__name__)

STYLES_DIR = Path(__file__).parent.parent.parent / 'documents' / 'styles'
STYLESHEET_SCHEMA = Path(__file__).parent.parent.parent / 'documents' / 'schema' / 'stylesheet.json'
DEFAULT_STYLESHEET = STYLES_DIR / 'default.yml'

ACCENT = 'accent'


@dataclass(frozen=True)
class TextStyle:
    font: str
    size: float
    leading: float
    color: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextStyle':
        size = float(data['size'])
        return cls(
            font=data['font'],
            size=size,
            leading=float(data.get('leading', size * 1.25)),
            color=data.get('color', '#000000')
        )


@dataclass(frozen=True)
class PageGeometry:
    width: float
    height: float
    margin_top: float
    margin_right: float
    margin_bottom: float
    margin_left: float

    @property
    def content_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def content_top(self) -> float:
        """y of the top edge of the content box (PDF space, origin bottom-left)."""
        return self.height - self.margin_top

    @property
    def content_bottom(self) -> float:
        return self.margin_bottom

    @property
    def content_height(self) -> float:
        return self.content_top - self.content_bottom


@dataclass(frozen=True)
class FooterStyle:
    offset: float
    brand_line: str
    text: TextStyle
    rule_color: Optional[str] = None


@dataclass(frozen=True)
class SectionStyle:
    """Style for one section variant: named text roles, colors and spacing metrics."""
    variant: str
    text: Mapping[str, TextStyle] = field(default_factory=dict)
    colors: Mapping[str, str] = field(default_factory=dict)
    metrics: Mapping[str, float] = field(default_factory=dict)

    def text_role(self, role: str) -> TextStyle:
        try:
            return self.text[role]
        except KeyError:
            raise LayoutError(
                f"Style for {self.variant} has no '{role}' text role",
                section=self.variant
            )

    def color(self, name: str) -> str:
        try:
            return self.colors[name]
        except KeyError:
            raise LayoutError(
                f"Style for {self.variant} has no '{name}' color",
                section=self.variant
            )

    def metric(self, name: str, default: float = 0.0) -> float:
        return float(self.metrics.get(name, default))


@dataclass(frozen=True)
class StyleSheet:
    """
    A complete print style.

    Usage:
        style = StyleSheet.load()
        branded = style.with_accent(company.brand_color)
        section_style = branded.style_for('TableSection')
    """
    page: PageGeometry
    footer: FooterStyle
    accent: str
    section_gap: float
    sections: Mapping[str, SectionStyle]

    def style_for(self, variant: str) -> SectionStyle:
        """Look up the style for a section variant. Fails closed if none is registered."""
        style = self.sections.get(variant)
        if style is None:
            raise LayoutError(f"No style registered for section variant '{variant}'", section=variant)
        return style

    def resolve_color(self, color: str) -> str:
        return self.accent if color == ACCENT else color

    def with_accent(self, color: Optional[str]) -> 'StyleSheet':
        """Return a copy using `color` as the accent. Invalid or empty colors keep the current accent."""
        if not color or not _is_hex_color(color):
            if color:
                logger.warning(f"Ignoring invalid brand color: {color}")
            return self
        return replace(self, accent=color)

    def with_brand_line(self, brand_line: Optional[str]) -> 'StyleSheet':
        if not brand_line:
            return self
        return replace(self, footer=replace(self.footer, brand_line=brand_line))

    @classmethod
    def load(cls, path: Path = None) -> 'StyleSheet':
        """Load and validate a style sheet from YAML."""
        path = Path(path or DEFAULT_STYLESHEET)
        try:
            raw = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read style sheet {path}: {e}")
        return cls.from_dict(raw or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StyleSheet':
        """Validate a parsed style sheet and convert it to typed dataclasses."""
        schema = json.loads(STYLESHEET_SCHEMA.read_text())
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Style sheet validation failed: {e.message}")

        page_data = data['page']
        margins = page_data['margins']
        page = PageGeometry(
            width=float(page_data['width']),
            height=float(page_data['height']),
            margin_top=float(margins['top']),
            margin_right=float(margins['right']),
            margin_bottom=float(margins['bottom']),
            margin_left=float(margins['left'])
        )
        if page.content_width <= 0 or page.content_height <= 0:
            raise ConfigurationError("Style sheet margins leave no room for content")

        footer_data = data['footer']
        footer = FooterStyle(
            offset=float(footer_data['offset']),
            brand_line=footer_data['brand_line'],
            text=TextStyle.from_dict(footer_data['text']),
            rule_color=footer_data.get('rule_color')
        )

        sections = {}
        for variant, section_data in data.get('sections', {}).items():
            sections[variant] = SectionStyle(
                variant=variant,
                text={role: TextStyle.from_dict(t) for role, t in section_data.get('text', {}).items()},
                colors=dict(section_data.get('colors', {})),
                metrics={k: float(v) for k, v in section_data.get('metrics', {}).items()}
            )

        stylesheet = cls(
            page=page,
            footer=footer,
            accent=data.get('accent', '#2563eb'),
            section_gap=float(data.get('section_gap', 18)),
            sections=sections
        )
        stylesheet._check_fonts()
        return stylesheet

    def _check_fonts(self) -> None:
        """Every font named must be known to reportlab (standard 14 or registered)."""
        fonts = {self.footer.text.font}
        for section in self.sections.values():
            fonts.update(t.font for t in section.text.values())
        for font in sorted(fonts):
            try:
                pdfmetrics.getFont(font)
            except KeyError:
                raise ConfigurationError(f"Style sheet uses unknown font '{font}'")


def _is_hex_color(value: str) -> bool:
    if len(value) != 7 or not value.startswith('#'):
        return False
    try:
        int(value[1:], 16)
    except ValueError:
        return False
    return True
