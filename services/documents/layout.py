"""
Pagination / Layout Engine

Lays a CanonicalDocument out onto fixed-size pages as positioned draw
operations (PDF coordinate space, origin at the bottom-left), then hands
the pages to PdfWriter for painting.

Flow rules:
    - sections are placed in tree order, separated by the style's section_gap
    - a section that does not fit the remaining space starts a new page
    - a non-table section taller than a whole page starts on a fresh page
      and flows line by line
    - a conditional section's body is kept together as one block unless
      it is taller than a page
    - tables split between rows; the header row is repeated on every
      continuation page and is never left on a page without a data row
      (a first row that cannot share a page with the heading and header
      raises LayoutError)
    - every page gets the same footer: timestamp, brand line, "Page n of N"

Text is measured with reportlab's font metrics so wrapping in the layout
matches what the writer paints.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

import pytz
from reportlab.pdfbase.pdfmetrics import stringWidth

from .exceptions import LayoutError
from .sections import (
    CanonicalDocument,
    ConditionalSection,
    HeaderSection,
    KeyValueGrid,
    NarrativeBlock,
    Section,
    SignatureBlock,
    TableSection,
)
from .styles import SectionStyle, StyleSheet, TextStyle
from .types import RenderedArtifact

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = 'application/pdf'
DEFAULT_TIMEZONE = 'America/Chicago'
TIMESTAMP_FORMAT = '%B %d, %Y %I:%M %p %Z'


# =============================================================================
# DRAW OPERATIONS
# =============================================================================

@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    font: str
    size: float
    color: str
    align: str = 'left'


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill: str


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str
    width: float = 0.5


DrawOp = Union[TextOp, RectOp, LineOp]


@dataclass(frozen=True)
class Block:
    """Where one piece of a section landed. `top` and `bottom` are PDF y values."""
    section_key: str
    role: str
    top: float
    bottom: float
    row_index: Optional[int] = None


@dataclass
class Page:
    number: int
    ops: List[DrawOp] = field(default_factory=list)
    blocks: List[Block] = field(default_factory=list)

    def blocks_for(self, section_key: str, role: str = None) -> List[Block]:
        return [
            b for b in self.blocks
            if b.section_key == section_key and (role is None or b.role == role)
        ]

    def text(self) -> List[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]


@dataclass
class LayoutResult:
    pages: List[Page]
    width: float
    height: float
    title: str

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def pages_with(self, section_key: str, role: str = None) -> List[int]:
        """Page numbers on which a section (optionally a given role of it) appears."""
        return [p.number for p in self.pages if p.blocks_for(section_key, role)]


# =============================================================================
# TEXT MEASUREMENT
# =============================================================================

def text_width(text: str, style: TextStyle) -> float:
    return stringWidth(text, style.font, style.size)


def wrap_text(text: str, style: TextStyle, max_width: float) -> List[str]:
    """
    Word-wrap text to max_width. Words wider than a whole line are broken
    by character. Always returns at least one line.
    """
    lines: List[str] = []
    current = ''
    for word in (text or '').split():
        for piece in _break_word(word, style, max_width):
            candidate = f"{current} {piece}" if current else piece
            if text_width(candidate, style) <= max_width:
                current = candidate
            else:
                if current:
                    lines.append(current)
                current = piece
    if current or not lines:
        lines.append(current)
    return lines


def _break_word(word: str, style: TextStyle, max_width: float) -> List[str]:
    if text_width(word, style) <= max_width:
        return [word]
    pieces = []
    current = ''
    for char in word:
        if current and text_width(current + char, style) > max_width:
            pieces.append(current)
            current = char
        else:
            current += char
    if current:
        pieces.append(current)
    return pieces


# =============================================================================
# UNITS
# =============================================================================
# A unit is the smallest piece of a section that is never split across
# pages: a heading, a line of a paragraph, a grid row, a table row.

@dataclass
class _Unit:
    role: str
    height: float
    draw: Callable[[float, float], List[DrawOp]]
    row_index: Optional[int] = None


class _PageState:
    """Mutable cursor over the pages being filled."""

    def __init__(self, style: StyleSheet):
        self.page_style = style.page
        self.pages: List[Page] = []
        self.y = 0.0
        self.new_page()

    @property
    def page(self) -> Page:
        return self.pages[-1]

    @property
    def empty(self) -> bool:
        return not self.page.blocks

    @property
    def remaining(self) -> float:
        return self.y - self.page_style.content_bottom

    def new_page(self) -> None:
        self.pages.append(Page(number=len(self.pages) + 1))
        self.y = self.page_style.content_top

    def skip(self, gap: float) -> None:
        if not self.empty:
            self.y -= gap

    def place(self, section_key: str, unit: _Unit) -> None:
        top = self.y
        x = self.page_style.margin_left
        self.page.ops.extend(unit.draw(x, top))
        self.y -= unit.height
        self.page.blocks.append(Block(
            section_key=section_key,
            role=unit.role,
            top=top,
            bottom=self.y,
            row_index=unit.row_index
        ))


# =============================================================================
# ENGINE
# =============================================================================

class LayoutEngine:
    """
    Lays out canonical documents with a given style sheet.

    Usage:
        engine = LayoutEngine(StyleSheet.load(), timezone='America/Chicago')
        result = engine.layout(document, generated_at)
        artifact = engine.render_to_artifact(document, generated_at)
    """

    def __init__(self, style: StyleSheet, timezone: str = DEFAULT_TIMEZONE):
        self.style = style
        self.timezone = pytz.timezone(timezone)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def layout(self, document: CanonicalDocument, generated_at: datetime) -> LayoutResult:
        """Lay the document out into pages. Pure; same input gives the same pages."""
        state = _PageState(self.style)

        for section in document.sections:
            self._place_section(state, section, self.style.section_gap)

        self._add_footers(state.pages, generated_at)

        return LayoutResult(
            pages=state.pages,
            width=self.style.page.width,
            height=self.style.page.height,
            title=document.title
        )

    def render_to_artifact(self, document: CanonicalDocument, generated_at: datetime,
                           document_id: str = None) -> RenderedArtifact:
        """Lay the document out and paint it to PDF bytes."""
        from .pdf_writer import PdfWriter

        result = self.layout(document, generated_at)
        data = PdfWriter.write(result)
        return RenderedArtifact(
            document_id=document_id or str(uuid.uuid4()),
            document_type=document.document_type,
            title=document.title,
            data=data,
            mime_type=PDF_MIME_TYPE,
            page_count=result.page_count,
            created_at=generated_at
        )

    def format_timestamp(self, generated_at: datetime) -> str:
        if generated_at.tzinfo is None:
            generated_at = pytz.utc.localize(generated_at)
        return generated_at.astimezone(self.timezone).strftime(TIMESTAMP_FORMAT)

    # -------------------------------------------------------------------------
    # Section placement
    # -------------------------------------------------------------------------

    def _place_section(self, state: _PageState, section: Section, gap: float) -> None:
        if isinstance(section, ConditionalSection):
            self._place_conditional(state, section, gap)
            return

        if isinstance(section, TableSection):
            self._place_table(state, section, gap)
            return

        units = self._measure(section)
        total = sum(u.height for u in units)
        content_height = self.style.page.content_height

        if total > content_height:
            logger.warning(
                f"Section '{section.key}' ({total:.0f}pt) is taller than a page "
                f"({content_height:.0f}pt); flowing it across pages"
            )
            if not state.empty:
                state.new_page()
            for unit in units:
                if unit.height > state.remaining and not state.empty:
                    state.new_page()
                state.place(section.key, unit)
            return

        if state.empty or total + gap <= state.remaining:
            state.skip(gap)
        else:
            state.new_page()
        for unit in units:
            state.place(section.key, unit)

    def _place_conditional(self, state: _PageState, section: ConditionalSection, gap: float) -> None:
        """
        A conditional body moves as one block. Only a body taller than a
        page is placed child by child, where tables split as usual.
        """
        inner_gap = self._inner_gap(section)
        body = self._section_height(section)
        if body <= self.style.page.content_height and not state.empty and body + gap > state.remaining:
            state.new_page()

        for index, child in enumerate(section.body):
            self._place_section(state, child, gap if index == 0 else inner_gap)

    def _place_table(self, state: _PageState, table: TableSection, gap: float) -> None:
        section_style = self._checked_style(table.variant)
        widths = self._column_widths(table)
        heading = self._heading_unit(section_style, table.heading)
        header = self._table_header_unit(section_style, table, widths)
        rows = [self._table_row_unit(section_style, table, widths, i, row) for i, row in enumerate(table.rows)]

        content_height = self.style.page.content_height
        for row in rows:
            # The first row also has to share its page with the heading
            needed = header.height + row.height
            if row.row_index == 0 and heading:
                needed += heading.height
            if needed > content_height:
                raise LayoutError(
                    f"Row {row.row_index} of table '{table.key}' does not fit on a page",
                    section=table.key
                )

        # Heading, header and the first row stay together
        lead = (heading.height if heading else 0) + header.height + (rows[0].height if rows else 0)
        if state.empty or lead + gap <= state.remaining:
            state.skip(gap)
        else:
            state.new_page()

        if heading:
            state.place(table.key, heading)
        state.place(table.key, header)

        for row in rows:
            if row.height > state.remaining:
                state.new_page()
                state.place(table.key, header)
            state.place(table.key, row)

    # -------------------------------------------------------------------------
    # Measurement
    # -------------------------------------------------------------------------

    def _inner_gap(self, section: ConditionalSection) -> float:
        return self.style.style_for(section.variant).metric('inner_gap', 10)

    def _section_height(self, section: Section) -> float:
        """Height a section needs when placed whole, without its leading gap."""
        if isinstance(section, ConditionalSection):
            heights = [self._section_height(child) for child in section.body]
            return sum(heights) + self._inner_gap(section) * max(len(heights) - 1, 0)

        if isinstance(section, TableSection):
            section_style = self._checked_style(section.variant)
            widths = self._column_widths(section)
            heading = self._heading_unit(section_style, section.heading)
            height = self._table_header_unit(section_style, section, widths).height
            height += heading.height if heading else 0
            height += sum(
                self._table_row_unit(section_style, section, widths, i, row).height
                for i, row in enumerate(section.rows)
            )
            return height

        return sum(u.height for u in self._measure(section))

    def _checked_style(self, variant: str) -> SectionStyle:
        """Fetch a variant's style and make sure every role and color it needs is there."""
        section_style = self.style.style_for(variant)
        roles, colors = REQUIRED_STYLE.get(variant, ((), ()))
        for role in roles:
            section_style.text_role(role)
        for color in colors:
            section_style.color(color)
        return section_style

    def _measure(self, section: Section) -> List[_Unit]:
        measure = {
            HeaderSection: self._measure_header,
            KeyValueGrid: self._measure_grid,
            NarrativeBlock: self._measure_narrative,
            SignatureBlock: self._measure_signatures,
        }.get(type(section))
        if measure is None:
            raise LayoutError(f"Cannot lay out section variant '{section.variant}'", section=section.key)
        return measure(section, self._checked_style(section.variant))

    def _text_unit(self, role: str, lines: List[str], text_style: TextStyle,
                   x_offset: float = 0.0, after: float = 0.0) -> _Unit:
        color = self.style.resolve_color(text_style.color)

        def draw(x, top):
            ops = []
            baseline = top - text_style.size
            for line in lines:
                ops.append(TextOp(x + x_offset, baseline, line, text_style.font, text_style.size, color))
                baseline -= text_style.leading
            return ops

        return _Unit(role=role, height=len(lines) * text_style.leading + after, draw=draw)

    def _heading_unit(self, section_style: SectionStyle, heading: Optional[str]) -> Optional[_Unit]:
        if not heading:
            return None
        text_style = section_style.text_role('heading')
        lines = wrap_text(heading, text_style, self.style.page.content_width)
        return self._text_unit('heading', lines, text_style, after=text_style.leading * 0.3)

    def _measure_header(self, section: HeaderSection, section_style: SectionStyle) -> List[_Unit]:
        width = self.style.page.content_width
        padding = section_style.metric('padding', 10)
        rule_width = section_style.metric('rule_width', 1)
        rule_color = self.style.resolve_color(section_style.color('rule'))

        parts: List[Tuple[List[str], TextStyle]] = []
        if section.company_name:
            parts.append(([section.company_name.upper()], section_style.text_role('company')))
        title_style = section_style.text_role('title')
        parts.append((wrap_text(section.title, title_style, width), title_style))
        if section.subtitle:
            subtitle_style = section_style.text_role('subtitle')
            parts.append((wrap_text(section.subtitle, subtitle_style, width), subtitle_style))
        meta = []
        if section.reference:
            meta.append(f"REF: {section.reference}")
        if section.issued_on:
            meta.append(f"ISSUED: {section.issued_on.upper()}")
        if meta:
            parts.append((['    '.join(meta)], section_style.text_role('meta')))

        text_height = sum(len(lines) * s.leading for lines, s in parts)
        height = text_height + padding + rule_width + padding

        def draw(x, top):
            ops = []
            y = top
            for lines, text_style in parts:
                ops.extend(self._text_unit('header', lines, text_style).draw(x, y))
                y -= len(lines) * text_style.leading
            rule_y = y - padding
            ops.append(LineOp(x, rule_y, x + width, rule_y, rule_color, rule_width))
            return ops

        return [_Unit(role='header', height=height, draw=draw)]

    def _measure_grid(self, section: KeyValueGrid, section_style: SectionStyle) -> List[_Unit]:
        units = []
        heading = self._heading_unit(section_style, section.heading)
        if heading:
            units.append(heading)

        columns = max(1, section.columns)
        gap = section_style.metric('column_gap', 16)
        row_gap = section_style.metric('row_gap', 8)
        cell_width = (self.style.page.content_width - gap * (columns - 1)) / columns
        label_style = section_style.text_role('label')
        value_style = section_style.text_role('value')

        items = list(section.items)
        for start in range(0, len(items), columns):
            row = items[start:start + columns]
            cells = [
                (wrap_text(i.label.upper(), label_style, cell_width), wrap_text(i.value, value_style, cell_width))
                for i in row
            ]
            height = max(
                len(labels) * label_style.leading + len(values) * value_style.leading
                for labels, values in cells
            ) + row_gap

            def draw(x, top, cells=cells):
                ops = []
                for index, (labels, values) in enumerate(cells):
                    cell_x = index * (cell_width + gap)
                    ops.extend(self._text_unit('label', labels, label_style, cell_x).draw(x, top))
                    value_top = top - len(labels) * label_style.leading
                    ops.extend(self._text_unit('value', values, value_style, cell_x).draw(x, value_top))
                return ops

            units.append(_Unit(role='grid_row', height=height, draw=draw, row_index=start // columns))
        return units

    def _measure_narrative(self, section: NarrativeBlock, section_style: SectionStyle) -> List[_Unit]:
        units = []
        heading = self._heading_unit(section_style, section.heading)
        if heading:
            units.append(heading)

        body_style = section_style.text_role('body')
        paragraph_gap = section_style.metric('paragraph_gap', 6)
        width = self.style.page.content_width
        for index, paragraph in enumerate(section.paragraphs):
            lines = wrap_text(paragraph, body_style, width)
            for line_index, line in enumerate(lines):
                last = line_index == len(lines) - 1 and index < len(section.paragraphs) - 1
                units.append(self._text_unit('line', [line], body_style, after=paragraph_gap if last else 0.0))
        return units

    def _measure_signatures(self, section: SignatureBlock, section_style: SectionStyle) -> List[_Unit]:
        units = []
        heading = self._heading_unit(section_style, section.heading)
        if heading:
            units.append(heading)

        gap = section_style.metric('column_gap', 48)
        signing_space = section_style.metric('signing_space', 42)
        line_color = self.style.resolve_color(section_style.color('line'))
        label_style = section_style.text_role('label')
        name_style = section_style.text_role('name')
        cell_width = (self.style.page.content_width - gap) / 2

        signatories = list(section.signatories)
        for start in range(0, len(signatories), 2):
            pair = signatories[start:start + 2]
            height = signing_space + label_style.leading + name_style.leading

            def draw(x, top, pair=pair):
                ops = []
                line_y = top - signing_space
                for index, signatory in enumerate(pair):
                    cell_x = x + index * (cell_width + gap)
                    ops.append(LineOp(cell_x, line_y, cell_x + cell_width, line_y, line_color, 0.75))
                    label = self._text_unit('label', [signatory.role.upper()], label_style)
                    ops.extend(label.draw(cell_x, line_y - 2))
                    if signatory.name:
                        name = self._text_unit('name', [signatory.name], name_style)
                        ops.extend(name.draw(cell_x, line_y - 2 - label_style.leading))
                return ops

            units.append(_Unit(role='signature', height=height, draw=draw, row_index=start // 2))
        return units

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def _column_widths(self, table: TableSection) -> List[float]:
        total = sum(c.width for c in table.columns) or 1.0
        width = self.style.page.content_width
        return [width * c.width / total for c in table.columns]

    def _table_cells(self, section_style: SectionStyle, table: TableSection, widths: List[float],
                     values, role: str, fill: str, row_index: Optional[int]) -> _Unit:
        text_style = section_style.text_role(role)
        padding = section_style.metric('cell_padding', 5)
        grid_color = self.style.resolve_color(section_style.color('grid'))
        fill = self.style.resolve_color(fill)
        color = self.style.resolve_color(text_style.color)

        wrapped = [
            wrap_text(value, text_style, max(width - 2 * padding, 1))
            for value, width in zip(values, widths)
        ]
        height = max(len(lines) for lines in wrapped) * text_style.leading + 2 * padding
        total_width = sum(widths)

        def draw(x, top):
            ops = [RectOp(x, top - height, total_width, height, fill)]
            cell_x = x
            for column, lines, width in zip(table.columns, wrapped, widths):
                baseline = top - padding - text_style.size
                for line in lines:
                    if column.align == 'right':
                        ops.append(TextOp(cell_x + width - padding, baseline, line,
                                          text_style.font, text_style.size, color, 'right'))
                    else:
                        ops.append(TextOp(cell_x + padding, baseline, line,
                                          text_style.font, text_style.size, color))
                    baseline -= text_style.leading
                cell_x += width
            ops.append(LineOp(x, top - height, x + total_width, top - height, grid_color, 0.5))
            return ops

        return _Unit(
            role='table_header' if row_index is None else 'table_row',
            height=height,
            draw=draw,
            row_index=row_index
        )

    def _table_header_unit(self, section_style: SectionStyle, table: TableSection, widths: List[float]) -> _Unit:
        labels = [c.label.upper() for c in table.columns]
        return self._table_cells(section_style, table, widths, labels, 'header_cell',
                                 section_style.color('header_fill'), None)

    def _table_row_unit(self, section_style: SectionStyle, table: TableSection, widths: List[float],
                        index: int, row: Tuple[str, ...]) -> _Unit:
        fill = section_style.color('row_alt_fill' if index % 2 == 1 else 'row_fill')
        return self._table_cells(section_style, table, widths, row, 'cell', fill, index)

    # -------------------------------------------------------------------------
    # Footer
    # -------------------------------------------------------------------------

    def _add_footers(self, pages: List[Page], generated_at: datetime) -> None:
        footer = self.style.footer
        page_style = self.style.page
        text_style = footer.text
        color = self.style.resolve_color(text_style.color)
        baseline = page_style.margin_bottom - footer.offset
        left = page_style.margin_left
        right = page_style.width - page_style.margin_right
        stamp = f"Generated {self.format_timestamp(generated_at)}"
        total = len(pages)

        for page in pages:
            if footer.rule_color:
                rule_y = baseline + text_style.leading
                page.ops.append(LineOp(left, rule_y, right, rule_y, self.style.resolve_color(footer.rule_color), 0.5))
            page.ops.append(TextOp(left, baseline, stamp, text_style.font, text_style.size, color))
            page.ops.append(TextOp((left + right) / 2, baseline, footer.brand_line,
                                   text_style.font, text_style.size, color, 'center'))
            page.ops.append(TextOp(right, baseline, f"Page {page.number} of {total}",
                                   text_style.font, text_style.size, color, 'right'))
            page.blocks.append(Block(
                section_key='footer',
                role='footer',
                top=baseline + text_style.leading,
                bottom=baseline
            ))


# Text roles and colors each variant's style must provide
REQUIRED_STYLE = {
    'HeaderSection': (('company', 'title', 'subtitle', 'meta'), ('rule',)),
    'KeyValueGrid': (('heading', 'label', 'value'), ()),
    'NarrativeBlock': (('heading', 'body'), ()),
    'TableSection': (('heading', 'header_cell', 'cell'), ('header_fill', 'row_fill', 'row_alt_fill', 'grid')),
    'SignatureBlock': (('heading', 'label', 'name'), ('line',)),
    'ConditionalSection': ((), ()),
}
