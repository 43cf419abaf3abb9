"""
PDF Writer

Paints a LayoutResult onto a reportlab canvas held in memory. All
positioning decisions were made by the layout engine; this module only
translates draw operations into canvas calls.
"""

from io import BytesIO

from reportlab.lib.colors import HexColor
from reportlab.pdfgen import canvas

from .layout import LayoutResult, LineOp, RectOp, TextOp

PDF_AUTHOR = 'PropFlow'


class PdfWriter:
    """Turns laid-out pages into PDF bytes."""

    @classmethod
    def write(cls, result: LayoutResult) -> bytes:
        buffer = BytesIO()
        # invariant=1 keeps output byte-stable for identical layouts
        c = canvas.Canvas(buffer, pagesize=(result.width, result.height), invariant=1)
        c.setTitle(result.title)
        c.setAuthor(PDF_AUTHOR)

        for page in result.pages:
            for op in page.ops:
                if isinstance(op, RectOp):
                    cls._draw_rect(c, op)
                elif isinstance(op, LineOp):
                    cls._draw_line(c, op)
                elif isinstance(op, TextOp):
                    cls._draw_text(c, op)
            c.showPage()

        c.save()
        return buffer.getvalue()

    @staticmethod
    def _draw_rect(c, op: RectOp) -> None:
        c.saveState()
        c.setFillColor(HexColor(op.fill))
        c.rect(op.x, op.y, op.width, op.height, fill=1, stroke=0)
        c.restoreState()

    @staticmethod
    def _draw_line(c, op: LineOp) -> None:
        c.saveState()
        c.setStrokeColor(HexColor(op.color))
        c.setLineWidth(op.width)
        c.line(op.x1, op.y1, op.x2, op.y2)
        c.restoreState()

    @staticmethod
    def _draw_text(c, op: TextOp) -> None:
        c.saveState()
        c.setFont(op.font, op.size)
        c.setFillColor(HexColor(op.color))
        if op.align == 'center':
            c.drawCentredString(op.x, op.y, op.text)
        elif op.align == 'right':
            c.drawRightString(op.x, op.y, op.text)
        else:
            c.drawString(op.x, op.y, op.text)
        c.restoreState()
