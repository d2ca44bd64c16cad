from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ..config import load_style_preset
from ..models import InvoiceDocument, LineOp, RectOp, TextOp


logger = logging.getLogger(__name__)


def _hex(value: str, default=colors.black) -> colors.Color:
    if not value:
        return default
    try:
        return colors.HexColor("#" + str(value).lstrip("#"))
    except ValueError:
        return default


def _draw_text(canv: canvas.Canvas, op: TextOp, style: dict, page_h: float) -> None:
    font = str(style.get("font_bold", "Helvetica-Bold")) if op.bold else str(style.get("font_name", "Helvetica"))
    canv.setFont(font, op.size)
    canv.setFillColor(_hex(op.color))
    x = op.x * mm
    y = page_h - op.y * mm
    if op.align == "right":
        canv.drawRightString(x, y, op.text)
    elif op.align == "center":
        canv.drawCentredString(x, y, op.text)
    else:
        canv.drawString(x, y, op.text)


def _draw_rect(canv: canvas.Canvas, op: RectOp, page_h: float) -> None:
    canv.setFillColor(_hex(op.fill, default=colors.white))
    canv.rect(op.x * mm, page_h - (op.y + op.h) * mm, op.w * mm, op.h * mm, stroke=0, fill=1)


def _draw_line(canv: canvas.Canvas, op: LineOp, page_h: float) -> None:
    canv.setStrokeColor(_hex(op.color))
    canv.setLineWidth(0.5)
    canv.line(op.x1 * mm, page_h - op.y1 * mm, op.x2 * mm, page_h - op.y2 * mm)


def render_pdf(document: InvoiceDocument, output_path: Path, style: Optional[dict] = None) -> Path:
    """
    Replay the document's draw ops onto an A4 canvas.

    The file is written next to the target and renamed into place, so a failed
    render never leaves a half-written invoice behind.
    """
    style = style if style is not None else load_style_preset()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = output_path.with_name(output_path.name + ".tmp")

    _, page_h = A4
    canv = canvas.Canvas(str(temp_path), pagesize=A4)
    try:
        for page in document.pages:
            for op in page.ops:
                if isinstance(op, RectOp):
                    _draw_rect(canv, op, page_h)
                elif isinstance(op, LineOp):
                    _draw_line(canv, op, page_h)
                else:
                    _draw_text(canv, op, style, page_h)
            canv.showPage()
        canv.save()
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise

    os.replace(temp_path, output_path)
    logger.info("Wrote %s (%d pages)", output_path, len(document.pages))
    return output_path
