from __future__ import annotations

from datetime import date, datetime
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth

from ..config import BOTTOM_LIMIT, MARGIN, PAGE_HEIGHT, PAGE_WIDTH, load_style_preset
from ..models import (
    InvoiceDocument,
    InvoiceRequest,
    LineOp,
    Page,
    ProjectAggregate,
    RectOp,
    TeamRow,
    TextOp,
)
from .aggregate import final_amount, projects_summary, team_summary


CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
SUMMARY_GAP = 10.0


def _s(style: dict, key: str, default):
    return style.get(key, default)


def format_hours(value: float) -> str:
    return f"{value:.2f}"


def format_money(value: float) -> str:
    text = f"{abs(value):.2f}"
    if text != "0.00" and value < 0:
        return f"-${text}"
    return f"${text}"


def format_difference(value: float) -> str:
    text = f"{abs(value):.2f}"
    if text != "0.00" and value < 0:
        return f"-${text}"
    return f"+${text}"


def parse_month(month: str) -> date:
    try:
        return datetime.strptime(month.strip(), "%Y-%m").date()
    except ValueError as exc:
        raise ValueError(f"Invalid month {month!r}, expected yyyy-MM") from exc


def invoice_id(month: str) -> str:
    """YYMMDD of the first day of the month, e.g. 2025-01 -> 250101."""
    return parse_month(month).strftime("%y%m%d")


def text_width(text: str, font_name: str, size: float) -> float:
    return stringWidth(text, font_name, size) / mm


def _fit_font(text: str, font_name: str, base_size: float, max_width: float) -> float:
    """
    Shrink the font until the text fits the cell, down to 6pt.
    """
    size = float(base_size)
    while size > 6.0:
        if text_width(text, font_name, size) <= max_width:
            return size
        size -= 0.5
    return 6.0


def _wrap_words(text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    words = (text or "").split()
    if not words:
        return [""]

    lines: List[str] = []
    cur: List[str] = []

    for w in words:
        test = " ".join(cur + [w])
        if text_width(test, font_name, font_size) <= max_width:
            cur.append(w)
            continue

        if cur:
            lines.append(" ".join(cur))
            cur = [w]
        else:
            # a single word wider than the column keeps its own line
            lines.append(w)

    if cur:
        lines.append(" ".join(cur))

    return lines


class _Cursor:
    """Sequential writer over an InvoiceDocument; y grows downwards in mm."""

    def __init__(self, document: InvoiceDocument, style: dict) -> None:
        self.document = document
        self.style = style
        self.y = MARGIN
        if document.current is None:
            document.new_page()

    @property
    def page(self) -> Page:
        return self.document.pages[-1]

    def new_page(self) -> None:
        self.document.new_page()
        self.y = MARGIN

    def ensure(self, height: float) -> bool:
        if self.y + height > BOTTOM_LIMIT:
            self.new_page()
            return True
        return False

    def text(
        self,
        x: float,
        y: float,
        text: str,
        size: float,
        color: Optional[str] = None,
        align: str = "left",
        bold: bool = False,
    ) -> None:
        self.page.ops.append(
            TextOp(
                x=x,
                y=y,
                text=text,
                size=float(size),
                color=color or str(_s(self.style, "text_color", "#212121")),
                align=align,
                bold=bold,
            )
        )

    def rect(self, x: float, y: float, w: float, h: float, fill: str) -> None:
        self.page.ops.append(RectOp(x=x, y=y, w=w, h=h, fill=fill))

    def line(self, x1: float, y1: float, x2: float, y2: float, color: str) -> None:
        self.page.ops.append(LineOp(x1=x1, y1=y1, x2=x2, y2=y2, color=color))


def _draw_header(cursor: _Cursor, request: InvoiceRequest) -> None:
    style = cursor.style
    title_size = float(_s(style, "title_size", 16))
    body_size = float(_s(style, "body_size", 10))
    month = parse_month(request.month)

    center_x = PAGE_WIDTH / 2
    center_y = PAGE_HEIGHT / 4
    cursor.text(center_x, center_y, f"Invoice ID: #{invoice_id(request.month)}", title_size, align="center")
    cursor.text(center_x, center_y + 10, month.strftime("%Y-%m"), title_size, align="center")
    cursor.text(
        center_x,
        center_y + 20,
        f"Month of {month.strftime('%B')}",
        title_size,
        color=str(_s(style, "positive_color", "#27AE60")),
        align="center",
    )

    spacing = 8.0
    y = center_y + 40
    right_x = PAGE_WIDTH / 2 + MARGIN
    client = request.client
    payee = request.payee
    left = ["Invoice for", f"Name: {client.name}", f"Company: {client.company}", f"Location: {client.location}"]
    right = ["Payable to", f"Name: {payee.name}", f"Agency: {payee.agency}", f"Location: {payee.location}"]
    for i, (left_text, right_text) in enumerate(zip(left, right)):
        cursor.text(MARGIN, y + i * spacing, left_text, body_size, bold=i == 0)
        cursor.text(right_x, y + i * spacing, right_text, body_size, bold=i == 0)

    cursor.y = y + spacing * len(left) + 10


def _header_row(
    cursor: _Cursor,
    x: float,
    w: float,
    cells: Sequence[Tuple[str, float, str]],
) -> None:
    """cells: (label, x position, align)"""
    style = cursor.style
    row_h = float(_s(style, "row_height", 8))
    cursor.rect(x, cursor.y, w, row_h, str(_s(style, "header_fill", "#33658A")))
    for label, cx, align in cells:
        cursor.text(
            cx,
            cursor.y + 5,
            label,
            float(_s(style, "table_header_size", 9)),
            color=str(_s(style, "header_text", "#FFFFFF")),
            align=align,
        )
    cursor.y += row_h


def _table_rows(
    cursor: _Cursor,
    heights: Sequence[float],
    draw_row: Callable[[int], None],
    draw_header: Callable[[], None],
    repeat_header: bool,
) -> None:
    for index, height in enumerate(heights):
        if cursor.ensure(height) and repeat_header:
            draw_header()
        draw_row(index)
        cursor.y += height


def _draw_project_table(
    cursor: _Cursor,
    project: str,
    data: ProjectAggregate,
    request: InvoiceRequest,
) -> None:
    style = cursor.style
    options = request.options
    font = str(_s(style, "font_name", "Helvetica"))
    row_size = float(_s(style, "row_size", 8))
    row_h = float(_s(style, "row_height", 8))
    line_h = float(_s(style, "line_height", 3.5))
    right_edge = PAGE_WIDTH - MARGIN

    cursor.ensure(row_h * 3)
    cursor.text(MARGIN, cursor.y, f"Project: {project}", float(_s(style, "project_title_size", 12)))
    cursor.y += 8

    if options.show_activities:
        if options.show_amounts:
            col_w = [CONTENT_WIDTH - 90, 25.0, 30.0, 35.0]
            labels = ["Activity", "Hours", "Rate", "Amount"]
        else:
            col_w = [CONTENT_WIDTH - 30, 30.0]
            labels = ["Activity", "Hours"]
        col_right: List[float] = []
        x = MARGIN
        for w in col_w:
            x += w
            col_right.append(x - 2)

        def draw_header() -> None:
            cells = [(labels[0], MARGIN + 2, "left")]
            cells += [(label, col_right[i + 1], "right") for i, label in enumerate(labels[1:])]
            _header_row(cursor, MARGIN, CONTENT_WIDTH, cells)
            cursor.y += 2

        wrapped = [_wrap_words(line.activity, font, row_size, col_w[0] - 4) for line in data.activities]
        heights = [max(row_h, 4.5 + len(lines) * line_h) for lines in wrapped]

        def draw_row(index: int) -> None:
            line = data.activities[index]
            if index % 2 == 0:
                cursor.rect(MARGIN, cursor.y, CONTENT_WIDTH, heights[index], str(_s(style, "stripe_fill", "#F7F7F7")))
            for n, text in enumerate(wrapped[index]):
                cursor.text(MARGIN + 2, cursor.y + 5 + n * line_h, text, row_size)
            cursor.text(col_right[1], cursor.y + 5, format_hours(line.hours), row_size, align="right")
            if options.show_amounts:
                cursor.text(col_right[2], cursor.y + 5, format_money(line.rate), row_size, align="right")
                cursor.text(col_right[3], cursor.y + 5, format_money(line.amount), row_size, align="right")

        draw_header()
        _table_rows(cursor, heights, draw_row, draw_header, options.repeat_table_header)

    discount = request.adjustments.discount_for(project)
    show_discount = options.show_amounts and discount > 0
    body_size = float(_s(style, "body_size", 10))
    cursor.y += 5
    cursor.ensure(35.0 if show_discount else 15.0)

    cursor.text(MARGIN, cursor.y + 5, "Subtotal:", body_size)
    hours_x = right_edge - 40 if options.show_amounts else right_edge - 2
    cursor.text(hours_x, cursor.y + 5, f"{format_hours(data.total_hours)} hours", body_size, align="right")
    if options.show_amounts:
        cursor.text(right_edge - 2, cursor.y + 5, format_money(data.total_amount), body_size, align="right")
        if show_discount:
            red = str(_s(style, "negative_color", "#FF0000"))
            cursor.y += 10
            cursor.text(MARGIN, cursor.y + 6, "Adjustment / Discount:", body_size, color=red)
            cursor.text(right_edge - 2, cursor.y + 6, f"-{format_money(discount)}", body_size, color=red, align="right")
            cursor.y += 10
            grand_total = format_money(final_amount(project, data, request.adjustments))
            cursor.text(MARGIN, cursor.y + 6, "Grand Total:", body_size, bold=True)
            cursor.text(right_edge - 2, cursor.y + 6, grand_total, body_size, align="right", bold=True)
    cursor.y += 15


def _draw_team_summary(cursor: _Cursor, rows: Sequence[TeamRow], request: InvoiceRequest) -> None:
    style = cursor.style
    options = request.options
    row_h = float(_s(style, "row_height", 8))
    body_size = float(_s(style, "body_size", 10))
    green = str(_s(style, "positive_color", "#27AE60"))
    red = str(_s(style, "negative_color", "#FF0000"))

    if options.show_amounts:
        weights = [0.30, 0.175, 0.175, 0.175, 0.175]
        labels = ["Employee Name", "Working Hours", "Adjusted Hours", "Adjusted Amount", "Difference"]
    else:
        weights = [0.4, 0.3, 0.3]
        labels = ["Employee Name", "Working Hours", "Adjusted Hours"]
    col_x: List[float] = []
    x = MARGIN
    for weight in weights:
        col_x.append(x + 5)
        x += CONTENT_WIDTH * weight

    cursor.ensure(12 + row_h * 3)
    cursor.text(PAGE_WIDTH / 2, cursor.y + 5, "Team Members Summary", float(_s(style, "section_size", 14)), align="center")
    cursor.y += 15

    def draw_header() -> None:
        _header_row(cursor, MARGIN, CONTENT_WIDTH, [(label, col_x[i], "left") for i, label in enumerate(labels)])

    def draw_row(index: int) -> None:
        row = rows[index]
        fill = str(_s(style, "stripe_fill" if index % 2 == 0 else "row_fill", "#FFFFFF"))
        cursor.rect(MARGIN, cursor.y, CONTENT_WIDTH, row_h, fill)
        cursor.text(col_x[0], cursor.y + 5, row.name, body_size)
        cursor.text(col_x[1], cursor.y + 5, format_hours(row.working_hours), body_size)
        cursor.text(col_x[2], cursor.y + 5, format_hours(row.adjusted_hours), body_size)
        if options.show_amounts:
            cursor.text(col_x[3], cursor.y + 5, format_money(row.adjusted_amount), body_size)
            text = format_difference(row.difference)
            color = red if text.startswith("-") else green
            cursor.text(col_x[4], cursor.y + 5, text, body_size, color=color)

    draw_header()
    _table_rows(cursor, [row_h] * len(rows), draw_row, draw_header, options.repeat_table_header)

    cursor.y += 2
    cursor.ensure(row_h)
    cursor.rect(MARGIN, cursor.y, CONTENT_WIDTH, row_h, str(_s(style, "total_fill", "#F0F0F0")))
    cursor.text(col_x[0], cursor.y + 5, "Total Hours", body_size)
    cursor.text(col_x[1], cursor.y + 5, format_hours(sum(row.working_hours for row in rows)), body_size, color=red)
    cursor.text(col_x[2], cursor.y + 5, format_hours(sum(row.adjusted_hours for row in rows)), body_size, color=green)
    if options.show_amounts:
        difference = format_difference(sum(row.difference for row in rows))
        cursor.text(col_x[3], cursor.y + 5, format_money(sum(row.adjusted_amount for row in rows)), body_size)
        cursor.text(
            col_x[4],
            cursor.y + 5,
            difference,
            body_size,
            color=red if difference.startswith("-") else green,
        )
    cursor.y += row_h + 20


def _draw_projects_summary(
    cursor: _Cursor,
    aggregates: Mapping[str, ProjectAggregate],
    request: InvoiceRequest,
) -> None:
    style = cursor.style
    options = request.options
    font = str(_s(style, "font_name", "Helvetica"))
    row_h = float(_s(style, "row_height", 8))
    body_size = float(_s(style, "body_size", 10))
    grid = str(_s(style, "grid_color", "#E6E6E6"))
    padding = 8.0

    if options.show_amounts:
        table_w = (CONTENT_WIDTH - SUMMARY_GAP) / 2
    else:
        table_w = CONTENT_WIDTH
    hours_x = MARGIN
    amount_x = MARGIN + table_w + SUMMARY_GAP
    name_w = table_w - padding - 40

    cursor.ensure(20 + row_h * 3)
    cursor.text(PAGE_WIDTH / 2, cursor.y + 5, "Projects Summary", float(_s(style, "section_size", 14)), align="center")
    cursor.y += 20

    def draw_header() -> None:
        cells = [("Project Name", hours_x + padding, "left"), ("Hours", hours_x + table_w - padding, "right")]
        if options.show_amounts:
            cells += [("Project Name", amount_x + padding, "left"), ("Amount", amount_x + table_w - padding, "right")]
        cursor.rect(hours_x, cursor.y, table_w, row_h, str(_s(style, "header_fill", "#33658A")))
        if options.show_amounts:
            cursor.rect(amount_x, cursor.y, table_w, row_h, str(_s(style, "header_fill", "#33658A")))
        for label, cx, align in cells:
            cursor.text(
                cx,
                cursor.y + 5,
                label,
                body_size,
                color=str(_s(style, "header_text", "#FFFFFF")),
                align=align,
            )
        cursor.y += row_h

    projects = [project for project in request.projects if project in aggregates]

    def draw_row(index: int) -> None:
        project = projects[index]
        data = aggregates[project]
        fill = str(_s(style, "stripe_fill" if index % 2 == 0 else "row_fill", "#FFFFFF"))
        size = _fit_font(project, font, body_size, name_w)
        cursor.rect(hours_x, cursor.y, table_w, row_h, fill)
        cursor.line(hours_x, cursor.y, hours_x + table_w, cursor.y, grid)
        cursor.text(hours_x + padding, cursor.y + 5, project, size)
        cursor.text(hours_x + table_w - padding, cursor.y + 5, format_hours(data.total_hours), body_size, align="right")
        if options.show_amounts:
            cursor.rect(amount_x, cursor.y, table_w, row_h, fill)
            cursor.line(amount_x, cursor.y, amount_x + table_w, cursor.y, grid)
            cursor.text(amount_x + padding, cursor.y + 5, project, size)
            cursor.text(
                amount_x + table_w - padding,
                cursor.y + 5,
                format_money(final_amount(project, data, request.adjustments)),
                body_size,
                align="right",
            )

    draw_header()
    _table_rows(cursor, [row_h] * len(projects), draw_row, draw_header, options.repeat_table_header)

    summary = projects_summary(projects, aggregates, request.adjustments)
    total_fill = str(_s(style, "total_fill", "#F0F0F0"))
    cursor.ensure(row_h)
    cursor.rect(hours_x, cursor.y, table_w, row_h, total_fill)
    cursor.text(hours_x + padding, cursor.y + 5, "Total Hours", body_size)
    cursor.text(hours_x + table_w - padding, cursor.y + 5, format_hours(summary.total_hours), body_size, align="right")
    if options.show_amounts:
        cursor.rect(amount_x, cursor.y, table_w, row_h, total_fill)
        cursor.text(amount_x + padding, cursor.y + 5, "Total Payable", body_size, color="#000000")
        cursor.text(
            amount_x + table_w - padding,
            cursor.y + 5,
            format_money(summary.total_amount),
            body_size,
            color=str(_s(style, "positive_color", "#27AE60")),
            align="right",
        )
    cursor.y += row_h + 20


def build_project_invoice(
    request: InvoiceRequest,
    aggregates: Mapping[str, ProjectAggregate],
    project: str,
    style: Optional[dict] = None,
) -> InvoiceDocument:
    """
    Header block and the project's detail table share the first page; the
    team summary follows when enabled.
    """
    if project not in aggregates:
        raise ValueError(f"Unknown project: {project}")
    style = style if style is not None else load_style_preset()
    document = InvoiceDocument()
    cursor = _Cursor(document, style)
    _draw_header(cursor, request)
    _draw_project_table(cursor, project, aggregates[project], request)
    if request.options.show_team_summary:
        rows = team_summary(request.projects, aggregates, request.rates, request.adjustments)
        _draw_team_summary(cursor, rows, request)
    return document


def build_combined_invoice(
    request: InvoiceRequest,
    aggregates: Mapping[str, ProjectAggregate],
    style: Optional[dict] = None,
) -> InvoiceDocument:
    style = style if style is not None else load_style_preset()
    unknown = [project for project in request.projects if project not in aggregates]
    if unknown:
        raise ValueError(f"Unknown projects: {', '.join(unknown)}")
    document = InvoiceDocument()
    cursor = _Cursor(document, style)
    _draw_header(cursor, request)

    cursor.new_page()
    _draw_projects_summary(cursor, aggregates, request)
    if request.options.show_team_summary:
        cursor.y += 10
        rows = team_summary(request.projects, aggregates, request.rates, request.adjustments)
        _draw_team_summary(cursor, rows, request)

    if request.options.show_activities:
        for project in request.projects:
            cursor.new_page()
            _draw_project_table(cursor, project, aggregates[project], request)
    return document
