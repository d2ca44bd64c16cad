from __future__ import annotations

import pytest

from invoicer.config import BOTTOM_LIMIT

from invoicer.models import (
    ActivityRecord,
    Adjustments,
    ClientInfo,
    InvoiceRequest,
    LayoutOptions,
    PayeeInfo,
    RectOp,
    TextOp,
)
from invoicer.pipeline.aggregate import aggregate
from invoicer.pipeline.layout import (
    build_combined_invoice,
    build_project_invoice,
    format_difference,
    format_hours,
    format_money,
    invoice_id,
)


RATES = {"Alice": 100.0, "Bob": 50.0}
RECORDS = [
    ActivityRecord("P1", "Alice", "Coding", 2.5),
    ActivityRecord("P1", "Bob", "Review", 1.0),
    ActivityRecord("P2", "Alice", "Design", 4.0),
]


def _request(projects=("P1",), adjustments=None, options=None) -> InvoiceRequest:
    return InvoiceRequest(
        month="2025-01",
        client=ClientInfo(name="Jane Client", company="Acme", location="Berlin"),
        payee=PayeeInfo(name="Sam Payee", agency="Studio", location="Lisbon"),
        projects=tuple(projects),
        rates=RATES,
        adjustments=adjustments or Adjustments(),
        options=options or LayoutOptions(),
    )


def test_number_formatting() -> None:
    assert format_hours(3.5) == "3.50"
    assert format_money(300) == "$300.00"
    assert format_money(-12.5) == "-$12.50"
    assert format_money(-0.001) == "$0.00"
    assert format_difference(50) == "+$50.00"
    assert format_difference(-200) == "-$200.00"
    assert format_difference(-0.001) == "+$0.00"
    assert format_difference(0) == "+$0.00"


def test_invoice_id_is_derived_from_month() -> None:
    assert invoice_id("2025-01") == "250101"
    assert invoice_id("2024-12") == "241201"
    with pytest.raises(ValueError, match="Invalid month"):
        invoice_id("January")


def test_project_invoice_header_and_subtotal() -> None:
    document = build_project_invoice(_request(), aggregate(RECORDS, RATES), "P1")
    first = document.pages[0].texts()
    assert "Invoice ID: #250101" in first
    assert "2025-01" in first
    assert "Month of January" in first
    assert "Company: Acme" in first
    assert "Agency: Studio" in first
    assert "Project: P1" in first
    assert ["Activity", "Hours", "Rate", "Amount"] == [t for t in first if t in ("Activity", "Hours", "Rate", "Amount")]
    assert "3.50 hours" in first
    assert "$300.00" in first
    assert "Adjustment / Discount:" not in first


def test_discount_adds_adjustment_and_grand_total_lines() -> None:
    request = _request(adjustments=Adjustments(discounts={"P1": 50.0}))
    texts = build_project_invoice(request, aggregate(RECORDS, RATES), "P1").texts()
    assert "Adjustment / Discount:" in texts
    assert "-$50.00" in texts
    assert texts[texts.index("Grand Total:") + 1] == "$250.00"


def test_hidden_amounts_drop_rate_and_amount_columns() -> None:
    options = LayoutOptions(show_amounts=False, show_team_summary=False)
    request = _request(adjustments=Adjustments(discounts={"P1": 50.0}), options=options)
    texts = build_project_invoice(request, aggregate(RECORDS, RATES), "P1").texts()
    assert "Rate" not in texts
    assert "Amount" not in texts
    assert "Activity" in texts
    assert not any(text.startswith("$") or text.startswith("-$") for text in texts)
    assert "Grand Total:" not in texts


def test_hidden_activities_keep_subtotal() -> None:
    options = LayoutOptions(show_activities=False, show_team_summary=False)
    texts = build_project_invoice(_request(options=options), aggregate(RECORDS, RATES), "P1").texts()
    assert "Coding" not in texts
    assert "Subtotal:" in texts


def test_team_summary_uses_overrides() -> None:
    request = _request(adjustments=Adjustments(hour_overrides={"Alice": 3.0}))
    texts = build_project_invoice(request, aggregate(RECORDS, RATES), "P1").texts()
    assert "Team Members Summary" in texts
    assert "+$50.00" in texts
    assert "$300.00" in texts
    assert "4.00" in texts


def _long_records(count: int):
    return [ActivityRecord("Big", "Alice", f"Task {i}", 1.0) for i in range(count)]


def test_long_tables_paginate() -> None:
    aggregates = aggregate(_long_records(60), RATES)
    options = LayoutOptions(show_team_summary=False)
    document = build_project_invoice(_request(projects=("Big",), options=options), aggregates, "Big")
    assert len(document.pages) >= 3
    texts = document.texts()
    assert [t for t in texts if t.startswith("Task ")] == [f"Task {i}" for i in range(60)]
    assert texts.count("Activity") == len(document.pages)
    for page in document.pages:
        for op in page.ops:
            if isinstance(op, TextOp):
                assert 0 <= op.y <= 297


def test_page_break_without_repeated_header() -> None:
    aggregates = aggregate(_long_records(60), RATES)
    options = LayoutOptions(show_team_summary=False, repeat_table_header=False)
    document = build_project_invoice(_request(projects=("Big",), options=options), aggregates, "Big")
    assert len(document.pages) >= 3
    assert document.texts().count("Activity") == 1


def test_long_activity_text_wraps() -> None:
    records = [ActivityRecord("P1", "Alice", " ".join(["refactoring"] * 30), 1.0)]
    texts = build_project_invoice(_request(), aggregate(records, RATES), "P1").texts()
    wrapped = [t for t in texts if t.startswith("refactoring")]
    assert len(wrapped) > 1
    assert " ".join(wrapped) == " ".join(["refactoring"] * 30)


def test_combined_invoice_page_order() -> None:
    request = _request(projects=("P1", "P2"), adjustments=Adjustments(discounts={"P2": 100.0}))
    document = build_combined_invoice(request, aggregate(RECORDS, RATES))
    assert len(document.pages) == 4
    assert "Invoice ID: #250101" in document.pages[0].texts()
    summary = document.pages[1].texts()
    assert "Projects Summary" in summary
    assert "Team Members Summary" in summary
    assert "$300.00" in summary
    assert "$300.00" in document.pages[2].texts()
    assert "Project: P2" in document.pages[3].texts()
    assert summary[summary.index("Total Payable") + 1] == "$600.00"


def test_combined_invoice_without_activities() -> None:
    request = _request(projects=("P1", "P2"), options=LayoutOptions(show_activities=False, show_team_summary=False))
    document = build_combined_invoice(request, aggregate(RECORDS, RATES))
    assert len(document.pages) == 2
    assert "Team Members Summary" not in document.texts()


def test_layout_is_deterministic() -> None:
    aggregates = aggregate(RECORDS, RATES)
    request = _request(projects=("P1", "P2"))
    assert build_combined_invoice(request, aggregates) == build_combined_invoice(request, aggregates)


def test_unknown_project_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown project"):
        build_project_invoice(_request(), aggregate(RECORDS, RATES), "Nope")
    with pytest.raises(ValueError, match="Unknown projects"):
        build_combined_invoice(_request(projects=("P1", "Nope")), aggregate(RECORDS, RATES))


def test_rounded_away_difference_is_drawn_as_positive() -> None:
    records = [ActivityRecord("P1", "Alice", "Coding", 3.0)]
    rates = {"Alice": 0.1}
    request = InvoiceRequest(
        month="2025-01",
        client=ClientInfo(),
        payee=PayeeInfo(),
        projects=("P1",),
        rates=rates,
        adjustments=Adjustments(hour_overrides={"Alice": 2.9999}),
    )
    document = build_project_invoice(request, aggregate(records, rates), "P1")
    ops = [op for op in document.pages[-1].ops if isinstance(op, TextOp) and op.text.endswith("$0.00")]
    differences = [op for op in ops if op.text.startswith(("+", "-"))]
    assert [op.text for op in differences] == ["+$0.00", "+$0.00"]
    assert {op.color for op in differences} == {"#27AE60"}


def _many_projects_request(count: int, repeat: bool) -> tuple:
    records = [ActivityRecord(f"Proj {i}", f"Worker {i}", "Task", 1.0) for i in range(count)]
    rates = {f"Worker {i}": 10.0 for i in range(count)}
    request = InvoiceRequest(
        month="2025-01",
        client=ClientInfo(),
        payee=PayeeInfo(),
        projects=tuple(f"Proj {i}" for i in range(count)),
        rates=rates,
        options=LayoutOptions(show_activities=False, repeat_table_header=repeat),
    )
    return request, aggregate(records, rates)


def _assert_within_page(document) -> None:
    for page in document.pages:
        for op in page.ops:
            if isinstance(op, RectOp):
                assert op.y + op.h <= BOTTOM_LIMIT + 1e-9
            if isinstance(op, TextOp):
                assert op.y <= BOTTOM_LIMIT


def test_summary_tables_repeat_headers_across_pages() -> None:
    request, aggregates = _many_projects_request(40, repeat=True)
    document = build_combined_invoice(request, aggregates)
    assert len(document.pages) >= 4
    _assert_within_page(document)
    for page in document.pages[1:]:
        texts = page.texts()
        if any(text.startswith("Proj ") for text in texts):
            assert "Project Name" in texts
        if any(text.startswith("Worker ") for text in texts):
            assert "Employee Name" in texts
    texts = document.texts()
    assert texts.count("Project Name") >= 4
    assert texts.count("Employee Name") >= 2
    assert [t for t in texts if t.startswith("Worker ")] == [f"Worker {i}" for i in range(40)]


def test_summary_tables_without_repeated_headers() -> None:
    request, aggregates = _many_projects_request(40, repeat=False)
    document = build_combined_invoice(request, aggregates)
    assert len(document.pages) >= 4
    _assert_within_page(document)
    texts = document.texts()
    assert texts.count("Project Name") == 2
    assert texts.count("Employee Name") == 1
