from __future__ import annotations

import tempfile
from dataclasses import FrozenInstanceError
from pathlib import Path
import unittest

import fitz

from invoicer import config
from invoicer.models import ActivityRecord, Adjustments, ClientInfo, InvoiceRequest, LayoutOptions, PayeeInfo
from invoicer.pipeline.ingest import parse_activities
from invoicer.pipeline.layout import build_combined_invoice
from invoicer.pipeline.aggregate import aggregate
from invoicer.pipeline.render_pdf import render_pdf
from invoicer.pipeline.run import (
    build_adjustments,
    generate_combined_invoice,
    generate_project_invoices,
    parse_assignments,
    resolve_rates,
)


CSV_TEXT = "\n".join(
    [
        "project,workers,activity,date,upwork_hours",
        "Mobile App,Alice,Coding,2025-01-02,2.5",
        "Mobile App,Bob,Review,2025-01-02,1.0",
        "Website,Alice,Design,2025-01-03,4.0",
    ]
)


def _request(projects, rates, **kwargs) -> InvoiceRequest:
    return InvoiceRequest(
        month="2025-1",
        client=ClientInfo(name="Jane"),
        payee=PayeeInfo(name="Sam"),
        projects=tuple(projects),
        rates=rates,
        **kwargs,
    )


class PipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        config.set_out_dir(Path(self.temp_dir.name))
        self.records = parse_activities(CSV_TEXT)
        self.rates = resolve_rates(self.records, overrides={"Alice": 100.0, "Bob": 50.0})

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_parse_assignments(self) -> None:
        self.assertEqual(parse_assignments(["Alice=100", "Mobile App=12.5", "Bob=oops"]), {
            "Alice": 100.0,
            "Mobile App": 12.5,
            "Bob": 0.0,
        })
        with self.assertRaises(ValueError):
            parse_assignments(["Alice"])

    def test_zero_adjustments_are_ignored(self) -> None:
        adjustments = build_adjustments({"Website": 0.0, "Mobile App": 25.0}, {"Alice": 0.0})
        self.assertEqual(dict(adjustments.discounts), {"Mobile App": 25.0})
        self.assertEqual(dict(adjustments.hour_overrides), {})
        self.assertEqual(adjustments.adjusted_hours("Alice", 4.0), 4.0)

    def test_rates_merge_file_data_and_overrides(self) -> None:
        rates_path = Path(self.temp_dir.name) / "rates.csv"
        rates_path.write_text("worker,rate\nBob,40\nCarol,70\n", encoding="utf-8")
        rates = resolve_rates(self.records, rates_path, {"Alice": 90.0})
        self.assertEqual(rates, {"Alice": 90.0, "Bob": 40.0, "Carol": 70.0})

    def test_project_invoice_files(self) -> None:
        request = _request(["Mobile App", "Website"], self.rates)
        written = generate_project_invoices(self.records, request)
        self.assertEqual([path.name for path in written], ["mobile-app-2025-01.pdf", "website-2025-01.pdf"])
        for path in written:
            self.assertTrue(path.exists())
            self.assertTrue(path.read_bytes().startswith(b"%PDF"))
        self.assertEqual(list(Path(self.temp_dir.name).glob("*.tmp")), [])

    def test_combined_invoice_file(self) -> None:
        request = _request(
            ["Mobile App", "Website"],
            self.rates,
            adjustments=Adjustments(discounts={"Website": 50.0}),
        )
        written = generate_combined_invoice(self.records, request)
        self.assertEqual(written[0].name, "combined-invoice-2025-01.pdf")
        with fitz.open(str(written[0])) as doc:
            self.assertEqual(doc.page_count, 4)
            text = doc.load_page(1).get_text()
        self.assertIn("Projects Summary", text)
        self.assertIn("$650.00", text)

    def test_pdf_pages_match_document(self) -> None:
        request = _request(["Mobile App"], self.rates, options=LayoutOptions(show_team_summary=False))
        document = build_combined_invoice(request, aggregate(self.records, self.rates))
        path = render_pdf(document, Path(self.temp_dir.name) / "doc.pdf")
        with fitz.open(str(path)) as doc:
            self.assertEqual(doc.page_count, len(document.pages))

    def test_unknown_project(self) -> None:
        with self.assertRaises(ValueError):
            generate_project_invoices(self.records, _request(["Nope"], self.rates))

    def test_invalid_month(self) -> None:
        request = InvoiceRequest(
            month="Jan",
            client=ClientInfo(),
            payee=PayeeInfo(),
            projects=("Website",),
            rates=self.rates,
        )
        with self.assertRaises(ValueError):
            generate_combined_invoice(self.records, request)

    def test_records_are_immutable(self) -> None:
        record = ActivityRecord("P1", "Alice", "Coding", 1.0)
        with self.assertRaises(FrozenInstanceError):
            record.hours = 2.0  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
