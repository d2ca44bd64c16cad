from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..models import ActivityRecord, Adjustments, InvoiceRequest
from ..storage import archive_filename, archive_label, combined_filename, invoice_filename, output_path
from .aggregate import aggregate
from .convert import build_artifacts, parse_toptal
from .ingest import build_rate_table, load_rates, parse_number, read_text
from .layout import build_combined_invoice, build_project_invoice, parse_month
from .package import create_archive
from .render_pdf import render_pdf
from .render_preview import render_previews


logger = logging.getLogger(__name__)


def parse_assignments(values: Iterable[str]) -> Dict[str, float]:
    """NAME=VALUE pairs; an unparseable value counts as 0."""
    parsed: Dict[str, float] = {}
    for raw in values:
        name, sep, value = raw.rpartition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected NAME=VALUE, got {raw!r}")
        parsed[name.strip()] = parse_number(value)
    return parsed


def build_adjustments(discounts: Mapping[str, float], hour_overrides: Mapping[str, float]) -> Adjustments:
    # zero means "not set", matching an empty form field
    return Adjustments(
        discounts={project: amount for project, amount in discounts.items() if amount > 0},
        hour_overrides={worker: hours for worker, hours in hour_overrides.items() if hours > 0},
    )


def resolve_rates(
    records: Sequence[ActivityRecord],
    rates_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    existing = load_rates(rates_file) if rates_file else {}
    rates = build_rate_table(records, existing=existing)
    for worker, rate in existing.items():
        rates.setdefault(worker, rate)
    rates.update(overrides or {})
    return rates


def normalize_month(month: str) -> str:
    return parse_month(month).strftime("%Y-%m")


def generate_project_invoices(
    records: Sequence[ActivityRecord],
    request: InvoiceRequest,
    base_dir: Optional[Path] = None,
    preview: bool = False,
) -> List[Path]:
    month = normalize_month(request.month)
    aggregates = aggregate(records, request.rates)
    unknown = [project for project in request.projects if project not in aggregates]
    if unknown:
        raise ValueError(f"Unknown projects: {', '.join(unknown)}")

    written: List[Path] = []
    for project in request.projects:
        try:
            document = build_project_invoice(request, aggregates, project)
            path = render_pdf(document, output_path(invoice_filename(project, month), base_dir))
        except Exception:
            logger.exception("Invoice generation failed for %s", project)
            raise
        written.append(path)
        if preview:
            written.extend(render_previews(path))
    return written


def generate_combined_invoice(
    records: Sequence[ActivityRecord],
    request: InvoiceRequest,
    base_dir: Optional[Path] = None,
    preview: bool = False,
) -> List[Path]:
    month = normalize_month(request.month)
    aggregates = aggregate(records, request.rates)
    if not request.projects:
        raise ValueError("No projects selected")
    try:
        document = build_combined_invoice(request, aggregates)
        path = render_pdf(document, output_path(combined_filename(month), base_dir))
    except Exception:
        logger.exception("Combined invoice generation failed")
        raise
    written = [path]
    if preview:
        written.extend(render_previews(path))
    return written


def convert_toptal(csv_path: Path, period: str, base_dir: Optional[Path] = None) -> Path:
    entries = parse_toptal(read_text(csv_path), period)
    if not entries:
        raise ValueError(f"No entries found in {csv_path}")
    label = archive_label(period)
    artifacts = build_artifacts(entries, label)
    archive = create_archive(artifacts, output_path(archive_filename(period), base_dir))
    logger.info("Converted %d entries into %s (%d files)", len(entries), archive, len(artifacts))
    return archive
