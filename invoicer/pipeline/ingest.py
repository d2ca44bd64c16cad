from __future__ import annotations

import csv
import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import ACTIVITY_COLUMN, HOURS_COLUMN, PROJECT_COLUMN, WORKER_COLUMN
from ..models import ActivityRecord, ParseReport


REQUIRED_RATE_COLUMNS = {"worker", "rate"}
logger = logging.getLogger(__name__)


def coerce_number(raw: Optional[str]) -> Tuple[float, bool]:
    """Lenient float parse: unparseable, non-finite or negative input becomes (0.0, True)."""
    text = (raw or "").strip()
    try:
        value = float(text)
    except ValueError:
        return 0.0, True
    if not math.isfinite(value) or value < 0:
        return 0.0, True
    return value, False


def parse_number(raw: Optional[str]) -> float:
    return coerce_number(raw)[0]


def _cell(values: Sequence[str], index: int) -> str:
    return values[index].strip() if index < len(values) else ""


def _parse_hours(values: Sequence[str]) -> Tuple[float, bool]:
    return coerce_number(_cell(values, HOURS_COLUMN))


def parse_report(raw_text: str) -> ParseReport:
    lines = raw_text.lstrip("﻿").splitlines()
    records: List[ActivityRecord] = []
    skipped = 0
    coerced = 0
    # first line is the header; columns are positional
    for line in lines[1:]:
        if not line.strip():
            continue
        values = line.split(",")
        project = _cell(values, PROJECT_COLUMN)
        worker = _cell(values, WORKER_COLUMN)
        if not project or not worker:
            skipped += 1
            continue
        hours, was_coerced = _parse_hours(values)
        if was_coerced:
            coerced += 1
        records.append(
            ActivityRecord(
                project=project,
                worker=worker,
                activity=_cell(values, ACTIVITY_COLUMN),
                hours=hours,
            )
        )
    if skipped or coerced:
        logger.info("Parsed %d rows (%d skipped, %d hours coerced to 0)", len(records), skipped, coerced)
    return ParseReport(records=records, skipped=skipped, coerced_hours=coerced)


def parse_activities(raw_text: str) -> List[ActivityRecord]:
    return parse_report(raw_text).records


def read_text(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"CSV not found: {path}")
    return path.read_text(encoding="utf-8-sig")


def load_activity_files(paths: Iterable[Path]) -> ParseReport:
    """
    Read every file first, then join. A failing read aborts the whole load
    instead of producing a partial dataset.
    """
    texts = [read_text(Path(path)) for path in paths]
    reports = [parse_report(text) for text in texts]
    records: List[ActivityRecord] = []
    for report in reports:
        records.extend(report.records)
    return ParseReport(
        records=records,
        skipped=sum(report.skipped for report in reports),
        coerced_hours=sum(report.coerced_hours for report in reports),
    )


def build_rate_table(
    records: Iterable[ActivityRecord],
    existing: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    existing = existing or {}
    rates: Dict[str, float] = {}
    for record in records:
        if record.worker not in rates:
            rates[record.worker] = float(existing.get(record.worker, 0.0))
    return rates


def load_rates(path: Path) -> Dict[str, float]:
    if not path.exists():
        raise FileNotFoundError(f"Rates file not found: {path}")
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None:
            raise ValueError("Rates CSV has no header")
        fieldnames = {name.strip().lower() for name in reader.fieldnames}
        missing = REQUIRED_RATE_COLUMNS - fieldnames
        if missing:
            raise ValueError(f"Rates CSV missing columns: {', '.join(sorted(missing))}")
        rates: Dict[str, float] = {}
        for row in reader:
            normalized = {(key or "").strip().lower(): value for key, value in row.items()}
            worker = (normalized.get("worker") or "").strip()
            if not worker:
                continue
            rates[worker] = parse_number(normalized.get("rate"))
    return rates


def write_rates(rates: Mapping[str, float], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["worker", "rate"])
        for worker, rate in rates.items():
            writer.writerow([worker, f"{rate:.2f}"])
    return path
