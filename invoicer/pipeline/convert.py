from __future__ import annotations

import csv
import io
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models import ConvertedEntry
from .ingest import parse_number


ENTRY_HEADERS = ["Project", "Worker", "Activity", "Duration", "Upwork Hours"]
SUMMARY_HEADERS = ["Project", "Worker", "Total Upwork Hours"]
logger = logging.getLogger(__name__)


def _find_column(headers: Sequence[str], needle: str) -> Optional[int]:
    for index, header in enumerate(headers):
        if needle in header:
            return index
    return None


def _duration_column(headers: Sequence[str]) -> Optional[int]:
    for index, header in enumerate(headers):
        if header == "d" or "duration" in header:
            return index
    # older exports only guarantee a header containing "d"
    return _find_column(headers, "d")


def resolve_columns(header_line: str) -> Dict[str, int]:
    headers = [header.strip().lower() for header in header_line.split(",")]
    columns = {
        "duration": _duration_column(headers),
        "project": _find_column(headers, "project"),
        "worker": _find_column(headers, "worker"),
        "activity": _find_column(headers, "activity"),
    }
    missing = [name for name, index in columns.items() if index is None]
    if missing:
        raise ValueError(f"CSV missing columns: {', '.join(missing)}")
    return {name: int(index) for name, index in columns.items()}


def parse_toptal(raw_text: str, period: str) -> List[ConvertedEntry]:
    """
    Parse a TopTracker export and merge rows sharing (project, worker, activity).

    `period` is appended to every project name ("Website - January 2025").
    Durations are decimal hours; each row contributes its duration rounded
    to two decimals.
    """
    lines = raw_text.lstrip("﻿").splitlines()
    if not lines:
        return []
    columns = resolve_columns(lines[0])
    width = max(columns.values()) + 1
    suffix = f" - {period.strip()}" if period and period.strip() else ""

    grouped: Dict[Tuple[str, str, str], ConvertedEntry] = {}
    skipped = 0
    for line in lines[1:]:
        if not line.strip():
            continue
        values = line.split(",")
        if len(values) < width:
            skipped += 1
            continue
        raw_duration = values[columns["duration"]]
        hours = round(parse_number(raw_duration), 2)
        project = f"{values[columns['project']].strip()}{suffix}"
        worker = values[columns["worker"]].strip()
        activity = values[columns["activity"]].strip()

        key = (project, worker, activity)
        existing = grouped.get(key)
        if existing is None:
            grouped[key] = ConvertedEntry(
                project=project,
                worker=worker,
                activity=activity,
                duration=parse_number(raw_duration),
                hours=hours,
            )
        else:
            grouped[key] = ConvertedEntry(
                project=existing.project,
                worker=existing.worker,
                activity=existing.activity,
                duration=existing.duration,
                hours=existing.hours + hours,
            )
    if skipped:
        logger.info("Skipped %d short rows in converter input", skipped)
    return list(grouped.values())


def _write_csv(headers: List[str], rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def entries_csv(entries: Iterable[ConvertedEntry]) -> str:
    return _write_csv(
        ENTRY_HEADERS,
        (
            [entry.project, entry.worker, entry.activity, f"{entry.duration:.2f}", f"{entry.hours:.2f}"]
            for entry in entries
        ),
    )


def summarize(entries: Iterable[ConvertedEntry]) -> Dict[Tuple[str, str], float]:
    summary: Dict[Tuple[str, str], float] = {}
    for entry in entries:
        key = (entry.project, entry.worker)
        summary[key] = summary.get(key, 0.0) + entry.hours
    return summary


def summary_csv(entries: Iterable[ConvertedEntry]) -> str:
    return _write_csv(
        SUMMARY_HEADERS,
        ([project, worker, f"{hours:.2f}"] for (project, worker), hours in summarize(entries).items()),
    )


def _safe_name(name: str) -> str:
    return name.replace("/", "-").replace("\\", "-").strip() or "Unknown"


def _unique_name(base: str, label: str, taken: Set[str]) -> str:
    filename = f"{base} - {label}.csv"
    counter = 2
    while filename.casefold() in taken:
        filename = f"{base} ({counter}) - {label}.csv"
        counter += 1
    taken.add(filename.casefold())
    return filename


def build_artifacts(entries: Sequence[ConvertedEntry], label: str) -> Dict[str, str]:
    """
    Filename -> CSV text, per-worker files first, then summary and combined.

    Worker files never replace each other or the summary/combined files:
    a clashing name gets a numeric suffix ("Summary (2) - <label>.csv").
    """
    summary_name = f"Summary - {label}.csv"
    combined_name = f"Combined - {label}.csv"
    taken = {summary_name.casefold(), combined_name.casefold()}
    artifacts: Dict[str, str] = {}
    workers: List[str] = []
    for entry in entries:
        if entry.worker not in workers:
            workers.append(entry.worker)
    for worker in workers:
        worker_entries = [entry for entry in entries if entry.worker == worker]
        artifacts[_unique_name(_safe_name(worker), label, taken)] = entries_csv(worker_entries)
    artifacts[summary_name] = summary_csv(entries)
    artifacts[combined_name] = entries_csv(entries)
    return artifacts
