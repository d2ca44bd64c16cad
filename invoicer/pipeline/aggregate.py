from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from ..models import (
    ActivityLine,
    ActivityRecord,
    Adjustments,
    ProjectAggregate,
    ProjectsSummary,
    TeamRow,
    WorkerTotals,
)


def _rate_for(rates: Mapping[str, float], worker: str) -> float:
    return float(rates.get(worker, 0.0) or 0.0)


def _totals(pairs: Sequence[Tuple[float, float]]) -> WorkerTotals:
    # fsum is exactly rounded, so the result does not depend on pair order
    return WorkerTotals(
        total_hours=math.fsum(hours for hours, _ in pairs),
        total_amount=math.fsum(amount for _, amount in pairs),
    )


def aggregate(records: Iterable[ActivityRecord], rates: Mapping[str, float]) -> Dict[str, ProjectAggregate]:
    """
    Group records by project, pricing each one with the worker's current rate.

    Totals only depend on the multiset of records; the activity list keeps
    the input order for display.
    """
    lines: Dict[str, List[ActivityLine]] = {}
    workers: Dict[str, Dict[str, List[Tuple[float, float]]]] = {}

    for record in records:
        rate = _rate_for(rates, record.worker)
        amount = record.hours * rate
        lines.setdefault(record.project, []).append(
            ActivityLine(
                project=record.project,
                worker=record.worker,
                activity=record.activity,
                hours=record.hours,
                rate=rate,
                amount=amount,
            )
        )
        workers.setdefault(record.project, {}).setdefault(record.worker, []).append((record.hours, amount))

    result: Dict[str, ProjectAggregate] = {}
    for project, project_lines in lines.items():
        project_totals = _totals([(line.hours, line.amount) for line in project_lines])
        result[project] = ProjectAggregate(
            total_hours=project_totals.total_hours,
            total_amount=project_totals.total_amount,
            activities=tuple(project_lines),
            workers={name: _totals(pairs) for name, pairs in workers[project].items()},
        )
    return result


def combine_across_projects(
    selected: Sequence[str],
    aggregates: Mapping[str, ProjectAggregate],
) -> Dict[str, WorkerTotals]:
    collected: Dict[str, List[Tuple[float, float]]] = {}
    for project in selected:
        data = aggregates.get(project)
        if data is None:
            continue
        for line in data.activities:
            collected.setdefault(line.worker, []).append((line.hours, line.amount))
    return {name: _totals(pairs) for name, pairs in collected.items()}


def final_amount(project: str, data: ProjectAggregate, adjustments: Adjustments) -> float:
    return data.total_amount - adjustments.discount_for(project)


def projects_summary(
    selected: Sequence[str],
    aggregates: Mapping[str, ProjectAggregate],
    adjustments: Adjustments,
) -> ProjectsSummary:
    hours: List[float] = []
    amounts: List[float] = []
    for project in selected:
        data = aggregates.get(project)
        if data is None:
            continue
        hours.append(data.total_hours)
        amounts.append(final_amount(project, data, adjustments))
    return ProjectsSummary(total_hours=math.fsum(hours), total_amount=math.fsum(amounts))


def team_summary(
    selected: Sequence[str],
    aggregates: Mapping[str, ProjectAggregate],
    rates: Mapping[str, float],
    adjustments: Adjustments,
) -> List[TeamRow]:
    rows: List[TeamRow] = []
    for name, totals in combine_across_projects(selected, aggregates).items():
        adjusted = adjustments.adjusted_hours(name, totals.total_hours)
        rows.append(
            TeamRow(
                name=name,
                working_hours=totals.total_hours,
                adjusted_hours=adjusted,
                amount=totals.total_amount,
                adjusted_amount=adjusted * _rate_for(rates, name),
            )
        )
    return rows
