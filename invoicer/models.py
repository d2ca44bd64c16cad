from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class ActivityRecord:
    project: str
    worker: str
    activity: str
    hours: float


@dataclass(frozen=True)
class ActivityLine:
    """An activity record with the rate and amount applied at aggregation time."""

    project: str
    worker: str
    activity: str
    hours: float
    rate: float
    amount: float


@dataclass(frozen=True)
class WorkerTotals:
    total_hours: float = 0.0
    total_amount: float = 0.0


@dataclass(frozen=True)
class ProjectAggregate:
    total_hours: float
    total_amount: float
    activities: Tuple[ActivityLine, ...]
    workers: Dict[str, WorkerTotals]


@dataclass(frozen=True)
class ParseReport:
    records: List[ActivityRecord]
    skipped: int = 0
    coerced_hours: int = 0


@dataclass(frozen=True)
class TeamRow:
    name: str
    working_hours: float
    adjusted_hours: float
    amount: float
    adjusted_amount: float

    @property
    def difference(self) -> float:
        return self.adjusted_amount - self.amount


@dataclass(frozen=True)
class ProjectsSummary:
    total_hours: float
    total_amount: float


@dataclass(frozen=True)
class ClientInfo:
    name: str = ""
    company: str = ""
    location: str = ""


@dataclass(frozen=True)
class PayeeInfo:
    name: str = ""
    agency: str = ""
    location: str = ""


@dataclass(frozen=True)
class Adjustments:
    discounts: Mapping[str, float] = field(default_factory=dict)       # project -> flat deduction
    hour_overrides: Mapping[str, float] = field(default_factory=dict)  # worker -> hours across selection

    def discount_for(self, project: str) -> float:
        return float(self.discounts.get(project, 0.0))

    def adjusted_hours(self, worker: str, working_hours: float) -> float:
        override = self.hour_overrides.get(worker)
        return float(override) if override else working_hours


@dataclass(frozen=True)
class LayoutOptions:
    show_activities: bool = True
    show_amounts: bool = True
    show_team_summary: bool = True
    repeat_table_header: bool = True


@dataclass(frozen=True)
class InvoiceRequest:
    """Snapshot of everything one generation reads."""

    month: str
    client: ClientInfo
    payee: PayeeInfo
    projects: Tuple[str, ...]
    rates: Mapping[str, float]
    adjustments: Adjustments = field(default_factory=Adjustments)
    options: LayoutOptions = field(default_factory=LayoutOptions)


@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    size: float
    color: str
    align: str = "left"  # left | right | center
    bold: bool = False


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    w: float
    h: float
    fill: str


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str


DrawOp = Union[TextOp, RectOp, LineOp]


@dataclass
class Page:
    ops: List[DrawOp] = field(default_factory=list)

    def texts(self) -> List[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]


@dataclass
class InvoiceDocument:
    pages: List[Page] = field(default_factory=list)

    def new_page(self) -> Page:
        page = Page()
        self.pages.append(page)
        return page

    @property
    def current(self) -> Optional[Page]:
        return self.pages[-1] if self.pages else None

    def texts(self) -> List[str]:
        return [text for page in self.pages for text in page.texts()]


@dataclass(frozen=True)
class ConvertedEntry:
    project: str
    worker: str
    activity: str
    duration: float
    hours: float
