from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer

from . import config
from .models import ClientInfo, InvoiceRequest, LayoutOptions, PayeeInfo
from .pipeline.aggregate import aggregate
from .pipeline.ingest import load_activity_files, write_rates
from .pipeline.layout import format_hours, format_money
from .pipeline.run import (
    build_adjustments,
    convert_toptal,
    generate_combined_invoice,
    generate_project_invoices,
    parse_assignments,
    resolve_rates,
)

app = typer.Typer(help="Timesheet CSV to invoice tooling")


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    account: Optional[str] = typer.Option(None, "--account", envvar="INVOICER_ACCOUNT", help="Signed-in account"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not config.is_allowed_account(account):
        typer.echo("Access denied for this account", err=True)
        raise typer.Exit(code=1)


@app.command()
def rates(
    csv: List[Path] = typer.Argument(..., help="Time-tracking CSV exports"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write the rate table CSV here"),
) -> None:
    """Initial rate table: every worker seen in the data at rate 0."""
    try:
        report = load_activity_files(csv)
        table = resolve_rates(report.records)
    except (OSError, ValueError) as exc:
        _fail(exc)
    if out:
        write_rates(table, out)
        typer.echo(f"Wrote {len(table)} workers -> {out}")
        return
    typer.echo("worker,rate")
    for worker, rate in table.items():
        typer.echo(f"{worker},{rate:.2f}")


@app.command()
def projects(
    csv: List[Path] = typer.Argument(..., help="Time-tracking CSV exports"),
    rates_file: Optional[Path] = typer.Option(None, "--rates", help="CSV with worker,rate columns"),
    rate: Optional[List[str]] = typer.Option(None, "--rate", help="WORKER=RATE, repeatable"),
) -> None:
    try:
        report = load_activity_files(csv)
        table = resolve_rates(report.records, rates_file, parse_assignments(rate or []))
    except (OSError, ValueError) as exc:
        _fail(exc)
    aggregates = aggregate(report.records, table)
    typer.echo(f"Rows: {len(report.records)} (skipped {report.skipped}, hours coerced {report.coerced_hours})")
    if not aggregates:
        typer.echo("No projects found")
        return
    for name, data in aggregates.items():
        typer.echo(f"{name}: {format_hours(data.total_hours)} hours, {format_money(data.total_amount)}")


@app.command()
def invoice(
    csv: List[Path] = typer.Argument(..., help="Time-tracking CSV exports"),
    project: Optional[List[str]] = typer.Option(None, "--project", "-p", help="Project to invoice, repeatable"),
    month: Optional[str] = typer.Option(None, "--month", help="Billing month, yyyy-MM (default: current month)"),
    combined: bool = typer.Option(False, "--combined", help="One combined invoice for all selected projects"),
    rates_file: Optional[Path] = typer.Option(None, "--rates", help="CSV with worker,rate columns"),
    rate: Optional[List[str]] = typer.Option(None, "--rate", help="WORKER=RATE, repeatable"),
    discount: Optional[List[str]] = typer.Option(None, "--discount", help="PROJECT=AMOUNT deduction"),
    hours: Optional[List[str]] = typer.Option(None, "--hours", help="WORKER=HOURS adjusted total"),
    client_name: str = typer.Option("", "--client-name"),
    client_company: str = typer.Option("", "--client-company"),
    client_location: str = typer.Option("", "--client-location"),
    payee_name: str = typer.Option("", "--payee-name"),
    payee_agency: str = typer.Option("", "--payee-agency"),
    payee_location: str = typer.Option("", "--payee-location"),
    hide_activities: bool = typer.Option(False, "--hide-activities"),
    hide_amounts: bool = typer.Option(False, "--hide-amounts", help="Hide rates and amounts"),
    hide_team_summary: bool = typer.Option(False, "--hide-team-summary"),
    no_repeat_header: bool = typer.Option(False, "--no-repeat-header", help="Skip table headers after page breaks"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
    preview: bool = typer.Option(False, "--preview", help="Also write PNG previews"),
) -> None:
    if out:
        config.set_out_dir(out)
    try:
        report = load_activity_files(csv)
        table = resolve_rates(report.records, rates_file, parse_assignments(rate or []))
        selected = list(project or [])
        if not selected:
            selected = list(dict.fromkeys(record.project for record in report.records))
        request = InvoiceRequest(
            month=month or date.today().strftime("%Y-%m"),
            client=ClientInfo(name=client_name, company=client_company, location=client_location),
            payee=PayeeInfo(name=payee_name, agency=payee_agency, location=payee_location),
            projects=tuple(selected),
            rates=table,
            adjustments=build_adjustments(parse_assignments(discount or []), parse_assignments(hours or [])),
            options=LayoutOptions(
                show_activities=not hide_activities,
                show_amounts=not hide_amounts,
                show_team_summary=not hide_team_summary,
                repeat_table_header=not no_repeat_header,
            ),
        )
        if report.skipped:
            typer.echo(f"Skipped {report.skipped} rows without project or worker")
        if combined:
            written = generate_combined_invoice(report.records, request, preview=preview)
        else:
            written = generate_project_invoices(report.records, request, preview=preview)
    except (OSError, ValueError) as exc:
        _fail(exc)
    for path in written:
        typer.echo(f"Wrote {path}")


@app.command()
def convert(
    csv: Path = typer.Argument(..., help="TopTracker CSV export"),
    period: str = typer.Option(..., "--period", help='Label appended to projects, e.g. "January 2025"'),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
) -> None:
    if out:
        config.set_out_dir(out)
    try:
        archive = convert_toptal(csv, period)
    except (OSError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Wrote {archive}")


if __name__ == "__main__":
    app()
