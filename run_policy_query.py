#!/usr/bin/env python3
# run_policy_query.py
"""
CLI for the policy question-answering pipeline.

Usage:
    python run_policy_query.py ask "What changed in HR 1234?"
    python run_policy_query.py detail 118-hr-1234
    python run_policy_query.py health

Output:
    - Console tables for ranked bills, version timeline, attribution and influence
    - Optional JSON file with the full camelCase response
"""
import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from policy_core.config import load_config
from policy_core.exceptions import InvalidBillIdError, InvalidRequestError, PolicyCoreError
from policy_core.models import BillLocator, DateRange, PolicyDNAResult, InfluenceResult, PolicyFilters
from policy_core.service import PolicyService

load_dotenv()
console = Console()


def _truncate(text, width: int) -> str:
    text = text or ""
    return text if len(text) <= width else text[: width - 3] + "..."


def display_policies(policies) -> None:
    if not policies:
        console.print("[yellow]No matching bills.[/yellow]")
        return
    table = Table(title="Matching Bills", show_lines=True)
    table.add_column("Bill", style="cyan", width=14)
    table.add_column("Title", style="white", max_width=60)
    table.add_column("Status", max_width=30)
    table.add_column("Conf", justify="center", width=5)
    for hit in policies:
        table.add_row(hit.bill_id, _truncate(hit.title, 60), _truncate(hit.status, 30), str(hit.confidence))
    console.print(table)


def display_dna(dna: PolicyDNAResult) -> None:
    timeline = Table(title=f"Version Timeline - {dna.bill_id}")
    timeline.add_column("Version", style="cyan", width=12)
    timeline.add_column("Label", max_width=40)
    timeline.add_column("Issued", width=12)
    timeline.add_column("+", justify="right", style="green", width=7)
    timeline.add_column("-", justify="right", style="red", width=7)
    timeline.add_column("~", justify="right", style="yellow", width=7)
    for entry in dna.timeline:
        change = entry.change_summary
        timeline.add_row(
            entry.version_id,
            _truncate(entry.label, 40),
            (entry.issued_on or "")[:10],
            str(change.added if change else 0),
            str(change.removed if change else 0),
            str(change.modified if change else 0),
        )
    console.print(timeline)

    if dna.blame:
        blame = Table(title="Attribution")
        blame.add_column("Section", style="cyan", width=16)
        blame.add_column("Heading", max_width=40)
        blame.add_column("Author", max_width=30)
        blame.add_column("Date", width=12)
        for entry in dna.blame:
            blame.add_row(
                _truncate(entry.section_id, 16),
                _truncate(entry.heading, 40),
                _truncate(entry.author, 30),
                (entry.action_date or "")[:10],
            )
        console.print(blame)


def display_influence(influence: InfluenceResult) -> None:
    if influence.lobbying:
        lobbying = Table(title="Senate LDA Filings")
        lobbying.add_column("Client", max_width=30)
        lobbying.add_column("Registrant", max_width=30)
        lobbying.add_column("Amount", justify="right", width=12)
        lobbying.add_column("Period", width=20)
        for record in influence.lobbying:
            amount = f"${record.amount:,.0f}" if record.amount is not None else "-"
            lobbying.add_row(_truncate(record.client, 30), _truncate(record.registrant, 30), amount, record.period or "")
        console.print(lobbying)

    if influence.finance:
        finance = Table(title="FEC Candidate Totals")
        finance.add_column("Candidate", style="cyan", width=12)
        finance.add_column("Committee", max_width=40)
        finance.add_column("Receipts", justify="right", width=14)
        finance.add_column("Cycle", width=6)
        for record in influence.finance:
            receipts = f"${record.total_receipts:,.0f}" if record.total_receipts is not None else "-"
            finance.add_row(record.candidate_id, _truncate(record.committee_name, 40), receipts, str(record.cycle or ""))
        console.print(finance)

    for note in influence.metadata.notes:
        console.print(f"[dim]• {note}[/dim]")


def _save(payload: dict, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    console.print(f"\n[green]✓ Results saved to {path}[/green]")


async def run_ask(service: PolicyService, args: argparse.Namespace) -> None:
    if args.bill_id:
        BillLocator.parse(args.bill_id)
    date_range = DateRange(date_from=args.date_from, date_to=args.date_to) if (args.date_from or args.date_to) else None
    filters = PolicyFilters(
        congress=args.congress,
        bill_id=args.bill_id,
        keywords=args.keywords or None,
        date_range=date_range,
    )
    result = await service.chat(args.question, filters)

    display_policies(result.policies)
    if result.dna:
        display_dna(result.dna)
    if result.influence:
        display_influence(result.influence)

    console.print("\n[bold]Answer[/bold]")
    console.print(result.answer.answer)
    for citation in result.answer.citations:
        console.print(f"[dim]  {citation.label}: {citation.url}[/dim]")
    for disclaimer in result.answer.disclaimers or []:
        console.print(f"[italic dim]{disclaimer}[/italic dim]")

    if result.guardrail.ok:
        console.print("\n[green]✓ Guardrail passed[/green]")
    else:
        console.print("\n[yellow]⚠ Guardrail warnings:[/yellow]")
        for warning in result.guardrail.warnings:
            console.print(f"[yellow]  - {warning}[/yellow]")

    if args.verbose:
        for line in result.logs:
            console.print(f"[dim]{line}[/dim]")
    if args.output:
        _save(result.to_json_dict(), args.output)


async def run_detail(service: PolicyService, args: argparse.Namespace) -> None:
    detail = await service.policy_detail(args.bill_id)
    metadata = detail.dna.metadata
    console.print(f"\n[bold cyan]{metadata.title or detail.bill_id}[/bold cyan]")
    if metadata.sponsor:
        console.print(f"Sponsor: {metadata.sponsor.name}")
    display_dna(detail.dna)
    display_influence(detail.influence)
    if args.output:
        _save(detail.to_json_dict(), args.output)


def run_health(service: PolicyService) -> None:
    table = Table(title="Environment")
    table.add_column("Variable", style="cyan")
    table.add_column("Required", justify="center")
    table.add_column("Present", justify="center")
    table.add_column("Purpose", style="dim")
    for status in service.health()["environment"]:
        table.add_row(
            status["name"],
            "no" if status["optional"] else "yes",
            "[green]✓[/green]" if status["present"] else "[red]✗[/red]",
            status["description"],
        )
    console.print(table)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Grounded answers about U.S. legislation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python run_policy_query.py ask "hr 1234"
    python run_policy_query.py ask "clean energy tax credits" --congress 118 --output answer.json
    python run_policy_query.py detail 118-hr-1234
        """
    )
    parser.add_argument("--config", default="config.yaml", help="Path to config file (default: config.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show pipeline logs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", help="Answer a question about legislation")
    ask.add_argument("question", help="Question or bill reference (e.g., \"118 s.5678\")")
    ask.add_argument("--congress", type=int, help="Restrict search to one congress")
    ask.add_argument("--bill-id", help="Look up one bill directly (e.g., 118-hr-1234)")
    ask.add_argument("--keywords", nargs="*", help="Extra search keywords")
    ask.add_argument("--from", dest="date_from", help="Earliest update date (YYYY-MM-DDT00:00:00Z)")
    ask.add_argument("--to", dest="date_to", help="Latest update date (YYYY-MM-DDT00:00:00Z)")
    ask.add_argument("--output", help="Write the JSON response to this file")

    detail = subparsers.add_parser("detail", help="Version history and influence for one bill")
    detail.add_argument("bill_id", help="Composite bill id (e.g., 118-hr-1234)")
    detail.add_argument("--output", help="Write the JSON response to this file")

    subparsers.add_parser("health", help="Report which credentials are configured")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    service = PolicyService(config=load_config(args.config))

    if args.command == "health":
        run_health(service)
        return

    try:
        if args.command == "ask":
            asyncio.run(run_ask(service, args))
        else:
            asyncio.run(run_detail(service, args))
    except (InvalidBillIdError, InvalidRequestError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(2)
    except PolicyCoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
