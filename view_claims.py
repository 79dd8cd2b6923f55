#!/usr/bin/env python3
"""
View stored marine claims from the database.

Usage:
    python view_claims.py                         # List all claims
    python view_claims.py MC-NOVA-2026-0001       # View claim details (number or id)
    python view_claims.py MC-NOVA-2026-0001 --export   # Claim as JSON
    python view_claims.py --reminders --days 7    # Reminders due within 7 days
    python view_claims.py --import-legacy database/data/claims.json
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.claims.schema import ActionStatus, Claim
from src.storage import ClaimStore, get_claim_store
from src.workflow import ClaimService, ClaimSummary, ReminderItem

console = Console()


def format_datetime(dt: Optional[datetime]) -> str:
    """Format datetime for display."""
    if not dt:
        return ""
    return dt.strftime("%Y-%m-%d %H:%M")


def truncate(text: Optional[str], max_len: int = 50) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    text = str(text)
    if len(text) > max_len:
        return text[:max_len-3] + "..."
    return text


def money(amount: float, currency: str = "USD") -> str:
    return f"{currency} {amount:,.0f}"


def make_summary_table(claims: list[ClaimSummary]) -> Table:
    """Create summary table with key claim info."""
    table = Table(
        title="📋 All Claims",
        box=box.ROUNDED,
        header_style="bold cyan",
        show_lines=True,
    )

    table.add_column("Claim No.", style="bold")
    table.add_column("Created", style="dim")
    table.add_column("Vessel")
    table.add_column("Event Date")
    table.add_column("Location")
    table.add_column("Progress", style="bold")
    table.add_column("Covers")
    table.add_column("Reserve", justify="right")
    table.add_column("Recovered", justify="right")
    table.add_column("Outstanding", justify="right")

    for c in claims:
        outstanding = money(c.outstanding_recovery, c.currency)
        if c.outstanding_recovery > 0:
            outstanding = "[yellow]" + outstanding + "[/yellow]"

        table.add_row(
            c.claim_number,
            format_datetime(c.created_at),
            truncate(c.vessel_name, 25) or "-",
            truncate(c.event_date_text, 15) or "-",
            truncate(c.location_text, 25) or "-",
            truncate(c.progress_status, 25),
            ", ".join(c.cover_types),
            money(c.reserve_estimated, c.currency),
            money(c.recovered, c.currency),
            outstanding,
        )

    return table


def show_claim_detail(claim: Claim):
    """Show detailed view of a single claim."""
    ext = claim.extraction
    fin = claim.finance

    console.print()
    console.print(Panel(f"[bold cyan]Claim: {claim.claim_number}[/bold cyan]  [dim]{claim.id}[/dim]", expand=False))

    console.print("\n[bold]📌 Basic Info[/bold]")
    console.print(f"  Company: {claim.company}")
    console.print(f"  Progress: [bold]{claim.progress_status}[/bold]")
    console.print(f"  Created: {format_datetime(claim.created_at)} by {claim.created_by}")
    console.print(f"  Updated: {format_datetime(claim.updated_at)}")

    console.print("\n[bold]🚢 Notification[/bold]")
    console.print(f"  Vessel: {ext.vessel_name or '[dim]Not found[/dim]'}")
    console.print(f"  IMO: {ext.imo or '[dim]Not found[/dim]'}")
    console.print(f"  Event Date: {ext.event_date_text or '[dim]Not found[/dim]'}")
    console.print(f"  Location: {ext.location_text or '[dim]Not found[/dim]'}")
    console.print(f"  Counterparty: {ext.counterparty_text or '[dim]Not found[/dim]'}")
    console.print(f"  Keywords: {', '.join(ext.incident_keywords) or '-'}")
    console.print(f"  Source: {ext.source.value} (confidence {ext.confidence:.2f})")
    for warning in ext.warnings:
        console.print(f"  [yellow]⚠ {warning}[/yellow]")

    covers = Table(title="🛡️ Covers", box=box.SIMPLE, header_style="bold cyan")
    covers.add_column("Cover", style="bold")
    covers.add_column("Confidence", justify="right")
    covers.add_column("Reasoning", overflow="fold")
    for cover in claim.classification.covers:
        color = "green" if cover.confidence >= 0.7 else "yellow" if cover.confidence >= 0.35 else "red"
        covers.add_row(cover.type.value, f"[{color}]{cover.confidence:.2f}[/{color}]", cover.reasoning)
    console.print()
    console.print(f"  Business role: {claim.classification.business_role.value}")
    console.print(covers)

    actions = Table(title="✅ Actions", box=box.SIMPLE, header_style="bold cyan")
    actions.add_column("Status")
    actions.add_column("Title", overflow="fold")
    actions.add_column("Owner")
    actions.add_column("Due", style="dim")
    actions.add_column("Reminder", style="dim")
    actions.add_column("ID", style="dim")
    for action in claim.actions:
        status = "[green]DONE[/green]" if action.status == ActionStatus.DONE else "OPEN"
        actions.add_row(
            status,
            action.title,
            action.owner_role.value,
            format_datetime(action.due_at),
            format_datetime(action.reminder_at) or "-",
            action.id[:8],
        )
    console.print(actions)

    console.print("[bold]💰 Finance[/bold]")
    console.print(f"  Reserve (estimate): {money(fin.reserve_estimated, fin.currency)}")
    console.print(f"  Cash out: {money(fin.cash_out, fin.currency)}")
    console.print(f"  Deductible: {money(fin.deductible, fin.currency)}")
    console.print(f"  Recoverable expected: {money(fin.recoverable_expected, fin.currency)}")
    console.print(f"  Recovered: {money(fin.recovered, fin.currency)}")
    console.print(f"  Outstanding recovery: [bold]{money(fin.outstanding_recovery, fin.currency)}[/bold]")
    if fin.notes:
        console.print(f"  Notes: {fin.notes}")

    console.print("\n[bold]📝 Audit Trail[/bold]")
    for entry in claim.audit_trail[-10:]:
        console.print(f"  {format_datetime(entry.at)}  [cyan]{entry.action}[/cyan]  {entry.by}: {truncate(entry.note, 80)}")
    if len(claim.audit_trail) > 10:
        console.print(f"  [dim]... and {len(claim.audit_trail) - 10} earlier entries[/dim]")


def make_reminder_table(items: list[ReminderItem]) -> Table:
    """Create table of due reminders."""
    table = Table(title="⏰ Due Reminders", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Reminder", style="bold")
    table.add_column("Claim No.")
    table.add_column("Vessel")
    table.add_column("Action", overflow="fold")
    table.add_column("Owner")
    table.add_column("Due", style="dim")

    now = datetime.now().astimezone()
    for item in items:
        reminder = format_datetime(item.reminder_at)
        if item.reminder_at <= now:
            reminder = "[red]" + reminder + "[/red]"
        table.add_row(
            reminder,
            item.claim_number,
            truncate(item.vessel_name, 25) or "-",
            item.action_title,
            item.owner_role,
            format_datetime(item.due_at),
        )
    return table


def find_claim(service: ClaimService, key: str) -> Optional[Claim]:
    """Look a claim up by internal id or claim number."""
    return service.store.get(key) or service.store.get_by_number(key)


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description="View stored marine claims")
    parser.add_argument("claim", nargs="?", help="Claim number or internal id to view")
    parser.add_argument("--export", action="store_true", help="Export claim as JSON")
    parser.add_argument("--reminders", action="store_true", help="Show due reminders")
    parser.add_argument("--days", type=float, help="Reminder window in days (default: setting)")
    parser.add_argument("--import-legacy", metavar="PATH", help="Import claims from a legacy claims.json")
    parser.add_argument("--db", help="Claim database path")

    args = parser.parse_args()

    store = ClaimStore(Path(args.db)) if args.db else get_claim_store()
    service = ClaimService(store)
    console.print(f"\n[bold]Database:[/bold] {store.db_path.resolve()}\n")

    if args.import_legacy:
        imported = store.import_legacy_json(Path(args.import_legacy))
        console.print(f"[green]Imported {imported} claim(s)[/green]")
        return

    if args.reminders:
        items = service.get_due_reminders(days_ahead=args.days)
        if not items:
            console.print("[yellow]No reminders due.[/yellow]")
            return
        console.print(make_reminder_table(items))
        return

    if args.claim:
        claim = find_claim(service, args.claim)
        if claim is None:
            console.print(f"[red]Claim not found: {args.claim}[/red]")
            sys.exit(1)
        if args.export:
            print(claim.model_dump_json(indent=2))
        else:
            show_claim_detail(claim)
        return

    claims = service.list_claims()
    if not claims:
        console.print("[yellow]No claims in database yet.[/yellow]")
        return
    console.print(make_summary_table(claims))
    console.print(f"\n[bold]Total claims:[/bold] {len(claims)}")


if __name__ == "__main__":
    main()
