"""Batch commands run by the external scheduler.

Every command exits 0 when it completes, per-row problems only show up in the
counts. An unreachable store still fails the command.
"""

import logging

import typer
from rich.console import Console

from assessment_engine.core.clock import Clock, utcnow
from assessment_engine.db.init_db import init_db
from assessment_engine.db.session import SessionLocal
from assessment_engine.jobs.expiry import auto_submit_expired
from assessment_engine.jobs.materializer import materialise_assignments
from assessment_engine.jobs.reminders import send_reminders
from assessment_engine.services.notifications import DatabaseNotificationChannel

logging.basicConfig(level=logging.INFO)

app = typer.Typer(help="Scheduled jobs for the assessment assignment lifecycle.")
console = Console()

clock: Clock = utcnow


@app.callback()
def main() -> None:
    init_db()


def _dry_run_banner(dry_run: bool) -> None:
    if dry_run:
        console.print("[yellow]Dry run: nothing will be written.[/yellow]")


@app.command("auto-submit-expired")
def auto_submit_expired_command(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Report how many assignments would be submitted without writing."
    ),
) -> None:
    """Force-submit supervised assignments whose time is up."""
    _dry_run_banner(dry_run)
    db = SessionLocal()
    try:
        result = auto_submit_expired(db, now=clock(), dry_run=dry_run)
    finally:
        db.close()

    console.print(f"Submitted: {result.submitted}")
    console.print(f"Skipped: {result.skipped}")


@app.command("materialise-assignments")
def materialise_assignments_command(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Report how many assignments would be created without writing."
    ),
) -> None:
    """Create missing assignments for every active enrollment of ended assessments."""
    _dry_run_banner(dry_run)
    db = SessionLocal()
    try:
        result = materialise_assignments(db, now=clock(), dry_run=dry_run)
    finally:
        db.close()

    console.print(f"Created: {result.created}")
    console.print(f"Skipped: {result.skipped}")


@app.command("send-reminders")
def send_reminders_command() -> None:
    """Notify students of supervised assessments starting soon."""
    db = SessionLocal()
    try:
        result = send_reminders(db, DatabaseNotificationChannel(SessionLocal), now=clock())
    finally:
        db.close()

    console.print(f"Reminded: {result.assessments}")
    console.print(f"Notifications: {result.sent}")
    console.print(f"Failed: {result.failed}")
    console.print(f"Skipped: {result.skipped}")


if __name__ == "__main__":
    app()
