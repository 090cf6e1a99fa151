"""
View stored claims from the terminal.

Usage:
    python -m src.claims.cli                      # List stored claims
    python -m src.claims.cli clm_xxx              # View specific claim details
    python -m src.claims.cli --status "In Review" # Filter by status
    python -m src.claims.cli --insurer            # Insurer view (includes demo claims)
    python -m src.claims.cli --stats              # Show statistics
    python -m src.claims.cli --login EMAIL --password PASSWORD
    python -m src.claims.cli --mine               # Claims visible to the logged-in user
    python -m src.claims.cli --logout
"""

import argparse
import json
import logging
from datetime import datetime
from typing import List, Optional

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..auth.rate_limit import RateLimiter
from ..auth.session import SessionStore
from ..backend import PortalDataSource, create_data_source
from ..storage import ClaimStats, ClaimStore, get_claim_store
from ..utils.config import Settings, get_settings
from ..utils.errors import BackendError
from .schema import ClaimRecord, ClaimStatus
from .validation import validate_login_form
from .views import ClaimQuery, compose_claims_view, filter_claims, sort_claims

logger = logging.getLogger(__name__)
console = Console()

STATUS_COLORS = {
    ClaimStatus.APPROVED: "green",
    ClaimStatus.REJECTED: "red",
    ClaimStatus.IN_REVIEW: "yellow",
    ClaimStatus.PENDING_INFO: "yellow",
    ClaimStatus.CLOSED: "dim",
}


def format_datetime(dt: Optional[datetime]) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else ""


def truncate(text: Optional[str], max_len: int = 50) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    if len(text) > max_len:
        return text[:max_len - 3] + "..."
    return text


def styled_status(status: ClaimStatus) -> str:
    color = STATUS_COLORS.get(status)
    return f"[{color}]{status.value}[/{color}]" if color else status.value


def risk_color(score: int) -> str:
    return "green" if score <= 40 else "yellow" if score <= 70 else "red"


def make_claims_table(claims: List[ClaimRecord], title: str = "📋 Claims") -> Table:
    """Summary table with one row per claim."""
    table = Table(title=title, box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Claim #", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Submitted", style="dim")
    table.add_column("Status")
    table.add_column("Policyholder")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Risk", justify="right")

    for claim in claims:
        color = risk_color(claim.risk_score)
        table.add_row(
            claim.claim_number,
            claim.id,
            format_datetime(claim.submitted_at),
            styled_status(claim.status),
            truncate(claim.policyholder_name, 20),
            truncate(claim.claim_type, 18),
            f"R{claim.amount_claimed:,.0f}",
            f"[{color}]{claim.risk_score}[/{color}]",
        )
    return table


def show_claim_detail(claim: ClaimRecord) -> None:
    """Detailed view of a single claim with its audit trail."""
    console.print()
    console.print(Panel(f"[bold cyan]Claim {claim.claim_number}[/bold cyan]  [dim]{claim.id}[/dim]", expand=False))

    console.print("\n[bold]📌 Basic Info[/bold]")
    console.print(f"  Status: {styled_status(claim.status)}")
    console.print(f"  Priority: {claim.priority.value}")
    console.print(f"  Submitted: {format_datetime(claim.submitted_at)}")
    console.print(f"  Last Activity: {format_datetime(claim.last_activity)}")
    if claim.assigned_to:
        console.print(f"  Assigned To: {claim.assigned_to}")

    console.print("\n[bold]🔥 Incident[/bold]")
    console.print(f"  Policyholder: {claim.policyholder_name}")
    console.print(f"  Policy #: {claim.policy_number or '[dim]Not provided[/dim]'}")
    console.print(f"  Type: {claim.claim_type}")
    console.print(f"  Date of Loss: {claim.date_of_loss or '[dim]Not provided[/dim]'}")
    console.print(f"  Location: {claim.location or '[dim]Not provided[/dim]'}")
    console.print(f"  Amount: [bold]R{claim.amount_claimed:,.2f}[/bold]")
    if claim.description:
        console.print("  Description:")
        for line in claim.description.split("\n"):
            console.print(f"    {line}")

    color = risk_color(claim.risk_score)
    console.print(f"\n[bold]⚠️ Risk[/bold]: [{color}]{claim.risk_score}[/{color}]")
    for alert in claim.fraud_alerts[:5]:
        console.print(f"    - {alert.get('message', alert)}")

    if claim.documents:
        console.print("\n[bold]📎 Documents[/bold]")
        for doc in claim.documents:
            console.print(f"  {doc.name} ({doc.type}{', ' + doc.size if doc.size else ''})")

    if claim.notes:
        console.print("\n[bold]📝 Notes[/bold]")
        for note in claim.notes:
            console.print(f"  [dim]{format_datetime(note.timestamp)}[/dim] {note.author}: {note.content}")

    console.print("\n[bold]🕒 Audit Trail[/bold]")
    for entry in claim.audit_trail:
        console.print(f"  [dim]{format_datetime(entry.timestamp)}[/dim] {entry.event} [cyan]({entry.actor})[/cyan]")


def show_stats(stats: ClaimStats) -> None:
    lines = [f"Total Claims: [bold]{stats.total}[/bold]", ""]
    for status, count in stats.by_status.items():
        if count:
            lines.append(f"  {status}: {count}")
    lines += [
        "",
        f"Total Claimed: R{stats.total_amount:,.2f}",
        f"Average Risk Score: {stats.avg_risk_score:.1f}",
    ]
    console.print(Panel("\n".join(lines), title="Claim Statistics", expand=False))


def login(
    session: SessionStore,
    data_source: PortalDataSource,
    limiter: RateLimiter,
    settings: Settings,
    email: str,
    password: str,
) -> int:
    """Log in through the data source and keep the session for later runs."""
    result = validate_login_form(email, password or "")
    if not result.is_valid:
        for field, message in result.errors.items():
            console.print(f"[red]{field}:[/red] {message}")
        return 1

    limit_key = f"login_{email.lower()}"
    if not limiter.check(limit_key, settings.login_max_attempts, settings.login_window_seconds):
        console.print("[red]Too many login attempts. Please try again later.[/red]")
        return 1

    try:
        auth = data_source.login(email, password)
    except BackendError as e:
        console.print(f"[red]Login failed:[/red] {e}")
        return 1
    limiter.clear(limit_key)
    session.save(auth.user, auth.token)
    console.print(f"Logged in as [bold]{auth.user.name}[/bold] ({auth.user.role.value})")
    return 0


def logout(session: SessionStore, data_source: PortalDataSource) -> int:
    token = session.token()
    if token:
        try:
            data_source.logout(token)
        except BackendError as e:
            logger.warning(f"Backend logout failed: {e}")
    session.logout()
    console.print("Logged out.")
    return 0


def main(
    argv: Optional[List[str]] = None,
    store: Optional[ClaimStore] = None,
    data_source: Optional[PortalDataSource] = None,
) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="View stored claims")
    parser.add_argument("claim_id", nargs="?", help="Specific claim ID to view")
    parser.add_argument("--status", choices=[s.value for s in ClaimStatus], help="Filter by status")
    parser.add_argument("--stats", action="store_true", help="Show statistics")
    parser.add_argument("--insurer", action="store_true", help="Show the insurer view, including demo claims")
    parser.add_argument("--export", action="store_true", help="Export claim as JSON")
    parser.add_argument("--login", metavar="EMAIL", help="Log in and remember the session")
    parser.add_argument("--password", help="Password for --login")
    parser.add_argument("--logout", action="store_true", help="End the remembered session")
    parser.add_argument("--mine", action="store_true", help="Show the claims visible to the logged-in user")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s - %(name)s - %(message)s")
    store = store or get_claim_store()
    session = SessionStore(store.kv)

    if args.login or args.logout or args.mine:
        data_source = data_source or create_data_source(settings)
        if args.login:
            return login(session, data_source, RateLimiter(store.kv), settings, args.login, args.password)
        if args.logout:
            return logout(session, data_source)

    if args.stats:
        show_stats(store.stats())
        return 0

    if args.claim_id:
        claim = store.get(args.claim_id)
        if claim is None:
            console.print(f"[red]Claim not found:[/red] {args.claim_id}")
            return 1
        if args.export:
            console.print_json(json.dumps(claim.to_storage()))
        else:
            show_claim_detail(claim)
        return 0

    query = ClaimQuery(status=ClaimStatus(args.status) if args.status else None)
    if args.mine:
        try:
            user = session.current_user(settings.token_secret, data_source)
        except BackendError as e:
            console.print(f"[red]Could not verify session:[/red] {e}")
            return 1
        if user is None:
            console.print("[yellow]Not logged in. Use --login EMAIL --password PASSWORD.[/yellow]")
            return 1
        claims = compose_claims_view(store, user, query)
        title = f"📋 Claims for {user.name}"
    else:
        claims = store.insurer_view() if args.insurer else store.list_all()
        claims = sort_claims(filter_claims(claims, query), query.sort_by, query.descending)
        title = "📋 Insurer View" if args.insurer else "📋 Stored Claims"

    if not claims:
        console.print("[yellow]No claims found.[/yellow]")
        return 0
    console.print(make_claims_table(claims, title=title))
    console.print(f"Total: {len(claims)} claim(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
