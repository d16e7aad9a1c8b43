"""
Main application entry point for LeagueMail.

Provides a CLI for inspecting configuration and browsing the contact
directory the way the recipient picker sees it.
"""

import asyncio
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from leaguemail.contacts import deduplicate_contacts, normalize_contact, validate_contact_collection
from leaguemail.core.config import get_settings, print_configuration_summary, validate_required_settings
from leaguemail.core.error_handling import get_recovery_actions
from leaguemail.core.exceptions import ConfigurationError, DirectoryServiceError
from leaguemail.core.logging import set_correlation_id, setup_logging
from leaguemail.data.directory_client import HttpDirectoryClient

console = Console()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--correlation-id", help="Set correlation ID for request tracing")
@click.pass_context
def main(ctx, debug: bool, correlation_id: Optional[str]):
    """Recipient selection tools for league bulk email."""
    ctx.ensure_object(dict)

    settings = get_settings()
    setup_logging(debug=debug or settings.debug, rich_output=not settings.log_json)

    if correlation_id:
        set_correlation_id(correlation_id)

    ctx.obj["debug"] = debug
    ctx.obj["correlation_id"] = correlation_id


@main.command()
@click.pass_context
def config(ctx):
    """Display current configuration."""
    try:
        console.print("[blue]LeagueMail Configuration[/blue]")

        missing = validate_required_settings()
        if missing:
            console.print("[red]Configuration Issues:[/red]")
            for item in missing:
                console.print(f"  - Missing: {item}")
            console.print()
        else:
            console.print("[green]Configuration Valid[/green]")
            console.print()

        print_configuration_summary()

        sys.exit(0 if not missing else 1)

    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        sys.exit(1)


async def _fetch_contacts(account_id: str, token: Optional[str], page: int, limit: int, search: Optional[str]):
    settings = get_settings()
    async with HttpDirectoryClient(settings.directory) as client:
        if search:
            return await client.search_page(account_id, token, search, page=page, limit=limit)
        return await client.fetch_page(
            account_id,
            token,
            page=page,
            limit=limit,
            include_roles=settings.selection.include_roles,
            include_details=settings.selection.include_details,
        )


@main.command()
@click.argument("account_id")
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page to fetch (default: 1)")
@click.option("--limit", type=click.IntRange(min=1), help="Page size (default: SELECTION_PAGE_SIZE)")
@click.option("--search", "search", help="Search query")
@click.option("--token", envvar="LEAGUEMAIL_API_TOKEN", help="Bearer token for the directory service")
@click.pass_context
def contacts(ctx, account_id: str, page: int, limit: Optional[int], search: Optional[str], token: Optional[str]):
    """Fetch one page of an account's contacts and show who can be emailed."""
    settings = get_settings()
    limit = limit or settings.selection.page_size

    try:
        result = asyncio.run(_fetch_contacts(account_id, token, page, limit, search))
    except DirectoryServiceError as e:
        console.print(f"[red]Directory Error ({e.kind.value}):[/red] {e.user_message}")
        for action in get_recovery_actions(e):
            console.print(f"  - {action}")
        if ctx.obj["debug"]:
            console.print(e.to_dict())
        sys.exit(1)

    normalized = [normalize_contact(raw) for raw in result.contacts]
    report = validate_contact_collection(normalized)
    page_contacts = deduplicate_contacts(normalized)

    title = f"Contacts page {page}" + (f" matching '{search}'" if search else "")
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Email", style="white")
    table.add_column("Phone", style="white")
    table.add_column("Roles", style="dim")
    table.add_column("Selectable", style="white")

    for contact in page_contacts:
        roles = ", ".join(role.role_name for role in contact.roles if role.role_name)
        selectable = "[green]yes[/green]" if contact.has_valid_email else "[red]no[/red]"
        table.add_row(
            contact.id,
            contact.display_name,
            contact.email or "",
            contact.phone or "",
            roles,
            selectable,
        )

    console.print(table)
    console.print(
        f"Valid emails: {report.valid_email_count}  Invalid: {report.invalid_email_count}  "
        f"Duplicates: {report.duplicate_count}"
    )
    for issue in report.data_quality_issues:
        console.print(f"[yellow]  - {issue}[/yellow]")

    nav = []
    if result.has_prev:
        nav.append(f"--page {page - 1}")
    if result.has_next:
        nav.append(f"--page {page + 1}")
    if nav:
        console.print(f"[dim]More pages: {', '.join(nav)}[/dim]")


if __name__ == "__main__":
    main()
