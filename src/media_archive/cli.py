import asyncio
import logging
import sys

import typer

if sys.platform == "win32":
    # Принудительно устанавливаем политику, которая использует SelectorEventLoop.
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from media_archive import create_archive_client, create_engine_for
from media_archive.config import get_settings
from media_archive.confirmation import AwaitingConfirmation, ConfirmationDecision
from media_archive.db.base import Base
from media_archive.exceptions import ArchiveError
from media_archive.logging import configure
from media_archive.utils.cli_utils import archive_table, get_rich_console

app = typer.Typer(help="CLI for media-archive management.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level.")):
    settings = get_settings()
    configure("DEBUG" if verbose else settings.log_level, debug=settings.debug)


@app.command()
def init():
    """
    Initializes all necessary services: creates DB tables and prepares blob storage.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    with console.status("Creating database tables...", spinner="dots"):
        async def _create_tables():
            try:
                engine = create_engine_for(get_settings().database)
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                await engine.dispose()
                console.log("[bold green]✔[/bold green] Database tables created successfully.")
            except Exception as e:
                console.log(f"[bold red]✖[/bold red] Database initialization FAILED: {e}")
                raise typer.Exit(code=1)

        asyncio.run(_create_tables())

    with console.status("Preparing blob storage...", spinner="dots"):
        async def _init_storage():
            client = create_archive_client()
            try:
                await client.store.blobs.ensure_ready()
                console.log(f"[bold green]✔[/bold green] Blob storage ({get_settings().storage.backend}) is ready.")
            except ArchiveError as e:
                console.log(f"[bold red]✖[/bold red] Blob storage initialization FAILED: {e}")
                raise typer.Exit(code=1)
            finally:
                await client.aclose()

        asyncio.run(_init_storage())

    console.print("\n[bold green]All services initialized successfully![/bold green]")


@app.command()
def check():
    """Checks connectivity to the database and blob storage."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        client = create_archive_client()
        try:
            return await client.check_connections()
        finally:
            await client.aclose()

    statuses = asyncio.run(_check())
    failed = False
    for name, label in (("database", "Database"), ("storage", "Blob storage")):
        status = statuses.get(name, "unknown error")
        if status == "ok":
            console.print(f"[bold green]✔[/bold green] {label} connection: OK")
        else:
            failed = True
            console.print(f"[bold red]✖[/bold red] {label} connection: FAILED ({status})")
    if failed:
        raise typer.Exit(code=1)


@app.command("ls")
def list_channel(
    channel_id: str = typer.Argument(..., help="Channel whose archive to list."),
    page: int = typer.Option(1, "--page", "-p", min=1),
):
    """Lists archived items of a channel, newest first."""
    async def _list():
        client = create_archive_client()
        try:
            return await client.store.list(channel_id, page, client.config.page_size)
        finally:
            await client.aclose()

    archive_page = asyncio.run(_list())
    if not archive_page.records:
        console.print(f"No items on page {page} of '{channel_id}'.")
        return
    console.print(archive_table(channel_id, archive_page))


@app.command("rm")
def remove(
    channel_id: str = typer.Argument(...),
    index: int = typer.Argument(..., help="1-based position, newest first."),
):
    """Deletes one archived item (operator command, no role check)."""
    async def _remove():
        client = create_archive_client()
        try:
            return await client.store.delete_by_index(channel_id, index)
        finally:
            await client.aclose()

    try:
        record = asyncio.run(_remove())
    except ArchiveError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✔[/bold green] Deleted {record.stored_file_name} (record #{record.id})")


@app.command()
def purge(
    channel_id: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """Removes every archived item of a channel."""
    pending = AwaitingConfirmation.start(channel_id, "cli")
    if yes or typer.confirm(f"Remove the whole archive of '{channel_id}'?", default=False):
        decision = ConfirmationDecision.confirmed
    else:
        decision = ConfirmationDecision.cancelled

    async def _purge():
        client = create_archive_client()
        try:
            return await client.clear(pending, decision)
        finally:
            await client.aclose()

    result = asyncio.run(_purge())
    if result.decision is not ConfirmationDecision.confirmed:
        console.print("Cancelled.")
        return
    console.print(f"[bold green]✔[/bold green] Removed {result.removed} item(s) from '{channel_id}'")


if __name__ == "__main__":
    app()
