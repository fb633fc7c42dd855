from rich.console import Console
from rich.table import Table

from media_archive.models.record import ArchivePage


def get_rich_console() -> Console: return Console(stderr=True)


def archive_table(channel_id: str, page: ArchivePage) -> Table:
    table = Table(title=f"{channel_id} (page {page.page}/{page.total_pages}, {page.total} total)")
    table.add_column("#", justify="right")
    table.add_column("id", justify="right")
    table.add_column("file")
    table.add_column("mime")
    table.add_column("size", justify="right")
    table.add_column("created")
    for number, record in enumerate(page.records, start=page.offset + 1):
        table.add_row(
            str(number),
            str(record.id),
            record.stored_file_name,
            record.mime_type,
            f"{record.size_kb:.1f}KB",
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    return table
