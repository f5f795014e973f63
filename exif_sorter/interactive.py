"""Interactive view - renders batch snapshots and sends scan/process commands to a SortSession."""

from typing import List
import logging

import click

from exif_sorter.errors import InvalidSourceDirectory
from exif_sorter.pipeline import ALL, SortSession
from exif_sorter.record import BatchReport, RecordStatus, RecordView

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    RecordStatus.PENDING: 'white',
    RecordStatus.RESOLVED: 'cyan',
    RecordStatus.COLLIDED: 'yellow',
    RecordStatus.MOVED: 'green',
    RecordStatus.FAILED: 'red',
}

COMMANDS = "[s] scan  [p] process all  [P] process selected  [q] quit"


def parse_selection(text: str) -> List[int]:
    """
    Parse a selection such as '0, 2-4' into [0, 2, 3, 4].

    Raises:
        ValueError: On anything that is not an index or a range
    """
    indices = []
    for part in text.replace(' ', '').split(','):
        if not part:
            continue
        if '-' in part:
            start, end = part.split('-', 1)
            first, last = int(start), int(end)
            if first > last:
                raise ValueError(f"Empty range: {part}")
            indices.extend(range(first, last + 1))
        else:
            indices.append(int(part))
    if not indices:
        raise ValueError("Nothing selected")
    return indices


def format_row(view: RecordView) -> str:
    status = click.style(f"{view.status.name:<9}", fg=STATUS_COLORS[view.status])
    day = view.resolved_date.isoformat() if view.resolved_date else "-" * 10
    source = f"({view.date_source.value})" if view.date_source else ""
    line = f"{view.index:>4}  {status} {day} {source:<10} {view.source_path}"
    if view.target_path is not None:
        line += f"  ->  {view.target_path}"
    if view.reason:
        line += "  " + click.style(view.reason, fg='red')
    return line


def render(session: SortSession) -> None:
    snapshot = session.snapshot()
    click.echo("")
    click.secho(f"[1] Source directory: {session.config.source_dir}", bold=True)
    click.secho(f"[2] Target directory: {session.config.target_dir}", bold=True)
    if not snapshot:
        click.echo("  (no files - press s to scan)")
    for view in snapshot:
        click.echo(format_row(view))
    click.echo("")


def render_report(report: BatchReport) -> None:
    click.echo(report.summary())
    if report.cancelled:
        click.secho("  cancelled", fg='red')
    for path in report.skipped:
        click.secho(f"  skipped {path}", fg='yellow')


def run_interactive(session: SortSession) -> BatchReport:
    """
    Command loop until the user quits.

    Returns:
        The session's cumulative report
    """
    while True:
        render(session)
        command = click.prompt(COMMANDS, default='q', show_default=False).strip()

        if command == 'q':
            break

        try:
            if command == 's':
                source = click.prompt("Source directory", default=str(session.config.source_dir))
                render_report(session.scan(source))
            elif command in ('p', 'P') and not session.scanned:
                click.secho("Scan a source directory first.", fg='red')
            elif command == 'p':
                render_report(session.process(ALL))
            elif command == 'P':
                text = click.prompt("Indices (e.g. 0,2-4)")
                render_report(session.process(parse_selection(text)))
            else:
                click.echo(f"Unknown command: {command}")
        except InvalidSourceDirectory as e:
            click.secho(str(e), fg='red', err=True)
        except (ValueError, IndexError) as e:
            click.secho(f"Invalid selection: {e}", fg='red')
        except KeyboardInterrupt:
            click.secho("Interrupted.", fg='red')

    return session.report()
