"""CLI interface module - command-line arguments, progress output and the final report."""

import sys
from pathlib import Path
from typing import Iterable, List
import logging

import click
from tqdm import tqdm

from exif_sorter.config import DEFAULT_EXTENSIONS, SorterConfig
from exif_sorter.errors import InvalidSourceDirectory
from exif_sorter.interactive import run_interactive
from exif_sorter.pipeline import ALL, SortSession, run
from exif_sorter.record import BatchReport, MoveResult, RecordStatus

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def tqdm_progress(iterable: Iterable, desc: str) -> Iterable:
    """Progress wrapper handed to the pipeline."""
    return tqdm(iterable, desc=desc, unit="file")


def preview_changes(previews: List[MoveResult], max_preview: int = 50):
    """Print the planned moves of a dry run."""
    print("\n" + "="*60)
    print("PREVIEW (DRY-RUN MODE - No files will be moved)")
    print("="*60)

    for result in previews[:max_preview]:
        print(f"  {result.src}  ->  {result.dst}")

    if len(previews) > max_preview:
        remaining = len(previews) - max_preview
        print(f"\n  ... and {remaining:,} more files")

    print("="*60 + "\n")


def print_report(report: BatchReport, dry_run: bool):
    """Print statistics and per-file problems of a finished run."""
    print("\n" + "="*60)
    print("SORTING REPORT")
    print("="*60)
    if dry_run:
        print(f"Files planned:            {len(report.previews):,}")
    else:
        print(f"Files moved:              {report.moved:,}")
    print(f"Files failed:             {len(report.failed):,}")
    print(f"Skipped:                  {len(report.skipped):,}")
    print("="*60)

    if report.cancelled:
        click.secho("  Cancelled - remaining files were not moved", fg='red')
    for path, reason in report.failed:
        click.secho(f"  FAILED   {path}: {reason}", fg='red')
    for path in report.skipped:
        click.secho(f"  SKIPPED  {path}", fg='yellow')
    for path, reason in report.diagnostics:
        click.secho(f"  WARNING  {path}: {reason}", fg='yellow')
    print()


def confirm_proceed(count: int, target_dir: Path) -> bool:
    """Prompt user to confirm before moving files."""
    print("\n" + "="*60)
    print("CONFIRMATION REQUIRED")
    print("="*60)
    print(f"This will MOVE {count:,} files into {target_dir}.")
    print("="*60)

    while True:
        response = input("\nDo you want to proceed? (yes/no): ").strip().lower()
        if response in ['yes', 'y']:
            return True
        elif response in ['no', 'n']:
            return False
        else:
            print("Please enter 'yes' or 'no'")


def _confirmed_run(config: SorterConfig) -> BatchReport:
    """Scan first, ask, then move."""
    session = SortSession(config, progress=tqdm_progress)
    session.scan()
    pending = sum(1 for view in session.snapshot() if view.status is RecordStatus.RESOLVED)
    if pending == 0:
        print("No files to move.")
        return session.report()

    if not confirm_proceed(pending, config.target_dir):
        print("\nOperation cancelled by user.")
        sys.exit(0)

    session.process(ALL)
    return session.report()


@click.command()
@click.version_option(package_name='exif-sorter')
@click.option(
    '--source-dir',
    '-s',
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default='.',
    show_default=True,
    help='Directory to walk through and search for exif data'
)
@click.option(
    '--target-dir',
    '-t',
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default='./sorted',
    show_default=True,
    help='Base directory to move source files into'
)
@click.option(
    '--include-target',
    is_flag=True,
    default=False,
    help='Include target directory while searching for exif data'
)
@click.option(
    '--dry-run',
    is_flag=True,
    default=False,
    help='Print findings instead of moving any file'
)
@click.option(
    '--no-subdirectory',
    is_flag=True,
    default=False,
    help='Put files directly into the target directory instead of one folder per day'
)
@click.option(
    '--rename-by-sequence',
    is_flag=True,
    default=False,
    help='Name files after their EXIF image number when present'
)
@click.option(
    '--all-files',
    is_flag=True,
    default=False,
    help='Consider every file, not only known image extensions'
)
@click.option(
    '--yes',
    '-y',
    is_flag=True,
    default=False,
    help='Move without asking for confirmation'
)
@click.option(
    '--interactive',
    '-i',
    is_flag=True,
    default=False,
    help='Start the interactive view'
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    default=False,
    help='Enable verbose output'
)
def main(source_dir: Path, target_dir: Path, include_target: bool, dry_run: bool, no_subdirectory: bool,
         rename_by_sequence: bool, all_files: bool, yes: bool, interactive: bool, verbose: bool):
    """
    EXIF Sorter - Move images into one folder per capture date.

    The date comes from the EXIF capture time, falling back to the file's
    creation and then modification time. Files are never overwritten;
    clashing names get a _1, _2, ... suffix.
    """
    setup_logging(verbose)

    config = SorterConfig(
        source_dir=source_dir,
        target_dir=target_dir,
        include_target=include_target,
        dry_run=dry_run,
        use_subdirectory=not no_subdirectory,
        rename_by_sequence=rename_by_sequence,
        extensions=None if all_files else DEFAULT_EXTENSIONS,
    )

    try:
        if interactive:
            report = run_interactive(SortSession(config))
        else:
            print("EXIF Sorter")
            print("="*60)
            print(f"Source:      {config.source_dir}")
            print(f"Target:      {config.target_dir}")
            print(f"Mode:        {'DRY-RUN (preview only)' if dry_run else 'LIVE (move files)'}")
            print("="*60 + "\n")

            if dry_run or yes:
                report = run(config, progress=tqdm_progress)
            else:
                report = _confirmed_run(config)

            if dry_run:
                preview_changes(report.previews)
            print_report(report, dry_run)

    except InvalidSourceDirectory as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        sys.exit(1)

    if not report.ok:
        sys.exit(1)


if __name__ == '__main__':
    main()
