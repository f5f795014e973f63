"""Scan pipeline module - runs discovery, extraction, date resolution, planning, collision handling and moves over a batch."""

import dataclasses
import signal
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union
import logging

from exif_sorter.analyzer import extract_metadata
from exif_sorter.config import SorterConfig
from exif_sorter.errors import (
    DateResolutionExhausted,
    ExtractionIOError,
    InvalidSourceDirectory,
    SorterError,
)
from exif_sorter.mover import REASON_DRY_RUN, REASON_IN_PLACE, move_record
from exif_sorter.namer import resolve_collisions
from exif_sorter.organizer import organize_by_date
from exif_sorter.record import BatchReport, ImageRecord, MoveResult, RecordStatus, RecordView
from exif_sorter.resolver import resolve_date
from exif_sorter.scanner import scan_folder

logger = logging.getLogger(__name__)

Progress = Callable[[Iterable, str], Iterable]

ALL = "all"
Selection = Union[str, Sequence[int]]


class PipelineStage(Enum):
    DISCOVERING = "discovering"
    EXTRACTING = "extracting"
    RESOLVING = "resolving"
    PLANNING = "planning"
    COLLIDING = "colliding"
    MOVING = "moving"
    DONE = "done"


def _no_progress(iterable: Iterable, desc: str) -> Iterable:
    return iterable


def validate_source(source_dir: Path) -> Path:
    """
    Check the source folder before anything is scanned.

    Raises:
        InvalidSourceDirectory: If it does not exist or is not a folder
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise InvalidSourceDirectory(source_dir)
    return source_dir.absolute()


@contextmanager
def _deferred_interrupt(on_interrupt: Callable[[], None]):
    """Turn Ctrl-C into a call to `on_interrupt` so the current move finishes first."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        logger.warning("Interrupt received, stopping after the current file")
        on_interrupt()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


class ScanPipeline:
    """
    Runs one batch through all stages.

    Each stage finishes for the whole batch before the next starts, since
    collision handling needs every planned target. Per-file problems end up
    on the records; only an invalid source folder is raised.
    """

    def __init__(self, config: SorterConfig, progress: Optional[Progress] = None):
        self.config = config
        self.progress = progress or _no_progress
        self.stage: Optional[PipelineStage] = None
        self.records: List[ImageRecord] = []
        self.skipped: List[Path] = []
        self.results: List[MoveResult] = []
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop before the next move. Moves already done stay done."""
        self._cancelled = True

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.debug(f"Pipeline stage: {stage.value}")

    def discover(self) -> List[ImageRecord]:
        self._enter(PipelineStage.DISCOVERING)
        source = validate_source(self.config.source_dir)
        exclude = None if self.config.include_target else self.config.target_dir.absolute()

        files, skipped = scan_folder(
            source,
            exclude=exclude,
            extensions=self.config.extensions,
            ignore_hidden=self.config.ignore_hidden,
        )
        self.skipped.extend(skipped)
        self.records = [ImageRecord(path) for path in files]
        return self.records

    def extract(self) -> None:
        self._enter(PipelineStage.EXTRACTING)
        for record in self.progress(self.records, "Reading metadata"):
            if not record.is_active:
                continue
            try:
                record.metadata = extract_metadata(record.source_path)
            except ExtractionIOError as e:
                self._fail(record, e)

    def resolve(self) -> None:
        self._enter(PipelineStage.RESOLVING)
        for record in self.records:
            if not record.is_active or record.metadata is None:
                continue
            try:
                resolved = resolve_date(record.metadata, record.source_path)
            except DateResolutionExhausted as e:
                self._fail(record, e)
                continue
            record.diagnostics.extend(resolved.diagnostics)
            record.resolve(resolved.date, resolved.source)

    def plan(self, records: Optional[List[ImageRecord]] = None) -> None:
        self._enter(PipelineStage.PLANNING)
        organize_by_date(
            self.records if records is None else records,
            self.config.target_dir.absolute(),
            use_subdirectory=self.config.use_subdirectory,
            rename_by_sequence=self.config.rename_by_sequence,
        )

    def collide(self, records: Optional[List[ImageRecord]] = None) -> None:
        self._enter(PipelineStage.COLLIDING)
        resolve_collisions(self.records if records is None else records, check_disk=not self.config.dry_run)

    def move(self, records: Optional[List[ImageRecord]] = None) -> List[MoveResult]:
        self._enter(PipelineStage.MOVING)
        results = []
        batch = [r for r in (self.records if records is None else records) if r.is_active and r.target_path]
        with _deferred_interrupt(self.cancel):
            for record in self.progress(batch, "Previewing" if self.config.dry_run else "Moving files"):
                if self._cancelled:
                    logger.warning("Cancelled, remaining files were not moved")
                    break
                results.append(move_record(record, dry_run=self.config.dry_run))
        # a record previewed again replaces its earlier result
        done = {result.src for result in results}
        self.results = [r for r in self.results if r.src not in done] + results
        return results

    def execute(self) -> BatchReport:
        """Run every stage over a fresh batch and return the report."""
        self.discover()
        self.extract()
        self.resolve()
        self.plan()
        self.collide()
        self.move()
        self._enter(PipelineStage.DONE)
        report = build_report(self.records, self.skipped, self.results, cancelled=self._cancelled)
        logger.info(f"Batch done - {report.summary()}")
        return report

    def _fail(self, record: ImageRecord, error: SorterError) -> None:
        logger.error(f"{record.source_path}: {error.reason}")
        record.fail(error)


def build_report(records: Iterable[ImageRecord], skipped: Iterable[Path], results: Iterable[MoveResult],
                 cancelled: bool = False) -> BatchReport:
    report = BatchReport(skipped=list(skipped), cancelled=cancelled)
    for result in results:
        if result.performed:
            report.moved += 1
        elif result.reason == REASON_DRY_RUN:
            report.previews.append(result)
        elif result.reason == REASON_IN_PLACE:
            report.skipped.append(result.src)
    for record in records:
        if record.status is RecordStatus.FAILED:
            report.failed.append((record.source_path, record.error.reason))
        for diagnostic in record.diagnostics:
            report.diagnostics.append((record.source_path, diagnostic.reason))
    return report


def run(config: SorterConfig, progress: Optional[Progress] = None) -> BatchReport:
    """
    Sort the images of `config.source_dir` into `config.target_dir`.

    Raises:
        InvalidSourceDirectory: If the source folder is unusable
    """
    return ScanPipeline(config, progress).execute()


class SortSession:
    """
    Batch holder for interactive use.

    scan() replaces the batch with a fresh one, process() plans and moves
    some or all of it, snapshot() hands out read-only views.
    """

    def __init__(self, config: SorterConfig, progress: Optional[Progress] = None):
        self.config = config
        self.progress = progress
        self._pipeline: Optional[ScanPipeline] = None

    @property
    def scanned(self) -> bool:
        return self._pipeline is not None

    def scan(self, source_dir: Optional[Path] = None) -> BatchReport:
        """
        Discover, extract and resolve dates for a new batch. Nothing is moved.

        Raises:
            InvalidSourceDirectory: If the source folder is unusable
        """
        if source_dir is not None:
            self.config = dataclasses.replace(self.config, source_dir=Path(source_dir))
        pipeline = ScanPipeline(self.config, self.progress)
        pipeline.discover()
        pipeline.extract()
        pipeline.resolve()
        self._pipeline = pipeline
        return build_report(pipeline.records, pipeline.skipped, [])

    def process(self, selection: Selection = ALL) -> BatchReport:
        """
        Plan and move the selected records (ALL or a list of snapshot indices).

        Raises:
            RuntimeError: If nothing was scanned yet
            IndexError: If an index is out of range
        """
        if self._pipeline is None:
            raise RuntimeError("Nothing scanned yet")
        pipeline = self._pipeline
        if selection == ALL:
            chosen = list(pipeline.records)
        else:
            chosen = []
            for index in sorted(set(selection)):
                if not 0 <= index < len(pipeline.records):
                    raise IndexError(f"No record with index {index}")
                chosen.append(pipeline.records[index])
        chosen = [r for r in chosen if r.is_active]

        # targets claimed by earlier calls stay reserved ahead of new ones
        earlier = [r for r in pipeline.records if r.is_active and r.target_path is not None]
        fresh = [r for r in chosen if r.target_path is None]
        pipeline.plan(fresh)
        pipeline.collide(earlier + fresh)

        pipeline._cancelled = False
        results = pipeline.move(chosen)
        pipeline._enter(PipelineStage.DONE)
        return build_report(chosen, [], results, cancelled=pipeline.cancelled)

    def report(self) -> BatchReport:
        """Cumulative report over the current batch and every process() call on it."""
        if self._pipeline is None:
            return BatchReport()
        return build_report(self._pipeline.records, self._pipeline.skipped, self._pipeline.results)

    def snapshot(self) -> List[RecordView]:
        if self._pipeline is None:
            return []
        return [RecordView.of(i, r) for i, r in enumerate(self._pipeline.records)]
