"""Image record module - per-file state carried through the sorting pipeline, plus batch results."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

from exif_sorter.errors import SorterError


class RecordStatus(Enum):
    """Lifecycle of a record. Progression is forward-only."""

    PENDING = 0
    RESOLVED = 1
    COLLIDED = 2
    MOVED = 3
    FAILED = 4

    @property
    def is_terminal(self) -> bool:
        return self in (RecordStatus.MOVED, RecordStatus.FAILED)


class DateSource(Enum):
    """Which tier produced a record's date."""

    EMBEDDED = "exif"
    FS_CREATED = "created"
    FS_MODIFIED = "modified"


class ImageRecord:
    """One discovered file and everything the pipeline learned about it."""

    def __init__(self, source_path: Path):
        self._source_path = Path(source_path).absolute()
        self.filename = self._source_path.name
        self.stem = self._source_path.stem
        self.extension = self._source_path.suffix

        self.metadata = None
        self.resolved_date: Optional[date] = None
        self.date_source: Optional[DateSource] = None

        self.target_directory: Optional[Path] = None
        self.target_filename: Optional[str] = None
        self.planned_filename: Optional[str] = None

        self.status = RecordStatus.PENDING
        self.error: Optional[SorterError] = None
        self.diagnostics: List[SorterError] = []

    def __repr__(self):
        return f"ImageRecord(path={self._source_path}, status={self.status.name}, date={self.resolved_date})"

    @property
    def source_path(self) -> Path:
        return self._source_path

    @property
    def target_path(self) -> Optional[Path]:
        if self.target_directory is None or self.target_filename is None:
            return None
        return self.target_directory / self.target_filename

    @property
    def is_active(self) -> bool:
        """True while the record can still be planned or moved."""
        return not self.status.is_terminal

    def advance(self, status: RecordStatus) -> None:
        """
        Move the record forward to `status`.

        Re-entering the current status is a no-op. Use fail() for FAILED.

        Raises:
            ValueError: on a backward transition or out of a terminal state
        """
        if status is RecordStatus.FAILED:
            raise ValueError("use fail() to mark a record as failed")
        if status is self.status:
            return
        if self.status.is_terminal or status.value < self.status.value:
            raise ValueError(f"Illegal status transition {self.status.name} -> {status.name} for {self._source_path}")
        self.status = status

    def fail(self, error: SorterError) -> None:
        if self.status.is_terminal:
            raise ValueError(f"Record {self._source_path} is already {self.status.name}")
        self.status = RecordStatus.FAILED
        self.error = error

    def resolve(self, resolved_date: date, source: DateSource) -> None:
        if self.resolved_date is not None:
            raise ValueError(f"Date already resolved for {self._source_path}")
        self.resolved_date = resolved_date
        self.date_source = source
        self.advance(RecordStatus.RESOLVED)

    def set_target(self, directory: Path, filename: str) -> None:
        """Write the provisional target. Allowed once."""
        if self.target_directory is not None:
            raise ValueError(f"Target already planned for {self._source_path}")
        self.target_directory = Path(directory)
        self.target_filename = filename
        self.planned_filename = filename

    def rename_target(self, filename: str) -> None:
        """Replace the planned filename with a disambiguated one. Allowed once."""
        if self.target_filename is None:
            raise ValueError(f"No target planned for {self._source_path}")
        if self.target_filename != self.planned_filename:
            raise ValueError(f"Target of {self._source_path} was already renamed")
        self.target_filename = filename
        self.advance(RecordStatus.COLLIDED)


class RecordView(NamedTuple):
    """Read-only snapshot of a record, handed to views."""

    index: int
    source_path: Path
    resolved_date: Optional[date]
    date_source: Optional[DateSource]
    target_path: Optional[Path]
    status: RecordStatus
    reason: Optional[str]

    @classmethod
    def of(cls, index: int, record: ImageRecord) -> "RecordView":
        return cls(
            index=index,
            source_path=record.source_path,
            resolved_date=record.resolved_date,
            date_source=record.date_source,
            target_path=record.target_path,
            status=record.status,
            reason=record.error.reason if record.error else None,
        )


@dataclass(frozen=True)
class MoveResult:
    src: Path
    dst: Path
    performed: bool  # False for dry-run and skips
    reason: str = ""  # e.g. "dry run", "already in place"


@dataclass
class BatchReport:
    """Outcome of one pipeline run."""

    moved: int = 0
    failed: List[Tuple[Path, str]] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    previews: List[MoveResult] = field(default_factory=list)
    diagnostics: List[Tuple[Path, str]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled

    def summary(self) -> str:
        return f"moved: {self.moved}, failed: {len(self.failed)}, skipped: {len(self.skipped)}"
