"""Error taxonomy - one exception class per failure kind, each carrying structured context."""

from pathlib import Path
from typing import Optional


class SorterError(Exception):
    """Base class for all sorter errors."""

    kind = "error"

    def __init__(self, path: Path, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        super().__init__(self.reason)

    @property
    def reason(self) -> str:
        """Human-readable reason, used in reports."""
        if self.cause is not None:
            return f"{self.kind}: {self.cause}"
        return self.kind

    def __str__(self):
        return self.reason


class InvalidSourceDirectory(SorterError):
    """Source directory is missing or not a directory. Fatal to the whole run."""

    kind = "invalid source directory"

    @property
    def reason(self) -> str:
        return f"Invalid source directory: {self.path} could not be found!"


class ExtractionIOError(SorterError):
    """File could not be opened or read during metadata extraction."""

    kind = "read error"


class NoEmbeddedMetadata(SorterError):
    """File carries no usable capture timestamp. Expected, never reported as a failure."""

    kind = "no embedded capture time"


class DateParseError(SorterError):
    """Embedded capture timestamp is present but does not match the strict EXIF format."""

    kind = "unparseable capture time"

    def __init__(self, path: Path, raw: str, cause: Optional[BaseException] = None):
        self.raw = raw
        super().__init__(path, cause)

    @property
    def reason(self) -> str:
        return f"{self.kind}: {self.raw!r}"


class DateResolutionExhausted(SorterError):
    """No date tier produced a value."""

    kind = "no date available"

    def __init__(self, path: Path, parse_error: Optional[DateParseError] = None):
        self.parse_error = parse_error
        super().__init__(path, parse_error)


class MoveIOError(SorterError):
    """Move to the target failed or the target already exists."""

    kind = "move failed"

    def __init__(self, path: Path, target: Path, cause: Optional[BaseException] = None):
        self.target = Path(target)
        super().__init__(path, cause)

    @property
    def reason(self) -> str:
        if self.cause is None:
            return f"{self.kind}: target already exists: {self.target}"
        return f"{self.kind}: {self.cause}"
