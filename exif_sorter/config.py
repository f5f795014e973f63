"""Run configuration."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

# Supported image extensions (case-insensitive)
DEFAULT_EXTENSIONS = frozenset({
    '.jpg', '.jpeg', '.png', '.tif', '.tiff', '.webp', '.heic', '.heif',
    # camera RAW formats carry TIFF-style EXIF
    '.nef', '.cr2', '.cr3', '.arw', '.dng', '.orf', '.rw2', '.raf', '.pef', '.srw',
})


@dataclass
class SorterConfig:
    """
    Settings for one pipeline run.

    `extensions=None` discovers every file regardless of extension.
    """

    source_dir: Path
    target_dir: Path
    include_target: bool = False
    dry_run: bool = False
    use_subdirectory: bool = True
    rename_by_sequence: bool = False
    ignore_hidden: bool = True
    extensions: Optional[FrozenSet[str]] = field(default=DEFAULT_EXTENSIONS)

    def __post_init__(self):
        self.source_dir = Path(self.source_dir).expanduser()
        self.target_dir = Path(self.target_dir).expanduser()
        if self.extensions is not None:
            self.extensions = frozenset(e.lower() for e in self.extensions)
