"""Shared fixtures: image files with and without EXIF, timestamp control and tree hashing."""

import hashlib
import os
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image, ExifTags

from exif_sorter import analyzer


def write_image(path: Path, capture_time=None, image_number=None, color=(200, 30, 30)) -> Path:
    """Write a tiny JPEG, optionally with DateTimeOriginal / ImageNumber in the Exif IFD."""
    path.parent.mkdir(parents=True, exist_ok=True)
    exif = Image.Exif()
    exif_ifd = {}
    if capture_time is not None:
        exif_ifd[ExifTags.Base.DateTimeOriginal] = capture_time
    if image_number is not None:
        exif_ifd[ExifTags.Base.ImageNumber] = image_number
    if exif_ifd:
        exif[ExifTags.IFD.Exif] = exif_ifd
    Image.new("RGB", (8, 8), color).save(path, "JPEG", exif=exif.tobytes())
    return path


def set_mtime(path: Path, when: datetime) -> None:
    ts = when.timestamp()
    os.utime(path, (ts, ts))


@pytest.fixture
def make_image():
    return write_image


@pytest.fixture
def touch_at():
    """Create a plain (non-image) file with a given modification time."""
    def _touch(path: Path, when: datetime, content: bytes = b"not an image") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        set_mtime(path, when)
        return path
    return _touch


@pytest.fixture
def no_birthtime(monkeypatch):
    """Make creation time fall back to modification time on every platform."""
    monkeypatch.setattr(analyzer, "creation_timestamp", lambda stat: stat.st_mtime)


def tree_digest(root: Path) -> str:
    """Hash of every path and file content below root."""
    digest = hashlib.sha256()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            digest.update(str(path.relative_to(root)).encode())
            if path.is_file():
                digest.update(path.read_bytes())
        for name in dirnames:
            digest.update(str((Path(dirpath) / name).relative_to(root)).encode())
    return digest.hexdigest()


@pytest.fixture
def digest():
    return tree_digest
