"""Tests for the three-tier date policy."""

from datetime import date, datetime

import pytest

from exif_sorter.analyzer import ExtractedMetadata
from exif_sorter.errors import DateParseError, DateResolutionExhausted
from exif_sorter.record import DateSource
from exif_sorter.resolver import parse_capture_time, resolve_date

PATH = "/photos/a.jpg"
CREATED = datetime(2024, 1, 2, 9, 0)
MODIFIED = datetime(2024, 1, 3, 9, 0)


def test_embedded_date_wins_over_filesystem():
    meta = ExtractedMetadata("2021:07:04 23:59:59", CREATED, MODIFIED)

    resolved = resolve_date(meta, PATH)

    assert resolved.date == date(2021, 7, 4)
    assert resolved.source is DateSource.EMBEDDED
    assert resolved.diagnostics == []


def test_falls_back_to_creation_date():
    resolved = resolve_date(ExtractedMetadata(None, CREATED, MODIFIED), PATH)

    assert resolved.date == date(2024, 1, 2)
    assert resolved.source is DateSource.FS_CREATED


def test_falls_back_to_modification_date():
    resolved = resolve_date(ExtractedMetadata(None, None, MODIFIED), PATH)

    assert resolved.date == date(2024, 1, 3)
    assert resolved.source is DateSource.FS_MODIFIED


def test_malformed_capture_time_is_recorded_and_next_tier_used():
    resolved = resolve_date(ExtractedMetadata("2024-01-01 10:00:00", CREATED, MODIFIED), PATH)

    assert resolved.source is DateSource.FS_CREATED
    assert len(resolved.diagnostics) == 1
    error = resolved.diagnostics[0]
    assert isinstance(error, DateParseError)
    assert error.raw == "2024-01-01 10:00:00"
    assert str(error.path) == PATH


def test_exhausted_when_no_tier_available():
    with pytest.raises(DateResolutionExhausted):
        resolve_date(ExtractedMetadata(None, None, None), PATH)


def test_exhausted_keeps_parse_error():
    with pytest.raises(DateResolutionExhausted) as excinfo:
        resolve_date(ExtractedMetadata("garbage", None, None), PATH)

    assert isinstance(excinfo.value.parse_error, DateParseError)


@pytest.mark.parametrize("raw", [
    "2024:01:01",
    "2024:13:01 00:00:00",
    "2024:01:01 10:00:00 extra",
    "0000:00:00 00:00:00",
])
def test_strict_parsing_rejects(raw):
    with pytest.raises(ValueError):
        parse_capture_time(raw)


def test_strict_parsing_accepts_exif_layout():
    assert parse_capture_time("1991:01:01 00:13:37") == datetime(1991, 1, 1, 0, 13, 37)
