"""End-to-end tests for the scan pipeline and the interactive session."""

import os
import signal
import sys
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from exif_sorter import scanner
from exif_sorter.config import SorterConfig
from exif_sorter.errors import InvalidSourceDirectory
from exif_sorter.pipeline import ALL, PipelineStage, ScanPipeline, SortSession, run
from exif_sorter.record import DateSource, RecordStatus


@pytest.fixture
def dirs(tmp_path):
    source = tmp_path / "src"
    source.mkdir()
    return source, tmp_path / "out"


def test_round_trip(dirs, make_image, touch_at, no_birthtime):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    touch_at(source / "b.jpg", datetime(2024, 1, 2, 12, 0))
    (source / "c.jpg").symlink_to(source / "vanished.jpg")

    report = run(SorterConfig(source_dir=source, target_dir=out))

    assert report.moved == 2
    assert [p.name for p, _ in report.failed] == ["c.jpg"]
    assert report.skipped == []
    assert (out / "2024-01-01" / "a.jpg").exists()
    assert (out / "2024-01-02" / "b.jpg").exists()
    assert not (source / "a.jpg").exists()
    assert not report.ok


def test_duplicate_names(dirs, make_image):
    source, out = dirs
    make_image(source / "one" / "photo.jpg", capture_time="2024:01:01 08:00:00", color=(1, 2, 3))
    make_image(source / "two" / "photo.jpg", capture_time="2024:01:01 09:00:00", color=(4, 5, 6))

    report = run(SorterConfig(source_dir=source, target_dir=out))

    assert report.moved == 2
    assert sorted(p.name for p in (out / "2024-01-01").iterdir()) == ["photo.jpg", "photo_1.jpg"]


def test_existing_target_file_is_not_overwritten(dirs, make_image):
    source, out = dirs
    make_image(source / "photo.jpg", capture_time="2024:01:01 08:00:00")
    existing = out / "2024-01-01" / "photo.jpg"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"keep me")

    report = run(SorterConfig(source_dir=source, target_dir=out))

    assert report.moved == 1
    assert existing.read_bytes() == b"keep me"
    assert (out / "2024-01-01" / "photo_1.jpg").exists()


def test_dry_run_leaves_filesystem_untouched(dirs, make_image, touch_at, digest):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    make_image(source / "sub" / "a.jpg", capture_time="2024:01:01 09:00:00")
    touch_at(source / "b.jpg", datetime(2023, 3, 3, 3, 0))
    root = source.parent
    before = digest(root)

    report = run(SorterConfig(source_dir=source, target_dir=out, dry_run=True))

    assert digest(root) == before
    assert not out.exists()
    assert report.moved == 0
    assert len(report.previews) == 3
    assert {r.dst.name for r in report.previews} == {"a.jpg", "a_1.jpg", "b.jpg"}


def test_unreadable_directory_does_not_abort(dirs, make_image, monkeypatch):
    source, out = dirs
    for i in range(3):
        make_image(source / f"p{i}.jpg", capture_time=f"2024:01:0{i + 1} 08:00:00")
    blocked = source / "private"
    make_image(blocked / "secret.jpg", capture_time="2024:02:01 08:00:00")
    real_scandir = os.scandir

    def fake_scandir(path):
        if Path(path) == blocked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(scanner.os, "scandir", fake_scandir)

    report = run(SorterConfig(source_dir=source, target_dir=out))

    assert report.moved == 3
    assert report.failed == []
    assert report.skipped == [blocked]


def test_invalid_source_directory(tmp_path):
    with pytest.raises(InvalidSourceDirectory) as excinfo:
        run(SorterConfig(source_dir=tmp_path / "non-existing", target_dir=tmp_path / "out"))

    assert "non-existing" in str(excinfo.value)


def test_source_that_is_a_file_is_invalid(tmp_path):
    not_a_dir = tmp_path / "file.jpg"
    not_a_dir.write_bytes(b"x")

    with pytest.raises(InvalidSourceDirectory):
        run(SorterConfig(source_dir=not_a_dir, target_dir=tmp_path / "out"))


def test_target_inside_source_is_excluded(tmp_path, make_image):
    source = tmp_path / "photos"
    out = source / "sorted"
    make_image(source / "new.jpg", capture_time="2024:01:01 08:00:00")
    make_image(out / "2020-05-05" / "old.jpg", capture_time="2020:05:05 08:00:00")

    report = run(SorterConfig(source_dir=source, target_dir=out))

    assert report.moved == 1
    assert (out / "2020-05-05" / "old.jpg").exists()
    assert (out / "2024-01-01" / "new.jpg").exists()


def test_include_target_resorts_files_in_place(tmp_path, make_image):
    source = tmp_path / "photos"
    out = source / "sorted"
    make_image(out / "2020-05-05" / "old.jpg", capture_time="2020:05:05 08:00:00")
    make_image(out / "misplaced.jpg", capture_time="2021:06:06 08:00:00")

    report = run(SorterConfig(source_dir=source, target_dir=out, include_target=True))

    assert report.moved == 1
    assert report.skipped == [out / "2020-05-05" / "old.jpg"]
    assert (out / "2021-06-06" / "misplaced.jpg").exists()


def test_parse_failure_is_reported_but_file_still_sorted(dirs, make_image, no_birthtime):
    source, out = dirs
    path = make_image(source / "odd.jpg", capture_time="2024-01-01T08:00:00")
    os.utime(path, (datetime(2022, 8, 9, 12).timestamp(),) * 2)

    report = run(SorterConfig(source_dir=source, target_dir=out))

    assert report.moved == 1
    assert report.failed == []
    assert len(report.diagnostics) == 1
    assert "2024-01-01T08:00:00" in report.diagnostics[0][1]
    assert (out / "2022-08-09" / "odd.jpg").exists()


def test_stages_run_in_order(dirs, make_image):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    seen = []

    def progress(iterable, desc):
        seen.append(pipeline.stage)
        return iterable

    pipeline = ScanPipeline(SorterConfig(source_dir=source, target_dir=out), progress=progress)
    pipeline.execute()

    assert seen == [PipelineStage.EXTRACTING, PipelineStage.MOVING]
    assert pipeline.stage is PipelineStage.DONE


def test_cancel_stops_before_next_move(dirs, make_image):
    source, out = dirs
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        make_image(source / name, capture_time="2024:01:01 08:00:00")
    pipeline = ScanPipeline(SorterConfig(source_dir=source, target_dir=out))

    def cancel_after_first(iterable, desc):
        for i, item in enumerate(iterable):
            if desc == "Moving files" and i == 1:
                pipeline.cancel()
            yield item

    pipeline.progress = cancel_after_first
    report = pipeline.execute()

    assert report.moved == 1
    statuses = [r.status for r in pipeline.records]
    assert statuses == [RecordStatus.MOVED, RecordStatus.RESOLVED, RecordStatus.RESOLVED]
    assert (source / "b.jpg").exists()


def test_session_scan_is_report_only(dirs, make_image, digest):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    before = digest(source.parent)
    session = SortSession(SorterConfig(source_dir=source, target_dir=out))

    report = session.scan()

    assert digest(source.parent) == before
    assert report.moved == 0
    [view] = session.snapshot()
    assert view.status is RecordStatus.RESOLVED
    assert view.date_source is DateSource.EMBEDDED
    assert view.target_path is None


def test_session_process_selected(dirs, make_image):
    source, out = dirs
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        make_image(source / name, capture_time="2024:01:01 08:00:00")
    session = SortSession(SorterConfig(source_dir=source, target_dir=out))
    session.scan()

    report = session.process([0, 2])

    assert report.moved == 2
    assert [v.status for v in session.snapshot()] == [RecordStatus.MOVED, RecordStatus.RESOLVED, RecordStatus.MOVED]

    session.process(ALL)

    assert session.report().moved == 3
    assert sorted(p.name for p in (out / "2024-01-01").iterdir()) == ["a.jpg", "b.jpg", "c.jpg"]


def test_session_rescan_replaces_batch(dirs, tmp_path, make_image):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    other = tmp_path / "other"
    make_image(other / "x.jpg", capture_time="2024:01:01 08:00:00")
    make_image(other / "y.jpg", capture_time="2024:01:01 08:00:00")
    session = SortSession(SorterConfig(source_dir=source, target_dir=out))
    session.scan()

    session.scan(other)

    assert [v.source_path.name for v in session.snapshot()] == ["x.jpg", "y.jpg"]


def test_session_rejects_bad_selection(dirs, make_image):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    session = SortSession(SorterConfig(source_dir=source, target_dir=out))

    with pytest.raises(RuntimeError):
        session.process(ALL)

    session.scan()
    with pytest.raises(IndexError):
        session.process([5])
    assert not out.exists()


def test_oversized_image_does_not_abort_batch(dirs, make_image):
    source, out = dirs
    make_image(source / "a.jpg", capture_time="2024:01:01 08:00:00")
    Image.new("1", (20000, 20000)).save(source / "panorama.png")

    report = run(SorterConfig(source_dir=source, target_dir=out, dry_run=True))

    assert report.failed == []
    assert sorted(r.src.name for r in report.previews) == ["a.jpg", "panorama.png"]


@pytest.fixture
def same_name_session(dirs, make_image):
    source, out = dirs
    make_image(source / "one" / "photo.jpg", capture_time="2024:01:01 08:00:00")
    make_image(source / "two" / "photo.jpg", capture_time="2024:01:01 09:00:00")
    session = SortSession(SorterConfig(source_dir=source, target_dir=out, dry_run=True))
    session.scan()
    return session


def target_names(session):
    return [v.target_path.name for v in session.snapshot()]


def test_session_keeps_targets_unique_across_process_calls(same_name_session):
    same_name_session.process([0])
    same_name_session.process([1])

    assert target_names(same_name_session) == ["photo.jpg", "photo_1.jpg"]


def test_session_earlier_claim_wins_over_traversal_order(same_name_session):
    same_name_session.process([1])
    same_name_session.process([0])

    assert target_names(same_name_session) == ["photo_1.jpg", "photo.jpg"]


def test_session_repeated_preview_is_not_double_counted(same_name_session):
    same_name_session.process(ALL)
    report = same_name_session.process(ALL)

    assert len(report.previews) == 2
    assert len(same_name_session.report().previews) == 2
    assert target_names(same_name_session) == ["photo.jpg", "photo_1.jpg"]


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
def test_interrupt_during_move_finishes_current_file(dirs, make_image, monkeypatch):
    source, out = dirs
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        make_image(source / name, capture_time="2024:01:01 08:00:00")
    handler_before = signal.getsignal(signal.SIGINT)
    real_rename = Path.rename

    def rename_then_interrupt(self, target):
        moved = real_rename(self, target)
        os.kill(os.getpid(), signal.SIGINT)
        return moved

    monkeypatch.setattr(Path, "rename", rename_then_interrupt)
    pipeline = ScanPipeline(SorterConfig(source_dir=source, target_dir=out))

    report = pipeline.execute()

    assert report.moved == 1
    assert report.cancelled
    assert not report.ok
    assert [r.status for r in pipeline.records] == [RecordStatus.MOVED, RecordStatus.RESOLVED, RecordStatus.RESOLVED]
    assert (out / "2024-01-01" / "a.jpg").exists()
    assert signal.getsignal(signal.SIGINT) is handler_before
