import os
import threading
import pytest
from pathlib import Path
from datetime import datetime
from photo_importer.config import ImportConfig
from photo_importer.core import ImportPipeline
from photo_importer.exceptions import ConfigurationError, DatabaseError
from photo_importer.models import ImportOutcome
from photo_importer.scanning.hasher import FileHasher

def archived_files(archive: Path):
    """Media files in the archive, relative and POSIX-style; the index files are excluded."""
    return sorted(
        p.relative_to(archive).as_posix()
        for p in archive.rglob("*")
        if p.is_file() and not p.name.startswith("digests.sqlite") and p.name != "importer.log"
    )

def test_identical_files_archive_once(make_pipeline, intake, archive, pixel_time):
    (intake / "a.jpg").write_bytes(b"pixel bytes")
    (intake / "b.jpg").write_bytes(b"pixel bytes")

    pipeline = make_pipeline({"a.jpg": (pixel_time, "Pixel"), "b.jpg": (pixel_time, "Pixel")})
    summary = pipeline.run()

    assert archived_files(archive) == ["photos/Pixel/2020/01/2020-01-02 10-00-00.jpg"]
    assert list(intake.iterdir()) == []
    assert pipeline.index.count() == 1

    counts = summary.counts()
    assert counts[ImportOutcome.ARCHIVED] == 1
    assert counts[ImportOutcome.DUPLICATE] == 1

    archived = summary.by_outcome(ImportOutcome.ARCHIVED)[0]
    assert pipeline.index.lookup(archived.digest) == "photos/Pixel/2020/01/2020-01-02 10-00-00.jpg"

def test_recheck_inside_lock_catches_concurrent_duplicates(intake, archive, pixel_time):
    """Both workers pass the fast path before either archives; only one may win."""
    (intake / "a.jpg").write_bytes(b"same")
    (intake / "b.jpg").write_bytes(b"same")

    barrier = threading.Barrier(2, timeout=10)

    class InLockstepHasher(FileHasher):
        def compute_digest(self, path):
            digest = super().compute_digest(path)
            barrier.wait()
            return digest

    from conftest import FakeMetadata
    cfg = ImportConfig(intake_root=intake, archive_root=archive, concurrency=2)
    with ImportPipeline(cfg, metadata=FakeMetadata({"a.jpg": (pixel_time, "Pixel"),
                                                    "b.jpg": (pixel_time, "Pixel")}),
                        corruption_probe=lambda p: False,
                        hasher=InLockstepHasher()) as pipeline:
        inserts = []
        real_insert = pipeline.index.insert
        pipeline.index.insert = lambda path, digest: (inserts.append(digest), real_insert(path, digest))

        summary = pipeline.run()

    assert len(inserts) == 1
    assert summary.counts()[ImportOutcome.DUPLICATE] == 1
    assert summary.counts()[ImportOutcome.FAILED] == 0
    assert archived_files(archive) == ["photos/Pixel/2020/01/2020-01-02 10-00-00.jpg"]

def test_many_workers_many_duplicates(make_pipeline, intake, archive, pixel_time):
    by_name = {}
    for i in range(20):
        sub = intake / f"dir{i % 4}"
        sub.mkdir(exist_ok=True)
        (sub / f"copy{i}.jpg").write_bytes(b"shared content")
        (sub / f"unique{i}.jpg").write_bytes(f"unique {i}".encode())
        by_name[f"copy{i}.jpg"] = (pixel_time, "Pixel")
        by_name[f"unique{i}.jpg"] = (pixel_time, "Pixel")

    pipeline = make_pipeline(by_name, concurrency=8)
    inserted = []
    real_insert = pipeline.index.insert
    pipeline.index.insert = lambda path, digest: (inserted.append(digest), real_insert(path, digest))

    summary = pipeline.run()

    counts = summary.counts()
    assert counts[ImportOutcome.ARCHIVED] == 21
    assert counts[ImportOutcome.DUPLICATE] == 19
    assert counts[ImportOutcome.FAILED] == 0
    assert len(inserted) == len(set(inserted)) == 21
    assert len(archived_files(archive)) == 21
    # Every moved or deleted file took its folder with it
    assert list(intake.iterdir()) == []

def test_collision_resolves_to_numbered_name(make_pipeline, intake, archive, pixel_time):
    folder = archive / "photos" / "Pixel" / "2020" / "01"
    folder.mkdir(parents=True)
    for name in ["2020-01-02 10-00-00.jpg", "2020-01-02 10-00-00 IMG_7.jpg"]:
        (folder / name).write_bytes(name.encode())
    (intake / "IMG_7.jpg").write_bytes(b"another shot in the same second")

    summary = make_pipeline({"IMG_7.jpg": (pixel_time, "Pixel")}).run()

    result = summary.results[0]
    assert result.outcome is ImportOutcome.ARCHIVED
    assert result.archived_path == "photos/Pixel/2020/01/2020-01-02 10-00-00 IMG_7 1.jpg"

def test_exhausted_names_leave_source(make_pipeline, intake, archive, pixel_time):
    pipeline = make_pipeline({"a.jpg": (pixel_time, "Pixel")})
    pipeline.allocator.max_suffix = 2

    folder = archive / "photos" / "Pixel" / "2020" / "01"
    folder.mkdir(parents=True)
    for name in ["2020-01-02 10-00-00.jpg", "2020-01-02 10-00-00 a.jpg",
                 "2020-01-02 10-00-00 a 1.jpg", "2020-01-02 10-00-00 a 2.jpg"]:
        (folder / name).touch()
    src = intake / "a.jpg"
    src.write_bytes(b"no room")

    summary = pipeline.run()

    assert summary.results[0].outcome is ImportOutcome.FAILED
    assert "limit exceeded" in summary.results[0].error
    assert src.read_bytes() == b"no room"
    assert pipeline.index.count() == 0

def test_video_falls_back_to_mtime(make_pipeline, intake, archive):
    clip = intake / "clip.MOV"
    clip.write_bytes(b"moov")
    mtime = datetime(2019, 6, 1, 14, 15, 16).timestamp()
    os.utime(clip, (mtime, mtime))

    summary = make_pipeline().run()

    assert summary.results[0].archived_path == "videos/unknown camera/2019/06/2019-06-01 14-15-16.mov"
    assert archived_files(archive) == ["videos/unknown camera/2019/06/2019-06-01 14-15-16.mov"]

def test_unsupported_extension_left_in_place(make_pipeline, intake, archive):
    notes = intake / "notes.txt"
    notes.write_text("not media")

    summary = make_pipeline().run()

    assert summary.results[0].outcome is ImportOutcome.SKIPPED
    assert notes.exists()
    assert archived_files(archive) == []

def test_corrupted_jpeg_left_in_place(make_pipeline, intake, archive, pixel_time):
    bad = intake / "bad.jpg"
    bad.write_bytes(b"broken")
    shot = intake / "shot.png"
    shot.write_bytes(b"png")
    probed = []

    def probe(path):
        probed.append(path.name)
        return True

    pipeline = make_pipeline({"shot.png": (pixel_time, None)}, probe=probe)
    summary = pipeline.run()

    outcomes = {r.candidate.source_path.name: r.outcome for r in summary.results}
    assert outcomes == {"bad.jpg": ImportOutcome.CORRUPTED, "shot.png": ImportOutcome.ARCHIVED}
    assert probed == ["bad.jpg"]
    assert bad.exists()
    assert pipeline.index.count() == 1
    assert archived_files(archive) == ["screenshots/unknown camera/2020/01/2020-01-02 10-00-00.png"]

def test_corruption_check_can_be_disabled(make_pipeline, intake, archive, pixel_time):
    (intake / "bad.jpg").write_bytes(b"broken")

    def probe(path):
        raise AssertionError("probe should not run")

    summary = make_pipeline({"bad.jpg": (pixel_time, None)}, probe=probe, check_corruption=False).run()
    assert summary.results[0].outcome is ImportOutcome.ARCHIVED

def test_failure_does_not_stop_siblings(intake, archive, pixel_time):
    from conftest import FakeMetadata

    class ExplodingMetadata(FakeMetadata):
        def resolve(self, path, media_type_hint):
            if path.name == "boom.jpg":
                raise RuntimeError("exiftool crashed")
            return super().resolve(path, media_type_hint)

    (intake / "boom.jpg").write_bytes(b"boom")
    (intake / "fine.jpg").write_bytes(b"fine")

    cfg = ImportConfig(intake_root=intake, archive_root=archive, concurrency=2)
    with ImportPipeline(cfg, metadata=ExplodingMetadata({"fine.jpg": (pixel_time, "Pixel")}),
                        corruption_probe=lambda p: False) as pipeline:
        summary = pipeline.run()

    outcomes = {r.candidate.source_path.name: r.outcome for r in summary.results}
    assert outcomes == {"boom.jpg": ImportOutcome.FAILED, "fine.jpg": ImportOutcome.ARCHIVED}
    assert (intake / "boom.jpg").exists()

def test_index_failure_after_move_is_reported(make_pipeline, intake, archive, pixel_time):
    (intake / "a.jpg").write_bytes(b"a")
    pipeline = make_pipeline({"a.jpg": (pixel_time, "Pixel")})

    def broken_insert(path, digest):
        raise DatabaseError("disk I/O error")

    pipeline.index.insert = broken_insert
    summary = pipeline.run()

    result = summary.results[0]
    assert result.outcome is ImportOutcome.FAILED
    assert result.archived_path == "photos/Pixel/2020/01/2020-01-02 10-00-00.jpg"
    assert archived_files(archive) == ["photos/Pixel/2020/01/2020-01-02 10-00-00.jpg"]

def test_rerun_on_empty_intake_is_noop(make_pipeline, intake, archive, pixel_time):
    (intake / "a.jpg").write_bytes(b"a")
    first = make_pipeline({"a.jpg": (pixel_time, "Pixel")}).run()
    assert first.counts()[ImportOutcome.ARCHIVED] == 1

    second = make_pipeline().run()
    assert second.results == []
    assert second.failures == []
    assert intake.exists()
    assert archived_files(archive) == ["photos/Pixel/2020/01/2020-01-02 10-00-00.jpg"]

def test_content_seen_in_earlier_run_is_deleted(make_pipeline, intake, archive, pixel_time):
    (intake / "a.jpg").write_bytes(b"a")
    make_pipeline({"a.jpg": (pixel_time, "Pixel")}).run()

    again = intake / "later" / "renamed.jpg"
    again.parent.mkdir()
    again.write_bytes(b"a")

    summary = make_pipeline().run()

    assert summary.results[0].outcome is ImportOutcome.DUPLICATE
    assert not again.exists()
    assert not again.parent.exists()
    assert len(archived_files(archive)) == 1

def test_lookup_reports_archived_path(make_pipeline, intake, tmp_path, pixel_time):
    (intake / "a.jpg").write_bytes(b"a")
    pipeline = make_pipeline({"a.jpg": (pixel_time, "Pixel")})
    pipeline.run()

    probe_a = tmp_path / "probe_a.jpg"
    probe_a.write_bytes(b"a")
    probe_b = tmp_path / "probe_b.jpg"
    probe_b.write_bytes(b"b")

    found = {path.name: archived for path, _, archived in pipeline.lookup([probe_a, probe_b])}
    assert found == {"probe_a.jpg": "photos/Pixel/2020/01/2020-01-02 10-00-00.jpg", "probe_b.jpg": None}

def test_non_directory_root_is_configuration_error(tmp_path):
    blocker = tmp_path / "inbox"
    blocker.write_text("oops")
    cfg = ImportConfig(intake_root=blocker, archive_root=tmp_path / "storage")

    with pytest.raises(ConfigurationError):
        ImportPipeline(cfg)

@pytest.mark.parametrize("layout", ["archive_inside_intake", "intake_inside_archive", "same_folder"])
def test_overlapping_roots_are_configuration_error(tmp_path, layout):
    outer = tmp_path / "outer"
    outer.mkdir()
    (outer / "a.jpg").write_bytes(b"a")
    roots = {
        "archive_inside_intake": (outer, outer / "archive"),
        "intake_inside_archive": (outer / "inbox", outer),
        "same_folder": (outer, tmp_path / "." / "outer"),
    }
    intake_root, archive_root = roots[layout]
    cfg = ImportConfig(intake_root=intake_root, archive_root=archive_root)

    with pytest.raises(ConfigurationError):
        ImportPipeline(cfg)
    assert (outer / "a.jpg").exists()
    assert not (outer / "digests.sqlite").exists()

def test_duplicate_insert_fails_only_that_file(make_pipeline, intake, archive, pixel_time):
    """A digest indexed behind the pipeline's back surfaces as a per-file failure."""
    (intake / "a.jpg").write_bytes(b"a")
    (intake / "b.jpg").write_bytes(b"b")
    pipeline = make_pipeline({"a.jpg": (pixel_time, "Pixel"), "b.jpg": (pixel_time, "Pixel")})

    digest_a = FileHasher().compute_digest(intake / "a.jpg")
    pipeline.index.insert("elsewhere/a.jpg", digest_a)
    # Hide the existing row from both checks so insert() hits the unique index
    real_exists = pipeline.index.exists
    pipeline.index.exists = lambda digest: False if digest == digest_a else real_exists(digest)

    summary = pipeline.run()

    outcomes = {r.candidate.source_path.name: r for r in summary.results}
    failed = outcomes["a.jpg"]
    assert failed.outcome is ImportOutcome.FAILED
    assert "already indexed" in failed.error
    assert failed.archived_path is not None
    assert (archive / failed.archived_path).read_bytes() == b"a"
    assert outcomes["b.jpg"].outcome is ImportOutcome.ARCHIVED
    assert pipeline.index.lookup(digest_a) == "elsewhere/a.jpg"
    assert pipeline.index.count() == 2
