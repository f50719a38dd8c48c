import pytest
from datetime import datetime
from pathlib import Path
from photo_importer.config import ImportConfig
from photo_importer.core import ImportPipeline
from photo_importer.database.index import DigestIndex
from photo_importer.models import MediaMetadata, MediaType

@pytest.fixture
def index(tmp_path):
    """Returns a DigestIndex backed by a fresh SQLite file."""
    idx = DigestIndex(tmp_path / "digests.sqlite")
    try:
        yield idx
    finally:
        idx.close()

@pytest.fixture
def intake(tmp_path):
    p = tmp_path / "inbox"
    p.mkdir()
    return p

@pytest.fixture
def archive(tmp_path):
    p = tmp_path / "storage"
    p.mkdir()
    return p


class FakeMetadata:
    """
    Stands in for MetadataExtractor. Files are looked up by name; unknown
    names get a record with no capture time or camera.
    """
    def __init__(self, by_name=None):
        self.by_name = by_name or {}

    def resolve(self, path: Path, media_type_hint):
        dt, camera = self.by_name.get(path.name, (None, None))
        return MediaMetadata(media_type=MediaType.from_hint(media_type_hint),
                             capture_time=dt, camera_model=camera)


@pytest.fixture
def make_pipeline(intake, archive):
    """Factory for pipelines over the intake/archive fixtures with mocked metadata."""
    created = []

    def factory(by_name=None, concurrency=4, probe=None, **kwargs):
        cfg = ImportConfig(intake_root=intake, archive_root=archive,
                           concurrency=concurrency, **kwargs)
        pipeline = ImportPipeline(cfg, metadata=FakeMetadata(by_name),
                                  corruption_probe=probe or (lambda p: False))
        created.append(pipeline)
        return pipeline

    yield factory
    for p in created:
        p.close()


@pytest.fixture
def pixel_time():
    return datetime(2020, 1, 2, 10, 0, 0)
