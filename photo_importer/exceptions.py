"""
Custom exception hierarchy for the photo importer.

Only ConfigurationError aborts a run. Everything else is raised for a single
file and caught at the per-file boundary in the pipeline.
"""


class PhotoImporterError(Exception):
    """Base exception for all photo importer errors."""
    pass


class ConfigurationError(PhotoImporterError):
    """Raised when the intake or archive root is unusable."""
    pass


class FileHashError(PhotoImporterError):
    """Raised when a file cannot be read for digesting."""
    pass


class CorruptionDetected(PhotoImporterError):
    """Raised when an image fails the corruption probe."""
    pass


class DatabaseError(PhotoImporterError):
    """Raised when digest index operations fail."""
    pass


class DuplicateDigestError(DatabaseError):
    """
    Raised when inserting a digest that is already indexed.

    Existence is always re-checked under the storage lock before inserting,
    so seeing this means the locking is broken.
    """

    def __init__(self, digest: str, path: str):
        super().__init__(f"Digest {digest[:16]}... already indexed (while storing {path})")
        self.digest = digest
        self.path = path


class FilenameExhaustedError(PhotoImporterError):
    """Raised when every candidate destination filename is taken."""
    pass


class FileOperationError(PhotoImporterError):
    """Raised when moving or deleting a file fails."""
    pass
