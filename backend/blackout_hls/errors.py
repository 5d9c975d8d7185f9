"""Error taxonomy shared by the pipeline, services and API layer."""


class HlsLockError(Exception):
    """Base class for every failure that ends a job."""


class InputError(HlsLockError, ValueError):
    """Missing or invalid source, malformed or out-of-range intervals."""


class ToolFailure(HlsLockError):
    """The external transcoder (ffmpeg / ffprobe) failed."""


class StorageFailure(HlsLockError):
    """An upload, download, listing or delete against object storage failed."""


class NotFoundError(HlsLockError):
    """Unknown lock / content id, or nothing stored under a prefix."""
