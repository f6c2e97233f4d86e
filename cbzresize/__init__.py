"""cbzresize: convert the images inside comic archives with an external raster tool."""

from .config import ConversionSettings, Job
from .errors import (
    BatchError,
    CbzResizeError,
    ConfigurationError,
    ConversionError,
    FilesystemError,
    PatternMatchError,
    RepackError,
    UnpackError,
    UnsafeArchiveEntryError,
)
from .patterns import resolve_jobs
from .pipeline import JobResult, run_batch, run_job
from .transform import ExternalConverter

__version__ = "1.0.0"
