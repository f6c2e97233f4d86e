"""
Exceptions raised by the archive conversion pipeline.

Job-level errors abort the job they were raised for. ConversionError is the
only one the dispatcher absorbs per entry.
"""


class CbzResizeError(Exception):
    """Base class for every error the tool reports to the operator."""


class ConfigurationError(CbzResizeError):
    """Bad templates, settings or external tool location. Raised before any I/O."""


class PatternMatchError(CbzResizeError):
    """A glob match did not satisfy the capture regex derived from the same template."""


class UnsafeArchiveEntryError(CbzResizeError):
    """An archive member would be written outside the extraction root."""

    def __init__(self, name, destination):
        super().__init__(f"refusing to extract '{name}': path escapes {destination}")
        self.name = name
        self.destination = destination


class ConversionError(CbzResizeError):
    """The external raster tool failed for one image."""

    def __init__(self, message, output=""):
        if output:
            message = f"{message}\n====\n{output.rstrip()}\n===="
        super().__init__(message)
        self.output = output


class RepackError(CbzResizeError):
    """The processed tree could not be written to the target archive."""


class FilesystemError(CbzResizeError):
    """Missing or unreadable paths, rejected targets."""


class UnpackError(FilesystemError):
    """The source archive is corrupt, or its members cannot be read (encryption, unsupported compression)."""


class BatchError(CbzResizeError):
    """A keep-going batch finished with one or more failed jobs."""

    def __init__(self, failures, results=None):
        names = ", ".join(str(job.source) for job, _ in failures)
        super().__init__(f"{len(failures)} job(s) failed: {names}")
        self.failures = failures
        self.results = results or []
