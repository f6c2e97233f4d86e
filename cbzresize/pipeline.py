"""
Full pipeline for one job: Archive -> scratch tree -> converted tree -> Archive
"""

import logging
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from .dispatch import DispatchReport, dispatch_tree
from .errors import BatchError, CbzResizeError, FilesystemError
from .repack import repack_archive
from .unpack import unpack_archive

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    job: object
    archive: Path
    report: DispatchReport
    elapsed: float = 0.0


def check_target(job):
    """
    Pre-flight checks, done before anything is extracted.
    Returns the path the archive will be written to.

    An existing empty directory as target receives the archive under the
    source's file name; any other existing target is rejected.
    """
    if not job.source.is_file():
        raise FilesystemError(f"source archive {job.source} does not exist or is not a file")

    target = job.target
    if not target.exists():
        return target
    if not target.is_dir():
        raise FilesystemError(f"existing target path {target} is not a directory - aborting")
    try:
        has_content = any(target.iterdir())
    except OSError as e:
        raise FilesystemError(f"error reading target directory content ({target}): {e}") from e
    if has_content:
        raise FilesystemError(f"existing target path {target} is not empty - aborting")
    return target / job.source.name


def run_job(job, converter, archive=None):
    """
    Convert one archive. Per-image failures end up in the result's report;
    unpack/repack failures raise.
    """
    start_time = time.time()
    archive = archive or check_target(job)

    with tempfile.TemporaryDirectory(prefix="cbzresize-src-") as unpacked, \
            tempfile.TemporaryDirectory(prefix="cbzresize-out-") as processed:
        # Step 1: Extract
        entries = unpack_archive(job.source, unpacked)
        logger.info("Extracted %d entries from %s", len(entries), job.source.name)

        # Step 2: Convert images, copy the rest
        report = dispatch_tree(unpacked, processed, job.settings, converter)

        # Step 3: Repack
        repack_archive(processed, archive)

    return JobResult(job=job, archive=archive, report=report, elapsed=time.time() - start_time)


def run_batch(jobs, converter, keep_going=False, on_result=None):
    """
    Run jobs one after another. Every target is checked before the first job
    starts. Fail-fast unless keep_going, in which case BatchError is raised at
    the end if any job failed.
    """
    archives = [check_target(job) for job in jobs]
    claimed = {}
    for job, archive in zip(jobs, archives):
        if archive in claimed:
            raise FilesystemError(f"{job.source} and {claimed[archive]} would both write {archive}")
        claimed[archive] = job.source

    results = []
    failures = []
    for idx, (job, archive) in enumerate(zip(jobs, archives), 1):
        logger.info("[%d/%d] %s", idx, len(jobs), job)
        try:
            result = run_job(job, converter, archive=archive)
        except CbzResizeError as e:
            if not keep_going:
                raise
            logger.error("✗ %s: %s", job.source, e)
            failures.append((job, e))
            continue
        results.append(result)
        if on_result:
            on_result(idx, len(jobs), result)

    if failures:
        raise BatchError(failures, results)
    return results
