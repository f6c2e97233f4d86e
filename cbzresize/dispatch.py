"""Walk an extracted archive and route every entry to conversion or verbatim copy."""

import logging
import os
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConversionError
from .transform import destination_for, is_image, transform_image

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """What happened to each entry of one extracted tree."""

    converted: list = field(default_factory=list)
    copied: list = field(default_factory=list)
    directories: list = field(default_factory=list)
    failures: list = field(default_factory=list)   # (relative path, message)

    @property
    def ok(self):
        return not self.failures

    def fail(self, relative, message):
        self.failures.append((relative, message))
        logger.error("✗ %s: %s", relative, message)


def _copy_opaque(path, target, relative, report):
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
    except OSError as e:
        report.fail(relative, f"copy failed: {e}")
        return
    report.copied.append(relative)


def _run_transform(path, source_root, output_root, settings, converter):
    relative = path.relative_to(source_root)
    try:
        destination = transform_image(path, source_root, output_root, settings, converter)
    except (ConversionError, OSError) as e:
        return relative, None, str(e)
    return relative, destination.relative_to(output_root), None


def _record(report, outcome):
    relative, destination, error = outcome
    if error is not None:
        report.fail(relative, error)
    else:
        report.converted.append(destination)
        logger.debug("converted %s -> %s", relative, destination)


def dispatch_tree(source_root, output_root, settings, converter):
    """
    Mirror source_root into output_root: directories recreated, images
    converted, other files copied verbatim.

    A failure on one entry is logged and recorded in the returned
    DispatchReport; the remaining entries are still processed.
    """
    source_root = Path(source_root)
    output_root = Path(output_root)
    report = DispatchReport()

    images = []
    claimed = {}
    dir_pairs = []

    def unreadable(error):
        relative = Path(error.filename or source_root).relative_to(source_root)
        report.fail(relative, f"cannot read directory: {error.strerror}")

    # top-down: a directory is created before anything inside it
    for dirpath, dirnames, filenames in os.walk(source_root, onerror=unreadable):
        dirnames.sort()
        current = Path(dirpath)
        if current != source_root:
            relative = current.relative_to(source_root)
            (output_root / relative).mkdir(parents=True, exist_ok=True)
            report.directories.append(relative)
            dir_pairs.append((current, output_root / relative))

        for name in sorted(filenames):
            path = current / name
            relative = path.relative_to(source_root)
            if is_image(path):
                destination = destination_for(path, source_root, output_root, settings.extension)
            else:
                destination = output_root / relative
            # copies and conversions share one output namespace
            if destination in claimed:
                report.fail(relative, f"would overwrite output of {claimed[destination]}, skipped")
                continue
            claimed[destination] = relative
            if is_image(path):
                images.append(path)
            else:
                _copy_opaque(path, destination, relative, report)

    if settings.workers > 1 and len(images) > 1:
        with ThreadPoolExecutor(max_workers=settings.workers) as executor:
            futures = [
                executor.submit(_run_transform, path, source_root, output_root, settings, converter)
                for path in images
            ]
            for future in as_completed(futures):
                _record(report, future.result())
    else:
        for path in images:
            _record(report, _run_transform(path, source_root, output_root, settings, converter))

    # directory permissions last, deepest first
    for src_dir, out_dir in reversed(dir_pairs):
        try:
            shutil.copymode(src_dir, out_dir)
        except OSError as e:
            logger.warning("could not copy permissions of %s: %s", src_dir, e)

    logger.info(
        "%d converted, %d copied, %d failed",
        len(report.converted), len(report.copied), len(report.failures),
    )
    return report
