"""Write a processed tree back into a single archive."""

import logging
import os
import zipfile
from pathlib import Path

from .errors import RepackError

logger = logging.getLogger(__name__)


def _raise(error):
    raise error


def iter_tree(root):
    """
    Every directory and file under root, sorted, parents before children.
    An unreadable directory raises instead of being skipped.
    """
    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        current = Path(dirpath)
        if current != root:
            yield current
        for name in sorted(filenames):
            yield current / name


def repack_archive(source_dir, archive_path):
    """
    Store every entry of source_dir in a new zip at archive_path (no
    compression, names relative to source_dir).

    The archive is written under a temporary name next to the target and
    moved into place once complete.
    """
    source_dir = Path(source_dir)
    archive_path = Path(archive_path)

    try:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RepackError(f"cannot create {archive_path.parent}: {e}") from e

    partial = archive_path.with_name(f".{archive_path.name}.part")
    count = 0
    try:
        with zipfile.ZipFile(partial, "w", zipfile.ZIP_STORED) as zip_out:
            for path in iter_tree(source_dir):
                zip_out.write(path, path.relative_to(source_dir).as_posix())
                count += 1
        os.replace(partial, archive_path)
    except (OSError, zipfile.LargeZipFile, ValueError) as e:
        if os.path.exists(partial):
            os.unlink(partial)
        raise RepackError(f"cannot write {archive_path}: {e}") from e

    logger.debug("Wrote %d entries to %s", count, archive_path)
    return archive_path
