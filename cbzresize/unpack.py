"""Extract a comic archive into a scratch directory."""

import logging
import os
import shutil
import stat
import zipfile
import zlib
from pathlib import Path, PurePosixPath, PureWindowsPath

from .errors import FilesystemError, UnpackError, UnsafeArchiveEntryError

logger = logging.getLogger(__name__)

# ZipInfo.create_system value for archives written on Unix
ZIP_UNIX_SYSTEM = 3


def safe_member_path(name, destination):
    """
    Resolve an archive member name under destination.
    Raises UnsafeArchiveEntryError if it is absolute or escapes the root.
    """
    posix = PurePosixPath(name.replace("\\", "/"))
    if posix.is_absolute() or PureWindowsPath(name).drive:
        raise UnsafeArchiveEntryError(name, destination)
    if ".." in posix.parts:
        raise UnsafeArchiveEntryError(name, destination)

    root = Path(destination).resolve()
    target = root.joinpath(*posix.parts).resolve()
    if target != root and root not in target.parents:
        raise UnsafeArchiveEntryError(name, destination)
    return target


def _stored_mode(info):
    if info.create_system != ZIP_UNIX_SYSTEM:
        return None
    mode = stat.S_IMODE(info.external_attr >> 16)
    return mode or None


def _apply_mode(path, mode):
    # no POSIX bits to restore on this host
    if mode is None or os.name != "posix":
        return
    os.chmod(path, mode)


def unpack_archive(archive_path, destination):
    """
    Extract every member of archive_path into destination, keeping directory
    structure and stored Unix permissions.

    All member names are checked before anything is written.
    Returns the list of extracted relative paths in archive order.
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    try:
        zip_ref = zipfile.ZipFile(archive_path, "r")
    except zipfile.BadZipFile as e:
        raise UnpackError(f"{archive_path} is not a valid archive: {e}") from e
    except OSError as e:
        raise FilesystemError(f"cannot open {archive_path}: {e}") from e

    extracted = []
    dir_modes = []
    with zip_ref:
        members = [(info, safe_member_path(info.filename, destination)) for info in zip_ref.infolist()]
        logger.debug("Extracting %d member(s) from %s", len(members), archive_path.name)

        try:
            for info, target in members:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    dir_modes.append((target, _stored_mode(info)))
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zip_ref.open(info) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    _apply_mode(target, _stored_mode(info))
                extracted.append(target.relative_to(destination.resolve()))
        except (zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise UnpackError(f"{archive_path} is corrupt: {e}") from e
        except (RuntimeError, NotImplementedError) as e:
            # encrypted members, unsupported compression methods
            raise UnpackError(f"{archive_path} cannot be extracted: {e}") from e
        except OSError as e:
            raise FilesystemError(f"cannot extract {archive_path}: {e}") from e

    # deepest first, so a read-only parent doesn't block its children
    for target, mode in reversed(dir_modes):
        _apply_mode(target, mode)

    return extracted
