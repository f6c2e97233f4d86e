"""
Per-image conversion through an external raster tool.

ImageMagick's `convert` (or `gm convert`) does all the pixel work; this
module only builds the command line and interprets the exit status.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path

from .config import IMAGE_EXTENSIONS
from .errors import ConfigurationError, ConversionError

logger = logging.getLogger(__name__)

DEFAULT_CONVERT_COMMAND = ("convert",)


def is_image(path):
    """Check if a file is routed to the raster tool, based on its extension."""
    return Path(path).suffix.lower().lstrip(".") in IMAGE_EXTENSIONS


def find_tool(command):
    """
    Resolve the executable of command (a sequence, first word is the program).
    Returns the command with the program replaced by its full path.
    """
    if not command:
        raise ConfigurationError("convert command must not be empty")
    program = command[0]
    if os.path.sep in program or (os.path.altsep and os.path.altsep in program):
        if os.path.isfile(program) and os.access(program, os.X_OK):
            return tuple(command)
    else:
        found = shutil.which(program)
        if found:
            return (found, *command[1:])
    raise ConfigurationError(
        f"{program} not found. Install ImageMagick/GraphicsMagick or pass --convert-command."
    )


class ExternalConverter:
    """Runs `<command> <src> -geometry G -quality Q [-define D] <dst>` once per image."""

    def __init__(self, command=DEFAULT_CONVERT_COMMAND, timeout=None):
        self.command = tuple(command)
        self.timeout = timeout

    def build_args(self, source, destination, geometry, quality, define=None):
        args = [*self.command, str(source), "-geometry", geometry, "-quality", str(quality)]
        if define:
            args += ["-define", define]
        args.append(str(destination))
        return args

    def convert(self, source, destination, geometry, quality, define=None):
        args = self.build_args(source, destination, geometry, quality, define)
        logger.debug("Running %s", " ".join(args))
        try:
            result = subprocess.run(args, capture_output=True, text=True, errors="replace", timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise ConversionError(f"`{self.command[0]}` timed out after {self.timeout}s on {source}") from e
        except OSError as e:
            raise ConversionError(f"`{self.command[0]}` could not be started: {e}") from e

        if result.returncode != 0:
            output = "\n".join(s for s in (result.stdout, result.stderr) if s and s.strip())
            raise ConversionError(
                f"`{' '.join(self.command)}` failed on {source} (exit {result.returncode})", output
            )
        return destination


def destination_for(source, source_root, output_root, extension):
    """Mirrored output path of source, with its extension replaced."""
    relative = Path(source).relative_to(source_root)
    return Path(output_root) / relative.with_suffix(f".{extension}")


def transform_image(source, source_root, output_root, settings, converter):
    """
    Convert one image into the mirrored location under output_root.
    Returns the destination path; raises ConversionError on failure.
    """
    destination = destination_for(source, source_root, output_root, settings.extension)
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        converter.convert(source, destination, settings.geometry, settings.quality, settings.define)
    except ConversionError:
        # a partial output must not end up in the archive
        if destination.exists():
            destination.unlink()
        raise
    return destination
