#!/usr/bin/env python3
"""
cbzresize - Shrink the images of CBZ/ZIP comic archives
Extraction → Conversion (ImageMagick) → Repack

Usage:
    cbzresize book.cbz small/book.cbz
    cbzresize book.cbz out.cbz --geometry 1072x1448^ --quality 80
    cbzresize "vol-##.cbz" "small/vol-##.cbz" --many "##"    # batch, asks before running
    cbzresize in.cbz out.cbz --extension webp --define webp:method=6
    cbzresize in.cbz out.cbz --convert-command "gm convert"

Environment:
    LOG_LEVEL    DEBUG, INFO (default), WARNING, ERROR
"""

import argparse
import logging
import os
import shlex
import sys
import time

from .config import DEFAULT_EXTENSION, DEFAULT_GEOMETRY, DEFAULT_QUALITY, ConversionSettings, Job
from .errors import BatchError, CbzResizeError
from .patterns import resolve_jobs
from .pipeline import run_batch, run_job
from .transform import DEFAULT_CONVERT_COMMAND, ExternalConverter, find_tool

LOG_LEVEL_ENV = "LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def setup_logging(verbose=False):
    """Configure the root logger from LOG_LEVEL, or DEBUG when verbose."""
    if verbose:
        level = logging.DEBUG
    else:
        name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", stream=sys.stderr)


def build_parser():
    p = argparse.ArgumentParser(
        prog="cbzresize",
        description="Resize/recompress the images inside CBZ/ZIP archives, copying other entries as-is.",
    )
    p.add_argument("source", help="source archive (a template containing TOKEN with --many)")
    p.add_argument("target", help="target archive (a template containing TOKEN with --many)")
    p.add_argument("--geometry", default=DEFAULT_GEOMETRY,
                   help=f"geometry passed to the raster tool (default {DEFAULT_GEOMETRY})")
    p.add_argument("--quality", type=int, default=DEFAULT_QUALITY,
                   help=f"output quality 1-100 (default {DEFAULT_QUALITY})")
    p.add_argument("--define", default=None, help="codec specific -define, e.g. webp:lossless=false")
    p.add_argument("--extension", default=DEFAULT_EXTENSION,
                   help=f"output image extension (default {DEFAULT_EXTENSION})")
    p.add_argument("--many", metavar="TOKEN", default=None,
                   help="batch mode: TOKEN in source/target is replaced by the matching part of each file")
    p.add_argument("--yes", "-y", action="store_true", help="don't ask for confirmation in batch mode")
    p.add_argument("--keep-going", action="store_true",
                   help="batch mode: continue with the next archive when one fails")
    p.add_argument("--workers", type=int, default=1, help="images converted in parallel per archive (default 1)")
    p.add_argument("--timeout", type=float, default=None, help="seconds allowed per raster tool run")
    p.add_argument("--convert-command", default=" ".join(DEFAULT_CONVERT_COMMAND),
                   help="raster tool command (default 'convert', e.g. 'gm convert' or 'magick')")
    p.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return p


def confirm(question, reader=input):
    """Yes/no gate. Only an explicit y/yes goes ahead."""
    try:
        answer = reader(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def print_result(idx, total, result):
    progress_prefix = f"[{idx}/{total}] " if total > 1 else ""
    report = result.report
    status = "✓" if report.ok else "⚠"
    print(f"{progress_prefix}{status} {result.archive} "
          f"({len(report.converted)} converted, {len(report.copied)} copied, "
          f"{len(report.failures)} skipped) in {result.elapsed:.1f}s")


def main(argv=None, reader=input):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    print("=" * 60)
    print("cbzresize")
    print("=" * 60)

    try:
        settings = ConversionSettings(
            geometry=args.geometry,
            quality=args.quality,
            define=args.define,
            extension=args.extension,
            workers=args.workers,
            timeout=args.timeout,
        )
        command = find_tool(shlex.split(args.convert_command))
        converter = ExternalConverter(command, timeout=settings.timeout)

        print(f"Geometry: {settings.geometry}  Quality: {settings.quality}  Output: .{settings.extension}")
        if settings.define:
            print(f"Define: {settings.define}")

        if args.many is None:
            job = Job(source=args.source, target=args.target, settings=settings)
            print(f"\nProcessing: {job}")
            print_result(1, 1, run_job(job, converter))
            return 0

        jobs = resolve_jobs(args.source, args.target, args.many, settings)
        if not jobs:
            print(f"\nNo files match '{args.source}'")
            return 1

        print(f"\nFound {len(jobs)} archive(s)")
        for idx, job in enumerate(jobs, 1):
            print(f"  [{idx}/{len(jobs)}] {job}")
        print("-" * 60)

        if not args.yes and not confirm("Process these archives?", reader):
            print("Aborted, nothing was processed")
            return 1

        start_time = time.time()
        try:
            results = run_batch(jobs, converter, keep_going=args.keep_going, on_result=print_result)
        except BatchError as e:
            print(f"\nCompleted {len(e.results)}/{len(jobs)} archives")
            for job, error in e.failures:
                print(f"  ✗ {job.source}: {error}")
            return 1

        print("-" * 60)
        print(f"\nCompleted! Converted {len(results)}/{len(jobs)} archives "
              f"in {(time.time() - start_time) / 60:.1f} minutes")
        return 0

    except CbzResizeError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
