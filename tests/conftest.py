"""Shared fixtures: archive builders, a fake raster tool, a recording converter."""

import io
import struct
import sys
import textwrap
import zipfile
from pathlib import Path

import pytest
from PIL import Image

from cbzresize.errors import ConversionError


# Stand-in for ImageMagick's convert: same argument layout, resizes with Pillow.
# Fails (exit 3) when the source file name contains "broken".
FAKE_CONVERT = textwrap.dedent(
    """
    import re
    import sys
    from PIL import Image

    args = sys.argv[1:]
    src, dst = args[0], args[-1]
    opts = dict(zip(args[1:-1:2], args[2:-1:2]))
    if "broken" in src:
        sys.stderr.write("convert: improper image header `%s'\\n" % src)
        sys.exit(3)
    m = re.match(r"(\\d+)x(\\d+)(\\^?)", opts["-geometry"])
    w, h, fill = int(m.group(1)), int(m.group(2)), m.group(3)
    with Image.open(src) as img:
        pick = max if fill else min
        ratio = pick(w / img.width, h / img.height)
        out = img.convert("RGB").resize((max(1, round(img.width * ratio)), max(1, round(img.height * ratio))))
        out.save(dst, quality=int(opts["-quality"]))
    """
)


def image_bytes(size=(60, 90), color=(200, 30, 30), fmt="PNG"):
    """Encoded bytes of a solid test image."""
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format=fmt)
    return buf.getvalue()


def write_cbz(path, entries, modes=None):
    """
    Build a zip at path. entries maps member name -> bytes; a name ending in
    "/" is a directory. modes maps member name -> unix permission bits.
    """
    modes = modes or {}
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            info = zipfile.ZipInfo(name)
            info.create_system = 3
            if name.endswith("/"):
                mode = modes.get(name, 0o755)
                info.external_attr = ((0o040000 | mode) << 16) | 0x10
                zf.writestr(info, b"")
            else:
                mode = modes.get(name, 0o644)
                info.external_attr = (0o100000 | mode) << 16
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, data)
    return path


def rewrite_member_headers(path, flag_bits=0, compress_type=None):
    """Patch the general purpose flags and/or compression method of every member header."""
    path = Path(path)
    data = bytearray(path.read_bytes())
    # (signature, offset of the flag field) for local and central directory headers
    for signature, flags_at in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = data.find(signature)
        while start != -1:
            (flags,) = struct.unpack_from("<H", data, start + flags_at)
            struct.pack_into("<H", data, start + flags_at, flags | flag_bits)
            if compress_type is not None:
                struct.pack_into("<H", data, start + flags_at + 2, compress_type)
            start = data.find(signature, start + 4)
    path.write_bytes(bytes(data))
    return path


def read_cbz(path):
    """Member name -> bytes (None for directories)."""
    with zipfile.ZipFile(path) as zf:
        return {
            info.filename: (None if info.is_dir() else zf.read(info))
            for info in zf.infolist()
        }


class RecordingConverter:
    """Converter double: records calls, writes a marker file, fails for chosen names."""

    def __init__(self, fail_names=()):
        self.fail_names = set(fail_names)
        self.calls = []

    def convert(self, source, destination, geometry, quality, define=None):
        self.calls.append((Path(source), Path(destination), geometry, quality, define))
        if Path(source).name in self.fail_names:
            raise ConversionError(f"convert failed on {source}", "improper image header")
        Path(destination).write_bytes(b"converted:" + Path(source).name.encode("utf-8"))
        return destination


@pytest.fixture
def recording_converter():
    return RecordingConverter()


@pytest.fixture
def fake_convert_command(tmp_path):
    """Command tuple running the fake convert script with this interpreter."""
    script = tmp_path / "fake_convert.py"
    script.write_text(FAKE_CONVERT)
    return (sys.executable, str(script))
