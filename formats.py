"""File-name based format classification and output naming."""

from __future__ import annotations

import re

from models import FormatClass

ARCHIVE_SUFFIX = ".fortner"
DECODED_SUFFIX = ".png"

# webp is listed as lossy: the client cannot tell lossless webp apart by name,
# the server rejects lossy content it detects after upload.
LOSSY_EXTENSIONS = frozenset({"jpg", "jpeg", "webp", "avif"})
LOSSLESS_EXTENSIONS = frozenset({"png", "bmp", "tga", "tiff", "tif", "gif"})


def extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def classify(filename: str) -> FormatClass:
    ext = extension(filename)
    if ext in LOSSY_EXTENSIONS:
        return FormatClass.LOSSY
    if ext in LOSSLESS_EXTENSIONS:
        return FormatClass.LOSSLESS
    return FormatClass.UNSUPPORTED


def is_archive(filename: str) -> bool:
    return filename.lower().endswith(ARCHIVE_SUFFIX)


def encoded_name(filename: str) -> str:
    """``photo.png`` -> ``photo.fortner``."""
    return re.sub(r"\.[^.]+$", "", filename) + ARCHIVE_SUFFIX


def decoded_name(filename: str) -> str:
    """``photo.fortner`` -> ``photo.png``."""
    return re.sub(r"\.fortner$", "", filename, flags=re.IGNORECASE) + DECODED_SUFFIX
