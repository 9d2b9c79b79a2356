"""
Capture file naming and listing.

Snapshots and recordings live in one flat directory as timestamp-named
files (YYYYMMDD_HHMMSS_mmm.jpg / .wav). The directory listing is the only
index; files are ordered by creation time.
"""

import os
from datetime import datetime
from pathlib import Path

SNAPSHOT_PATTERN = "*.jpg"
AUDIO_PATTERN = "*.wav"


def timestamp_filename(extension: str, now: datetime | None = None) -> str:
    """File name like 20240131_235959_123.jpg."""
    now = now or datetime.now()
    return f"{now:%Y%m%d_%H%M%S}_{now.microsecond // 1000:03d}.{extension.lstrip('.')}"


def creation_time(path: Path) -> float:
    """File creation time, falling back to ctime where birth time is unsupported."""
    st = path.stat()
    return getattr(st, "st_birthtime", None) or st.st_ctime


def _sort_key(path: Path) -> tuple[float, str]:
    try:
        created = creation_time(path)
    except OSError:
        created = 0.0
    # Names embed the capture time, so they break creation-time ties
    return created, path.name


def list_capture_files(directory: str | os.PathLike, pattern: str) -> list[Path]:
    """Files matching pattern, newest first."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    files = [p for p in directory.glob(pattern) if p.is_file()]
    files.sort(key=_sort_key, reverse=True)
    return files
