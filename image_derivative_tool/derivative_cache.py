"""
On-disk derivative cache.

Derivatives are written next to their source at a deterministic path (see
``paths.destination_path``), so the file's existence is the only cache-hit
signal.  Entries are never refreshed or evicted here.
"""

import logging
import os
import stat
from pathlib import Path

logger = logging.getLogger(__name__)


def get_cached_derivative(dest_path: Path) -> Path | None:
    """Return *dest_path* if a derivative already exists there, or None."""
    return dest_path if dest_path.is_file() else None


def match_directory_permissions(path: Path) -> None:
    """Give *path* the read/write bits of its directory (best effort)."""
    try:
        mode = stat.S_IMODE(path.parent.stat().st_mode) & 0o666
        os.chmod(path, mode)
    except OSError as exc:
        logger.debug("Could not set permissions on %s: %s", path, exc)
