"""
Application constants and configuration.

Defaults for derivative sizing and encoding live here as module constants.
Persisted, user-editable settings (document root, JPEG quality, backend,
multi-tenant mapping) are loaded from settings.json via the settings module.

The ``config_dir()`` helper returns the platform-appropriate config
directory used by the settings module.
"""

import os
import subprocess
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "image-derivative-tool"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory

# =============================================================================
# DERIVATIVE DEFAULTS
# =============================================================================
DEFAULT_WIDTH = 150
DEFAULT_HEIGHT = 150

# Retina derivatives are rendered at this multiple of the requested box
RETINA_SCALE = 2

# JPEG encode quality (overridable via settings.json or the environment)
JPEG_QUALITY_DEFAULT = 90
JPEG_QUALITY_MIN = 1
JPEG_QUALITY_MAX = 100

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# Environment overrides applied on top of settings.json
ENV_JPEG_QUALITY = "IMAGE_DERIVATIVE_JPEG_QUALITY"
ENV_DOCUMENT_ROOT = "IMAGE_DERIVATIVE_DOCUMENT_ROOT"

# Encoders keyed by decoded source format; anything else is written as JPEG
PASSTHROUGH_FORMATS = {"GIF": "gif", "PNG": "png"}
PASSTHROUGH_MIME_TYPES = {"image/gif": "gif", "image/png": "png"}
JPEG_EXTENSIONS = {"jpg", "jpeg"}

# Transparent areas are flattened onto this colour when writing JPEG
JPEG_BACKGROUND = "black"

# Default shared-storage layout for tenant-scoped uploads
TENANT_STORAGE_TEMPLATE = "/wp-content/blogs.dir/{tenant_id}/files/"

# Backends selectable by name
BACKENDS = ["pillow", "magick"]
BACKEND_DEFAULT = "pillow"

# ---------------------------------------------------------------------------
# ImageMagick availability detection
# ---------------------------------------------------------------------------
# v7 uses a single ``magick`` binary; v6 uses ``convert``/``identify`` etc.
HAS_MAGICK = False
MAGICK_VERSION = 0  # Major version (6 or 7)

for _cmd, _ver in [("magick", 7), ("convert", 6)]:
    try:
        _magick_check = subprocess.run(
            [_cmd, "--version"], capture_output=True, timeout=5,
        )
        if _magick_check.returncode == 0:
            HAS_MAGICK = True
            MAGICK_VERSION = _ver
            break
    except (OSError, subprocess.SubprocessError):
        pass


def magick_cmd(*args: str) -> list[str]:
    """Build an ImageMagick command line that works on both v6 and v7.

    Usage examples::

        magick_cmd("identify", "-format", "%w", "file.png")
        # v7 → ["magick", "identify", "-format", "%w", "file.png"]
        # v6 → ["identify", "-format", "%w", "file.png"]

        magick_cmd("file.png", "-resize", "150x150!", "out.png")
        # v7 → ["magick", "file.png", "-resize", "150x150!", "out.png"]
        # v6 → ["convert", "file.png", "-resize", "150x150!", "out.png"]

    When the first arg is ``identify`` it is kept as-is for v6 and prefixed
    with ``magick`` for v7.  Otherwise the args are treated as
    ``convert``/``magick`` arguments.
    """
    args_list = list(args)
    if MAGICK_VERSION >= 7:
        return ["magick"] + args_list
    if args_list and args_list[0] == "identify":
        return args_list
    return ["convert"] + args_list
