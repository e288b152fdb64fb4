"""
Pillow-based image I/O utilities.

Provides helpers to open images (including layered PSD files via
psd-tools), read dimensions and format from the header without decoding
pixel data, and detect palette-mode sources whose colour count should be
preserved on re-encode.
"""

from pathlib import Path

from PIL import Image, UnidentifiedImageError
from psd_tools import PSDImage

from image_derivative_tool.errors import DecodeError, MetadataReadError


def open_image(path: Path) -> tuple[Image.Image, str]:
    """
    Open an image file and return ``(image, format)``.

    PSD files are composited with psd-tools; everything else is opened by
    Pillow.  The returned format is Pillow's decoder name (``"JPEG"``,
    ``"PNG"``, ``"GIF"``, ...) or ``"PSD"``.
    """
    if not path.is_file():
        raise DecodeError("Source image not found", path)

    try:
        if path.suffix.lower() == ".psd":
            psd = PSDImage.open(str(path))
            return psd.composite(), "PSD"
        img = Image.open(path)
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(f"Error loading image: {exc}", path) from exc

    if not img.format:
        img.close()
        raise MetadataReadError("Could not determine source image format", path)
    return img, img.format


def read_image_info(path: Path) -> tuple[int, int, str]:
    """
    Return ``(width, height, mime_type)`` read from the file header only.

    Raises MetadataReadError if the file is missing or not a recognised image.
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            mime = img.get_format_mimetype() or Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise MetadataReadError(f"Failed to read image information: {exc}", path) from exc

    if not mime:
        raise MetadataReadError("Unknown image type", path)
    return width, height, mime


def palette_size(img: Image.Image) -> int | None:
    """Number of palette entries for a palette-mode image, or None for true colour."""
    if img.mode not in ("P", "PA"):
        return None
    palette = img.getpalette()
    if not palette:
        return None
    return max(2, min(256, len(palette) // 3))
