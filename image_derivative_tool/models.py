"""
Data models and crop-geometry utilities.

CropRect, TargetBox, ImageRef and DerivativeDescriptor are the core data
structures shared by the path resolver, the backends and the resizer.
``plan_crop`` maps a source image onto a target box, choosing which axis to
trim so the box is fully covered without distortion.
"""

import math
from dataclasses import dataclass
from pathlib import Path

from image_derivative_tool.config import DEFAULT_HEIGHT, DEFAULT_WIDTH, RETINA_SCALE
from image_derivative_tool.errors import InvalidInput


# =============================================================================
# Data classes
# =============================================================================
@dataclass
class CropRect:
    """Crop rectangle in source-image coordinates."""
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    def as_box(self) -> tuple[int, int, int, int]:
        """Return the (left, upper, right, lower) box Pillow expects."""
        return self.x, self.y, self.x + self.w, self.y + self.h


@dataclass(frozen=True)
class TargetBox:
    """Requested derivative size."""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    crop: bool = True
    retina: bool = False

    @property
    def dest_width(self) -> int:
        return self.width * RETINA_SCALE if self.retina else self.width

    @property
    def dest_height(self) -> int:
        return self.height * RETINA_SCALE if self.retina else self.height


@dataclass(frozen=True)
class ImageRef:
    """A decoded source image, resolved once per request."""
    source_url: str
    source_path: Path
    width: int
    height: int
    format: str  # decoder name, e.g. "JPEG", "PNG", "GIF", "BMP"


@dataclass(frozen=True)
class DerivativeDescriptor:
    """Result handed back to the caller."""
    url: str
    width: int
    height: int
    type: str | None = None  # MIME type; None for an unresized passthrough

    def as_dict(self) -> dict:
        return {"url": self.url, "width": self.width, "height": self.height, "type": self.type}


# =============================================================================
# Crop math utilities
# =============================================================================
def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 → 3, -2.5 → -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def plan_crop(
    orig_width: int,
    orig_height: int,
    dest_width: int,
    dest_height: int,
    crop: bool = True,
) -> CropRect:
    """
    Compute the source rectangle to sample for a *dest_width* × *dest_height* box.

    Without *crop* the whole source is returned and the caller stretches it
    into the box.  With *crop* the relatively longer axis is trimmed and
    centred so its aspect ratio matches the box; the other axis stays full.
    """
    if min(orig_width, orig_height, dest_width, dest_height) <= 0:
        raise InvalidInput(
            "Image dimensions must be positive",
            f"{orig_width}x{orig_height} -> {dest_width}x{dest_height}",
        )

    rect = CropRect(0, 0, orig_width, orig_height)
    if not crop:
        return rect

    cmp_x = orig_width / dest_width
    cmp_y = orig_height / dest_height

    if cmp_x > cmp_y:
        rect.w = max(1, round_half_up(orig_width / cmp_x * cmp_y))
        rect.x = round_half_up((orig_width - rect.w) / 2)
    elif cmp_y > cmp_x:
        rect.h = max(1, round_half_up(orig_height / cmp_y * cmp_x))
        rect.y = round_half_up((orig_height - rect.h) / 2)

    return rect
