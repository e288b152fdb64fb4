"""
Image-codec backends.

A backend decodes a source image, resamples a crop rectangle of it into a
new canvas, encodes the result and reads back header information.  Two
implementations are provided:

* ``PillowBackend`` works in-process with Pillow (and psd-tools for PSD).
* ``MagickBackend`` shells out to the ImageMagick CLI (v6 or v7).  Decoding
  only probes the source; the crop/resize operations are queued on the
  returned image and executed by a single command at save time.

The resizer only talks to the ``ImageBackend`` protocol, so both produce the
same derivative paths, dimensions and encoder choices.
"""

import logging
import subprocess
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol

from PIL import Image, features

from image_derivative_tool import config
from image_derivative_tool.config import JPEG_BACKGROUND, PNG_COMPRESS_LEVEL, magick_cmd
from image_derivative_tool.errors import DecodeError, EncodeError, MetadataReadError
from image_derivative_tool.image_io import open_image, palette_size, read_image_info
from image_derivative_tool.models import CropRect

logger = logging.getLogger(__name__)

_MAGICK_TIMEOUT = 120


@dataclass
class DecodedImage:
    """Backend-neutral view of a decoded (or resampled) image."""
    width: int
    height: int
    format: str
    colors: int | None = None  # palette size when the source was indexed colour
    handle: Any = None


class ImageBackend(Protocol):
    """Capabilities the resizer needs from an image library."""

    name: str

    def is_available(self) -> bool: ...

    def decode(self, path: Path) -> DecodedImage: ...

    def resample(self, image: DecodedImage, rect: CropRect, dest_width: int, dest_height: int) -> DecodedImage: ...

    def save(self, image: DecodedImage, path: Path, encoder: str, quality: int) -> None: ...

    def probe(self, path: Path) -> tuple[int, int, str]: ...

    def close(self, image: DecodedImage) -> None: ...


# =============================================================================
# Pillow
# =============================================================================
def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info


class PillowBackend:
    """Decode, resample and encode with Pillow."""

    name = "pillow"

    def is_available(self) -> bool:
        return bool(features.check_codec("jpg") and features.check_codec("zlib"))

    def decode(self, path: Path) -> DecodedImage:
        img, fmt = open_image(path)
        with img:
            colors = palette_size(img) if fmt == "PNG" else None
            pixels = img.convert("RGBA" if _has_alpha(img) else "RGB")
        return DecodedImage(pixels.width, pixels.height, fmt, colors, pixels)

    def resample(self, image: DecodedImage, rect: CropRect, dest_width: int, dest_height: int) -> DecodedImage:
        resized = image.handle.resize(
            (dest_width, dest_height),
            Image.Resampling.LANCZOS,
            box=rect.as_box(),
        )
        return replace(image, width=dest_width, height=dest_height, handle=resized)

    def save(self, image: DecodedImage, path: Path, encoder: str, quality: int) -> None:
        img = image.handle
        try:
            if encoder == "gif":
                img.save(str(path), "GIF")
            elif encoder == "png":
                if image.colors:
                    # Back to indexed colour, like the original PNG
                    img = img.convert("P", palette=Image.Palette.ADAPTIVE, colors=image.colors)
                img.save(str(path), "PNG", compress_level=PNG_COMPRESS_LEVEL)
            else:
                if img.mode == "RGBA":
                    flattened = Image.new("RGB", img.size, JPEG_BACKGROUND)
                    flattened.paste(img, mask=img.getchannel("A"))
                    img = flattened
                elif img.mode != "RGB":
                    img = img.convert("RGB")
                img.save(str(path), "JPEG", quality=quality, optimize=True)
        except (OSError, ValueError) as exc:
            raise EncodeError(f"Resize path invalid ({encoder.upper()}): {exc}", path) from exc

    def probe(self, path: Path) -> tuple[int, int, str]:
        return read_image_info(path)

    def close(self, image: DecodedImage) -> None:
        if image.handle is not None:
            image.handle.close()


# =============================================================================
# ImageMagick
# =============================================================================
@dataclass(frozen=True)
class _MagickJob:
    source: Path
    ops: tuple[str, ...] = field(default_factory=tuple)


def _run_magick(args: list[str], timeout: int = 30) -> subprocess.CompletedProcess:
    logger.debug("Running %s", " ".join(args))
    return subprocess.run(args, capture_output=True, text=True, timeout=timeout)


class MagickBackend:
    """Decode, resample and encode with the ImageMagick command-line tools."""

    name = "magick"

    def is_available(self) -> bool:
        return config.HAS_MAGICK

    def _identify(self, path: Path, fmt: str) -> list[str]:
        try:
            result = _run_magick(magick_cmd("identify", "-format", fmt, f"{path}[0]"))
        except (OSError, subprocess.SubprocessError) as exc:
            raise DecodeError(f"ImageMagick identify failed: {exc}", path) from exc
        if result.returncode != 0:
            raise DecodeError(f"ImageMagick identify failed: {result.stderr.strip()}", path)
        return result.stdout.strip().split()

    def decode(self, path: Path) -> DecodedImage:
        if not path.is_file():
            raise DecodeError("Source image not found", path)

        # "%r" (image class) goes last since it may contain spaces
        parts = self._identify(path, "%w %h %m %k %r")
        try:
            width, height, fmt, unique = int(parts[0]), int(parts[1]), parts[2], int(parts[3])
        except (IndexError, ValueError) as exc:
            raise MetadataReadError("Could not parse ImageMagick identify output", path) from exc

        indexed = "PseudoClass" in " ".join(parts[4:])
        colors = max(2, min(256, unique)) if fmt == "PNG" and indexed else None
        return DecodedImage(width, height, fmt, colors, _MagickJob(path))

    def resample(self, image: DecodedImage, rect: CropRect, dest_width: int, dest_height: int) -> DecodedImage:
        job = image.handle
        ops = job.ops + (
            "-crop", f"{rect.w}x{rect.h}+{rect.x}+{rect.y}", "+repage",
            "-resize", f"{dest_width}x{dest_height}!",
        )
        return replace(image, width=dest_width, height=dest_height, handle=_MagickJob(job.source, ops))

    def save(self, image: DecodedImage, path: Path, encoder: str, quality: int) -> None:
        job = image.handle
        if encoder == "gif":
            extra, target = [], f"GIF:{path}"
        elif encoder == "png":
            if image.colors:
                extra, target = ["-colors", str(image.colors)], f"PNG8:{path}"
            else:
                extra, target = [], f"PNG:{path}"
        else:
            extra = ["-background", JPEG_BACKGROUND, "-flatten", "-quality", str(quality)]
            target = f"JPEG:{path}"

        args = magick_cmd(f"{job.source}[0]", *job.ops, *extra, target)
        try:
            result = _run_magick(args, timeout=_MAGICK_TIMEOUT)
        except (OSError, subprocess.SubprocessError) as exc:
            raise EncodeError(f"Resize path invalid ({encoder.upper()}): {exc}", path) from exc
        if result.returncode != 0:
            raise EncodeError(f"Resize path invalid ({encoder.upper()}): {result.stderr.strip()}", path)

    def probe(self, path: Path) -> tuple[int, int, str]:
        try:
            parts = self._identify(path, "%w %h %m")
            width, height, fmt = int(parts[0]), int(parts[1]), parts[2]
        except (DecodeError, IndexError, ValueError) as exc:
            raise MetadataReadError(f"Failed to read image information: {exc}", path) from exc
        Image.init()
        mime = Image.MIME.get(fmt.upper())
        if not mime:
            raise MetadataReadError(f"Unknown image type {fmt}", path)
        return width, height, mime

    def close(self, image: DecodedImage) -> None:
        pass


# =============================================================================
# Lookup
# =============================================================================
_BACKENDS = {
    PillowBackend.name: PillowBackend,
    MagickBackend.name: MagickBackend,
}


def get_backend(name: str) -> ImageBackend:
    """Instantiate a backend by name (``"pillow"`` or ``"magick"``)."""
    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ValueError(f"Unknown image backend {name!r} (expected one of: {', '.join(_BACKENDS)})") from None
