"""
Derivative generation: resolve, check the cache, crop, resample, encode.

``resize`` is the library entry point and raises ``ResizeError`` subclasses.
``process_request`` wraps it for batch callers and always returns a result
dict, in the same shape whether the request succeeded or failed.
"""

import logging
from pathlib import Path

from image_derivative_tool.backends import ImageBackend, get_backend
from image_derivative_tool.config import DEFAULT_HEIGHT, DEFAULT_WIDTH
from image_derivative_tool.derivative_cache import get_cached_derivative, match_directory_permissions
from image_derivative_tool.errors import InvalidInput, MetadataReadError, ResizeError
from image_derivative_tool.models import DerivativeDescriptor, ImageRef, TargetBox, plan_crop
from image_derivative_tool.paths import derivative_url, destination_path, encoder_for, encoder_for_mime
from image_derivative_tool.settings import Settings, apply_env_overrides

logger = logging.getLogger(__name__)


def resize(
    url: str,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    crop: bool = True,
    retina: bool = False,
    *,
    settings: Settings | None = None,
    backend: ImageBackend | None = None,
) -> DerivativeDescriptor:
    """
    Return a descriptor for the *width* × *height* derivative of the image at *url*.

    The derivative is generated on first request and reused afterwards.  When
    the image backend is unavailable the original *url*, *width* and *height*
    come back unchanged (with ``type=None``) so callers can fall back to the
    unresized image.

    Raises InvalidInput, DecodeError, MetadataReadError or EncodeError.
    """
    if not url or not url.strip():
        raise InvalidInput("No image URL has been entered.", url)
    for value in (width, height):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidInput(f"Width and height must be positive integers, got {width!r}x{height!r}", url)

    if settings is None:
        settings = apply_env_overrides(Settings())
    if backend is None:
        backend = get_backend(settings.backend)

    if not backend.is_available():
        logger.warning("Image backend %r unavailable, returning %s unresized", backend.name, url)
        return DerivativeDescriptor(url, width, height)

    box = TargetBox(width, height, crop, retina)
    source_path = settings.resolver().resolve(url)
    dest_path = destination_path(source_path, box.dest_width, box.dest_height)

    cached = _find_cached(backend, source_path, box, dest_path)
    if cached is not None:
        logger.debug("Cache hit for %s: %s", url, cached)
        dest_path = cached
    else:
        dest_path = _generate(backend, url, source_path, box, settings.jpeg_quality)

    dest_width, dest_height, mime = backend.probe(dest_path)
    return DerivativeDescriptor(derivative_url(url, dest_path), dest_width, dest_height, mime)


def _find_cached(backend: ImageBackend, source_path: Path, box: TargetBox, predicted_path: Path) -> Path | None:
    """Return an existing derivative, checking the header-named format when the extension misleads."""
    if get_cached_derivative(predicted_path) is not None:
        return predicted_path

    # JPEG data named .png is cached under .jpg; the header says which
    try:
        _, _, mime = backend.probe(source_path)
    except MetadataReadError:
        return None
    header_path = destination_path(source_path, box.dest_width, box.dest_height, encoder_for_mime(mime))
    if header_path != predicted_path:
        return get_cached_derivative(header_path)
    return None


def _generate(
    backend: ImageBackend,
    url: str,
    source_path: Path,
    box: TargetBox,
    quality: int,
) -> Path:
    """Decode *source_path*, crop and resample it into *box*, and write the derivative."""
    image = backend.decode(source_path)
    try:
        if image.width <= 0 or image.height <= 0:
            raise MetadataReadError("Source image has no usable dimensions", source_path)
        source = ImageRef(url, source_path, image.width, image.height, image.format)

        # The decoded format may disagree with the extension (a PNG named .jpg)
        encoder = encoder_for(source.format)
        dest_path = destination_path(source_path, box.dest_width, box.dest_height, encoder)
        rect = plan_crop(source.width, source.height, box.dest_width, box.dest_height, box.crop)
        resized = backend.resample(image, rect, box.dest_width, box.dest_height)
        try:
            backend.save(resized, dest_path, encoder, quality)
        finally:
            backend.close(resized)
    finally:
        backend.close(image)

    match_directory_permissions(dest_path)
    logger.info(
        "Created %s (%sx%s %s from %sx%s, crop %s)",
        dest_path, box.dest_width, box.dest_height, encoder,
        source.width, source.height, rect,
    )
    return dest_path


def process_request(
    args: dict,
    settings: Settings | None = None,
    backend: ImageBackend | None = None,
) -> dict:
    """
    Resize one request and return a result dict.

    ``args`` holds ``url`` plus optional ``width``, ``height``, ``crop`` and
    ``retina``.  On success the dict carries ``success=True`` and the
    descriptor fields; on failure ``success=False`` with ``kind``, ``error``
    and ``detail``.
    """
    url = args.get("url", "")
    try:
        descriptor = resize(
            url,
            args.get("width", DEFAULT_WIDTH),
            args.get("height", DEFAULT_HEIGHT),
            crop=args.get("crop", True),
            retina=args.get("retina", False),
            settings=settings,
            backend=backend,
        )
    except ResizeError as exc:
        logger.warning("Resize of %s failed (%s): %s", url, exc.kind, exc.message)
        return {"success": False, **exc.as_dict()}
    return {"success": True, **descriptor.as_dict()}
