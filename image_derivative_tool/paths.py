"""
URL and file-path helpers.

``PathResolver`` maps a public image URL onto the file system under a
configured document root, optionally remapping tenant-scoped upload paths
to shared storage.  ``destination_path`` derives the deterministic cache
path of a derivative and ``derivative_url`` builds its public URL.
"""

import logging
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from image_derivative_tool.config import (
    JPEG_EXTENSIONS,
    PASSTHROUGH_FORMATS,
    PASSTHROUGH_MIME_TYPES,
    TENANT_STORAGE_TEMPLATE,
)
from image_derivative_tool.errors import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantMapping:
    """Rewrite ``{site_path}files/`` to the tenant's slot in shared storage."""
    site_path: str
    tenant_id: int
    storage_template: str = TENANT_STORAGE_TEMPLATE

    @property
    def uploads_prefix(self) -> str:
        site = "/" + self.site_path.strip("/")
        if site != "/":
            site += "/"
        return f"{site}files/"

    @property
    def storage_prefix(self) -> str:
        return self.storage_template.format(tenant_id=self.tenant_id)

    def apply(self, url_path: str) -> str:
        return url_path.replace(self.uploads_prefix, self.storage_prefix)


class PathResolver:
    """Resolve public URLs to source files below a document root."""

    def __init__(self, document_root: str | Path, tenant: TenantMapping | None = None):
        self.document_root = Path(document_root)
        self.tenant = tenant

    def resolve(self, url: str) -> Path:
        """Return the file-system path a public *url* points at."""
        if not url or not url.strip():
            raise InvalidInput("No image URL has been entered.", url)

        url_path = unquote(urlsplit(url.strip()).path)
        if not url_path or url_path.endswith("/"):
            raise InvalidInput("Image URL does not name a file", url)

        if self.tenant is not None:
            remapped = self.tenant.apply(url_path)
            if remapped != url_path:
                logger.debug("Tenant %s remapped %s -> %s", self.tenant.tenant_id, url_path, remapped)
            url_path = remapped

        # unquote() turns %2e%2e into "..", so the joined path must be confined
        root = Path(os.path.abspath(self.document_root))
        path = Path(os.path.normpath(root / url_path.lstrip("/")))
        if not path.is_relative_to(root):
            raise InvalidInput("Image URL points outside the document root", url)
        return path


# =============================================================================
# Destination helpers
# =============================================================================
def encoder_for(fmt: str | None) -> str:
    """Encoder name for a decoded format: gif, png, or jpeg for everything else."""
    return PASSTHROUGH_FORMATS.get((fmt or "").upper(), "jpeg")


def encoder_for_mime(mime: str | None) -> str:
    """Encoder name for a MIME type read from a file header."""
    return PASSTHROUGH_MIME_TYPES.get(mime or "", "jpeg")


def encoder_for_extension(path: Path) -> str:
    """Predict the encoder from a file extension before anything is decoded."""
    ext = path.suffix.lstrip(".").lower()
    if ext in JPEG_EXTENSIONS:
        return "jpeg"
    return encoder_for(ext)


def destination_path(
    source_path: Path,
    dest_width: int,
    dest_height: int,
    encoder: str | None = None,
) -> Path:
    """
    Return ``{dir}/{name}-{W}x{H}.{ext}`` for a derivative of *source_path*.

    GIF and PNG keep the source extension.  JPEG output keeps a ``jpg`` or
    ``jpeg`` extension and forces ``.jpg`` otherwise (``photo.bmp`` →
    ``photo-150x150.jpg``).  *encoder* defaults to the one predicted from
    the extension.
    """
    if encoder is None:
        encoder = encoder_for_extension(source_path)
    ext = source_path.suffix.lstrip(".")
    if encoder == "jpeg" and ext.lower() not in JPEG_EXTENSIONS:
        ext = "jpg"
    return source_path.parent / f"{source_path.stem}-{dest_width}x{dest_height}.{ext}"


def derivative_url(url: str, dest_path: Path) -> str:
    """Swap the file name at the end of *url* for the derivative's file name."""
    parts = urlsplit(url)
    directory = posixpath.dirname(parts.path)
    new_path = posixpath.join(directory, quote(dest_path.name))
    return urlunsplit((parts.scheme, parts.netloc, new_path, parts.query, parts.fragment))
