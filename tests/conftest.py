"""Test configuration and fixtures for image_derivative_tool.

This module provides:
- Pytest configuration (markers, dependency checks)
- Function-scoped fixtures (document root, generated source images, settings)
- Instrumented backends for counting codec calls
"""

import sys
from pathlib import Path

import pytest
from PIL import Image

from image_derivative_tool import config
from image_derivative_tool.backends import PillowBackend
from image_derivative_tool.settings import Settings

BASE_URL = "https://example.com"
UPLOADS = "wp-content/uploads"


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_runtest_setup(item):
    """Skip ImageMagick tests when no ImageMagick binary was found."""
    if item.get_closest_marker("requires_magick") and not config.HAS_MAGICK:
        pytest.skip("ImageMagick not installed (magick/convert not on PATH)")


# ============================================================================
# Backends
# ============================================================================


class CountingBackend(PillowBackend):
    """Pillow backend that records every decode and save."""

    def __init__(self):
        self.decoded: list[Path] = []
        self.saved: list[tuple[Path, str, int]] = []

    def decode(self, path):
        self.decoded.append(path)
        return super().decode(path)

    def save(self, image, path, encoder, quality):
        self.saved.append((path, encoder, quality))
        super().save(image, path, encoder, quality)


class UnavailableBackend(PillowBackend):
    """Backend whose library is missing; any codec call is a test failure."""

    def is_available(self):
        return False

    def decode(self, path):
        raise AssertionError("decode must not be called")

    def probe(self, path):
        raise AssertionError("probe must not be called")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def doc_root(tmp_path: Path) -> Path:
    """Document root with an empty uploads directory."""
    root = tmp_path / "htdocs"
    (root / UPLOADS).mkdir(parents=True)
    return root


@pytest.fixture
def settings(doc_root: Path) -> Settings:
    return Settings(document_root=doc_root)


@pytest.fixture
def backend() -> CountingBackend:
    return CountingBackend()


@pytest.fixture
def make_image(doc_root: Path):
    """Factory writing a source image into the uploads dir and returning its URL."""

    def _make(
        name: str,
        size: tuple[int, int] = (800, 600),
        fmt: str | None = None,
        mode: str = "RGB",
        color=(200, 120, 40),
    ) -> str:
        path = doc_root / UPLOADS / name
        img = Image.new(mode, size, color)
        img.save(path, fmt)
        return f"{BASE_URL}/{UPLOADS}/{name}"

    return _make


@pytest.fixture
def striped_url(doc_root: Path) -> str:
    """800x600 JPEG: 100px red left band, green middle, 100px blue right band."""
    img = Image.new("RGB", (800, 600), (0, 200, 0))
    img.paste((255, 0, 0), (0, 0, 100, 600))
    img.paste((0, 0, 255), (700, 0, 800, 600))
    img.save(doc_root / UPLOADS / "striped.jpg", "JPEG", quality=95)
    return f"{BASE_URL}/{UPLOADS}/striped.jpg"


def uploads(doc_root: Path) -> Path:
    return doc_root / UPLOADS


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
