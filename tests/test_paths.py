"""Tests for URL resolution, destination naming and derivative URLs."""

from pathlib import Path

import pytest

from image_derivative_tool.errors import InvalidInput
from image_derivative_tool.paths import (
    PathResolver,
    TenantMapping,
    derivative_url,
    destination_path,
    encoder_for,
    encoder_for_extension,
)

ROOT = Path("/var/www/html")

# ============================================================================
# RESOLVER
# ============================================================================


def test_resolve_joins_url_path_to_document_root():
    resolver = PathResolver(ROOT)
    path = resolver.resolve("https://example.com/wp-content/uploads/2024/05/photo.jpg")
    assert path == ROOT / "wp-content/uploads/2024/05/photo.jpg"


def test_resolve_ignores_query_and_decodes_percent_escapes():
    resolver = PathResolver(ROOT)
    path = resolver.resolve("https://example.com/uploads/my%20photo.jpg?ver=3#top")
    assert path == ROOT / "uploads/my photo.jpg"


def test_resolve_accepts_root_relative_url():
    assert PathResolver(ROOT).resolve("/uploads/a.png") == ROOT / "uploads/a.png"


@pytest.mark.parametrize("url", ["", "   ", "https://example.com/uploads/"])
def test_resolve_rejects_urls_without_a_file(url):
    with pytest.raises(InvalidInput):
        PathResolver(ROOT).resolve(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/%2e%2e/outside.jpg",
        "https://example.com/uploads/%2E%2E/%2E%2E/etc/passwd.png",
        "https://example.com/uploads/..%2f..%2foutside.jpg",
        "/../outside.jpg",
    ],
)
def test_resolve_rejects_paths_above_document_root(url):
    with pytest.raises(InvalidInput, match="outside the document root"):
        PathResolver(ROOT).resolve(url)


def test_resolve_allows_dot_segments_that_stay_inside():
    path = PathResolver(ROOT).resolve("https://example.com/uploads/2024/%2e%2e/photo.jpg")
    assert path == ROOT / "uploads/photo.jpg"


def test_resolve_applies_tenant_mapping():
    resolver = PathResolver(ROOT, TenantMapping("/blog/", 3))
    path = resolver.resolve("https://example.com/blog/files/2012/01/photo.jpg")
    assert path == ROOT / "wp-content/blogs.dir/3/files/2012/01/photo.jpg"


def test_tenant_mapping_leaves_other_paths_alone():
    resolver = PathResolver(ROOT, TenantMapping("/blog/", 3))
    path = resolver.resolve("https://example.com/wp-content/uploads/photo.jpg")
    assert path == ROOT / "wp-content/uploads/photo.jpg"


@pytest.mark.parametrize(
    "site_path, prefix",
    [("/", "/files/"), ("/blog/", "/blog/files/"), ("blog", "/blog/files/"), ("/a/b", "/a/b/files/")],
)
def test_tenant_uploads_prefix_normalises_site_path(site_path, prefix):
    assert TenantMapping(site_path, 7).uploads_prefix == prefix


def test_tenant_custom_storage_template():
    tenant = TenantMapping("/shop/", 12, storage_template="/shared/{tenant_id}/uploads/")
    assert tenant.apply("/shop/files/logo.png") == "/shared/12/uploads/logo.png"


# ============================================================================
# DESTINATION PATH
# ============================================================================


@pytest.mark.parametrize(
    "source, expected",
    [
        ("photo.jpg", "photo-150x150.jpg"),
        ("photo.jpeg", "photo-150x150.jpeg"),
        ("photo.JPG", "photo-150x150.JPG"),
        ("photo.png", "photo-150x150.png"),
        ("photo.gif", "photo-150x150.gif"),
        ("photo.bmp", "photo-150x150.jpg"),
        ("photo.webp", "photo-150x150.jpg"),
        ("photo", "photo-150x150.jpg"),
        ("my.holiday.tiff", "my.holiday-150x150.jpg"),
    ],
)
def test_destination_path(source, expected):
    assert destination_path(ROOT / source, 150, 150) == ROOT / expected


def test_destination_path_uses_given_encoder():
    # JPEG data behind a .png name is written as JPEG
    assert destination_path(ROOT / "pic.png", 300, 200, "jpeg") == ROOT / "pic-300x200.jpg"
    # PNG data behind a .jpg name keeps the .jpg extension
    assert destination_path(ROOT / "pic.jpg", 300, 200, "png") == ROOT / "pic-300x200.jpg"


@pytest.mark.parametrize(
    "fmt, encoder", [("GIF", "gif"), ("PNG", "png"), ("png", "png"), ("JPEG", "jpeg"), ("BMP", "jpeg"), (None, "jpeg")]
)
def test_encoder_for(fmt, encoder):
    assert encoder_for(fmt) == encoder


def test_encoder_for_extension():
    assert encoder_for_extension(Path("a.GIF")) == "gif"
    assert encoder_for_extension(Path("a.jpeg")) == "jpeg"
    assert encoder_for_extension(Path("a.psd")) == "jpeg"


# ============================================================================
# DERIVATIVE URL
# ============================================================================


def test_derivative_url_replaces_file_name():
    url = derivative_url("https://example.com/uploads/photo.bmp", ROOT / "uploads/photo-150x150.jpg")
    assert url == "https://example.com/uploads/photo-150x150.jpg"


def test_derivative_url_keeps_query_and_quotes_name():
    url = derivative_url("https://example.com/up/my%20pic.png?v=2", ROOT / "up/my pic-10x10.png")
    assert url == "https://example.com/up/my%20pic-10x10.png?v=2"


def test_derivative_url_only_touches_last_segment():
    url = derivative_url("https://example.com/photo.jpg/photo.jpg", ROOT / "photo-50x50.jpg")
    assert url == "https://example.com/photo.jpg/photo-50x50.jpg"
