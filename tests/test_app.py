"""Tests for the command-line entry point."""

import json

import pytest

from conftest import BASE_URL, UPLOADS
from image_derivative_tool.app import main


@pytest.fixture
def settings_file(tmp_path):
    return tmp_path / "settings.json"


def test_cli_prints_descriptor(make_image, doc_root, settings_file, capsys):
    url = make_image("photo.jpg")

    code = main([url, "--width", "64", "--height", "48", "--document-root", str(doc_root),
                 "--settings", str(settings_file)])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {
        "url": f"{BASE_URL}/{UPLOADS}/photo-64x48.jpg",
        "width": 64,
        "height": 48,
        "type": "image/jpeg",
    }


def test_cli_retina_and_no_crop(make_image, doc_root, settings_file, capsys):
    url = make_image("photo.png")

    code = main([url, "--width", "40", "--height", "40", "--retina", "--no-crop",
                 "--document-root", str(doc_root), "--settings", str(settings_file)])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["url"].endswith("/photo-80x80.png")
    assert (doc_root / UPLOADS / "photo-80x80.png").is_file()


def test_cli_reports_errors_on_stderr(doc_root, settings_file, capsys):
    code = main([f"{BASE_URL}/{UPLOADS}/missing.jpg", "--document-root", str(doc_root),
                 "--settings", str(settings_file)])

    assert code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert json.loads(captured.err.strip().splitlines()[-1])["kind"] == "decode_error"


def test_cli_rejects_bad_quality(settings_file):
    with pytest.raises(SystemExit) as exc:
        main(["https://example.com/a.jpg", "--quality", "0", "--settings", str(settings_file)])

    assert exc.value.code == 2


def test_cli_uses_settings_file(make_image, doc_root, settings_file, capsys):
    settings_file.write_text(json.dumps({
        "version": 1,
        "settings": {"document_root": str(doc_root), "jpeg_quality": 70, "backend": "pillow", "tenant": None},
    }))
    url = make_image("photo.jpg")

    assert main([url, "--settings", str(settings_file)]) == 0
    assert json.loads(capsys.readouterr().out)["width"] == 150
