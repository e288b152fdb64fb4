"""
Settings persistence: load, save, and validate resizer configuration.

Runtime settings are stored in a JSON file in the user's config directory
(provided by ``config.config_dir()``).  On first launch (or if the file
is missing/corrupt), the file is created from DEFAULT_SETTINGS.

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "settings": {
            "document_root": "/var/www/html",
            "jpeg_quality": 90,
            "backend": "pillow",
            "tenant": {"site_path": "/blog/", "tenant_id": 3}
        }
    }

``tenant`` is optional; when present, tenant-scoped upload URLs are mapped
to shared storage (see ``paths.TenantMapping``).  Environment variables
override the JPEG quality and document root after the file is read.
"""

import json
import logging
import os
from copy import deepcopy
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

from image_derivative_tool.config import (
    BACKEND_DEFAULT,
    BACKENDS,
    ENV_DOCUMENT_ROOT,
    ENV_JPEG_QUALITY,
    JPEG_QUALITY_DEFAULT,
    JPEG_QUALITY_MAX,
    JPEG_QUALITY_MIN,
    TENANT_STORAGE_TEMPLATE,
    config_dir,
)
from image_derivative_tool.paths import PathResolver, TenantMapping

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_FORMAT_VERSION = 1

DEFAULT_SETTINGS = {
    "document_root": ".",
    "jpeg_quality": JPEG_QUALITY_DEFAULT,
    "backend": BACKEND_DEFAULT,
    "tenant": None,
}

_TENANT_REQUIRED_KEYS = {"site_path", "tenant_id"}


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one resizer."""
    document_root: Path = Path(".")
    jpeg_quality: int = JPEG_QUALITY_DEFAULT
    backend: str = BACKEND_DEFAULT
    tenant: TenantMapping | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "Settings":
        tenant = data.get("tenant")
        return cls(
            document_root=Path(data.get("document_root", ".")),
            jpeg_quality=data.get("jpeg_quality", JPEG_QUALITY_DEFAULT),
            backend=data.get("backend", BACKEND_DEFAULT),
            tenant=TenantMapping(
                site_path=tenant["site_path"],
                tenant_id=tenant["tenant_id"],
                storage_template=tenant.get("storage_template", TENANT_STORAGE_TEMPLATE),
            ) if tenant else None,
        )

    def to_dict(self) -> dict:
        tenant = None
        if self.tenant is not None:
            tenant = {
                "site_path": self.tenant.site_path,
                "tenant_id": self.tenant.tenant_id,
                "storage_template": self.tenant.storage_template,
            }
        return {
            "document_root": str(self.document_root),
            "jpeg_quality": self.jpeg_quality,
            "backend": self.backend,
            "tenant": tenant,
        }

    def resolver(self) -> PathResolver:
        return PathResolver(self.document_root, self.tenant)


# =============================================================================
# Validation
# =============================================================================
def validate_quality(value: object) -> str | None:
    """Return an error string if *value* is not a usable JPEG quality, else None."""
    if isinstance(value, bool) or not isinstance(value, int):
        return f"jpeg_quality must be an integer, got {value!r}"
    if not JPEG_QUALITY_MIN <= value <= JPEG_QUALITY_MAX:
        return f"jpeg_quality must be between {JPEG_QUALITY_MIN} and {JPEG_QUALITY_MAX}, got {value}"
    return None


def validate_settings(data: object) -> list[str]:
    """
    Validate a settings mapping.

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        errors.append("Settings data must be a dict")
        return errors

    root = data.get("document_root", ".")
    if not isinstance(root, str) or not root.strip():
        errors.append("document_root must be a non-empty string")

    quality_err = validate_quality(data.get("jpeg_quality", JPEG_QUALITY_DEFAULT))
    if quality_err:
        errors.append(quality_err)

    backend = data.get("backend", BACKEND_DEFAULT)
    if backend not in BACKENDS:
        errors.append(f"backend must be one of {', '.join(BACKENDS)}, got {backend!r}")

    tenant = data.get("tenant")
    if tenant is not None:
        if not isinstance(tenant, dict):
            errors.append("tenant must be a dict or null")
            return errors

        missing = _TENANT_REQUIRED_KEYS - tenant.keys()
        if missing:
            errors.append(f"tenant: missing keys: {', '.join(sorted(missing))}")
            return errors

        if not isinstance(tenant["site_path"], str) or not tenant["site_path"].startswith("/"):
            errors.append("tenant: site_path must be a string starting with '/'")

        tenant_id = tenant["tenant_id"]
        if isinstance(tenant_id, bool) or not isinstance(tenant_id, int) or tenant_id <= 0:
            errors.append(f"tenant: tenant_id must be a positive integer, got {tenant_id!r}")

        template = tenant.get("storage_template", TENANT_STORAGE_TEMPLATE)
        if not isinstance(template, str) or "{tenant_id}" not in template:
            errors.append("tenant: storage_template must contain '{tenant_id}'")

    return errors


# =============================================================================
# Environment overrides
# =============================================================================
def apply_env_overrides(settings: Settings, environ: Mapping[str, str] | None = None) -> Settings:
    """Return *settings* with JPEG quality and document root taken from the environment, if set."""
    if environ is None:
        environ = os.environ

    changes = {}

    raw_quality = environ.get(ENV_JPEG_QUALITY)
    if raw_quality:
        try:
            quality = int(raw_quality)
        except ValueError:
            quality = raw_quality
        error = validate_quality(quality)
        if error:
            logger.warning("Ignoring %s: %s", ENV_JPEG_QUALITY, error)
        else:
            changes["jpeg_quality"] = quality

    raw_root = environ.get(ENV_DOCUMENT_ROOT)
    if raw_root:
        changes["document_root"] = Path(raw_root)

    if not changes:
        return settings
    return replace(settings, **changes)


# =============================================================================
# Load / Save
# =============================================================================
def _settings_path() -> Path:
    """Return the full path to settings.json."""
    return config_dir() / _SETTINGS_FILENAME


def load_settings(path: Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Load settings from settings.json and apply environment overrides.

    If the file is missing, corrupt, or fails validation, writes the
    defaults and uses them.  The on-disk format is a versioned envelope:
    ``{"version": 1, "settings": {...}}``.
    """
    if path is None:
        path = _settings_path()

    if not path.exists():
        logger.info("settings.json not found — creating with defaults at %s", path)
        _write_defaults(path)
        return apply_env_overrides(Settings.from_dict(DEFAULT_SETTINGS), environ)

    try:
        text = path.read_text(encoding="utf-8")
        raw = json.loads(text)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read settings.json (%s) — restoring defaults", exc)
        _write_defaults(path)
        return apply_env_overrides(Settings.from_dict(DEFAULT_SETTINGS), environ)

    # Extract settings from version envelope
    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "settings" not in raw:
        logger.warning("settings.json missing version envelope — restoring defaults")
        _write_defaults(path)
        return apply_env_overrides(Settings.from_dict(DEFAULT_SETTINGS), environ)

    data = raw["settings"]
    errors = validate_settings(data)
    if errors:
        logger.warning(
            "settings.json validation failed:\n  %s\nRestoring defaults.",
            "\n  ".join(errors),
        )
        _write_defaults(path)
        return apply_env_overrides(Settings.from_dict(DEFAULT_SETTINGS), environ)

    return apply_env_overrides(Settings.from_dict(data), environ)


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """
    Validate and write settings to settings.json in versioned envelope.

    Raises ValueError if validation fails.
    Raises OSError if the file cannot be written.
    """
    data = settings.to_dict()
    errors = validate_settings(data)
    if errors:
        raise ValueError("Invalid settings:\n  " + "\n  ".join(errors))

    if path is None:
        path = _settings_path()
    envelope = {"version": _FORMAT_VERSION, "settings": data}
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved settings to %s", path)


def _write_defaults(path: Path) -> None:
    """Write DEFAULT_SETTINGS to the given path in versioned envelope."""
    try:
        envelope = {"version": _FORMAT_VERSION, "settings": deepcopy(DEFAULT_SETTINGS)}
        path.write_text(
            json.dumps(envelope, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    except OSError as exc:
        logger.error("Could not write default settings to %s: %s", path, exc)
