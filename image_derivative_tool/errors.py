"""
Error kinds raised while producing a derivative.

Every error carries a machine-readable ``kind`` and a human-readable
message, plus an optional ``detail`` (usually the offending URL or path).
``resizer.process_request`` turns them into structured result dicts.
"""


class ResizeError(Exception):
    """Base class for all derivative errors."""

    kind = "resize_error"

    def __init__(self, message: str, detail: object = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "error": self.message,
            "detail": None if self.detail is None else str(self.detail),
        }


class InvalidInput(ResizeError):
    """Empty URL or a non-positive target box."""

    kind = "invalid_input"


class BackendUnavailable(ResizeError):
    """The image library behind a backend is missing."""

    kind = "backend_unavailable"


class DecodeError(ResizeError):
    """The source is missing, unreadable, corrupt or of an unsupported format."""

    kind = "decode_error"


class MetadataReadError(ResizeError):
    """Dimensions or format of the source or derivative could not be read."""

    kind = "metadata_read_error"


class EncodeError(ResizeError):
    """The derivative could not be encoded or written."""

    kind = "encode_error"
