from __future__ import annotations


class ConversionError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class UnsupportedMediaType(ConversionError):
    """Raised when an embedded asset has no known MIME mapping."""

    def __init__(self, media_type: str) -> None:
        super().__init__("UNSUPPORTED_MEDIA_TYPE", f"Unsupported media type: {media_type or '<none>'}")
        self.media_type = media_type


class ResourceFetchError(ConversionError):
    """Raised when a planned media reference cannot be fetched."""

    def __init__(self, reference: str, reason: str) -> None:
        shown = reference if len(reference) <= 120 else reference[:117] + "..."
        super().__init__("FETCH_FAILED", f"Failed to fetch {shown}: {reason}")
        self.reference = reference


class FilenameCollisionExhausted(ConversionError):
    def __init__(self, filename: str, attempts: int) -> None:
        super().__init__(
            "FILENAME_COLLISION",
            f"No free destination name for {filename} after {attempts} attempts",
        )
        self.filename = filename


__all__ = [
    "ConversionError",
    "UnsupportedMediaType",
    "ResourceFetchError",
    "FilenameCollisionExhausted",
]
