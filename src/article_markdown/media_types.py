from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from urllib.parse import unquote_to_bytes

from .errors import UnsupportedMediaType


UNKNOWN_EXTENSION = "idunno"
FALLBACK_EXTENSION = "bin"

MIME_EXTENSIONS: dict[str, str] = {
    "image/apng": "apng",
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/x-ms-bmp": "bmp",
    "image/gif": "gif",
    "image/heic": "heic",
    "image/heif": "heif",
    "image/vnd.microsoft.icon": "ico",
    "image/x-icon": "ico",
    "image/jpeg": "jpeg",
    "image/pjpeg": "jpeg",
    "image/jpg": "jpg",
    "image/jxl": "jxl",
    "image/png": "png",
    "image/x-png": "png",
    "image/svg+xml": "svg",
    "image/tiff": "tiff",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "audio/mpeg": "mp3",
    "audio/ogg": "oga",
    "application/pdf": "pdf",
    "application/octet-stream": "bin",
}

EXTENSION_MIMES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "avif": "image/avif",
    "ico": "image/x-icon",
    "tif": "image/tiff",
    "tiff": "image/tiff",
}

DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


def essence(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def extension_for(content_type: str | None) -> str:
    """Canonical extension for a declared content type, without the dot."""
    mime = essence(content_type)
    if mime in MIME_EXTENSIONS:
        return MIME_EXTENSIONS[mime]
    guessed = mimetypes.guess_extension(mime) if mime else None
    if guessed:
        return guessed.lstrip(".")
    return FALLBACK_EXTENSION


def mime_for(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    mime = EXTENSION_MIMES.get(extension)
    if mime is None:
        raise UnsupportedMediaType(extension)
    return mime


def is_data_uri(reference: str) -> bool:
    return reference.startswith("data:")


def data_uri_subtype(reference: str) -> str | None:
    """Extension to use for a base64 data URI, or ``None`` if it is not one."""
    match = DATA_URI_RE.match(reference)
    if not match or ";base64" not in match.group("params"):
        return None
    mime = essence(match.group("mime"))
    if mime in MIME_EXTENSIONS:
        return MIME_EXTENSIONS[mime]
    return mime.rsplit("/", 1)[-1] or FALLBACK_EXTENSION


def decode_data_uri(reference: str) -> tuple[bytes, str]:
    match = DATA_URI_RE.match(reference)
    if not match:
        raise ValueError("Not a data URI")
    mime = essence(match.group("mime")) or "text/plain"
    payload = match.group("payload")
    if ";base64" in match.group("params"):
        try:
            return base64.b64decode(payload, validate=False), mime
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return unquote_to_bytes(payload), mime


def encode_data_uri(content: bytes, content_type: str | None = None, *, filename: str | None = None) -> str:
    mime = essence(content_type)
    if not mime:
        if filename is None:
            raise UnsupportedMediaType("")
        mime = mime_for(filename)
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime};base64,{encoded}"


__all__ = [
    "UNKNOWN_EXTENSION",
    "MIME_EXTENSIONS",
    "EXTENSION_MIMES",
    "extension_for",
    "mime_for",
    "is_data_uri",
    "data_uri_subtype",
    "decode_data_uri",
    "encode_data_uri",
]
