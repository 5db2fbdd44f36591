from __future__ import annotations

import os
import posixpath
from pathlib import Path
from typing import Collection, Iterator

from .errors import FilenameCollisionExhausted
from .media_types import UNKNOWN_EXTENSION, data_uri_subtype
from .models import ImageStyle, LinkReferenceStyle, LocalImagePaths
from .utils import encode_path, sanitize_filename


MAX_COLLISION_ATTEMPTS = 10_000


def image_filename(source: str, prefix: str = "", disallowed_chars: str | None = None) -> str:
    """Derive the destination name for *source* before de-duplication."""
    subtype = data_uri_subtype(source)
    if subtype is not None:
        filename = f"image.{subtype}"
    else:
        slash = source.rfind("/")
        query = source.find("?", slash + 1)
        filename = source[slash + 1 : query if query > 0 else len(source)]

    # A leading dot is a hidden file name, not an extension.
    if filename.rfind(".") <= 0:
        filename = f"{filename}.{UNKNOWN_EXTENSION}"

    return prefix + (sanitize_filename(filename, disallowed_chars) or "")


def disambiguate(filename: str, attempt: int) -> str:
    """Insert or bump the numeric disambiguator of *filename*."""
    parts = filename.split(".")
    if attempt == 1:
        parts.insert(len(parts) - 1, str(attempt))
    else:
        parts[len(parts) - 2] = str(attempt)
    return ".".join(parts)


def unique_name(candidate: str, taken: Collection[str]) -> str:
    """Disambiguate *candidate* until it is not one of *taken*."""
    attempt = 1
    while candidate in taken:
        if attempt > MAX_COLLISION_ATTEMPTS:
            raise FilenameCollisionExhausted(candidate, MAX_COLLISION_ATTEMPTS)
        candidate = disambiguate(candidate, attempt)
        attempt += 1
    return candidate


class MediaPlan:
    """Source reference to destination name mapping for one conversion."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def plan(self, source: str, prefix: str = "", disallowed_chars: str | None = None) -> str:
        candidate = image_filename(source, prefix, disallowed_chars)
        if self._entries.get(source) == candidate:
            return candidate

        candidate = unique_name(candidate, set(self._entries.values()))
        self._entries[source] = candidate
        return candidate

    def get(self, source: str) -> str | None:
        return self._entries.get(source)

    def as_dict(self) -> dict[str, str]:
        return dict(self._entries)

    def __contains__(self, source: object) -> bool:
        return source in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def local_reference(filename: str, image_style: ImageStyle) -> str:
    """How a planned destination name is written into the document."""
    if image_style is ImageStyle.OBSIDIAN_NOFOLDER:
        return filename[filename.rfind("/") + 1 :]
    if image_style.is_obsidian:
        return filename
    return encode_path(filename)


def local_image_path(source: str, paths: LocalImagePaths) -> str:
    name = posixpath.basename(source.replace("\\", "/"))
    relative = os.path.relpath(paths.images_dir / name, paths.markdown_dir)
    return Path(relative).as_posix()


class ReferenceList:
    """Footnote-style definitions collected while converting one document."""

    def __init__(self) -> None:
        self._definitions: list[str] = []
        self._figures = 0
        self._links = 0

    def add_figure(self, alt: str, src: str, title_part: str = "") -> str:
        self._figures += 1
        label = f"fig{self._figures}"
        self._definitions.append(f"[{label}]: {src}{title_part}")
        return f"![{alt}][{label}]"

    def add_link(self, text: str, href: str, title_part: str, style: LinkReferenceStyle) -> str:
        if style is LinkReferenceStyle.COLLAPSED:
            self._definitions.append(f"[{text}]: {href}{title_part}")
            return f"[{text}][]"
        if style is LinkReferenceStyle.SHORTCUT:
            self._definitions.append(f"[{text}]: {href}{title_part}")
            return f"[{text}]"
        self._links += 1
        self._definitions.append(f"[{self._links}]: {href}{title_part}")
        return f"[{text}][{self._links}]"

    def flush(self) -> str:
        text = "\n".join(self._definitions)
        self._definitions = []
        return text

    def __len__(self) -> int:
        return len(self._definitions)


__all__ = [
    "MediaPlan",
    "ReferenceList",
    "image_filename",
    "disambiguate",
    "unique_name",
    "local_reference",
    "local_image_path",
]
