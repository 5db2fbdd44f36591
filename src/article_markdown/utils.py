from __future__ import annotations

import hashlib
import os
import re
import shutil
import tempfile
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator
from urllib.parse import quote, urlsplit


ILLEGAL_FILENAME_RE = re.compile(r'[<>:"/\\|?*]')
URI_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]+:")
# Control and invisible code points that editors flag as errors. TAB is
# included; LF and CR are kept.
INVISIBLE_CHARS_RE = re.compile(
    "[\u0000-\u0009\u000b\u000c\u000e-\u001f\u007f-\u009f\u00ad\u061c"
    "\u200b-\u200f\u2028\u2029\ufeff\ufff9-\ufffc]"
)
# Reserved and mark characters left unescaped in encoded paths.
URI_SAFE_CHARS = ";,/?:@&=+$-_.!~*'()#"
HTML_EXTENSIONS = {".html", ".htm"}


@dataclass(slots=True)
class RunPaths:
    run_id: str
    base_dir: Path
    log_file: Path


def sanitize_filename(name: str | None, disallowed_chars: str | None = None) -> str | None:
    """Strip characters that are illegal in filenames.

    Empty or ``None`` input is returned unchanged.
    """
    if not name:
        return name
    cleaned = ILLEGAL_FILENAME_RE.sub("", str(name)).replace("\u00a0", " ")
    if disallowed_chars:
        pattern = "[" + "".join(re.escape(char) for char in disallowed_chars) + "]"
        cleaned = re.sub(pattern, "", cleaned)
    return cleaned


def sanitize_path(path: str, disallowed_chars: str | None = None) -> str:
    return "/".join(sanitize_filename(segment, disallowed_chars) for segment in path.split("/"))


def is_absolute_uri(reference: str) -> bool:
    return bool(URI_SCHEME_RE.match(reference))


def resolve_uri(reference: str, base_uri: str) -> str:
    if is_absolute_uri(reference) or not base_uri:
        return reference
    if reference.startswith("/"):
        base = urlsplit(base_uri)
        return f"{base.scheme}://{base.netloc}{reference}"
    return base_uri.rstrip("/") + "/" + reference


def encode_path(path: str) -> str:
    return "/".join(quote(segment, safe=URI_SAFE_CHARS) for segment in path.split("/"))


def strip_invisible(text: str) -> str:
    return INVISIBLE_CHARS_RE.sub("", text)


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def ensure_run_paths(output_dir: Path, run_id: str, log_file: str) -> RunPaths:
    base = output_dir / run_id
    base.mkdir(parents=True, exist_ok=True)
    return RunPaths(run_id=run_id, base_dir=base, log_file=base / log_file)


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding=encoding) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def atomic_copy(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
        tmp_path = Path(tmp.name)
    shutil.copy2(source, tmp_path)
    os.replace(tmp_path, destination)


def iter_html_files(paths: Iterable[Path]) -> Iterator[Path]:
    for path in paths:
        if path.is_file():
            yield path
        elif path.is_dir():
            for file_path in sorted(path.rglob("*")):
                if file_path.is_file() and file_path.suffix.lower() in HTML_EXTENSIONS:
                    yield file_path


def size_within_limit(path: Path, max_mb: int) -> bool:
    return path.stat().st_size <= max_mb * 1024 * 1024


__all__ = [
    "RunPaths",
    "sanitize_filename",
    "sanitize_path",
    "is_absolute_uri",
    "resolve_uri",
    "encode_path",
    "strip_invisible",
    "generate_run_id",
    "ensure_run_paths",
    "atomic_write",
    "atomic_write_bytes",
    "atomic_copy",
    "iter_html_files",
    "size_within_limit",
]
