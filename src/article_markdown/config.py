from __future__ import annotations

import json
import tomllib
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from .models import (
    CodeBlockStyle,
    ConversionOptions,
    DownloadMode,
    HeadingStyle,
    ImageRefStyle,
    ImageStyle,
    LinkReferenceStyle,
    LinkStyle,
)


CONFIG_FILE = Path("config.toml")

_ENUM_OPTIONS: dict[str, type[Enum]] = {
    "heading_style": HeadingStyle,
    "code_block_style": CodeBlockStyle,
    "link_style": LinkStyle,
    "link_reference_style": LinkReferenceStyle,
    "image_style": ImageStyle,
    "image_ref_style": ImageRefStyle,
    "download_mode": DownloadMode,
}
_BOOL_OPTIONS = {"include_template", "download_images", "escape_markdown"}


@dataclass(slots=True)
class RuntimeConfig:
    output_dir: Path = Path("runs")
    log_file: str = "log.jsonl"
    summary_csv: str = "summary.csv"
    max_file_size_mb: int = 25
    enable_local_api: bool = False
    parallelism: int = 1


@dataclass(slots=True)
class DownloadConfig:
    max_concurrency: int = 8
    timeout_s: float = 30.0
    user_agent: str = "article-markdown/0.1"


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    conversion: ConversionOptions = field(default_factory=ConversionOptions)
    api: APIConfig = field(default_factory=APIConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, Any] | None:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else None


def _build_runtime(data: Mapping[str, Any] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    return RuntimeConfig(
        output_dir=Path(str(data.get("output_dir", "runs"))),
        log_file=str(data.get("log_file", "log.jsonl")),
        summary_csv=str(data.get("summary_csv", "summary.csv")),
        max_file_size_mb=int(data.get("max_file_size_mb", 25)),
        enable_local_api=bool(data.get("enable_local_api", False)),
        parallelism=int(data.get("parallelism", 1)),
    )


def _build_download(data: Mapping[str, Any] | None) -> DownloadConfig:
    if not data:
        return DownloadConfig()
    defaults = DownloadConfig()
    return DownloadConfig(
        max_concurrency=int(data.get("max_concurrency", defaults.max_concurrency)),
        timeout_s=float(data.get("timeout_s", defaults.timeout_s)),
        user_agent=str(data.get("user_agent", defaults.user_agent)),
    )


def _build_api(data: Mapping[str, Any] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def _build_conversion(data: Mapping[str, Any] | None) -> ConversionOptions:
    if not data:
        return ConversionOptions()
    values: dict[str, Any] = {}
    for option in fields(ConversionOptions):
        if option.name == "local" or option.name not in data:
            continue
        raw = data[option.name]
        if option.name in _ENUM_OPTIONS:
            values[option.name] = _ENUM_OPTIONS[option.name](str(raw))
        elif option.name in _BOOL_OPTIONS:
            values[option.name] = bool(raw)
        else:
            values[option.name] = str(raw)
    return ConversionOptions(**values)


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        runtime=_build_runtime(_section(raw, "runtime")),
        download=_build_download(_section(raw, "download")),
        conversion=_build_conversion(_section(raw, "conversion")),
        api=_build_api(_section(raw, "api")),
    )


def _jsonable(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    return value


def dump_config(config: AppConfig) -> str:
    conversion = {
        option.name: _jsonable(getattr(config.conversion, option.name))
        for option in fields(ConversionOptions)
        if option.name != "local"
    }
    payload = {
        "runtime": {key: _jsonable(value) for key, value in asdict(config.runtime).items()},
        "download": asdict(config.download),
        "conversion": conversion,
        "api": asdict(config.api),
    }
    return json.dumps(payload, indent=2)


__all__ = ["AppConfig", "RuntimeConfig", "DownloadConfig", "APIConfig", "load_config", "dump_config"]
