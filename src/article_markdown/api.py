from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from . import __version__
from .config import AppConfig, load_config
from .core import ConversionError, ConversionService
from .settings import Settings, get_settings

T = TypeVar("T")


class HealthStatus(BaseModel):
    status: str
    version: str


class ConversionResponse(BaseModel):
    run_id: str
    title: str
    output_path: str
    assets: list[str]
    warnings: list[str]


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Execute *func* in a worker thread and return the result."""

    return await asyncio.to_thread(func, *args, **kwargs)


def _prepare_config(config_path: Path | None, settings: Settings) -> AppConfig:
    config = load_config(config_path or settings.config_path)
    if settings.enable_local_api is not None:
        config.runtime.enable_local_api = settings.enable_local_api
    return config


def _enforce_size_limit(payload: bytes, config: AppConfig) -> None:
    max_bytes = config.runtime.max_file_size_mb * 1024 * 1024
    if len(payload) > max_bytes:
        raise HTTPException(status_code=413, detail="SIZE_LIMIT")


def create_app(config_path: Path | None = None, *, require_enabled: bool = True) -> FastAPI:
    config = _prepare_config(config_path, get_settings())
    if require_enabled and not config.runtime.enable_local_api:
        raise RuntimeError("Local API is disabled. Enable it via config.runtime.enable_local_api")
    service = ConversionService(config)
    app = FastAPI(title="Article Markdown", version=__version__)
    app.state.config = config
    app.state.service = service

    @app.get("/health", summary="Health check")
    def health() -> HealthStatus:
        return HealthStatus(status="ok", version=__version__)

    @app.post("/convert", summary="Convert one simplified HTML article")
    async def convert(
        file: UploadFile = File(...),
        base_uri: str | None = Form(None),
    ) -> ConversionResponse:
        suffix = Path(file.filename or "upload.html").suffix or ".html"
        content = await file.read()
        _enforce_size_limit(content, config)
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
            tmp.write(content)
            tmp.flush()
            tmp_path = Path(tmp.name)
        try:
            result = await run_sync(service.convert_file, tmp_path, base_uri=base_uri or None)
        except ConversionError as exc:
            raise HTTPException(status_code=400, detail=exc.code) from exc
        finally:
            tmp_path.unlink(missing_ok=True)
        return ConversionResponse(
            run_id=result.run_id,
            title=result.title,
            output_path=str(result.output_path.resolve()),
            assets=[str(asset.resolve()) for asset in result.assets],
            warnings=result.warnings,
        )

    return app


__all__ = ["create_app", "ConversionResponse", "HealthStatus", "run_sync"]
