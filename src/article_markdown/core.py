from __future__ import annotations

import asyncio
import concurrent.futures
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Sequence

import httpx

from .assets import ResourceFetcher, embed_local_images, materialize
from .config import AppConfig
from .errors import ConversionError
from .extract import article_from_html
from .logging import (
    BatchSummary,
    RunLogEntry,
    RunLogger,
    StageTimings,
    read_summary_csv,
    write_summary_csv,
)
from .media import local_image_path
from .models import (
    Article,
    BatchConversionResult,
    ConversionOptions,
    ConversionOutput,
    ConversionResult,
    ImageStyle,
    LocalImagePaths,
    MaterializedDocument,
)
from .templating import format_title
from .transducer import convert_article
from .utils import (
    RunPaths,
    atomic_copy,
    atomic_write,
    atomic_write_bytes,
    ensure_run_paths,
    generate_run_id,
    is_absolute_uri,
    iter_html_files,
    size_within_limit,
)


@dataclass(slots=True)
class _ConversionContext:
    run_id: str
    run_paths: RunPaths
    logger: RunLogger
    options: ConversionOptions
    timings: StageTimings
    warnings: list[str]
    title: str = ""


class ConversionService:
    def __init__(self, config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport

    def convert_file(
        self,
        path: Path,
        *,
        base_uri: str | None = None,
        run_id: str | None = None,
        options: ConversionOptions | None = None,
        local: bool = False,
    ) -> ConversionResult:
        run_id = run_id or generate_run_id()
        run_paths = ensure_run_paths(self._config.runtime.output_dir, run_id, self._config.runtime.log_file)
        context = _ConversionContext(
            run_id=run_id,
            run_paths=run_paths,
            logger=RunLogger(run_paths.log_file),
            options=replace(options or self._config.conversion),
            timings=StageTimings(),
            warnings=[],
        )
        start = time.perf_counter()
        try:
            output_path, assets = self._convert_internal(path, base_uri, local, context)
        except ConversionError as exc:
            self._log_failure(path, context, exc)
            raise

        elapsed = time.perf_counter() - start
        return ConversionResult(
            run_id=run_id,
            title=context.title,
            output_path=output_path,
            run_dir=run_paths.base_dir,
            assets=assets,
            warnings=context.warnings,
            summary=f"Converted {path.name} -> {output_path} in {elapsed:.2f}s",
        )

    def _convert_internal(
        self, path: Path, base_uri: str | None, local: bool, context: _ConversionContext
    ) -> tuple[Path, list[Path]]:
        html, size_bytes = self._read_source(path, context.timings)

        extract_start = time.perf_counter()
        article = article_from_html(html, base_uri)
        context.timings.extract_ms = (time.perf_counter() - extract_start) * 1000

        context.title = format_title(article, context.options) or path.stem
        output_path = context.run_paths.base_dir / f"{context.title}.md"
        local_images: dict[str, Path] = {}
        if local:
            paths = LocalImagePaths(
                html_dir=path.parent,
                markdown_dir=output_path.parent,
                images_dir=output_path.parent / "images",
            )
            context.options = replace(context.options, local=paths)
            local_images = self._copy_local_images(article, paths, context.warnings)

        convert_start = time.perf_counter()
        output = convert_article(article, context.options)
        context.warnings.extend(output.warnings)
        context.timings.convert_ms = (time.perf_counter() - convert_start) * 1000

        materialize_start = time.perf_counter()
        markdown, assets = self._materialize(output, context, output_path.parent)
        if local and context.options.image_style is ImageStyle.BASE64:
            markdown = embed_local_images(markdown, local_images)
        context.timings.materialize_ms = (time.perf_counter() - materialize_start) * 1000

        write_start = time.perf_counter()
        atomic_write(output_path, markdown)
        context.timings.write_ms = (time.perf_counter() - write_start) * 1000

        written = assets or list(local_images.values())
        context.logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=str(path),
                status="success",
                title=context.title,
                warnings=context.warnings,
                error_code=None,
                timings=context.timings,
                output_path=str(output_path),
                assets=[str(asset) for asset in written],
                size_bytes=size_bytes,
            )
        )
        return output_path, written

    def _read_source(self, path: Path, timings: StageTimings) -> tuple[str, int]:
        read_start = time.perf_counter()
        if not path.is_file():
            raise ConversionError("NOT_FOUND", f"Source file does not exist: {path}")
        if not size_within_limit(path, self._config.runtime.max_file_size_mb):
            raise ConversionError("SIZE_LIMIT", f"File exceeds configured limit: {path.name}")
        try:
            html = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConversionError("READ_FAILED", f"Could not read {path.name}: {exc}") from exc
        timings.read_ms = (time.perf_counter() - read_start) * 1000
        return html, path.stat().st_size

    def _copy_local_images(
        self, article: Article, paths: LocalImagePaths, warnings: list[str]
    ) -> dict[str, Path]:
        copied: dict[str, Path] = {}
        for image in article.content.find_all("img", src=True):
            src = image["src"]
            if is_absolute_uri(src):
                continue
            source = paths.html_dir / src.replace("\\", "/")
            if not source.is_file():
                warnings.append(f"IMAGE_NOT_FOUND:{src}")
                continue
            destination = paths.images_dir / source.name
            atomic_copy(source, destination)
            copied[local_image_path(src, paths)] = destination
        return copied

    def _materialize(
        self, output: ConversionOutput, context: _ConversionContext, target_dir: Path
    ) -> tuple[str, list[Path]]:
        if not context.options.fetches_assets or not output.plan:
            return output.markdown, []
        document = asyncio.run(self._fetch_assets(output, context.options))
        written: list[Path] = []
        for name, resource in document.assets.items():
            if ".." in Path(name).parts:
                context.warnings.append(f"ASSET_PATH_REJECTED:{name}")
                continue
            destination = target_dir / name
            atomic_write_bytes(destination, resource.content)
            written.append(destination)
        return document.markdown, written

    async def _fetch_assets(self, output: ConversionOutput, options: ConversionOptions) -> MaterializedDocument:
        async with ResourceFetcher(self._config.download, transport=self._transport) as fetcher:
            return await materialize(output.plan, output.markdown, options, fetcher)

    def _log_failure(self, path: Path, context: _ConversionContext, exc: ConversionError) -> None:
        size_bytes = path.stat().st_size if path.is_file() else 0
        context.logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=str(path),
                status="failure",
                title=context.title,
                warnings=context.warnings,
                error_code=exc.code,
                timings=context.timings,
                output_path="",
                assets=[],
                size_bytes=size_bytes,
            )
        )

    def batch_convert(
        self,
        inputs: Sequence[Path],
        *,
        parallelism: int | None = None,
        base_uri: str | None = None,
        local: bool = False,
    ) -> BatchConversionResult:
        paths = list(iter_html_files(inputs))
        summary = BatchSummary(total=len(paths))
        parallelism = max(1, parallelism or self._config.runtime.parallelism)

        def convert(path: Path) -> ConversionResult:
            return self.convert_file(path, base_uri=base_uri, local=local)

        if not paths:
            return BatchConversionResult(runs=[], summary=summary)
        if parallelism == 1:
            results = self._run_sequential_batch(paths, summary, convert)
        else:
            results = self._run_parallel_batch(paths, summary, convert, parallelism)
        self._accumulate_warnings(results, summary)
        summary.assets = sum(len(result.assets) for result in results)
        self._write_batch_summary(summary)
        return BatchConversionResult(runs=results, summary=summary)

    def _run_sequential_batch(
        self, paths: Sequence[Path], summary: BatchSummary, convert: Callable[[Path], ConversionResult]
    ) -> list[ConversionResult]:
        results: list[ConversionResult] = []
        for path in paths:
            try:
                result = convert(path)
            except ConversionError:
                summary.failures += 1
                continue
            results.append(result)
            summary.successes += 1
        return results

    def _run_parallel_batch(
        self,
        paths: Sequence[Path],
        summary: BatchSummary,
        convert: Callable[[Path], ConversionResult],
        parallelism: int,
    ) -> list[ConversionResult]:
        results: list[ConversionResult] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=parallelism) as executor:
            futures = [executor.submit(convert, path) for path in paths]
            for future in concurrent.futures.as_completed(futures):
                try:
                    result = future.result()
                except ConversionError:
                    summary.failures += 1
                    continue
                results.append(result)
                summary.successes += 1
        return results

    def _accumulate_warnings(self, results: Sequence[ConversionResult], summary: BatchSummary) -> None:
        for result in results:
            for warning in result.warnings:
                summary.warnings[warning] = summary.warnings.get(warning, 0) + 1

    def _write_batch_summary(self, summary: BatchSummary) -> None:
        summary_path = self._config.runtime.output_dir / self._config.runtime.summary_csv
        header, rows = read_summary_csv(summary_path)
        rows.append(summary.as_row(generate_run_id("batch")))
        write_summary_csv(summary_path, header, rows)


__all__ = [
    "ConversionService",
    "ConversionResult",
    "ConversionOptions",
    "ConversionError",
    "BatchConversionResult",
]
