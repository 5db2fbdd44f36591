from __future__ import annotations

import asyncio
from pathlib import Path
from types import TracebackType
from typing import Mapping, Sequence

import httpx

from .config import DownloadConfig
from .errors import ResourceFetchError
from .media import local_reference, unique_name
from .media_types import UNKNOWN_EXTENSION, decode_data_uri, encode_data_uri, extension_for, is_data_uri
from .models import ConversionOptions, FetchedResource, ImageStyle, MaterializedDocument


class ResourceFetcher:
    """Fetches planned media references over HTTP, a bounded number at a time."""

    def __init__(
        self,
        download: DownloadConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._download = download or DownloadConfig()
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max(1, self._download.max_concurrency))
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ResourceFetcher:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._download.timeout_s),
            follow_redirects=True,
            headers={"User-Agent": self._download.user_agent},
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, reference: str) -> FetchedResource:
        if is_data_uri(reference):
            try:
                content, content_type = decode_data_uri(reference)
            except ValueError as exc:
                raise ResourceFetchError(reference, str(exc)) from exc
            return FetchedResource(reference=reference, content=content, content_type=content_type)

        if self._client is None:
            raise RuntimeError("ResourceFetcher must be used as an async context manager")
        async with self._semaphore:
            try:
                response = await self._client.get(reference)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ResourceFetchError(reference, str(exc) or type(exc).__name__) from exc
        return FetchedResource(
            reference=reference,
            content=response.content,
            content_type=response.headers.get("content-type", ""),
        )


def _finalize_names(fetched: Sequence[tuple[tuple[str, str], FetchedResource]]) -> dict[str, str]:
    suffix = f".{UNKNOWN_EXTENSION}"
    taken = {filename for (_, filename), _ in fetched if not filename.endswith(suffix)}
    final_names: dict[str, str] = {}
    for (_, filename), resource in fetched:
        if filename.endswith(suffix):
            name = filename[: -len(suffix)] + "." + extension_for(resource.content_type)
            name = unique_name(name, taken)
            taken.add(name)
        else:
            name = filename
        final_names[filename] = name
    return final_names


async def _fetch_all(plan: Mapping[str, str], fetcher: ResourceFetcher) -> list[FetchedResource]:
    results = await asyncio.gather(*(fetcher.fetch(source) for source in plan), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results  # type: ignore[return-value]


async def materialize(
    plan: Mapping[str, str],
    markdown: str,
    options: ConversionOptions,
    fetcher: ResourceFetcher | None = None,
    *,
    download: DownloadConfig | None = None,
) -> MaterializedDocument:
    """Fetch every planned reference and finalize names in *markdown*.

    Nothing is rewritten unless every fetch succeeded.
    """
    if fetcher is None:
        async with ResourceFetcher(download) as owned:
            resources = await _fetch_all(plan, owned)
    else:
        resources = await _fetch_all(plan, fetcher)

    style = options.image_style
    fetched = list(zip(plan.items(), resources))
    if style is ImageStyle.BASE64:
        # Longest first, so no reference is rewritten inside a longer one.
        for (source, filename), resource in sorted(fetched, key=lambda item: len(item[0][0]), reverse=True):
            data_uri = encode_data_uri(resource.content, resource.content_type, filename=filename)
            markdown = markdown.replace(source, data_uri)
        return MaterializedDocument(markdown=markdown, assets={})

    final_names = _finalize_names(fetched)
    renamed = [filename for filename, name in final_names.items() if name != filename]
    for filename in sorted(renamed, key=lambda name: len(local_reference(name, style)), reverse=True):
        markdown = markdown.replace(local_reference(filename, style), local_reference(final_names[filename], style))
    assets = {final_names[filename]: resource for (_, filename), resource in fetched}
    return MaterializedDocument(markdown=markdown, assets=assets)


def embed_local_images(markdown: str, images: Mapping[str, Path]) -> str:
    """Replace local image references with base64 data URIs."""
    for reference in sorted(images, key=len, reverse=True):
        path = images[reference]
        markdown = markdown.replace(reference, encode_data_uri(path.read_bytes(), filename=path.name))
    return markdown


__all__ = ["ResourceFetcher", "materialize", "embed_local_images"]
