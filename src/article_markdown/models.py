"""Domain models for article-to-Markdown conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from bs4 import Tag

from .logging import BatchSummary


DEFAULT_FRONTMATTER = (
    "---\n"
    "created: {date:YYYY-MM-DDTHH:mm:ss} (UTC {date:Z})\n"
    "tags: [{keywords}]\n"
    "source: {baseURI}\n"
    "author: {byline}\n"
    "---\n"
    "\n"
    "# {pageTitle}\n"
    "\n"
    "> ## Excerpt\n"
    "> {excerpt}\n"
    "\n"
    "---"
)


class HeadingStyle(str, Enum):
    ATX = "atx"
    SETEXT = "setext"


class CodeBlockStyle(str, Enum):
    FENCED = "fenced"
    INDENTED = "indented"


class LinkStyle(str, Enum):
    INLINED = "inlined"
    REFERENCED = "referenced"
    STRIP_LINKS = "stripLinks"


class LinkReferenceStyle(str, Enum):
    FULL = "full"
    COLLAPSED = "collapsed"
    SHORTCUT = "shortcut"


class ImageStyle(str, Enum):
    MARKDOWN = "markdown"
    OBSIDIAN = "obsidian"
    OBSIDIAN_NOFOLDER = "obsidian-nofolder"
    NO_IMAGE = "noImage"
    BASE64 = "base64"
    ORIGINAL_SOURCE = "originalSource"

    @property
    def is_obsidian(self) -> bool:
        return self.value.startswith("obsidian")


class ImageRefStyle(str, Enum):
    INLINED = "inlined"
    REFERENCED = "referenced"


class DownloadMode(str, Enum):
    DOWNLOADS_API = "downloadsApi"
    CONTENT_LINK = "contentLink"


@dataclass(frozen=True, slots=True)
class MathFragment:
    tex: str
    inline: bool


@dataclass(frozen=True, slots=True)
class Article:
    """Metadata and content tree of an already simplified article."""

    content: Tag
    title: str = ""
    page_title: str = ""
    base_uri: str = ""
    byline: str | None = None
    excerpt: str | None = None
    site_name: str | None = None
    keywords: tuple[str, ...] = ()
    math: Mapping[str, MathFragment] = field(default_factory=dict)
    url_parts: Mapping[str, str] = field(default_factory=dict)
    meta: Mapping[str, str] = field(default_factory=dict)

    def template_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "title": self.title,
            "pageTitle": self.page_title,
            "baseURI": self.base_uri,
            "byline": self.byline,
            "excerpt": self.excerpt,
            "siteName": self.site_name,
        }
        fields.update(self.url_parts)
        for key, value in self.meta.items():
            fields.setdefault(key, value)
        fields["keywords"] = list(self.keywords)
        return fields


@dataclass(frozen=True, slots=True)
class LocalImagePaths:
    html_dir: Path
    markdown_dir: Path
    images_dir: Path


@dataclass(slots=True)
class ConversionOptions:
    """Configuration for a single article conversion.

    Instances are never shared between conversions; the transducer works on a
    rendered copy.
    """

    heading_style: HeadingStyle = HeadingStyle.ATX
    hr: str = "___"
    bullet_list_marker: str = "-"
    code_block_style: CodeBlockStyle = CodeBlockStyle.FENCED
    fence: str = "```"
    em_delimiter: str = "_"
    strong_delimiter: str = "**"
    link_style: LinkStyle = LinkStyle.INLINED
    link_reference_style: LinkReferenceStyle = LinkReferenceStyle.FULL
    image_style: ImageStyle = ImageStyle.MARKDOWN
    image_ref_style: ImageRefStyle = ImageRefStyle.INLINED
    include_template: bool = False
    frontmatter: str = DEFAULT_FRONTMATTER
    backmatter: str = ""
    title: str = "{pageTitle}"
    image_prefix: str = "{pageTitle}/"
    disallowed_chars: str = "[]#^"
    download_images: bool = False
    download_mode: DownloadMode = DownloadMode.DOWNLOADS_API
    escape_markdown: bool = True
    local: LocalImagePaths | None = None

    @property
    def fetches_assets(self) -> bool:
        return (
            self.download_images
            and self.download_mode is DownloadMode.DOWNLOADS_API
            and self.local is None
        )


@dataclass(slots=True)
class ConversionOutput:
    """Document text plus the media plan produced by one conversion."""

    markdown: str
    plan: dict[str, str]
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FetchedResource:
    reference: str
    content: bytes
    content_type: str


@dataclass(slots=True)
class MaterializedDocument:
    markdown: str
    assets: dict[str, FetchedResource]


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for an individual conversion."""

    run_id: str
    title: str
    output_path: Path
    run_dir: Path
    assets: list[Path]
    warnings: list[str]
    summary: str


@dataclass(slots=True)
class BatchConversionResult:
    """Aggregate results for a batch conversion request."""

    runs: list[ConversionResult]
    summary: BatchSummary


__all__ = [
    "DEFAULT_FRONTMATTER",
    "Article",
    "MathFragment",
    "LocalImagePaths",
    "ConversionOptions",
    "ConversionOutput",
    "ConversionResult",
    "BatchConversionResult",
    "FetchedResource",
    "MaterializedDocument",
    "HeadingStyle",
    "CodeBlockStyle",
    "LinkStyle",
    "LinkReferenceStyle",
    "ImageStyle",
    "ImageRefStyle",
    "DownloadMode",
]
