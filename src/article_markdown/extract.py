"""Build an :class:`Article` from HTML that is already reduced to its content."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from .models import Article, MathFragment


MATH_SCRIPT_RE = re.compile(r"^MathJax-Element-(\d+)$")
HIGHLIGHT_CLASS_RE = re.compile(r"highlight-(?:text|source)-([a-z0-9]+)")
HEAD_TAGS = ["head", "title", "meta", "base", "link", "style"]
META_FIELDS = {"author": "byline", "description": "excerpt", "og:site_name": "site_name"}


def _collect_math(soup: BeautifulSoup) -> dict[str, MathFragment]:
    math: dict[str, MathFragment] = {}
    for script in soup.find_all("script", id=MATH_SCRIPT_RE):
        math_id = MATH_SCRIPT_RE.match(script["id"]).group(1)
        tex = (script.string or "").strip().replace("\u00a0", " ")
        script_type = script.get("type") or ""
        math[math_id] = MathFragment(tex=tex, inline=bool(script_type) and "mode=display" not in script_type)
        # The rendered frame carries the same id prefix; keep only one of them.
        if soup.find(id=f"MathJax-Element-{math_id}-Frame") is not None:
            script.decompose()
    return math


def _tag_code_languages(soup: BeautifulSoup) -> None:
    for container in soup.find_all(class_=HIGHLIGHT_CLASS_RE):
        match = HIGHLIGHT_CLASS_RE.search(" ".join(container.get("class") or []))
        first = container.contents[0] if container.contents else None
        if match and isinstance(first, Tag) and first.name == "pre":
            first["id"] = f"code-lang-{match.group(1)}"


def _url_parts(base_uri: str) -> dict[str, str]:
    if not base_uri:
        return {}
    parts = urlsplit(base_uri)
    return {
        "hash": f"#{parts.fragment}" if parts.fragment else "",
        "host": parts.netloc,
        "origin": f"{parts.scheme}://{parts.netloc}" if parts.netloc else "",
        "hostname": parts.hostname or "",
        "pathname": parts.path or "/",
        "port": str(parts.port) if parts.port else "",
        "protocol": f"{parts.scheme}:" if parts.scheme else "",
        "search": f"?{parts.query}" if parts.query else "",
    }


def _meta_pairs(soup: BeautifulSoup) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for meta in soup.find_all("meta", attrs={"content": True}):
        key = meta.get("name") or meta.get("property")
        value = meta.get("content")
        if key and value and key not in pairs:
            pairs[key] = value
    return pairs


def article_from_html(html: str, base_uri: str | None = None) -> Article:
    soup = BeautifulSoup(html, "html.parser")
    math = _collect_math(soup)
    _tag_code_languages(soup)

    base_tag = soup.find("base", href=True)
    resolved_base = base_uri or (base_tag["href"] if base_tag else "")
    title_tag = soup.find("title")
    page_title = title_tag.get_text().strip() if title_tag else ""
    heading = soup.find("h1")
    title = page_title or (heading.get_text().strip() if heading else "")

    meta = _meta_pairs(soup)
    keywords_value = meta.pop("keywords", "")
    keywords = tuple(word.strip() for word in keywords_value.split(",")) if keywords_value else ()
    known = {field: meta.pop(key) for key, field in META_FIELDS.items() if key in meta}

    content = soup.body
    if content is None:
        for tag in soup.find_all(HEAD_TAGS):
            if not tag.decomposed:
                tag.decompose()
        content = soup

    return Article(
        content=content,
        title=title,
        page_title=page_title,
        base_uri=resolved_base,
        byline=known.get("byline"),
        excerpt=known.get("excerpt"),
        site_name=known.get("site_name"),
        keywords=keywords,
        math=math,
        url_parts=_url_parts(resolved_base),
        meta=meta,
    )


__all__ = ["article_from_html"]
