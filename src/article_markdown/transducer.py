"""Article content to Markdown conversion.

The generic tree walk is markdownify's; this module adds the rules for media,
hyperlinks, MathJax fragments and preformatted blocks, and assembles the
final document around the converted body.
"""

from __future__ import annotations

import re
from dataclasses import replace

from bs4 import Tag
from markdownify import ATX, UNDERLINED, MarkdownConverter, abstract_inline_conversion, chomp

from .media import MediaPlan, ReferenceList, local_image_path, local_reference
from .models import (
    Article,
    CodeBlockStyle,
    ConversionOptions,
    ConversionOutput,
    HeadingStyle,
    ImageRefStyle,
    ImageStyle,
    LinkStyle,
)
from .templating import render
from .utils import is_absolute_uri, resolve_uri, sanitize_path, strip_invisible


MATH_ID_PREFIX = "MathJax-Element"
MATH_ID_RE = re.compile(r"^MathJax-Element-(\d+)")
CODE_LANG_RE = re.compile(r"code-lang-(.+)")
LANGUAGE_CLASS_RE = re.compile(r"^language-(\S+)$")


def clean_attribute(value: str | None) -> str:
    return re.sub(r"(\n+\s*)+", "\n", value) if value else ""


def _title_part(title: str) -> str:
    return ' "%s"' % title.replace('"', r"\"") if title else ""


class ArticleConverter(MarkdownConverter):
    """markdownify converter bound to one article and one set of options.

    The media plan, reference list and warnings live on the instance, so a
    converter must not be reused across articles.
    """

    def __init__(self, article: Article, options: ConversionOptions) -> None:
        self.article = article
        self.conversion = options
        self.plan = MediaPlan()
        self.references = ReferenceList()
        self.warnings: list[str] = []
        escape = options.escape_markdown
        super().__init__(
            heading_style=UNDERLINED if options.heading_style is HeadingStyle.SETEXT else ATX,
            bullets=options.bullet_list_marker,
            escape_asterisks=escape,
            escape_underscores=escape,
            escape_misc=escape,
        )

    def convert_article(self) -> str:
        body = self.convert_soup(self.article.content)
        references = self.references.flush()
        if references:
            body = body.rstrip() + "\n\n" + references
        return body.lstrip("\t\r\n").rstrip()

    def process_tag(self, node, parent_tags=None):
        element_id = node.get("id") if isinstance(node, Tag) else None
        if isinstance(element_id, str) and element_id.startswith(MATH_ID_PREFIX):
            math = self._convert_math(element_id)
            if math is not None:
                return math
        return super().process_tag(node, parent_tags=parent_tags)

    def _convert_math(self, element_id: str) -> str | None:
        match = MATH_ID_RE.match(element_id)
        fragment = self.article.math.get(match.group(1)) if match else None
        if fragment is None:
            self.warnings.append(f"MATH_FRAGMENT_MISSING:{element_id}")
            return None
        if fragment.inline:
            return f"${fragment.tex}$"
        return f"$$\n{fragment.tex}\n$$"

    def convert_img(self, el, text, parent_tags):
        src = el.get("src")
        if not src:
            return super().convert_img(el, text, parent_tags=parent_tags)
        return self._emit_image(el, self._image_source(src))

    def _image_source(self, src: str) -> str:
        options = self.conversion
        if options.local is not None and not is_absolute_uri(src):
            return local_image_path(src, options.local)
        resolved = resolve_uri(src, self.article.base_uri)
        if options.local is not None or not options.download_images:
            return resolved
        filename = self.plan.plan(resolved, options.image_prefix, options.disallowed_chars)
        if options.image_style in (ImageStyle.ORIGINAL_SOURCE, ImageStyle.BASE64):
            return resolved
        return local_reference(filename, options.image_style)

    def _emit_image(self, el: Tag, src: str) -> str:
        style = self.conversion.image_style
        if style is ImageStyle.NO_IMAGE:
            return ""
        if style.is_obsidian:
            return f"![[{src}]]"
        alt = clean_attribute(el.get("alt"))
        title_part = _title_part(clean_attribute(el.get("title")))
        if self.conversion.image_ref_style is ImageRefStyle.REFERENCED:
            return self.references.add_figure(alt, src, title_part)
        return f"![{alt}]({src}{title_part})" if src else ""

    def convert_a(self, el, text, parent_tags):
        href = el.get("href")
        if not href:
            return super().convert_a(el, text, parent_tags=parent_tags)
        href = resolve_uri(href, self.article.base_uri)
        if self.conversion.link_style is LinkStyle.STRIP_LINKS:
            return text
        if "_noformat" in parent_tags:
            return text
        prefix, suffix, text = chomp(text)
        if not text:
            return ""
        title = el.get("title")
        title_part = _title_part(title or "")
        if self.conversion.link_style is LinkStyle.REFERENCED:
            marker = self.references.add_link(text, href, title_part, self.conversion.link_reference_style)
            return f"{prefix}{marker}{suffix}"
        if self.options["autolinks"] and text.replace(r"\_", "_") == href and not title:
            return f"<{href}>"
        return f"{prefix}[{text}]({href}{title_part}){suffix}"

    def convert_pre(self, el, text, parent_tags):
        first = el.contents[0] if el.contents else None
        if isinstance(first, Tag) and first.name == "code":
            return self._code_block(first)
        match = CODE_LANG_RE.search(el.get("id") or "")
        language = match.group(1) if match else ""
        fence = self.conversion.fence
        return f"\n\n{fence}{language}\n{el.get_text()}\n{fence}\n\n"

    def _code_block(self, code: Tag) -> str:
        content = code.get_text()
        if self.conversion.code_block_style is CodeBlockStyle.INDENTED:
            return "\n\n    " + content.replace("\n", "\n    ") + "\n\n"

        language = ""
        for css_class in code.get("class") or []:
            match = LANGUAGE_CLASS_RE.match(css_class)
            if match:
                language = match.group(1)
                break

        fence_char = self.conversion.fence[0]
        fence_size = len(self.conversion.fence)
        for run in re.findall(rf"^{re.escape(fence_char)}{{3,}}", content, flags=re.MULTILINE):
            if len(run) >= fence_size:
                fence_size = len(run) + 1
        fence = fence_char * fence_size
        return f"\n\n{fence}{language}\n{content.removesuffix(chr(10))}\n{fence}\n\n"

    def convert_hr(self, el, text, parent_tags):
        return f"\n\n{self.conversion.hr}\n\n"

    def _keep_html(self, el, text, parent_tags):
        return str(el)

    convert_iframe = _keep_html
    convert_sub = _keep_html
    convert_sup = _keep_html

    convert_em = abstract_inline_conversion(lambda self: self.conversion.em_delimiter)
    convert_i = convert_em
    convert_strong = abstract_inline_conversion(lambda self: self.conversion.strong_delimiter)
    convert_b = convert_strong


def prepare_options(article: Article, options: ConversionOptions) -> ConversionOptions:
    """Return a copy of *options* with its templates rendered for *article*."""
    if options.include_template:
        frontmatter = render(options.frontmatter, article) + "\n"
        backmatter = "\n" + render(options.backmatter, article)
    else:
        frontmatter = backmatter = ""
    image_prefix = render(options.image_prefix, article, options.disallowed_chars)
    return replace(
        options,
        frontmatter=frontmatter,
        backmatter=backmatter,
        image_prefix=sanitize_path(image_prefix, options.disallowed_chars).lstrip("/"),
    )


def convert_article(article: Article, options: ConversionOptions) -> ConversionOutput:
    prepared = prepare_options(article, options)
    converter = ArticleConverter(article, prepared)
    body = converter.convert_article()
    markdown = strip_invisible(prepared.frontmatter + body + prepared.backmatter)
    return ConversionOutput(
        markdown=markdown,
        plan=converter.plan.as_dict(),
        warnings=list(converter.warnings),
    )


__all__ = ["ArticleConverter", "clean_attribute", "convert_article", "prepare_options"]
