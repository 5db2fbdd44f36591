from datetime import datetime, timedelta, timezone

from bs4 import BeautifulSoup

from article_markdown.models import Article, ConversionOptions
from article_markdown.templating import format_date, format_title, render


def make_article(**kwargs) -> Article:
    return Article(content=BeautifulSoup("<p>x</p>", "html.parser"), **kwargs)


def test_render_field_transforms() -> None:
    fields = {"title": "Hello World"}
    assert render("{title}", fields) == "Hello World"
    assert render("{title:kebab}", fields) == "hello-world"
    assert render("{title:snake}", fields) == "hello_world"
    assert render("{title:camel}", fields) == "helloWorld"
    assert render("{title:pascal}", fields) == "HelloWorld"


def test_render_keywords() -> None:
    assert render("{keywords:, }", {"keywords": ["a", "b"]}) == "a, b"
    assert render("{keywords}", {"keywords": ["a", "b"]}) == "ab"
    assert render("{keywords:\\n}", {"keywords": ["a", "b"]}) == "a\nb"


def test_render_deletes_unknown_tokens() -> None:
    assert render("{missing}", {}) == ""
    assert render("a{content}b", {"content": "body"}) == "ab"


def test_render_sanitizes_values_only() -> None:
    assert render("[{title}]", {"title": "a[b]"}, "[]") == "[ab]"


def test_render_article_fields() -> None:
    article = make_article(
        title="A B",
        page_title="Page",
        base_uri="https://ex.com/a",
        keywords=("x", "y"),
        byline=None,
    )
    assert render("{pageTitle} {baseURI} {keywords:,} {byline}.", article) == "Page https://ex.com/a x,y ."


def test_format_date_tokens() -> None:
    now = datetime(2024, 3, 5, 7, 8, 9, tzinfo=timezone.utc)
    assert format_date(now, "YYYY-MM-DD HH:mm:ss Z") == "2024-03-05 07:08:09 +00:00"
    assert format_date(now, "[Day] D, Do") == "Day 5, 5th"


def test_format_date_offset() -> None:
    now = datetime(2024, 3, 5, 19, 0, tzinfo=timezone(timedelta(hours=-5, minutes=-30)))
    assert format_date(now, "hh A ZZ") == "07 PM -0530"


def test_render_date_token_uses_given_time() -> None:
    now = datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert render("created {date:YYYY/MM/DD}", {}, now=now) == "created 2024/01/02"


def test_format_title_sanitizes_segments() -> None:
    article = make_article(page_title="Part 1/2: A <B>")
    assert format_title(article, ConversionOptions()) == "Part 12 A B"


def test_format_title_keeps_template_separators() -> None:
    article = make_article(page_title="Post?", site_name="Blog")
    options = ConversionOptions(title="{siteName}/{pageTitle}")
    assert format_title(article, options) == "Blog/Post"
