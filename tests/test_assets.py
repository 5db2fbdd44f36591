import asyncio
from pathlib import Path

import httpx
import pytest

from article_markdown.assets import ResourceFetcher, embed_local_images, materialize
from article_markdown.errors import ResourceFetchError, UnsupportedMediaType
from article_markdown.media_types import extension_for
from article_markdown.models import ConversionOptions, ImageStyle


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/a/pic":
        return httpx.Response(200, content=b"PNG", headers={"content-type": "image/png"})
    if request.url.path == "/b/pic.png":
        return httpx.Response(200, content=b"OTHER", headers={"content-type": "image/png"})
    if request.url.path == "/a/photo.jpg":
        return httpx.Response(200, content=b"JPG", headers={"content-type": "image/png"})
    return httpx.Response(404)


def run_materialize(plan: dict[str, str], markdown: str, options: ConversionOptions):
    async def run():
        async with ResourceFetcher(transport=httpx.MockTransport(handler)) as fetcher:
            return await materialize(plan, markdown, options, fetcher)

    return asyncio.run(run())


def test_unknown_extension_is_finalized() -> None:
    plan = {"https://ex.com/a/pic": "My Page/pic.idunno"}
    document = run_materialize(plan, "![](My%20Page/pic.idunno)", ConversionOptions(download_images=True))
    assert document.markdown == "![](My%20Page/pic.png)"
    assert list(document.assets) == ["My Page/pic.png"]
    assert document.assets["My Page/pic.png"].content == b"PNG"


def test_known_extension_is_kept() -> None:
    plan = {"https://ex.com/a/photo.jpg": "photo.jpg"}
    document = run_materialize(plan, "![](photo.jpg)", ConversionOptions(download_images=True))
    assert document.markdown == "![](photo.jpg)"
    assert list(document.assets) == ["photo.jpg"]


def test_finalized_name_does_not_reuse_a_planned_name() -> None:
    plan = {"https://ex.com/a/pic": "pic.idunno", "https://ex.com/b/pic.png": "pic.png"}
    document = run_materialize(plan, "![](pic.idunno)![](pic.png)", ConversionOptions(download_images=True))
    assert document.markdown == "![](pic.1.png)![](pic.png)"
    assert document.assets["pic.1.png"].content == b"PNG"
    assert document.assets["pic.png"].content == b"OTHER"


def test_obsidian_nofolder_references_are_rewritten() -> None:
    plan = {"https://ex.com/a/pic": "Page/pic.idunno"}
    options = ConversionOptions(download_images=True, image_style=ImageStyle.OBSIDIAN_NOFOLDER)
    document = run_materialize(plan, "![[pic.idunno]]", options)
    assert document.markdown == "![[pic.png]]"
    assert list(document.assets) == ["Page/pic.png"]


def test_base64_style_embeds_data() -> None:
    plan = {"https://ex.com/a/pic": "pic.idunno"}
    options = ConversionOptions(download_images=True, image_style=ImageStyle.BASE64)
    document = run_materialize(plan, "![](https://ex.com/a/pic)", options)
    assert document.markdown == "![](data:image/png;base64,UE5H)"
    assert document.assets == {}


def test_data_uri_is_decoded_without_network() -> None:
    plan = {"data:image/png;base64,UE5H": "image.png"}
    document = run_materialize(plan, "![](image.png)", ConversionOptions(download_images=True))
    assert document.assets["image.png"].content == b"PNG"
    assert document.assets["image.png"].content_type == "image/png"


def test_failed_fetch_rejects_materialization() -> None:
    plan = {"https://ex.com/a/pic": "pic.idunno", "https://ex.com/missing.png": "missing.png"}
    with pytest.raises(ResourceFetchError) as excinfo:
        run_materialize(plan, "![](pic.idunno) ![](missing.png)", ConversionOptions(download_images=True))
    assert excinfo.value.reference == "https://ex.com/missing.png"
    assert excinfo.value.code == "FETCH_FAILED"


def test_embed_local_images(tmp_path: Path) -> None:
    image = tmp_path / "pic.png"
    image.write_bytes(b"PNG")
    assert embed_local_images("![](images/pic.png)", {"images/pic.png": image}) == (
        "![](data:image/png;base64,UE5H)"
    )


def test_embed_local_images_rejects_unknown_types(tmp_path: Path) -> None:
    image = tmp_path / "pic.xyz"
    image.write_bytes(b"???")
    with pytest.raises(UnsupportedMediaType):
        embed_local_images("![](images/pic.xyz)", {"images/pic.xyz": image})


def test_extension_for_content_types() -> None:
    assert extension_for("image/svg+xml; charset=utf-8") == "svg"
    assert extension_for("IMAGE/JPEG") == "jpeg"
    assert extension_for("") == "bin"
