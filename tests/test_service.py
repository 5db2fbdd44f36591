import csv
import json
from pathlib import Path

import httpx
import pytest

from article_markdown.config import AppConfig, RuntimeConfig
from article_markdown.core import ConversionError, ConversionService
from article_markdown.models import ConversionOptions, DownloadMode, ImageStyle


PAGE = """<html><head><title>My Post</title></head>
<body><p>Hello <a href="/x">link</a></p><p><img src="pic" alt="P"></p></body></html>"""


def build_config(output_dir: Path, **conversion) -> AppConfig:
    runtime = RuntimeConfig(output_dir=output_dir)
    return AppConfig(runtime=runtime, conversion=ConversionOptions(include_template=False, **conversion))


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/blog/pic":
        return httpx.Response(200, content=b"PNG", headers={"content-type": "image/png"})
    return httpx.Response(404)


def read_log(result_dir: Path) -> list[dict]:
    lines = (result_dir / "log.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_convert_html_creates_run(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text(PAGE, encoding="utf-8")
    service = ConversionService(build_config(tmp_path / "runs"))
    result = service.convert_file(source, base_uri="https://ex.com/blog/")
    assert result.title == "My Post"
    assert result.output_path == result.run_dir / "My Post.md"
    assert result.output_path.read_text(encoding="utf-8") == (
        "Hello [link](https://ex.com/x)\n\n![P](https://ex.com/blog/pic)"
    )
    assert result.assets == []
    entries = read_log(result.run_dir)
    assert entries[0]["status"] == "success"
    assert entries[0]["title"] == "My Post"
    assert set(entries[0]["timings"]) == {"read_ms", "extract_ms", "convert_ms", "materialize_ms", "write_ms"}


def test_convert_downloads_images(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text(PAGE, encoding="utf-8")
    config = build_config(tmp_path / "runs", download_images=True)
    service = ConversionService(config, transport=httpx.MockTransport(handler))
    result = service.convert_file(source, base_uri="https://ex.com/blog/")
    asset = result.run_dir / "My Post" / "pic.png"
    assert result.assets == [asset]
    assert asset.read_bytes() == b"PNG"
    assert "![P](My%20Post/pic.png)" in result.output_path.read_text(encoding="utf-8")


def test_content_link_mode_skips_fetching(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text(PAGE, encoding="utf-8")
    config = build_config(tmp_path / "runs", download_images=True, download_mode=DownloadMode.CONTENT_LINK)
    service = ConversionService(config, transport=httpx.MockTransport(handler))
    result = service.convert_file(source, base_uri="https://ex.com/blog/")
    assert result.assets == []
    assert "![P](My%20Post/pic.idunno)" in result.output_path.read_text(encoding="utf-8")


def test_fetch_failure_aborts_conversion(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text(PAGE, encoding="utf-8")
    service = ConversionService(
        build_config(tmp_path / "runs", download_images=True), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(ConversionError) as excinfo:
        service.convert_file(source, base_uri="https://ex.com/other/", run_id="run-fail")
    assert excinfo.value.code == "FETCH_FAILED"
    run_dir = tmp_path / "runs" / "run-fail"
    assert not (run_dir / "My Post.md").exists()
    assert read_log(run_dir)[0]["error_code"] == "FETCH_FAILED"


def test_missing_source_is_reported(tmp_path: Path) -> None:
    service = ConversionService(build_config(tmp_path / "runs"))
    with pytest.raises(ConversionError) as excinfo:
        service.convert_file(tmp_path / "absent.html", run_id="run-missing")
    assert excinfo.value.code == "NOT_FOUND"
    entry = read_log(tmp_path / "runs" / "run-missing")[0]
    assert entry["status"] == "failure"
    assert entry["error_code"] == "NOT_FOUND"


def test_local_mode_copies_images(tmp_path: Path) -> None:
    source_dir = tmp_path / "site"
    (source_dir / "img").mkdir(parents=True)
    (source_dir / "img" / "pic.png").write_bytes(b"PNG")
    source = source_dir / "page.html"
    source.write_text(
        '<title>Local</title><p><img src="img/pic.png"><img src="img/none.png"></p>',
        encoding="utf-8",
    )
    service = ConversionService(build_config(tmp_path / "runs"))
    result = service.convert_file(source, local=True)
    copied = result.run_dir / "images" / "pic.png"
    assert copied.read_bytes() == b"PNG"
    assert result.assets == [copied]
    assert result.warnings == ["IMAGE_NOT_FOUND:img/none.png"]
    assert result.output_path.read_text(encoding="utf-8") == "![](images/pic.png)![](images/none.png)"


def test_local_mode_leaves_remote_images_remote(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text('<title>Mixed</title><p><img src="https://ex.com/a.png"></p>', encoding="utf-8")
    config = build_config(tmp_path / "runs", download_images=True)
    service = ConversionService(config, transport=httpx.MockTransport(handler))
    result = service.convert_file(source, local=True)
    assert result.assets == []
    assert result.output_path.read_text(encoding="utf-8") == "![](https://ex.com/a.png)"
    assert not (result.run_dir / "Mixed").exists()


def test_local_mode_embeds_base64(tmp_path: Path) -> None:
    (tmp_path / "pic.png").write_bytes(b"PNG")
    source = tmp_path / "page.html"
    source.write_text('<title>Embed</title><p><img src="pic.png"></p>', encoding="utf-8")
    service = ConversionService(build_config(tmp_path / "runs", image_style=ImageStyle.BASE64))
    result = service.convert_file(source, local=True)
    assert result.output_path.read_text(encoding="utf-8") == "![](data:image/png;base64,UE5H)"


@pytest.mark.parametrize("parallelism", [1, 2])
def test_batch_converts_directory(tmp_path: Path, parallelism: int) -> None:
    source_dir = tmp_path / "pages"
    source_dir.mkdir()
    (source_dir / "a.html").write_text("<title>A</title><p>a</p>", encoding="utf-8")
    (source_dir / "b.htm").write_text("<title>B</title><p>b</p>", encoding="utf-8")
    (source_dir / "notes.txt").write_text("skip", encoding="utf-8")
    service = ConversionService(build_config(tmp_path / "runs"))
    result = service.batch_convert([source_dir], parallelism=parallelism)
    assert result.summary.total == 2
    assert result.summary.successes == 2
    assert sorted(run.title for run in result.runs) == ["A", "B"]
    with (tmp_path / "runs" / "summary.csv").open(encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0][0] == "batch_id"
    assert rows[1][2:5] == ["2", "2", "0"]


def test_batch_counts_failures(tmp_path: Path) -> None:
    source = tmp_path / "big.html"
    source.write_text("<p>x</p>", encoding="utf-8")
    config = build_config(tmp_path / "runs")
    config.runtime.max_file_size_mb = 0
    result = ConversionService(config).batch_convert([source])
    assert result.summary.failures == 1
    assert result.runs == []
