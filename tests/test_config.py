import json
from pathlib import Path

import pytest

from article_markdown.config import load_config, dump_config
from article_markdown.models import DownloadMode, ImageStyle, LinkStyle


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml")
    assert config.runtime.output_dir == Path("runs")
    assert config.download.max_concurrency == 8
    assert config.conversion.image_style is ImageStyle.MARKDOWN
    assert config.conversion.download_mode is DownloadMode.DOWNLOADS_API
    assert config.conversion.disallowed_chars == "[]#^"
    assert config.conversion.include_template is False


def test_sections_are_parsed(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        """
[runtime]
output_dir = "out"
parallelism = 4

[download]
max_concurrency = 2
timeout_s = 5

[conversion]
image_style = "obsidian"
link_style = "stripLinks"
download_images = true
title = "{siteName}/{pageTitle}"

[api]
port = 9000
""",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.runtime.output_dir == Path("out")
    assert config.runtime.parallelism == 4
    assert config.download.max_concurrency == 2
    assert config.download.timeout_s == 5.0
    assert config.conversion.image_style is ImageStyle.OBSIDIAN
    assert config.conversion.link_style is LinkStyle.STRIP_LINKS
    assert config.conversion.download_images is True
    assert config.conversion.title == "{siteName}/{pageTitle}"
    assert config.api.port == 9000


def test_unknown_enum_value_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[conversion]\nimage_style = "sketch"\n', encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_dump_config_is_json(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[conversion]\nimage_style = "base64"\n', encoding="utf-8")
    payload = json.loads(dump_config(load_config(path)))
    assert payload["conversion"]["image_style"] == "base64"
    assert payload["runtime"]["output_dir"] == "runs"
    assert "local" not in payload["conversion"]
