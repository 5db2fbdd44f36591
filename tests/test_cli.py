from pathlib import Path

from typer.testing import CliRunner

from article_markdown.cli import app

runner = CliRunner()


def write_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(
        f'[runtime]\noutput_dir = "{(tmp_path / "runs").as_posix()}"\n\n[conversion]\ninclude_template = false\n',
        encoding="utf-8",
    )
    return path


def test_title_command(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text("<title>Notes: Part 1</title><p>x</p>", encoding="utf-8")
    result = runner.invoke(app, ["title", str(source), "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    assert result.stdout.strip() == "Notes Part 1"


def test_convert_command_writes_markdown(tmp_path: Path) -> None:
    source = tmp_path / "page.html"
    source.write_text("<title>Doc</title><p>hello</p>", encoding="utf-8")
    result = runner.invoke(app, ["convert", str(source), "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    outputs = list((tmp_path / "runs").glob("*/Doc.md"))
    assert len(outputs) == 1
    assert outputs[0].read_text(encoding="utf-8") == "hello"


def test_convert_command_reports_errors(tmp_path: Path) -> None:
    result = runner.invoke(app, ["convert", str(tmp_path / "absent.html"), "--config", str(write_config(tmp_path))])
    assert result.exit_code == 1
    assert "NOT_FOUND" in result.stdout


def test_clean_keeps_recent_runs(tmp_path: Path) -> None:
    runs = tmp_path / "runs"
    for name in ("run-a", "run-b", "run-c"):
        (runs / name).mkdir(parents=True)
    result = runner.invoke(app, ["clean", "--keep", "1", "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    assert len([p for p in runs.iterdir() if p.is_dir()]) == 1


def test_show_config_prints_json(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show-config", "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    assert '"include_template": false' in result.stdout
