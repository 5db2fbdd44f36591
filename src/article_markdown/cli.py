from __future__ import annotations

import shutil
import time
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig, dump_config, load_config
from .core import ConversionError, ConversionService
from .extract import article_from_html
from .templating import format_title

console = Console()

app = typer.Typer(help="Convert simplified article HTML into Markdown with local assets")


def _load_config(path: Path | None) -> AppConfig:
    return load_config(path)


@app.command()
def convert(
    file: Path,
    base_uri: str | None = typer.Option(None, "--base-uri", help="Base URI for relative links and images"),
    local: bool = typer.Option(False, "--local", help="Copy images that sit next to the HTML file"),
    download: bool | None = typer.Option(None, "--download/--no-download", help="Download referenced images"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    options = cfg.conversion
    if download is not None:
        options = replace(options, download_images=download)
    service = ConversionService(cfg)
    try:
        result = service.convert_file(file, base_uri=base_uri, options=options, local=local)
    except ConversionError as exc:
        console.print(f"[red]Conversion failed[/red]: {exc.code} - {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Success[/green]: {result.summary}")
    if result.assets:
        console.print(f"Assets written: {len(result.assets)}")
    for warning in result.warnings:
        console.print(f"[yellow]Warning[/yellow]: {warning}")


@app.command()
def batch(
    path: list[Path],
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    parallel: int | None = typer.Option(None, "--parallel", min=1, help="Parallel workers"),
    base_uri: str | None = typer.Option(None, "--base-uri", help="Base URI for relative links and images"),
) -> None:
    cfg = _load_config(config)
    service = ConversionService(cfg)
    batch_result = service.batch_convert(path, parallelism=parallel, base_uri=base_uri)
    table = Table(title="Batch summary")
    table.add_column("Run ID")
    table.add_column("Output")
    table.add_column("Assets")
    table.add_column("Warnings")
    for result in batch_result.runs:
        table.add_row(
            result.run_id,
            str(result.output_path),
            str(len(result.assets)),
            ", ".join(result.warnings) or "-",
        )
    console.print(table)
    summary = batch_result.summary
    console.print(
        f"Processed {summary.total} files: {summary.successes} succeeded, {summary.failures} failed."
    )


@app.command()
def clean(
    older_than: int = typer.Option(0, "--older-than", min=0, help="Delete runs older than the given days"),
    keep: int = typer.Option(0, "--keep", min=0, help="Keep the most recent N runs and delete the rest"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    output_dir = cfg.runtime.output_dir
    if not output_dir.exists():
        console.print("No runs directory found.")
        raise typer.Exit()
    candidates = sorted([p for p in output_dir.iterdir() if p.is_dir()], key=lambda p: p.stat().st_mtime)
    to_remove: list[Path] = []
    if keep:
        to_remove.extend(candidates[:-keep])
    if older_than:
        threshold = time.time() - older_than * 86400
        to_remove.extend([p for p in candidates if p.stat().st_mtime < threshold])
    seen: set[Path] = set()
    for path in to_remove:
        if path in seen:
            continue
        shutil.rmtree(path, ignore_errors=True)
        seen.add(path)
    console.print(f"Removed {len(seen)} run directories.")


@app.command()
def title(
    file: Path,
    base_uri: str | None = typer.Option(None, "--base-uri"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Print the file name a conversion of FILE would produce."""
    cfg = _load_config(config)
    try:
        html = file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[red]Could not read[/red] {file}: {exc}")
        raise typer.Exit(1) from exc
    console.print(format_title(article_from_html(html, base_uri), cfg.conversion), markup=False)


@app.command("show-config")
def show_config(config: Path | None = typer.Option(None, "--config", help="Path to config.toml")) -> None:
    console.print_json(dump_config(_load_config(config)))


@app.command()
def serve(config: Path | None = typer.Option(None, "--config", help="Path to config.toml")) -> None:
    import uvicorn

    from .api import create_app

    cfg = _load_config(config)
    try:
        api = create_app(config)
    except RuntimeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    uvicorn.run(api, host=cfg.api.host, port=cfg.api.port)


if __name__ == "__main__":
    app()
