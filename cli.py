# cli.py
import json
import logging
from pathlib import Path
from typing import Optional
import typer

from scenediff import config as scenediff_config
from scenediff import logging as scenediff_logging
from scenediff.errors import InvalidConfig, StageOpenError

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Extract incremental create/update/destroy diffs from a USD stage.")


def _load_config(config_path: Optional[Path], log_level: Optional[str]):
    overrides = {"logging": {"level": log_level.upper()}} if log_level else None
    try:
        config = scenediff_config.load(config_path, overrides=overrides)
    except InvalidConfig as e:
        typer.secho(f"Config error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    scenediff_logging.setup(config, "scenediff")
    return config


def _open(stage: str, strict: bool):
    from scenediff.extractor import UsdDataExtractor
    try:
        return UsdDataExtractor.open(stage, strict=strict)
    except StageOpenError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


@app.command()
def extract(
    stage:     str = typer.Argument(..., help="USD stage to read"),
    start:     Optional[float] = typer.Option(None, help="First time code (default: stage start)"),
    end:       Optional[float] = typer.Option(None, help="Last time code (default: stage end)"),
    step:      Optional[float] = typer.Option(None, help="Time code increment (default: extract.step)"),
    out:       Optional[Path] = typer.Option(None, help="Output folder (default: extract.out_dir)"),
    html:      Optional[bool] = typer.Option(None, "--html/--no-html", help="Also write report.html"),
    config:    Optional[Path] = typer.Option(None, help="YAML config file"),
    log_level: Optional[str] = typer.Option(None, help="Override logging.level"),
    strict:    Optional[bool] = typer.Option(None, "--strict/--lenient", help="Fail on diff protocol violations"),
):
    cfg = _load_config(config, log_level)
    opts = cfg["extract"]
    step = step if step is not None else opts["step"]
    out_dir = Path(out if out is not None else opts["out_dir"])
    write_report = html if html is not None else opts["html"]
    strict = strict if strict is not None else opts["strict"]

    with _open(stage, strict) as extractor:
        start = extractor.start_time_code if start is None else start
        end = extractor.end_time_code if end is None else end

        from scenediff.extractor import iter_time_codes
        try:
            time_codes = list(iter_time_codes(start, end, step))
        except ValueError as e:
            typer.secho(str(e), fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2)

        samples = []
        for t in time_codes:
            diff = extractor.extract(t)
            sample = {"time_code": t}
            sample.update(diff.to_dict())
            samples.append(sample)
            counts = ", ".join(f"{k}={sum(v.values())}" for k, v in diff.counts().items()) or "no changes"
            typer.echo(f"t={t:g}  {len(diff)} ops  ({counts})")

    out_dir.mkdir(parents=True, exist_ok=True)
    json_path = out_dir / "diffs.json"
    json_path.write_text(json.dumps(samples, indent=2))
    logger.info("Wrote %d samples to %s", len(samples), json_path)
    msg = f"samples={len(samples)}  diffs={json_path}"

    if write_report:
        from report.html_report import write_html
        html_path = write_html(str(out_dir / "report.html"), {"stage": stage, "samples": samples})
        msg += f"  report={html_path}"

    typer.secho(msg, fg=typer.colors.GREEN)


@app.command("render-settings")
def render_settings(
    stage:     str = typer.Argument(..., help="USD stage to read"),
    config:    Optional[Path] = typer.Option(None, help="YAML config file"),
    log_level: Optional[str] = typer.Option(None, help="Override logging.level"),
):
    _load_config(config, log_level)
    with _open(stage, strict=False) as extractor:
        extractor.extract(extractor.start_time_code)

        paths = extractor.render_settings_paths()
        if not paths:
            typer.echo("No render settings on stage.")
            return
        for settings in paths:
            typer.echo(str(settings))
            extractor.set_render_settings_path(settings)
            for product in extractor.render_product_paths():
                extractor.set_render_product_path(product)
                camera = extractor.active_camera_path()
                typer.echo(f"  {product}  camera={camera or '-'}")


if __name__ == "__main__":
    app()
