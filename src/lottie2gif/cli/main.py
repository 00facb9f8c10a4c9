"""CLI entry point — ``lottie2gif`` command built on click."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click

from lottie2gif.core.config import ConfigManager
from lottie2gif.core.datatypes import BackgroundSpec, ConversionStatus, RenderBox
from lottie2gif.core.exceptions import InvalidOptionCombinationError, ValidationError
from lottie2gif.tools.lottie_gif.engine import OUTPUT_FORMATS
from lottie2gif.tools.lottie_gif.geometry import parse_hex_color, parse_resolution, split_rgb
from lottie2gif.tools.lottie_gif.logic import TOOL_NAME

_STATUS_LABELS: dict[ConversionStatus, str] = {
    ConversionStatus.LOAD_FAILED: "Load failed",
    ConversionStatus.ENGINE_UNAVAILABLE: "Engine unavailable",
    ConversionStatus.ENCODE_FAILED: "Encode failed",
}

_EPILOG = """\b
Examples:
  lottie2gif anim.json
  lottie2gif anim.json -r 240x240 -f 24 -o out.gif
  lottie2gif lottie_folder
"""


class ResolutionType(click.ParamType):
    """Click parameter type for ``WIDTHxHEIGHT`` values."""

    name = "WxH"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> RenderBox:
        if isinstance(value, RenderBox):
            return value
        try:
            return parse_resolution(str(value))
        except ValidationError as exc:
            self.fail(str(exc), param, ctx)


class HexColorType(click.ParamType):
    """Click parameter type for ``RRGGBB`` colours."""

    name = "RRGGBB"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> BackgroundSpec:
        if isinstance(value, BackgroundSpec):
            return value
        try:
            return parse_hex_color(str(value))
        except ValidationError as exc:
            self.fail(str(exc), param, ctx)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _background_from_config(value: Any) -> BackgroundSpec | None:
    """Read a background colour from config — a hex string or a 24-bit integer."""
    if value is None or value is False:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        r, g, b = split_rgb(value)
        return BackgroundSpec(r=r, g=g, b=b, enabled=True)
    return parse_hex_color(str(value))


def _resolve_params(
    config: ConfigManager,
    *,
    resolution: RenderBox | None,
    fps: int | None,
    background: BackgroundSpec | None,
    output_format: str | None,
    quality: int | None,
    jobs: int | None,
) -> dict[str, Any]:
    """Merge command-line values over config values over built-in defaults."""
    cfg_resolution = config.get("resolution", tool=TOOL_NAME)
    return {
        "render_box": resolution or (parse_resolution(str(cfg_resolution)) if cfg_resolution else RenderBox()),
        "fps": fps if fps is not None else int(config.get("fps", tool=TOOL_NAME, default=30)),
        "background": background or _background_from_config(config.get("background", tool=TOOL_NAME)),
        "output_format": output_format or str(config.get("format", tool=TOOL_NAME, default="gif")),
        "quality": quality if quality is not None else int(config.get("quality", tool=TOOL_NAME, default=0)),
        "jobs": jobs if jobs is not None else int(config.get("jobs", tool=TOOL_NAME, default=1)),
    }


@click.command(
    name="lottie2gif",
    epilog=_EPILOG,
    context_settings={"ignore_unknown_options": True, "help_option_names": ["-h", "--help"]},
)
@click.version_option(package_name="lottie2gif")
@click.argument("inputs", nargs=-1, type=click.UNPROCESSED)
@click.option("-r", "--resolution", type=ResolutionType(), default=None, help="Render box (default 600x600).")
@click.option("-f", "--fps", type=click.IntRange(min=1), default=None, help="Frames per second (default 30).")
@click.option("-b", "--background", type=HexColorType(), default=None, help="Background colour as hex RRGGBB.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, resolve_path=True),
    default=None,
    help="Output file (single input file only).",
)
@click.option(
    "-t",
    "--to",
    "output_format",
    type=click.Choice(sorted(OUTPUT_FORMATS.keys())),
    default=None,
    help="Output format (default gif).",
)
@click.option("-q", "--quality", type=click.IntRange(0, 100), default=None, help="Quality 1-100 (0 = format default).")
@click.option("-j", "--jobs", type=click.IntRange(min=1), default=None, help="Number of parallel conversions.")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Configuration directory (default ~/.config/lottie2gif).",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show per-file progress and debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    inputs: tuple[str, ...],
    resolution: RenderBox | None,
    fps: int | None,
    background: BackgroundSpec | None,
    output: str | None,
    output_format: str | None,
    quality: int | None,
    jobs: int | None,
    config_dir: Path | None,
    verbose: bool,
) -> None:
    """Convert Lottie animations to animated GIFs.

    INPUTS can be .json/.tgs files, directories (searched recursively),
    or a mix of both.  Each animation is written next to its source.
    """
    paths: list[str] = []
    for token in inputs:
        if token.startswith("-") and token != "-":
            click.echo(f"[WARN] Unknown option: {token}", err=True)
        else:
            paths.append(token)

    if not paths:
        click.echo(ctx.get_help())
        ctx.exit(0)

    _configure_logging(verbose)

    config = ConfigManager(config_dir=config_dir)
    try:
        config.load()
        params = _resolve_params(
            config,
            resolution=resolution,
            fps=fps,
            background=background,
            output_format=output_format,
            quality=quality,
            jobs=jobs,
        )
    except (ValidationError, ValueError) as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    params["inputs"] = paths
    params["output"] = Path(output) if output else None

    from lottie2gif.core.events import EventBus
    from lottie2gif.tools.lottie_gif import LottieGifTool

    bus = EventBus()
    bus.subscribe("progress", lambda **kw: click.echo(f"[OK] {kw['message']}"))
    bus.subscribe(
        "error",
        lambda **kw: click.echo(f"[ERROR] {_STATUS_LABELS[kw['status']]}: {kw['path']} ({kw['message']})", err=True),
    )
    bus.subscribe("skipped", lambda **kw: click.echo(f"[WARN] Skipped: {kw['path']} ({kw['message']})", err=True))
    if verbose:
        bus.subscribe("log", lambda **kw: click.echo(f"[INFO] {kw['message']}"))
        bus.subscribe("completed", lambda **kw: click.echo(f"[INFO] {kw['message']}"))

    tool = LottieGifTool(event_bus=bus)
    try:
        result = tool.run(params=params)
    except InvalidOptionCombinationError as exc:
        raise click.UsageError(str(exc), ctx) from exc
    except ValidationError as exc:
        raise click.ClickException(str(exc)) from exc

    if result.cancelled:
        click.echo("[WARN] Interrupted — remaining inputs were not converted", err=True)
    ctx.exit(result.exit_code)
