"""Batch conversion logic — no CLI imports allowed."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from lottie2gif.core.datatypes import (
    BatchOptions,
    BatchResult,
    ConversionResult,
    ConversionStatus,
    InputSpec,
)
from lottie2gif.core.events import EventBus
from lottie2gif.core.exceptions import (
    DegenerateContentError,
    EncodeFailedError,
    EngineUnavailableError,
    InvalidOptionCombinationError,
    LoadFailedError,
    NotAnInputFileError,
    PathNotFoundError,
    ValidationError,
)
from lottie2gif.tools.lottie_gif.discovery import PathKind, classify, discover, input_suffix
from lottie2gif.tools.lottie_gif.engine import OUTPUT_FORMATS, EngineHandle
from lottie2gif.tools.lottie_gif.geometry import build_background, plan_scale

logger = logging.getLogger(__name__)

TOOL_NAME = "lottie_gif"

EngineFactory = Callable[[], EngineHandle]


# ── Validation ────────────────────────────────────────────────────────────


def validate_options(options: BatchOptions) -> None:
    """Check option values that do not depend on the inputs.

    Raises:
        ValidationError: If any value is out of range.
    """
    if options.output_format not in OUTPUT_FORMATS:
        msg = f"Invalid output format '{options.output_format}'. Choose from: {sorted(OUTPUT_FORMATS)}"
        raise ValidationError(msg)
    if options.fps < 1:
        msg = f"Frame rate must be at least 1, got {options.fps}"
        raise ValidationError(msg)
    if not 0 <= options.quality <= 100:
        msg = f"Quality must be between 0 and 100, got {options.quality}"
        raise ValidationError(msg)
    if options.jobs < 1:
        msg = f"Jobs must be at least 1, got {options.jobs}"
        raise ValidationError(msg)
    if options.render_box.width < 1 or options.render_box.height < 1:
        msg = f"Resolution sides must be at least 1, got {options.render_box}"
        raise ValidationError(msg)


def validate_inputs(raw_inputs: Sequence[str | Path], options: BatchOptions) -> None:
    """Reject an explicit output path unless exactly one file is given.

    Raises:
        InvalidOptionCombinationError: If ``explicit_output`` is set together
            with several inputs or with a directory.
    """
    if options.explicit_output is None:
        return
    if len(raw_inputs) != 1:
        msg = f"An explicit output path requires exactly one input, got {len(raw_inputs)}"
        raise InvalidOptionCombinationError(msg)
    if Path(raw_inputs[0]).expanduser().is_dir():
        msg = f"An explicit output path cannot be combined with directory input '{raw_inputs[0]}'"
        raise InvalidOptionCombinationError(msg)


# ── Output paths ──────────────────────────────────────────────────────────


def derive_output_path(input_path: Path, explicit_output: Path | None = None, output_format: str = "gif") -> Path:
    """Return where the converted animation for *input_path* is written.

    An explicit output path is used verbatim.  Otherwise the recognised
    input suffix is replaced with the format's extension, in the same
    directory as the input.
    """
    if explicit_output is not None:
        return explicit_output
    ext = OUTPUT_FORMATS[output_format].ext
    suffix = input_suffix(input_path.name)
    stem = input_path.name[: -len(suffix)] if suffix else input_path.stem
    return input_path.with_name(stem + ext)


# ── Single conversion ─────────────────────────────────────────────────────


def _failure(
    spec: InputSpec,
    status: ConversionStatus,
    exc: Exception,
    output_path: Path,
    event_bus: EventBus | None,
) -> ConversionResult:
    message = str(exc)
    logger.debug("Conversion of %s failed", spec.path, exc_info=exc)
    if event_bus is not None:
        event_bus.emit("error", tool=TOOL_NAME, path=spec.path, status=status, message=message)
    return ConversionResult(input_path=spec.path, status=status, output_path=output_path, message=message)


def convert(
    spec: InputSpec,
    options: BatchOptions,
    *,
    engine_factory: EngineFactory = EngineHandle,
    event_bus: EventBus | None = None,
) -> ConversionResult:
    """Convert one animation file.

    The engine context is acquired for this call only and released on
    every exit path.  Per-file failures are reported in the returned
    ``ConversionResult`` instead of being raised.

    Args:
        spec: The input animation.
        options: Batch-wide settings.
        engine_factory: Callable returning a fresh ``EngineHandle``.
        event_bus: Optional event bus for log and error events.

    Returns:
        The outcome of the conversion.
    """
    output_path = derive_output_path(spec.path, options.explicit_output, options.output_format)
    logger.info("Converting %s -> %s", spec.path, output_path)
    if event_bus is not None:
        event_bus.emit("log", tool=TOOL_NAME, message=f"Converting: {spec.path}")

    try:
        with engine_factory() as engine:
            try:
                content = engine.load_animation(spec.path)
                plan = plan_scale(content.intrinsic_size(), options.render_box)
            except (LoadFailedError, DegenerateContentError) as exc:
                return _failure(spec, ConversionStatus.LOAD_FAILED, exc, output_path, event_bus)

            content.set_size(plan.scaled_width, plan.scaled_height)
            logger.debug("Scaled %s by %.4f to %s", spec.path, plan.scale_factor, plan.pixel_size)

            encoder = engine.create_encoder(options.output_format)
            if encoder is None:
                exc = EngineUnavailableError(f"No {options.output_format} encoder available")
                return _failure(spec, ConversionStatus.ENGINE_UNAVAILABLE, exc, output_path, event_bus)

            layer = build_background(options.background, plan)
            if layer is not None:
                encoder.set_background(layer)

            try:
                encoder.save(content, output_path, options.quality, options.fps)
                encoder.flush()
            except EncodeFailedError as exc:
                return _failure(spec, ConversionStatus.ENCODE_FAILED, exc, output_path, event_bus)
    except EngineUnavailableError as exc:
        return _failure(spec, ConversionStatus.ENGINE_UNAVAILABLE, exc, output_path, event_bus)

    return ConversionResult(input_path=spec.path, status=ConversionStatus.SUCCESS, output_path=output_path)


# ── Batch ─────────────────────────────────────────────────────────────────


def iter_inputs(
    raw_inputs: Iterable[str | Path],
    *,
    skipped: list[Path],
    event_bus: EventBus | None = None,
) -> Iterator[InputSpec]:
    """Classify and expand each argument, skipping the ones that cannot be used.

    Missing paths and files without a recognised extension are logged,
    appended to *skipped*, and do not stop the iteration.
    """
    for raw in raw_inputs:
        try:
            path, kind = classify(raw)
            if kind is PathKind.DIRECTORY:
                logger.info("Scanning directory %s", path)
                if event_bus is not None:
                    event_bus.emit("log", tool=TOOL_NAME, message=f"Directory: {path}")
            yield from discover(path, kind)
        except (PathNotFoundError, NotAnInputFileError) as exc:
            logger.info("Skipping %s: %s", raw, exc)
            skipped.append(Path(raw))
            if event_bus is not None:
                event_bus.emit("skipped", tool=TOOL_NAME, path=Path(raw), message=str(exc))


def _report(result: ConversionResult, current: int, event_bus: EventBus | None) -> None:
    if event_bus is None or not result.ok:
        return
    event_bus.emit(
        "progress",
        tool=TOOL_NAME,
        current=current,
        path=result.input_path,
        output=result.output_path,
        message=f"Generated: {result.output_path}",
    )


def _run_sequential(
    specs: Iterable[InputSpec],
    options: BatchOptions,
    engine_factory: EngineFactory,
    event_bus: EventBus | None,
    results: list[ConversionResult],
) -> None:
    for spec in specs:
        result = convert(spec, options, engine_factory=engine_factory, event_bus=event_bus)
        results.append(result)
        _report(result, len(results), event_bus)


def _run_parallel(
    specs: Iterable[InputSpec],
    options: BatchOptions,
    engine_factory: EngineFactory,
    event_bus: EventBus | None,
    results: list[ConversionResult],
) -> None:
    futures: list[Future[ConversionResult]] = []
    executor = ThreadPoolExecutor(max_workers=options.jobs, thread_name_prefix="lottie2gif")
    try:
        for spec in specs:
            futures.append(
                executor.submit(convert, spec, options, engine_factory=engine_factory, event_bus=event_bus),
            )
        for future in futures:
            result = future.result()
            results.append(result)
            _report(result, len(results), event_bus)
    except KeyboardInterrupt:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    else:
        executor.shutdown(wait=True)


def run_batch(
    raw_inputs: Sequence[str | Path],
    options: BatchOptions,
    *,
    engine_factory: EngineFactory = EngineHandle,
    event_bus: EventBus | None = None,
) -> BatchResult:
    """Convert every animation reachable from *raw_inputs*.

    Options are validated before anything is touched.  No single argument
    or file can stop the batch; Ctrl-C stops it, waits for conversions
    already running, and reports the batch as cancelled.

    Args:
        raw_inputs: Files and/or directories as given by the user.
        options: Batch-wide settings.
        engine_factory: Callable returning a fresh ``EngineHandle`` per
            conversion.
        event_bus: Optional event bus for progress events.

    Returns:
        A ``BatchResult`` summarising every attempted conversion.

    Raises:
        ValidationError: If the options are invalid or contradict the inputs.
    """
    validate_options(options)
    validate_inputs(raw_inputs, options)

    results: list[ConversionResult] = []
    skipped: list[Path] = []
    cancelled = False
    specs = iter_inputs(raw_inputs, skipped=skipped, event_bus=event_bus)

    try:
        if options.jobs == 1:
            _run_sequential(specs, options, engine_factory, event_bus, results)
        else:
            _run_parallel(specs, options, engine_factory, event_bus, results)
    except KeyboardInterrupt:
        logger.warning("Interrupted — %d conversion(s) finished before cancellation", len(results))
        cancelled = True

    batch = BatchResult(results=tuple(results), skipped=tuple(skipped), cancelled=cancelled)
    if event_bus is not None:
        event_bus.emit(
            "completed",
            tool=TOOL_NAME,
            message=f"Done — {len(batch.succeeded)} converted, {len(batch.failed)} failed, {len(skipped)} skipped",
        )
    return batch
