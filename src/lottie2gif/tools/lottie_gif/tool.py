"""LottieGifTool — BaseTool wrapper for batch Lottie conversion."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from lottie2gif.core.base_tool import BaseTool, ToolParameter
from lottie2gif.core.datatypes import BackgroundSpec, BatchOptions, BatchResult, PathList, RenderBox
from lottie2gif.core.events import EventBus
from lottie2gif.core.exceptions import ValidationError
from lottie2gif.tools.lottie_gif.engine import OUTPUT_FORMATS, EngineHandle
from lottie2gif.tools.lottie_gif.logic import TOOL_NAME, EngineFactory, run_batch


class LottieGifTool(BaseTool):
    """Convert Lottie animations (``.json`` / ``.tgs``) to animated images."""

    name = TOOL_NAME

    def __init__(self, event_bus: EventBus | None = None, engine_factory: EngineFactory | None = None) -> None:
        """Initialise the converter tool.

        Args:
            event_bus: Shared event bus for progress reporting.
            engine_factory: Callable returning a fresh engine context per
                conversion.  Defaults to ``EngineHandle``.
        """
        super().__init__(event_bus=event_bus)
        self.engine_factory = engine_factory

    def define_parameters(self) -> list[ToolParameter]:
        """Return the parameter schema for Lottie conversion."""
        return [
            ToolParameter(
                name="inputs",
                label="Input files/directories",
                type=list,
                help="Lottie files or directories searched recursively.",
            ),
            ToolParameter(
                name="render_box",
                label="Resolution",
                type=RenderBox,
                default=RenderBox(),
                help="Bounding box the animation is fitted into.",
            ),
            ToolParameter(
                name="fps",
                label="Frame rate",
                type=int,
                default=30,
                min_value=1,
                help="Output frames per second.",
            ),
            ToolParameter(
                name="background",
                label="Background",
                type=BackgroundSpec,
                default=None,
                help="Solid colour drawn beneath the animation.",
            ),
            ToolParameter(
                name="output",
                label="Output file",
                type=Path,
                default=None,
                help="Explicit output path (single input file only).",
            ),
            ToolParameter(
                name="output_format",
                label="Output format",
                type=str,
                default="gif",
                choices=sorted(OUTPUT_FORMATS.keys()),
                help="Animated image format to write.",
            ),
            ToolParameter(
                name="quality",
                label="Quality",
                type=int,
                default=0,
                min_value=0,
                max_value=100,
                help="Encoder quality 1-100 (0 = format default).",
            ),
            ToolParameter(
                name="jobs",
                label="Parallel jobs",
                type=int,
                default=1,
                min_value=1,
                help="Number of conversions run at the same time.",
            ),
        ]

    def validate(self, params: dict[str, Any]) -> None:
        """Validate parameters with converter-specific rules.

        Raises:
            ValidationError: If parameters are invalid.
        """
        super().validate(params)

        box = params.get("render_box")
        if box is not None and not isinstance(box, RenderBox):
            msg = f"Parameter 'render_box' must be a RenderBox, got {type(box).__name__}"
            raise ValidationError(msg)

        background = params.get("background")
        if background is not None and not isinstance(background, BackgroundSpec):
            msg = f"Parameter 'background' must be a BackgroundSpec, got {type(background).__name__}"
            raise ValidationError(msg)

    @staticmethod
    def build_options(params: dict[str, Any]) -> BatchOptions:
        """Assemble ``BatchOptions`` from a parameter dict, filling defaults."""
        output = params.get("output")
        return BatchOptions(
            render_box=params.get("render_box") or RenderBox(),
            fps=params.get("fps") or 30,
            background=params.get("background") or BackgroundSpec(),
            explicit_output=Path(output) if output is not None else None,
            output_format=params.get("output_format") or "gif",
            quality=params.get("quality") or 0,
            jobs=params.get("jobs") or 1,
        )

    def _do_execute(self, params: dict[str, Any], input_data: Any) -> BatchResult:
        """Run the batch conversion.

        Args:
            params: Validated parameter dictionary.
            input_data: Optional ``PathList`` replacing ``params["inputs"]``.

        Returns:
            A ``BatchResult`` with one entry per attempted conversion.
        """
        if input_data is not None and isinstance(input_data, PathList):
            raw_inputs: list[str | Path] = list(input_data.paths)
        else:
            raw_inputs = [Path(p) for p in params.get("inputs") or []]

        return run_batch(
            raw_inputs,
            self.build_options(params),
            engine_factory=self.engine_factory or EngineHandle,
            event_bus=self.event_bus,
        )
