"""BaseTool ABC — the contract every tool in the toolbox implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from lottie2gif.core.events import EventBus
from lottie2gif.core.exceptions import ValidationError


@dataclass
class ToolParameter:
    """Declarative parameter definition — drives validation and CLI help."""

    name: str
    label: str
    type: type
    default: Any = None
    choices: list[Any] | None = None
    min_value: float | None = None
    max_value: float | None = None
    help: str = ""


class BaseTool(ABC):
    """Template Method base for every tool in the toolbox.

    Subclasses set ``name`` and override the abstract methods to provide
    parameter definitions and execution logic.
    """

    # ── metadata (override in subclass) ────────────────────────
    name: str

    def __init__(self, event_bus: EventBus | None = None) -> None:
        """Initialise the tool with an optional event bus.

        Args:
            event_bus: Event bus for emitting progress and status events.
                       A default bus is created if none is provided.
        """
        self.event_bus = event_bus or EventBus()

    # ── parameter schema ───────────────────────────────────────
    @abstractmethod
    def define_parameters(self) -> list[ToolParameter]:
        """Return the list of parameters this tool accepts."""
        ...

    # ── lifecycle (Template Method skeleton) ───────────────────
    def run(self, params: dict[str, Any], input_data: Any = None) -> Any:
        """Execute the tool — public entry point, do NOT override.

        Args:
            params: Dictionary of parameter values keyed by parameter name.
            input_data: Optional pre-resolved input (e.g. a ``PathList``).

        Returns:
            The result produced by the tool's core logic.
        """
        self.validate(params)
        return self._do_execute(params, input_data)

    def validate(self, params: dict[str, Any]) -> None:
        """Validate params against ``define_parameters()``.

        The base implementation checks ``choices`` membership and the
        numeric ``min_value``/``max_value`` bounds.  Override to add
        tool-specific rules.

        Args:
            params: Parameter dict to validate.

        Raises:
            ValidationError: If any parameter is invalid.
        """
        for param in self.define_parameters():
            value = params.get(param.name)
            if value is None:
                continue
            if param.choices is not None and value not in param.choices:
                msg = f"Parameter '{param.name}' must be one of {param.choices}, got '{value}'"
                raise ValidationError(msg)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                if param.min_value is not None and value < param.min_value:
                    msg = f"Parameter '{param.name}' must be >= {param.min_value}, got {value}"
                    raise ValidationError(msg)
                if param.max_value is not None and value > param.max_value:
                    msg = f"Parameter '{param.name}' must be <= {param.max_value}, got {value}"
                    raise ValidationError(msg)

    @abstractmethod
    def _do_execute(self, params: dict[str, Any], input_data: Any) -> Any:
        """Core logic — MUST override.  Pure computation, no presentation code.

        Args:
            params: Validated parameter dictionary.
            input_data: Optional pre-resolved input.

        Returns:
            The tool's result.
        """
        ...
