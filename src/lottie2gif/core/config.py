"""ConfigManager — global and per-tool defaults backed by TOML files."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from lottie2gif.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "lottie2gif"


class ConfigManager:
    """Hierarchical configuration for the converter.

    ``config.toml`` in the config directory holds global defaults;
    ``tools/<tool>.toml`` overrides them for a single tool.  Command-line
    flags take precedence over both, which is decided by the caller.

    Example ``config.toml``::

        resolution = "480x480"
        fps = 24
        background = "FFFFFF"

    Args:
        config_dir: Root directory for configuration files.
                    Defaults to ``~/.config/lottie2gif/``.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self._config_dir = config_dir or _DEFAULT_CONFIG_DIR
        self._global: dict[str, Any] = {}
        self._per_tool: dict[str, dict[str, Any]] = {}

    @property
    def config_dir(self) -> Path:
        """Return the configuration directory path."""
        return self._config_dir

    def load(self) -> None:
        """Load global and per-tool config from ``config_dir``.

        Missing files are silently skipped.

        Raises:
            ValidationError: If a config file exists but is not valid TOML.
        """
        global_file = self._config_dir / "config.toml"
        if global_file.is_file():
            self._global = self._read_toml(global_file)
            logger.info("Loaded global config from %s", global_file)

        tools_dir = self._config_dir / "tools"
        if tools_dir.is_dir():
            for toml_file in tools_dir.glob("*.toml"):
                tool_name = toml_file.stem
                self._per_tool[tool_name] = self._read_toml(toml_file)
                logger.info("Loaded config for tool '%s'", tool_name)

    def get(self, key: str, *, tool: str | None = None, default: Any = None) -> Any:
        """Retrieve a config value with optional tool-level override.

        Args:
            key: The configuration key.
            tool: If given, check the tool-specific config first.
            default: Fallback value when the key is not found.

        Returns:
            The configuration value, or *default*.
        """
        if tool and tool in self._per_tool:
            value = self._per_tool[tool].get(key)
            if value is not None:
                return value
        return self._global.get(key, default)

    @staticmethod
    def _read_toml(path: Path) -> dict[str, Any]:
        try:
            with path.open("rb") as fh:
                return tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Config file '{path}' is not valid TOML: {exc}"
            raise ValidationError(msg) from exc
