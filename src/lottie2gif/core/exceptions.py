"""Exception hierarchy for the lottie2gif toolbox."""


class ToolboxError(Exception):
    """Base exception for all lottie2gif errors."""


class ToolError(ToolboxError):
    """Raised when a tool encounters an error during execution."""


class ValidationError(ToolboxError):
    """Raised when parameter validation fails."""


class InvalidOptionCombinationError(ValidationError):
    """Raised when options are valid on their own but not together."""


class PathNotFoundError(ToolError):
    """Raised when an input path cannot be resolved."""


class NotAnInputFileError(ToolError):
    """Raised when a file does not carry a recognised animation extension."""


class DegenerateContentError(ToolError):
    """Raised when an animation reports a non-positive intrinsic size."""


class EngineUnavailableError(ToolError):
    """Raised when the rendering engine or an output encoder is unavailable."""


class LoadFailedError(ToolError):
    """Raised when an animation file cannot be loaded."""


class EncodeFailedError(ToolError):
    """Raised when writing or finalising the output file fails."""
