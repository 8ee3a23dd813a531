"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for boundary processing failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class InvalidCombinationError(ConfigError):
    """Raised when an event cannot be compared to the requested target."""

    error_code = "INVALID_COMBINATION"


class UnsupportedCombinationError(ConfigError):
    """Raised when no ABS pathway exists between two geographies."""

    error_code = "UNSUPPORTED_COMBINATION"


class ContractError(PipelineError):
    """Raised when a table does not have the shape a step relies on."""

    error_code = "CONTRACT_ERROR"


class StageError(PipelineError):
    """Raised for processing failures that abort the current call."""

    error_code = "STAGE_ERROR"


class DataUnavailableError(StageError):
    """Raised when an upstream file is not indexed, missing or empty."""

    error_code = "DATA_UNAVAILABLE"
