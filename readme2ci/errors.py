"""Error taxonomy shared by the parser, analyzers and pipeline."""

from __future__ import annotations


class Readme2CIError(RuntimeError):
    """Base class for errors raised by readme2ci components."""

    code = "README2CI_ERROR"
    severity = "error"

    def __init__(self, message: str, *, component: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.component = component


class ParseFailure(Readme2CIError):
    """The document could not be turned into an AST; the pipeline aborts."""

    code = "PARSE_FAILURE"
    severity = "fatal"


class MalformedBlock(Readme2CIError):
    """A code fence could not be read; the block is skipped."""

    code = "MALFORMED_BLOCK"
    severity = "warning"

    def __init__(self, message: str, *, line: int, component: str | None = None) -> None:
        super().__init__(message, component=component)
        self.line = line


class PatternEvaluationFault(Readme2CIError):
    """A classification pattern failed to evaluate; aborts the command stage."""

    code = "PATTERN_EVALUATION_FAULT"


class StageTimeout(Readme2CIError):
    """A stage did not finish before the pipeline deadline."""

    code = "STAGE_TIMEOUT"


class PluginFailure(Readme2CIError):
    """A custom analyzer raised or returned an invalid result."""

    code = "PLUGIN_FAILURE"


class ConfigError(Readme2CIError):
    """Raised when the configuration file cannot be parsed."""

    code = "CONFIG_ERROR"


__all__ = [
    "ConfigError",
    "MalformedBlock",
    "ParseFailure",
    "PatternEvaluationFault",
    "PluginFailure",
    "Readme2CIError",
    "StageTimeout",
]
