"""Exception hierarchy for the mAP evaluator."""

from typing import Optional


class MapEvaluatorError(Exception):
    """Base class for all fatal evaluator errors."""


class LoadError(MapEvaluatorError):
    """Feature or annotation source is missing, unreadable or incomplete."""


class ParseError(MapEvaluatorError):
    """Malformed record in the annotation file.

    Args:
        message: Description of the problem
        line_number: 1-based line number of the offending record
    """

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class ConsistencyError(MapEvaluatorError):
    """Feature matrix and annotation catalog disagree."""


class ConfigurationError(MapEvaluatorError):
    """Invalid evaluator configuration (unknown distance function, bad top-K)."""


class NumericError(MapEvaluatorError):
    """A computation would divide by zero or produce NaN."""


class EvaluationError(NumericError):
    """Evaluation cannot produce a mean (e.g. empty query set)."""
