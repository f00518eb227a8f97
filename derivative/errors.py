"""Exception hierarchy for DerivSolver."""


class DerivativeError(Exception):
    """Base class for every error raised by the differentiation core."""


class ParseError(DerivativeError, ValueError):
    """Raised when an input string is not a well-formed expression.

    *position* is the zero-based character offset of the offending
    character or token, or ``None`` when the error is not tied to one
    place (e.g. empty input).
    """

    def __init__(self, message: str, position: int | None = None):
        super().__init__(message)
        self.message = message
        self.position = position


class DivisionByZeroError(DerivativeError, ArithmeticError):
    """Raised when constant folding meets a literal zero divisor."""


class NoApplicableRuleError(DerivativeError):
    """Raised when no registered rule accepts an expression shape."""


class UnsupportedExpressionError(DerivativeError):
    """Raised when a rule needs an inner derivative the local
    differentiator does not cover."""
