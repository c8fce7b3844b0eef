"""Exception types."""


class Error(RuntimeError):
    """Base class for errors."""


class ConfigurationError(Error, ValueError):
    """Error raised when sampler, proposal or integrator arguments are invalid."""


class InvalidStartError(Error):
    """Error raised when initial chain state has zero target density."""


class NumericEvaluationError(Error):
    """Error raised when target density or gradient evaluates to an invalid value."""


class DegenerateChainError(Error):
    """Error raised when diagnostics are computed for a zero-variance chain."""
