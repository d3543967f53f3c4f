"""
Exception and warning types raised by tpp2d_hit_caller.
"""


class SchemaError(ValueError):
    """Input table is missing one or more required columns."""


class ConfigurationError(ValueError):
    """An analysis option has an unusable value."""


class ConvergenceFailure(RuntimeError):
    """The optimizer did not reach a stable optimum within the iteration cap."""


class InsufficientBootstrapWarning(UserWarning):
    """Fewer bootstrap rounds than recommended; FDR estimates may be unstable."""
