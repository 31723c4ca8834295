"""
Exception and warning classes shared across qtltools
"""


class ValidationError(ValueError):
    """Malformed or mismatched inputs (IDs, markers, columns, parameters)"""


class PrecomputationError(RuntimeError):
    """A required upstream step (e.g. genotype probabilities) has not been run"""


class ConvergenceWarning(UserWarning):
    """An oracle call did not converge; the affected candidate was rejected"""


class PlacementWarning(UserWarning):
    """Coarse and fine marker placement disagree or the coarse chromosome is ambiguous"""


__all__ = [
    'ValidationError',
    'PrecomputationError',
    'ConvergenceWarning',
    'PlacementWarning',
]
