"""
Oracle interfaces and the default backend
"""

from .base import (
    GenotypeProbabilityOracle,
    MapEstimationOracle,
    QTLBackend,
    RegressionScanOracle,
)
from .hmm_backend import HMMBackend

_DEFAULT_BACKEND = HMMBackend()


def get_backend(backend=None):
    """Return ``backend`` if given, otherwise the shared default HMMBackend"""
    return _DEFAULT_BACKEND if backend is None else backend


__all__ = [
    'GenotypeProbabilityOracle',
    'RegressionScanOracle',
    'MapEstimationOracle',
    'QTLBackend',
    'HMMBackend',
    'get_backend',
]
