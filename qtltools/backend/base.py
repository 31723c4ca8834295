"""
Abstract capability interfaces used by the mapping engines

Engines only talk to these three oracles; any object implementing them can be
passed as ``backend=`` to an engine entry point.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..core.cross import Cross
from ..utils.data_types import MapEstimate, ScanResult


class GenotypeProbabilityOracle(ABC):
    """Computes genotype probabilities on a grid of markers and pseudomarkers"""

    @abstractmethod
    def calc_genoprob(self,
                      cross: Cross,
                      step: float = 0.0,
                      off_end: float = 0.0,
                      error_prob: float = 1e-4,
                      map_function: str = 'haldane') -> Cross:
        """Return a copy of ``cross`` carrying genotype probabilities"""


class RegressionScanOracle(ABC):
    """Single-QTL regression scan of one or more phenotype columns"""

    @abstractmethod
    def scan(self,
             cross: Cross,
             pheno: Union[pd.DataFrame, np.ndarray],
             chromosomes: Optional[Sequence[Union[str, int]]] = None,
             method: str = 'hk') -> ScanResult:
        """Scan ``pheno`` against the genotype probabilities of ``cross``"""


class MapEstimationOracle(ABC):
    """Re-estimates inter-marker distances for one ordered set of markers"""

    @abstractmethod
    def estimate_order(self,
                       genotypes: np.ndarray,
                       cross_type: str,
                       error_prob: float = 1e-4,
                       map_function: str = 'haldane',
                       maxit: int = 1000,
                       tol: float = 1e-6,
                       chrom: Optional[str] = None,
                       markers: Optional[Sequence[str]] = None) -> MapEstimate:
        """Estimate the map of ``genotypes`` columns taken in the given order"""


class QTLBackend(GenotypeProbabilityOracle, RegressionScanOracle, MapEstimationOracle):
    """Backend implementing every oracle"""
