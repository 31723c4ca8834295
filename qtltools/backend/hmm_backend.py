"""
Default backend: HMM genotype probabilities, Haley-Knott regression and EM
map estimation
"""

import numpy as np
from typing import Optional, Sequence

from ..association.hk import check_scan_inputs, haley_knott_scan
from ..core.cross import Cross
from ..matrix.genoprob import compute_genoprob
from ..matrix.hmm import em_estimate_rf
from ..utils.data_types import MapEstimate, ScanResult
from ..utils.stats import check_map_function, rf_to_dist
from .base import QTLBackend


class HMMBackend(QTLBackend):
    """Pure numpy/numba implementation of the three oracles"""

    def calc_genoprob(self, cross: Cross, step: float = 0.0, off_end: float = 0.0,
                      error_prob: float = 1e-4, map_function: str = 'haldane') -> Cross:
        genoprob = compute_genoprob(cross, step=step, off_end=off_end,
                                    error_prob=error_prob, map_function=map_function)
        return cross.with_genoprob(genoprob)

    def scan(self, cross: Cross, pheno, chromosomes=None, method: str = 'hk') -> ScanResult:
        frame = check_scan_inputs(cross, pheno, method)
        return haley_knott_scan(cross.genoprob, frame, chromosomes=chromosomes)

    def estimate_order(self,
                       genotypes: np.ndarray,
                       cross_type: str,
                       error_prob: float = 1e-4,
                       map_function: str = 'haldane',
                       maxit: int = 1000,
                       tol: float = 1e-6,
                       chrom: Optional[str] = None,
                       markers: Optional[Sequence[str]] = None) -> MapEstimate:
        map_function = check_map_function(map_function)
        genotypes = np.asarray(genotypes, dtype=np.float64)
        rf, loglik, n_iter, converged = em_estimate_rf(
            genotypes, cross_type, error_prob=error_prob, maxit=maxit, tol=tol
        )
        if markers is None:
            markers = [f"m{j + 1}" for j in range(genotypes.shape[1])]
        distances = rf_to_dist(rf, map_function) if genotypes.shape[1] > 1 else np.zeros(0)
        return MapEstimate(
            markers=[str(m) for m in markers],
            distances=distances,
            loglik=loglik,
            n_iter=n_iter,
            converged=converged,
            chrom=None if chrom is None else str(chrom),
            rf=rf if genotypes.shape[1] > 1 else np.zeros(0),
        )

    def __repr__(self) -> str:
        return "HMMBackend()"
