"""
Re-estimation of inter-marker distances for the current marker order
"""

import warnings
from typing import Dict, Optional, Sequence, Tuple

from ..core.cross import Cross
from ..utils.data_types import MapEstimate
from ..utils.errors import ConvergenceWarning


def est_map(cross: Cross,
            error_prob: float = 1e-4,
            map_function: str = 'haldane',
            maxit: int = 1000,
            tol: float = 1e-6,
            chromosomes: Optional[Sequence[str]] = None,
            backend=None,
            verbose: bool = False) -> Tuple[Cross, Dict[str, MapEstimate]]:
    """Estimate a new genetic map by EM, keeping marker order

    Each re-estimated chromosome starts at 0 cM.

    Returns:
        Tuple of (cross with the new map, per-chromosome MapEstimate)
    """
    from ..backend import get_backend

    backend = get_backend(backend)
    chroms = cross.chromosomes if chromosomes is None else [str(c) for c in chromosomes]
    new_map = cross.genetic_map
    estimates: Dict[str, MapEstimate] = {}

    for chrom in chroms:
        markers = cross.genetic_map.chrom_markers(chrom)
        estimate = backend.estimate_order(
            cross.chrom_genotypes(chrom), cross.cross_type,
            error_prob=error_prob, map_function=map_function,
            maxit=maxit, tol=tol, chrom=chrom, markers=markers,
        )
        if not estimate.converged:
            warnings.warn(f"Map estimation on chromosome {chrom} did not converge "
                          f"after {estimate.n_iter} iterations", ConvergenceWarning)
        estimates[chrom] = estimate
        new_map = new_map.with_chrom_order(chrom, markers, estimate.positions(0.0))
        if verbose:
            print(f"   Chromosome {chrom}: {len(markers)} markers, "
                  f"length {estimate.total_length:.1f} cM, loglik {estimate.loglik:.2f}")

    return cross.with_map(new_map), estimates
