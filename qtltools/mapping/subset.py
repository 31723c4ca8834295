"""
Marker-subset sampler

Selects a well-spaced set of markers from a dense map. Within each
chromosome the selection is the maximum-weight set of markers in which every
pair is at least ``min_distance`` cM apart (weighted interval scheduling),
with weights rewarding complete and Mendelian-balanced markers.
"""

import numpy as np
from typing import Optional, Union

from ..core.cross import Cross
from ..utils.data_types import GeneticMap, GenotypeMatrix, MarkerSubset
from ..utils.errors import ValidationError
from ..utils.stats import marker_quality_scores

TIE_NOISE = 1e-9


def _select_spaced(positions: np.ndarray, weights: np.ndarray, min_distance: float) -> np.ndarray:
    """Indices (in position order) of the best subset with the spacing constraint"""
    n = len(positions)
    # previous compatible marker for each i: last j with pos[j] <= pos[i] - min_distance
    prev = np.searchsorted(positions, positions - min_distance, side='right') - 1
    best = np.zeros(n + 1)
    take = np.zeros(n, dtype=bool)
    for i in range(n):
        with_i = weights[i] + best[prev[i] + 1]
        if with_i >= best[i]:
            best[i + 1] = with_i
            take[i] = True
        else:
            best[i + 1] = best[i]

    chosen = []
    i = n - 1
    while i >= 0:
        if take[i]:
            chosen.append(i)
            i = prev[i]
        else:
            i -= 1
    return np.array(chosen[::-1], dtype=int)


def pick_marker_subset(cross_or_map: Union[Cross, GeneticMap],
                       min_distance: float = 20.0,
                       geno: Optional[GenotypeMatrix] = None,
                       cross_type: Optional[str] = None,
                       na_weight: float = 2.0,
                       balance_weight: float = 1.0,
                       seed: Optional[int] = None,
                       verbose: bool = False) -> MarkerSubset:
    """Pick a subset of markers so that no two on a chromosome are closer than ``min_distance``

    Args:
        cross_or_map: Cross, or a GeneticMap (optionally with ``geno`` and ``cross_type``)
        min_distance: Minimum spacing (cM) between selected markers
        geno: Genotypes used for scoring when a bare map is given
        cross_type: Cross type of ``geno``
        na_weight: Weight of marker completeness in the score
        balance_weight: Weight of genotype-frequency balance in the score
        seed: Random seed used to break ties between equally scored subsets
        verbose: Print per-chromosome counts

    Returns:
        MarkerSubset
    """
    if min_distance is None or not min_distance > 0:
        raise ValidationError("min_distance must be positive")

    if isinstance(cross_or_map, Cross):
        genetic_map = cross_or_map.genetic_map
        geno = cross_or_map.geno
        cross_type = cross_or_map.cross_type
    elif isinstance(cross_or_map, GeneticMap):
        genetic_map = cross_or_map
        if geno is not None and cross_type is None:
            raise ValidationError("cross_type is required to score genotypes")
    else:
        raise ValidationError("Expected a Cross or GeneticMap")

    if genetic_map.n_markers == 0:
        raise ValidationError("Genetic map contains no markers")

    rng = np.random.default_rng(seed)
    selected = {}
    for chrom in genetic_map.chrom_names:
        names = genetic_map.chrom_markers(chrom)
        if len(names) < 2:
            selected[chrom] = names
            continue
        positions = genetic_map.chrom_positions(chrom)
        if geno is not None:
            weights = marker_quality_scores(geno.get_markers(names), cross_type,
                                            na_weight=na_weight, balance_weight=balance_weight)
        else:
            weights = np.ones(len(names))
        weights = weights + rng.uniform(0.0, TIE_NOISE, size=len(names))

        order = np.argsort(positions, kind='mergesort')
        picked = _select_spaced(positions[order], weights[order], float(min_distance))
        keep = np.sort(order[picked])
        selected[chrom] = [names[i] for i in keep]
        if verbose:
            print(f"   Chromosome {chrom}: kept {len(keep)} of {len(names)} markers")

    return MarkerSubset(selected, min_distance)
