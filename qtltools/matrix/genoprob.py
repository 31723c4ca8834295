"""
Genotype probability calculation on a grid of markers and pseudomarkers
"""

import numpy as np
from typing import Optional, List, Tuple

from ..core.cross import Cross
from ..utils.data_types import ChromGenoProb, GenoProb
from ..utils.errors import ValidationError
from ..utils.stats import check_map_function, dist_to_rf
from .hmm import emission_probs, posterior_probs

MARKER_TOLERANCE = 1e-6


def pseudomarker_name(chrom: str, pos: float) -> str:
    """Locus label for a grid position that is not a marker (e.g. c1.loc12.5)"""
    return f"c{chrom}.loc{round(float(pos), 4):g}"


def make_grid(marker_pos: np.ndarray, step: float, off_end: float) -> Tuple[np.ndarray, np.ndarray]:
    """Merge marker positions with a fixed-step pseudomarker grid

    Args:
        marker_pos: Non-decreasing marker positions (cM)
        step: Distance between pseudomarkers; 0 means markers only
        off_end: Distance to extend the grid past the terminal markers

    Returns:
        Tuple of (positions, marker_index) where marker_index holds the
        marker column for each grid position or -1 for pseudomarkers
    """
    if step < 0:
        raise ValidationError("step must be non-negative")
    if off_end < 0:
        raise ValidationError("off_end must be non-negative")
    marker_pos = np.asarray(marker_pos, dtype=np.float64)
    lo = marker_pos[0] - off_end
    hi = marker_pos[-1] + off_end

    if step > 0:
        n_steps = int(np.floor((hi - lo) / step + 1e-9))
        pseudo = lo + step * np.arange(n_steps + 1)
    elif off_end > 0:
        pseudo = np.array([lo, hi])
    else:
        pseudo = np.zeros(0)

    if pseudo.size:
        near = np.min(np.abs(pseudo[:, np.newaxis] - marker_pos[np.newaxis, :]), axis=1)
        pseudo = pseudo[near > MARKER_TOLERANCE]

    positions = np.concatenate([marker_pos, pseudo])
    index = np.concatenate([np.arange(len(marker_pos)), np.full(len(pseudo), -1)])
    # markers sort ahead of pseudomarkers at equal positions
    order = np.lexsort((index < 0, positions))
    return positions[order], index[order]


def compute_genoprob(cross: Cross,
                     step: float = 0.0,
                     off_end: float = 0.0,
                     error_prob: float = 1e-4,
                     map_function: str = 'haldane',
                     chromosomes: Optional[List[str]] = None) -> GenoProb:
    """Posterior genotype probabilities at markers and pseudomarkers

    Args:
        cross: Cross with genotypes and map
        step: Pseudomarker spacing (cM); 0 computes at markers only
        off_end: Grid extension past the terminal markers (cM)
        error_prob: Genotyping error probability
        map_function: Map function converting distances to recombination fractions
        chromosomes: Restrict to these chromosomes (default: all)

    Returns:
        GenoProb object
    """
    map_function = check_map_function(map_function)
    chroms = cross.chromosomes if chromosomes is None else [str(c) for c in chromosomes]

    out = {}
    for chrom in chroms:
        marker_names = cross.genetic_map.chrom_markers(chrom)
        marker_pos = cross.genetic_map.chrom_positions(chrom)
        if np.any(np.diff(marker_pos) < 0):
            raise ValidationError(f"Marker positions on chromosome {chrom} are not sorted")
        positions, index = make_grid(marker_pos, step, off_end)

        geno = cross.chrom_genotypes(chrom)
        grid_geno = np.full((cross.n_individuals, len(positions)), np.nan)
        is_marker = index >= 0
        grid_geno[:, is_marker] = geno[:, index[is_marker]]

        rf = dist_to_rf(np.diff(positions), map_function)
        emit = emission_probs(grid_geno, cross.cross_type, error_prob)
        probs = posterior_probs(emit, cross.cross_type, rf)

        loci = [marker_names[idx] if idx >= 0 else pseudomarker_name(chrom, pos)
                for idx, pos in zip(index, positions)]
        out[chrom] = ChromGenoProb(chrom=chrom, positions=positions, loci=loci,
                                   is_marker=is_marker, probs=probs)

    return GenoProb(out, step=step, off_end=off_end, error_prob=error_prob, map_function=map_function)


def calc_genoprob(cross: Cross,
                  step: float = 0.0,
                  off_end: float = 0.0,
                  error_prob: float = 1e-4,
                  map_function: str = 'haldane',
                  backend=None) -> Cross:
    """Return a copy of ``cross`` carrying genotype probabilities

    Must be run before any genome scan or marker placement.
    """
    from ..backend import get_backend

    backend = get_backend(backend)
    return backend.calc_genoprob(cross, step=step, off_end=off_end,
                                 error_prob=error_prob, map_function=map_function)
