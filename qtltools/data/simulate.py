"""
Simulation of experimental crosses under a Haldane (no interference) model
"""

import numpy as np
import pandas as pd
from typing import Optional, Sequence, Tuple, Union

from ..core.cross import Cross
from ..matrix.hmm import _ri_rate
from ..utils.data_types import GeneticMap, GenotypeMatrix
from ..utils.errors import ValidationError
from ..utils.stats import check_cross_type, dist_to_rf, genotype_states


def sim_map(n_chrom: int = 2,
            length: Union[float, Sequence[float]] = 100.0,
            n_markers: Union[int, Sequence[int]] = 11,
            equally_spaced: bool = True,
            seed: Optional[int] = None) -> GeneticMap:
    """Simulate a genetic map with markers named C<chrom>M<index>

    Args:
        n_chrom: Number of chromosomes (named '1'..'n')
        length: Chromosome length(s) in cM
        n_markers: Markers per chromosome
        equally_spaced: Evenly spaced markers; otherwise uniform random positions
            that always include both chromosome ends
        seed: Random seed
    """
    if n_chrom < 1:
        raise ValidationError("n_chrom must be at least 1")
    lengths = np.broadcast_to(np.asarray(length, dtype=np.float64), (n_chrom,))
    counts = np.broadcast_to(np.asarray(n_markers, dtype=int), (n_chrom,))
    rng = np.random.default_rng(seed)

    frames = []
    for c in range(n_chrom):
        n = int(counts[c])
        if n < 1:
            raise ValidationError("Every chromosome needs at least one marker")
        if equally_spaced or n < 3:
            pos = np.linspace(0.0, lengths[c], n) if n > 1 else np.zeros(1)
        else:
            pos = np.sort(np.concatenate([[0.0, lengths[c]], rng.uniform(0, lengths[c], n - 2)]))
        frames.append(pd.DataFrame({
            'MARKER': [f"C{c + 1}M{j + 1}" for j in range(n)],
            'CHROM': str(c + 1),
            'POS': pos,
        }))
    return GeneticMap(pd.concat(frames, ignore_index=True))


def _sim_chromatids(n_ind: int, rf: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """0/1 allele sequences along a chromosome with independent crossovers"""
    start = rng.integers(0, 2, size=n_ind)
    if len(rf) == 0:
        return start[:, np.newaxis]
    switches = rng.random((n_ind, len(rf))) < rf[np.newaxis, :]
    flips = np.concatenate([np.zeros((n_ind, 1), dtype=int), np.cumsum(switches, axis=1)], axis=1)
    return (start[:, np.newaxis] + flips) % 2


def sim_cross(genetic_map: GeneticMap,
              n_ind: int = 100,
              cross_type: str = 'f2',
              error_prob: float = 0.0,
              missing_prob: float = 0.0,
              qtl: Optional[Sequence[Tuple[str, float]]] = None,
              noise_sd: float = 1.0,
              seed: Optional[int] = None) -> Cross:
    """Simulate genotypes (and optionally a phenotype) for a cross

    Args:
        genetic_map: Map of the simulated markers
        n_ind: Number of individuals
        cross_type: 'bc', 'dh', 'riself', 'risib' or 'f2'
        error_prob: Probability that a call is replaced by a different genotype
        missing_prob: Probability that a call is missing
        qtl: (marker name, additive effect per B allele) pairs; when given a
            phenotype column 'pheno' is simulated
        noise_sd: Residual standard deviation of the phenotype
        seed: Random seed

    Returns:
        Cross
    """
    cross_type = check_cross_type(cross_type)
    if n_ind < 1:
        raise ValidationError("n_ind must be at least 1")
    if not (0.0 <= error_prob < 1.0 and 0.0 <= missing_prob < 1.0):
        raise ValidationError("error_prob and missing_prob must be in [0, 1)")
    rng = np.random.default_rng(seed)

    blocks = []
    for chrom in genetic_map.chrom_names:
        rf = dist_to_rf(np.diff(genetic_map.chrom_positions(chrom)), 'haldane')
        if cross_type == 'f2':
            block = _sim_chromatids(n_ind, rf, rng) + _sim_chromatids(n_ind, rf, rng)
        elif cross_type == 'bc':
            block = _sim_chromatids(n_ind, rf, rng)
        else:
            block = 2 * _sim_chromatids(n_ind, _ri_rate(cross_type, rf), rng)
        blocks.append(block.astype(np.float64))
    true_geno = np.concatenate(blocks, axis=1)
    names = [m for chrom in genetic_map.chrom_names for m in genetic_map.chrom_markers(chrom)]
    geno = true_geno.copy()

    if error_prob > 0:
        states = genotype_states(cross_type)
        errors = rng.random(geno.shape) < error_prob
        for i, j in zip(*np.nonzero(errors)):
            others = states[states != geno[i, j]]
            geno[i, j] = rng.choice(others)
    if missing_prob > 0:
        geno[rng.random(geno.shape) < missing_prob] = np.nan

    ids = [f"ind{i + 1}" for i in range(n_ind)]
    pheno = None
    if qtl:
        index = {name: j for j, name in enumerate(names)}
        y = rng.normal(0.0, noise_sd, size=n_ind)
        for marker, effect in qtl:
            if marker not in index:
                raise ValidationError(f"QTL marker {marker} is not on the map")
            y = y + effect * true_geno[:, index[marker]]
        pheno = pd.DataFrame({'pheno': y}, index=ids)

    matrix = GenotypeMatrix(geno, individual_ids=ids, marker_names=names)
    return Cross(matrix, genetic_map, cross_type=cross_type, pheno=pheno)
