"""
Pairwise recombination fraction estimation between markers
"""

import numpy as np
import pandas as pd
from scipy import optimize
from scipy.special import xlogy
from typing import List, Tuple

from ..core.cross import Cross
from ..utils.errors import ValidationError
from ..utils.stats import missing_mask
from .hmm import _ri_rate_inverse, initial_probs, transition_matrices

LOG10 = np.log(10.0)


class RecombinationFractionMatrix:
    """Symmetric marker × marker recombination fractions with matching LOD scores

    Pairs on different chromosomes are NaN unless they were estimated
    explicitly.
    """

    def __init__(self, rf: pd.DataFrame, lod: pd.DataFrame, cross_type: str):
        if list(rf.index) != list(rf.columns):
            raise ValidationError("Recombination fraction matrix must be square with matching labels")
        self._rf = rf
        self._lod = lod
        self.cross_type = cross_type

    @property
    def marker_names(self) -> List[str]:
        return [str(m) for m in self._rf.index]

    @property
    def rf(self) -> pd.DataFrame:
        return self._rf.copy()

    @property
    def lod(self) -> pd.DataFrame:
        return self._lod.copy()

    def get(self, marker1: str, marker2: str) -> float:
        return float(self._rf.at[str(marker1), str(marker2)])

    def get_lod(self, marker1: str, marker2: str) -> float:
        return float(self._lod.at[str(marker1), str(marker2)])

    def to_numpy(self) -> np.ndarray:
        return self._rf.to_numpy(dtype=np.float64, copy=True)

    def to_long(self) -> pd.DataFrame:
        """Upper-triangle pairs as a long table [MARKER1, MARKER2, RF, LOD]"""
        names = self.marker_names
        rf = self._rf.to_numpy()
        lod = self._lod.to_numpy()
        i, j = np.triu_indices(len(names), k=1)
        keep = ~np.isnan(rf[i, j])
        return pd.DataFrame({
            'MARKER1': np.asarray(names, dtype=object)[i[keep]],
            'MARKER2': np.asarray(names, dtype=object)[j[keep]],
            'RF': rf[i, j][keep],
            'LOD': lod[i, j][keep],
        })


def _one_hot(genotypes: np.ndarray, states: np.ndarray) -> List[np.ndarray]:
    observed = ~missing_mask(genotypes)
    return [(observed & (genotypes == s)).astype(np.float64) for s in states]


def _two_state_block(genotypes: np.ndarray, cross_type: str, states: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Closed-form fractions for crosses with two genotype classes"""
    a, b = _one_hot(genotypes, states)
    n_valid = (a + b).T @ (a + b)
    n_rec = a.T @ b + b.T @ a
    with np.errstate(divide='ignore', invalid='ignore'):
        big_r = np.where(n_valid > 0, n_rec / np.maximum(n_valid, 1.0), np.nan)
    big_r_clipped = np.minimum(big_r, 0.5)
    loglik = xlogy(n_rec, big_r_clipped) + xlogy(n_valid - n_rec, 1.0 - big_r_clipped)
    loglik_null = n_valid * np.log(0.5)
    lod = (loglik - loglik_null) / LOG10
    lod = np.where(big_r >= 0.5, 0.0, lod)
    rf = _ri_rate_inverse(cross_type, big_r_clipped)
    return rf, lod


def _pair_loglik(r: float, table: np.ndarray, cross_type: str, init: np.ndarray) -> float:
    trans = transition_matrices(cross_type, np.array([r]))[0]
    joint = init[:, np.newaxis] * trans
    return float(np.sum(xlogy(table, joint)))


def _f2_block(genotypes: np.ndarray, cross_type: str, states: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Bounded one-dimensional likelihood maximization for each F2 marker pair"""
    hot = _one_hot(genotypes, states)
    m = genotypes.shape[1]
    init = initial_probs(cross_type)
    rf = np.full((m, m), np.nan)
    lod = np.full((m, m), np.nan)
    for i in range(m):
        for j in range(i + 1, m):
            table = np.array([[hot[a][:, i] @ hot[b][:, j] for b in range(3)] for a in range(3)])
            if table.sum() == 0:
                continue
            result = optimize.minimize_scalar(
                lambda r: -_pair_loglik(r, table, cross_type, init),
                bounds=(0.0, 0.5),
                method='bounded',
                options={'xatol': 1e-6},
            )
            r_hat = float(result.x)
            ll_hat = -float(result.fun)
            ll_null = _pair_loglik(0.5, table, cross_type, init)
            rf[i, j] = rf[j, i] = r_hat
            lod[i, j] = lod[j, i] = max(ll_hat - ll_null, 0.0) / LOG10
    return rf, lod


def est_rf(cross: Cross, between_chromosomes: bool = False, verbose: bool = False) -> RecombinationFractionMatrix:
    """Estimate recombination fractions for all marker pairs

    Args:
        cross: Cross object
        between_chromosomes: Also estimate pairs on different chromosomes
        verbose: Print progress information

    Returns:
        RecombinationFractionMatrix with markers in map order
    """
    names = cross.marker_names
    m = len(names)
    rf_all = np.full((m, m), np.nan)
    lod_all = np.full((m, m), np.nan)
    states = cross.states
    block_fn = _f2_block if cross.cross_type == 'f2' else _two_state_block

    if between_chromosomes:
        blocks = [np.arange(m)]
    else:
        chrom_values = cross.genetic_map.chromosomes.to_numpy()
        blocks = [np.flatnonzero(chrom_values == chrom) for chrom in cross.chromosomes]

    for idx in blocks:
        if verbose:
            print(f"   Estimating pairwise recombination fractions for {len(idx)} markers")
        geno = cross.geno.get_markers([names[i] for i in idx])
        rf_block, lod_block = block_fn(geno, cross.cross_type, states)
        rf_all[np.ix_(idx, idx)] = rf_block
        lod_all[np.ix_(idx, idx)] = lod_block

    np.fill_diagonal(rf_all, 0.0)
    np.fill_diagonal(lod_all, np.nan)
    return RecombinationFractionMatrix(
        pd.DataFrame(rf_all, index=names, columns=names),
        pd.DataFrame(lod_all, index=names, columns=names),
        cross.cross_type,
    )
