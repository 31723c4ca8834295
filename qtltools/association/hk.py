"""
Haley-Knott regression genome scan

Each tested position regresses the phenotype columns on the genotype
probabilities at that position; the LOD score compares the residual sum of
squares with the intercept-only model:

    LOD = n/2 * log10(RSS0 / RSS1)

A residual sum of squares that is zero up to floating point precision yields
an infinite LOD (a perfectly separable phenotype).
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..core.cross import Cross
from ..utils.data_types import GenoProb, ScanResult
from ..utils.errors import PrecomputationError, ValidationError


def _hk_lod(X: np.ndarray, Y: np.ndarray) -> np.ndarray:
    """LOD scores for several phenotype columns sharing one design matrix"""
    n = X.shape[0]
    centered = Y - Y.mean(axis=0, keepdims=True)
    rss0 = np.sum(centered * centered, axis=0)
    beta = np.linalg.lstsq(X, Y, rcond=None)[0]
    resid = Y - X @ beta
    rss1 = np.sum(resid * resid, axis=0)
    rss1 = np.where(rss1 <= np.finfo(np.float64).eps * rss0, 0.0, rss1)
    with np.errstate(divide='ignore', invalid='ignore'):
        lod = (n / 2.0) * np.log10(rss0 / rss1)
    lod = np.where(rss0 > 0, lod, 0.0)
    return np.maximum(np.nan_to_num(lod, nan=0.0, posinf=np.inf), 0.0)


def _group_by_missing(values: np.ndarray) -> Dict[bytes, Tuple[np.ndarray, List[int]]]:
    """Group phenotype columns by their pattern of observed individuals"""
    groups: Dict[bytes, Tuple[np.ndarray, List[int]]] = {}
    observed = ~np.isnan(values)
    for j in range(values.shape[1]):
        key = observed[:, j].tobytes()
        if key not in groups:
            groups[key] = (observed[:, j], [])
        groups[key][1].append(j)
    return groups


def _prepare_pheno(pheno: Union[pd.DataFrame, np.ndarray], ids: List[str]) -> pd.DataFrame:
    if isinstance(pheno, pd.Series):
        pheno = pheno.to_frame()
    if isinstance(pheno, np.ndarray):
        values = pheno.reshape(len(pheno), -1) if pheno.ndim == 1 else pheno
        if values.shape[0] != len(ids):
            raise ValidationError("Phenotype rows must equal the number of individuals")
        return pd.DataFrame(values, index=ids, columns=[f"pheno{j + 1}" for j in range(values.shape[1])])
    if not isinstance(pheno, pd.DataFrame):
        raise ValidationError("Phenotypes must be a DataFrame or array")
    frame = pheno.copy()
    frame.index = frame.index.astype(str)
    if set(frame.index) != set(ids):
        raise ValidationError("Phenotype IDs must match the individuals in the cross")
    frame = frame.loc[ids]
    frame.columns = [str(c) for c in frame.columns]
    return frame.apply(pd.to_numeric, errors='coerce')


def haley_knott_scan(genoprob: GenoProb,
                     pheno: pd.DataFrame,
                     chromosomes: Optional[Sequence[Union[str, int]]] = None) -> ScanResult:
    """Haley-Knott regression scan over a grid of genotype probabilities

    Args:
        genoprob: Genotype probabilities
        pheno: Phenotype columns (individuals × traits) aligned to genoprob rows
        chromosomes: Restrict the scan to these chromosomes (default: all)

    Returns:
        ScanResult with one LOD column per phenotype column
    """
    chroms = genoprob.chromosomes if chromosomes is None else [str(c) for c in chromosomes]
    for chrom in chroms:
        if chrom not in genoprob:
            raise ValidationError(f"Chromosome {chrom} has no genotype probabilities")

    values = pheno.to_numpy(dtype=np.float64)
    columns = [str(c) for c in pheno.columns]
    groups = _group_by_missing(values)

    frames = []
    marker_flags = []
    for chrom in chroms:
        cg = genoprob[chrom]
        n_pos = cg.n_positions
        lods = np.zeros((n_pos, len(columns)))
        for j in range(n_pos):
            probs = cg.probs[:, j, :]
            X = np.column_stack([np.ones(probs.shape[0]), probs[:, 1:]])
            for rows, cols in groups.values():
                if rows.sum() < 2:
                    lods[j, cols] = np.nan
                    continue
                lods[j, cols] = _hk_lod(X[rows], values[rows][:, cols])
        frame = pd.DataFrame(lods, columns=columns)
        frame.insert(0, 'LOCUS', cg.loci)
        frame.insert(0, 'POS', cg.positions)
        frame.insert(0, 'CHROM', chrom)
        frames.append(frame)
        marker_flags.append(cg.is_marker)

    data = pd.concat(frames, ignore_index=True)
    return ScanResult(data, columns, is_marker=np.concatenate(marker_flags), method='hk')


def scanone(cross: Cross,
            pheno: Optional[Union[pd.DataFrame, np.ndarray, Sequence[str]]] = None,
            chromosomes: Optional[Sequence[Union[str, int]]] = None,
            method: str = 'hk',
            backend=None) -> ScanResult:
    """Single-QTL genome scan

    Args:
        cross: Cross with genotype probabilities
        pheno: Phenotype table, array, or names of columns of ``cross.pheno``
            (default: every phenotype column of the cross)
        chromosomes: Chromosomes to scan (default: all)
        method: Scan method; only 'hk' (Haley-Knott regression) is available
        backend: Optional backend implementing the regression-scan oracle

    Returns:
        ScanResult
    """
    from ..backend import get_backend

    if pheno is None or (isinstance(pheno, (list, tuple)) and all(isinstance(p, str) for p in pheno)):
        if cross.pheno is None:
            raise ValidationError("Cross has no phenotypes to scan")
        pheno = cross.pheno if pheno is None else cross.pheno[list(pheno)]
    return get_backend(backend).scan(cross, pheno, chromosomes=chromosomes, method=method)


def check_scan_inputs(cross: Cross, pheno, method: str) -> pd.DataFrame:
    """Validate a scan request and return phenotypes aligned to the cross"""
    if method != 'hk':
        raise ValidationError(f"Unsupported scan method '{method}'; only 'hk' is available")
    if not cross.has_genoprob:
        raise PrecomputationError("Genotype probabilities are required; run calc_genoprob first")
    frame = _prepare_pheno(pheno, cross.individual_ids)
    if frame.shape[1] == 0:
        raise ValidationError("No phenotype columns to scan")
    return frame
