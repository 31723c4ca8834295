"""
Coarse-to-fine inference of the map position of new markers

The genotype codes of each queried marker are treated as a phenotype. A
Haley-Knott scan against a sparse subset of map markers picks the best
chromosome, then a dense pseudomarker scan of that chromosome refines the
position. Markers sharing a coarse chromosome are refined in one scan.
"""

import warnings
import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Union

from ..association.intervals import lod_interval_bounds
from ..core.cross import Cross
from ..utils.data_types import InferredPosition, InferredPositions
from ..utils.errors import PlacementWarning, PrecomputationError, ValidationError
from ..utils.stats import jitter_values
from .subset import pick_marker_subset

LOD_TOLERANCE = 1e-6


def _align_marker_matrix(cross: Cross, marker_matrix: Union[pd.DataFrame, np.ndarray]) -> pd.DataFrame:
    """Marker matrix as a DataFrame indexed by the cross IDs, with named columns"""
    ids = cross.individual_ids
    if isinstance(marker_matrix, pd.DataFrame):
        frame = marker_matrix.copy()
        if frame.shape[0] != len(ids):
            raise ValidationError(
                f"Marker matrix has {frame.shape[0]} rows but the cross has {len(ids)} individuals"
            )
        index = [str(i) for i in frame.index]
        if isinstance(frame.index, pd.RangeIndex) and set(index) != set(ids):
            warnings.warn("Marker matrix has no individual IDs; assuming rows follow the cross order")
            frame.index = ids
        elif set(index) != set(ids):
            raise ValidationError("Marker matrix row names must match the individual IDs of the cross")
        else:
            frame.index = index
            if index != ids:
                warnings.warn("Marker matrix rows are not in cross order; realigning by ID")
                frame = frame.loc[ids]
        if isinstance(frame.columns, pd.RangeIndex):
            warnings.warn(f"No marker names provided; assigning names m1..m{frame.shape[1]}")
            frame.columns = [f"m{j + 1}" for j in range(frame.shape[1])]
    elif isinstance(marker_matrix, np.ndarray):
        values = marker_matrix.reshape(-1, 1) if marker_matrix.ndim == 1 else marker_matrix
        if values.ndim != 2 or values.shape[0] != len(ids):
            raise ValidationError(
                f"Marker matrix has {values.shape[0]} rows but the cross has {len(ids)} individuals"
            )
        warnings.warn("Marker matrix has no individual IDs; assuming rows follow the cross order")
        warnings.warn(f"No marker names provided; assigning names m1..m{values.shape[1]}")
        frame = pd.DataFrame(values, index=ids, columns=[f"m{j + 1}" for j in range(values.shape[1])])
    else:
        raise ValidationError("marker_matrix must be a DataFrame or numpy array")

    if frame.shape[1] == 0:
        raise ValidationError("Marker matrix contains no markers")
    frame.columns = [str(c) for c in frame.columns]
    if frame.columns.duplicated().any():
        raise ValidationError("Marker names in the marker matrix must be unique")
    frame = frame.apply(pd.to_numeric, errors='coerce').astype(np.float64)
    frame = frame.replace(-9.0, np.nan)
    sparse = frame.columns[frame.notna().sum() < 2]
    if len(sparse) > 0:
        raise ValidationError(f"Markers with fewer than 2 observed genotypes: {', '.join(sparse)}")
    return frame


def _chrom_margin(maxima: pd.Series, chrom: str) -> float:
    others = maxima.drop(index=chrom)
    if others.empty:
        return np.inf
    best = maxima[chrom]
    runner_up = others.max()
    if np.isposinf(best) and np.isposinf(runner_up):
        return 0.0
    return float(best - runner_up)


def infer_marker_pos(cross: Cross,
                     marker_matrix: Union[pd.DataFrame, np.ndarray],
                     initial_geno_density: float = 20.0,
                     final_step: float = 0.1,
                     est_ci: bool = False,
                     drop: float = 1.5,
                     expand_to_markers: bool = False,
                     jitter_markers: bool = True,
                     jitter_amount: float = 0.001,
                     min_chrom_margin: float = 1.0,
                     strict: bool = False,
                     seed: Optional[int] = None,
                     backend=None,
                     verbose: bool = True) -> InferredPositions:
    """Find the most likely map position of each column of ``marker_matrix``

    Args:
        cross: Cross carrying genotype probabilities (their error_prob, off_end
            and map_function are reused)
        marker_matrix: Numeric genotype codes (individuals × new markers)
        initial_geno_density: Marker spacing (cM) of the coarse scan subset
        final_step: Pseudomarker spacing (cM) of the fine scan
        est_ci: Estimate a LOD-drop interval around each position
        drop: LOD drop of the interval
        expand_to_markers: Snap interval bounds outward to map markers
        jitter_markers: Add small uniform noise to the codes so LOD scores stay finite
        jitter_amount: Amplitude of the noise
        min_chrom_margin: Minimum coarse LOD advantage of the best chromosome
            over the runner-up before the placement is called ambiguous
        strict: Raise instead of warning on ambiguous placements
        seed: Seed for jitter and marker-subset tie breaking
        backend: Backend implementing the probability and scan oracles
        verbose: Print progress

    Returns:
        InferredPositions
    """
    from ..backend import get_backend

    if not cross.has_genoprob:
        raise PrecomputationError("Must run calc_genoprob on the cross before inferring marker positions")
    if final_step <= 0:
        raise ValidationError("final_step must be positive")
    backend = get_backend(backend)
    settings = cross.genoprob.settings()

    markers = _align_marker_matrix(cross, marker_matrix)
    names = list(markers.columns)
    if jitter_markers:
        rng = np.random.default_rng(seed)
        markers = pd.DataFrame(jitter_values(markers.to_numpy(), jitter_amount, rng),
                               index=markers.index, columns=names)

    if verbose:
        print("Preparing cross objects for initial and final scans")
    subset = pick_marker_subset(cross, min_distance=initial_geno_density,
                                na_weight=2.0, balance_weight=1.0, seed=seed)
    icross = backend.calc_genoprob(cross.subset_markers(subset), step=0.0, **settings)
    fcross = backend.calc_genoprob(cross.clean(), step=final_step, **settings)

    if verbose:
        print("Running initial scan to find best chromosome and position")
    coarse = backend.scan(icross, markers, method='hk')
    coarse_hits: Dict[str, tuple] = {}
    for name in names:
        chrom, pos, lod, _ = coarse.peak(name)
        margin = _chrom_margin(coarse.max_by_chrom(name), chrom)
        if not margin >= min_chrom_margin:
            message = (f"Marker {name}: chromosome {chrom} leads the next best chromosome "
                       f"by only {margin:.2f} LOD")
            if strict:
                raise ValidationError(message)
            warnings.warn(message, PlacementWarning)
        coarse_hits[name] = (chrom, pos, lod, margin)

    if verbose:
        print("Running final scan to refine best position")
    entries: List[InferredPosition] = []
    chroms = list(dict.fromkeys(hit[0] for hit in coarse_hits.values()))
    for chrom in chroms:
        if verbose:
            print(f"   Analyzing chromosome {chrom}")
        phes = [name for name in names if coarse_hits[name][0] == chrom]
        fine = backend.scan(fcross, markers[phes], chromosomes=[chrom], method='hk')
        rows = fine.chrom_rows(chrom)
        positions = fine.to_dataframe()['POS'].to_numpy()[rows]

        for name in phes:
            c_chrom, c_pos, c_lod, margin = coarse_hits[name]
            _, pos, lod, _ = fine.peak(name, chrom)
            if lod < c_lod - LOD_TOLERANCE:
                warnings.warn(f"Marker {name}: fine scan peak ({lod:.3f}) is below the coarse "
                              f"peak ({c_lod:.3f}); reporting the coarse position", PlacementWarning)
                pos, lod = c_pos, c_lod

            low_ci = high_ci = None
            if est_ci:
                low, _, high = lod_interval_bounds(positions, fine.lod(name)[rows], drop=drop,
                                                   is_marker=fine.is_marker[rows],
                                                   expand_to_markers=expand_to_markers)
                low_ci = float(min(positions[low], pos))
                high_ci = float(max(positions[high], pos))

            entries.append(InferredPosition(
                marker_name=name, chrom=chrom, pos=float(pos), lod=float(lod),
                low_ci=low_ci, high_ci=high_ci,
                coarse_chrom=c_chrom, coarse_pos=float(c_pos), coarse_lod=float(c_lod),
                chrom_margin=float(margin),
            ))

    return InferredPositions(entries, chrom_order=cross.chromosomes, est_ci=est_ci)
