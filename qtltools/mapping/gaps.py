"""
Candidate markers for filling large gaps in a genetic map
"""

import numpy as np
import pandas as pd
from typing import Optional, Union

from ..core.cross import Cross
from ..utils.data_types import GeneticMap, InferredPositions
from ..utils.errors import ValidationError

GAP_COLUMNS = ['CHROM', 'GAP_START', 'GAP_END', 'GAP_SIZE', 'LEFT_MARKER', 'RIGHT_MARKER',
               'MARKER', 'POS', 'LOD', 'SPLIT_SCORE']


def fill_gaps_in_map(cross_or_map: Union[Cross, GeneticMap],
                     inferred: Union[InferredPositions, pd.DataFrame],
                     min_gap: float = 10.0,
                     min_lod: float = 3.0,
                     max_per_gap: Optional[int] = None) -> pd.DataFrame:
    """Find inferred markers that fall inside large map gaps

    Candidates are ranked within each gap by SPLIT_SCORE, which is 1 for a
    marker at the gap midpoint and 0 at either flanking marker.

    Args:
        cross_or_map: Cross or GeneticMap defining the gaps
        inferred: Output of ``infer_marker_pos`` (object or its DataFrame)
        min_gap: Smallest interval (cM) considered a gap
        min_lod: Minimum LOD of a candidate placement
        max_per_gap: Keep at most this many candidates per gap

    Returns:
        DataFrame with one row per (gap, candidate marker)
    """
    if min_gap <= 0:
        raise ValidationError("min_gap must be positive")
    genetic_map = cross_or_map.genetic_map if isinstance(cross_or_map, Cross) else cross_or_map
    placed = inferred.to_dataframe() if isinstance(inferred, InferredPositions) else inferred.copy()
    for col in ('MARKER', 'CHROM', 'POS', 'LOD'):
        if col not in placed.columns:
            raise ValidationError(f"Inferred positions are missing required column: {col}")
    placed['CHROM'] = placed['CHROM'].astype(str)
    placed = placed[placed['LOD'] >= min_lod]

    pieces = []
    for chrom in genetic_map.chrom_names:
        names = genetic_map.chrom_markers(chrom)
        positions = genetic_map.chrom_positions(chrom)
        on_chrom = placed[placed['CHROM'] == chrom]
        for i in np.flatnonzero(np.diff(positions) > min_gap):
            start, end = positions[i], positions[i + 1]
            size = end - start
            inside = on_chrom[(on_chrom['POS'] > start) & (on_chrom['POS'] < end)]
            if inside.empty:
                continue
            mid = 0.5 * (start + end)
            hits = pd.DataFrame({
                'CHROM': chrom,
                'GAP_START': start,
                'GAP_END': end,
                'GAP_SIZE': size,
                'LEFT_MARKER': names[i],
                'RIGHT_MARKER': names[i + 1],
                'MARKER': inside['MARKER'].to_numpy(),
                'POS': inside['POS'].to_numpy(dtype=np.float64),
                'LOD': inside['LOD'].to_numpy(dtype=np.float64),
            })
            hits['SPLIT_SCORE'] = 1.0 - np.abs(hits['POS'] - mid) / (size / 2.0)
            hits = hits.sort_values(['SPLIT_SCORE', 'LOD'], ascending=[False, False], kind='mergesort')
            if max_per_gap is not None:
                hits = hits.head(max_per_gap)
            pieces.append(hits)

    if not pieces:
        return pd.DataFrame(columns=GAP_COLUMNS)
    return pd.concat(pieces, ignore_index=True)[GAP_COLUMNS]
