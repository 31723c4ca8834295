"""
Similarity-based pruning of near-identical adjacent markers
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Tuple

from ..core.cross import Cross
from ..matrix.rf import RecombinationFractionMatrix, est_rf
from ..utils.errors import ValidationError


def _clusters(names: List[str], rf: RecombinationFractionMatrix, rf_threshold: float) -> List[List[str]]:
    """Group runs of adjacent markers that are all within ``rf_threshold`` of each other"""
    clusters = [[names[0]]]
    for name in names[1:]:
        values = np.array([rf.get(member, name) for member in clusters[-1]])
        if not np.isnan(values).any() and np.all(values < rf_threshold):
            clusters[-1].append(name)
        else:
            clusters.append([name])
    return clusters


def drop_similar_markers(cross: Cross,
                         rf_threshold: float = 0.01,
                         rf: Optional[RecombinationFractionMatrix] = None,
                         verbose: bool = False) -> Tuple[Cross, pd.DataFrame]:
    """Drop markers that are nearly identical to a neighbour

    Each chromosome is walked in map order. A marker joins the current
    cluster only when its recombination fraction with every member is
    below ``rf_threshold``, so each dropped marker lies within the threshold
    of the kept one. The member with the least missing data (first in map
    order on ties) represents the cluster; the others are dropped.

    Args:
        cross: Cross object
        rf_threshold: Recombination fraction below which markers are merged
        rf: Precomputed recombination fractions (estimated when omitted)
        verbose: Print the number of dropped markers

    Returns:
        Tuple of (pruned cross, DataFrame [MARKER, KEPT_MARKER, CHROM, RF])
    """
    if not 0 <= rf_threshold <= 0.5:
        raise ValidationError("rf_threshold must be in [0, 0.5]")
    if rf is None:
        rf = est_rf(cross)
    missing = dict(zip(cross.geno.marker_names, cross.geno.missing_rate()))

    keep = []
    records = []
    for chrom in cross.chromosomes:
        names = cross.genetic_map.chrom_markers(chrom)
        for cluster in _clusters(names, rf, rf_threshold):
            rates = np.array([missing[m] for m in cluster])
            rep = cluster[int(np.argmin(rates))]
            keep.append(rep)
            for name in cluster:
                if name != rep:
                    records.append({'MARKER': name, 'KEPT_MARKER': rep, 'CHROM': chrom,
                                    'RF': rf.get(name, rep)})

    dropped = pd.DataFrame(records, columns=['MARKER', 'KEPT_MARKER', 'CHROM', 'RF'])
    if verbose:
        print(f"   Dropped {len(dropped)} of {cross.n_markers} markers (rf < {rf_threshold})")
    if dropped.empty:
        return cross, dropped
    return cross.subset_markers(keep), dropped
