"""
Spread co-located markers so every chromosome has strictly increasing positions
"""

import numpy as np
from typing import Union

from ..core.cross import Cross
from ..utils.data_types import GeneticMap
from ..utils.errors import ValidationError


def jitter_map(cross_or_map: Union[Cross, GeneticMap], amount: float = 1e-6) -> Union[Cross, GeneticMap]:
    """Add ``amount * k`` to the k-th marker of every chromosome holding tied positions

    Marker order is unchanged. Chromosomes without ties are left as they are.

    Returns:
        Object of the same type as the input (a Cross loses its genotype probabilities
        when its map changes)
    """
    if not amount > 0:
        raise ValidationError("Jitter amount must be positive")
    genetic_map = cross_or_map.genetic_map if isinstance(cross_or_map, Cross) else cross_or_map
    if not isinstance(genetic_map, GeneticMap):
        raise ValidationError("Expected a Cross or GeneticMap")

    new_map = genetic_map
    changed = False
    for chrom in genetic_map.chrom_names:
        positions = genetic_map.chrom_positions(chrom)
        if len(positions) < 2 or np.all(np.diff(positions) > 0):
            continue
        jittered = positions + amount * np.arange(len(positions))
        new_map = new_map.with_chrom_order(chrom, genetic_map.chrom_markers(chrom), jittered)
        changed = True

    if isinstance(cross_or_map, Cross):
        return cross_or_map.with_map(new_map) if changed else cross_or_map
    return new_map
