"""
Genetic map construction and refinement
"""

from .subset import pick_marker_subset
from .similar import drop_similar_markers
from .jitter import jitter_map
from .ripple import ripple, RippleResult, RippleDegradation
from .est_map import est_map
from .infer import infer_marker_pos
from .gaps import fill_gaps_in_map

__all__ = [
    'pick_marker_subset',
    'drop_similar_markers',
    'jitter_map',
    'ripple',
    'RippleResult',
    'RippleDegradation',
    'est_map',
    'infer_marker_pos',
    'fill_gaps_in_map',
]
