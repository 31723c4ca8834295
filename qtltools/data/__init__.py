"""
Data loading and simulation
"""

from .loaders import (
    load_cross_csv,
    load_map_file,
    load_marker_matrix,
    load_phenotype_file,
    write_cross_csv,
)
from .simulate import sim_cross, sim_map

__all__ = [
    'load_cross_csv',
    'load_map_file',
    'load_marker_matrix',
    'load_phenotype_file',
    'write_cross_csv',
    'sim_cross',
    'sim_map',
]
