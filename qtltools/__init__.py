"""
qtltools: QTL mapping helpers for experimental crosses

Genetic-map cleanup (marker subsets, similarity pruning, ripple reordering),
Haley-Knott genome scans, LOD-drop intervals, candidate-gene lookup and
coarse-to-fine placement of new markers on an existing map.
"""

__version__ = "0.1.0"
__author__ = "qtltools Development Team"

from .core.cross import Cross
from .utils.data_types import GeneticMap, GenotypeMatrix, GenoProb, ScanResult, MapEstimate
from .utils.errors import ValidationError, PrecomputationError, ConvergenceWarning, PlacementWarning
from .matrix.genoprob import calc_genoprob
from .matrix.rf import est_rf
from .association.hk import scanone
from .association.intervals import lod_interval, qtl_interval_table, find_genes_in_intervals
from .mapping.subset import pick_marker_subset
from .mapping.similar import drop_similar_markers
from .mapping.jitter import jitter_map
from .mapping.ripple import ripple
from .mapping.est_map import est_map
from .mapping.infer import infer_marker_pos
from .mapping.gaps import fill_gaps_in_map
from .data.loaders import load_cross_csv, load_map_file, load_marker_matrix
from .data.simulate import sim_cross, sim_map
from .backend import get_backend, HMMBackend

__all__ = [
    'Cross',
    'GeneticMap',
    'GenotypeMatrix',
    'GenoProb',
    'ScanResult',
    'MapEstimate',
    'ValidationError',
    'PrecomputationError',
    'ConvergenceWarning',
    'PlacementWarning',
    'calc_genoprob',
    'est_rf',
    'scanone',
    'lod_interval',
    'qtl_interval_table',
    'find_genes_in_intervals',
    'pick_marker_subset',
    'drop_similar_markers',
    'jitter_map',
    'ripple',
    'est_map',
    'infer_marker_pos',
    'fill_gaps_in_map',
    'load_cross_csv',
    'load_map_file',
    'load_marker_matrix',
    'sim_cross',
    'sim_map',
    'get_backend',
    'HMMBackend',
]
