"""
QTL genome scans and interval extraction
"""

from .hk import haley_knott_scan, scanone
from .intervals import (
    find_genes_in_intervals,
    lod_interval,
    lod_interval_bounds,
    qtl_interval_table,
)

__all__ = [
    'haley_knott_scan',
    'scanone',
    'lod_interval',
    'lod_interval_bounds',
    'qtl_interval_table',
    'find_genes_in_intervals',
]
