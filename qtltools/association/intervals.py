"""
LOD-drop support intervals, QTL interval tables and candidate-gene lookup
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Tuple, Union

from ..utils.data_types import GeneticMap, ScanResult
from ..utils.errors import ValidationError


def lod_interval_bounds(positions: np.ndarray,
                        lods: np.ndarray,
                        drop: float = 1.5,
                        is_marker: Optional[np.ndarray] = None,
                        expand_to_markers: bool = False) -> Tuple[int, int, int]:
    """Indices (low, peak, high) of a LOD-drop interval on one chromosome

    Starting at the first maximum, each side walks outward to the first
    position whose LOD is at least ``drop`` below the peak. When no such
    position exists the chromosome end bounds the interval. With
    ``expand_to_markers`` the bounds are moved outward to the nearest true
    markers.
    """
    if drop <= 0:
        raise ValidationError("drop must be positive")
    lods = np.asarray(lods, dtype=np.float64)
    n = len(lods)
    if n == 0:
        raise ValidationError("Cannot compute an interval on an empty scan")
    values = np.where(np.isnan(lods), -np.inf, lods)
    peak = int(np.argmax(values))
    peak_lod = values[peak]

    if np.isposinf(peak_lod):
        dropped = ~np.isposinf(values)
    else:
        dropped = values <= peak_lod - drop

    low = 0
    for i in range(peak - 1, -1, -1):
        if dropped[i]:
            low = i
            break
    high = n - 1
    for i in range(peak + 1, n):
        if dropped[i]:
            high = i
            break

    if expand_to_markers and is_marker is not None:
        is_marker = np.asarray(is_marker, dtype=bool)
        left = np.flatnonzero(is_marker[:low + 1])
        if left.size:
            low = int(left[-1])
        right = np.flatnonzero(is_marker[high:])
        if right.size:
            high = int(high + right[0])

    return low, peak, high


def lod_interval(scan: ScanResult,
                 column: Optional[str] = None,
                 chrom: Optional[Union[str, int]] = None,
                 drop: float = 1.5,
                 expand_to_markers: bool = False) -> pd.DataFrame:
    """LOD support interval around the peak of one chromosome

    Args:
        scan: Genome scan result
        column: LOD column (may be omitted when only one trait was scanned)
        chrom: Chromosome; defaults to the chromosome holding the genome-wide peak
        drop: LOD drop defining the interval
        expand_to_markers: Snap interval bounds outward to true markers

    Returns:
        Three-row DataFrame (low bound, peak, high bound) with the scan columns
    """
    if chrom is None:
        chrom = scan.peak(column)[0]
    rows = scan.chrom_rows(chrom)
    data = scan.to_dataframe()
    column = scan.column_name(column)
    low, peak, high = lod_interval_bounds(
        data['POS'].to_numpy()[rows],
        data[column].to_numpy()[rows],
        drop=drop,
        is_marker=scan.is_marker[rows],
        expand_to_markers=expand_to_markers,
    )
    out = data.iloc[rows[[low, peak, high]]][['CHROM', 'POS', 'LOCUS', column]]
    return out.reset_index(drop=True)


def qtl_interval_table(scan: ScanResult,
                       columns: Optional[Sequence[str]] = None,
                       threshold: float = 3.0,
                       drop: float = 1.5,
                       expand_to_markers: bool = False) -> pd.DataFrame:
    """One row per (trait, chromosome) whose peak LOD reaches ``threshold``

    Returns:
        DataFrame with columns [TRAIT, CHROM, PEAK_POS, PEAK_LOD, PEAK_LOCUS,
        LOW_POS, HIGH_POS, LOW_LOCUS, HIGH_LOCUS]
    """
    columns = scan.lod_columns if columns is None else [str(c) for c in columns]
    records = []
    for column in columns:
        maxima = scan.max_by_chrom(column)
        for chrom, best in maxima.items():
            if not best >= threshold:
                continue
            interval = lod_interval(scan, column, chrom, drop=drop,
                                    expand_to_markers=expand_to_markers)
            records.append({
                'TRAIT': column,
                'CHROM': str(chrom),
                'PEAK_POS': float(interval['POS'].iat[1]),
                'PEAK_LOD': float(interval[column].iat[1]),
                'PEAK_LOCUS': interval['LOCUS'].iat[1],
                'LOW_POS': float(interval['POS'].iat[0]),
                'HIGH_POS': float(interval['POS'].iat[2]),
                'LOW_LOCUS': interval['LOCUS'].iat[0],
                'HIGH_LOCUS': interval['LOCUS'].iat[2],
            })
    return pd.DataFrame(records, columns=['TRAIT', 'CHROM', 'PEAK_POS', 'PEAK_LOD', 'PEAK_LOCUS',
                                          'LOW_POS', 'HIGH_POS', 'LOW_LOCUS', 'HIGH_LOCUS'])


def cm_to_bp(genetic_map: GeneticMap, chrom: Union[str, int], cm: np.ndarray) -> np.ndarray:
    """Linear interpolation of physical position from linkage position

    Positions outside the anchored markers are clamped to the terminal
    anchors.
    """
    if not genetic_map.has_physical_positions:
        raise ValidationError("Genetic map has no PHYS_POS column")
    frame = genetic_map.chrom_frame(chrom)
    anchors = frame[['POS', 'PHYS_POS']].apply(pd.to_numeric, errors='coerce').dropna()
    if anchors.empty:
        raise ValidationError(f"Chromosome {chrom} has no markers with physical positions")
    anchors = anchors.sort_values(['POS', 'PHYS_POS'], kind='mergesort')
    return np.interp(np.asarray(cm, dtype=np.float64),
                     anchors['POS'].to_numpy(dtype=np.float64),
                     anchors['PHYS_POS'].to_numpy(dtype=np.float64))


def _standardize_gene_table(genes: pd.DataFrame) -> pd.DataFrame:
    renames = {}
    id_candidates = []
    for col in genes.columns:
        key = str(col).lower()
        if key in ('chr', 'chrom', 'chromosome', 'seqid', 'seqname'):
            renames[col] = 'chr'
        elif key in ('start', 'end', 'gene_id'):
            renames[col] = key
        elif key in ('id', 'gene', 'name'):
            id_candidates.append(col)
    if 'gene_id' not in renames.values() and id_candidates:
        renames[id_candidates[0]] = 'gene_id'
    genes = genes.rename(columns=renames)
    for col in ('chr', 'start', 'end'):
        if col not in genes.columns:
            raise ValidationError(f"Gene table is missing required column: {col}")
    genes = genes.copy()
    genes['chr'] = genes['chr'].astype(str)
    if 'gene_id' not in genes.columns:
        genes['gene_id'] = [f"gene{i + 1}" for i in range(len(genes))]
    return genes


def find_genes_in_intervals(intervals: pd.DataFrame,
                            genes: pd.DataFrame,
                            genetic_map: GeneticMap) -> pd.DataFrame:
    """Genes overlapping the physical span of each QTL interval

    Args:
        intervals: Interval table (from ``qtl_interval_table``) with columns
            CHROM, LOW_POS and HIGH_POS (cM); TRAIT is carried through if present
        genes: Gene table with chr, start, end and gene_id columns
        genetic_map: Map with a PHYS_POS column used to convert cM to bp

    Returns:
        DataFrame with one row per (interval, gene) overlap
    """
    for col in ('CHROM', 'LOW_POS', 'HIGH_POS'):
        if col not in intervals.columns:
            raise ValidationError(f"Interval table is missing required column: {col}")
    genes = _standardize_gene_table(genes)
    columns = ['TRAIT', 'CHROM', 'LOW_POS', 'HIGH_POS', 'LOW_BP', 'HIGH_BP'] + \
        [c for c in genes.columns if c != 'chr']

    pieces: List[pd.DataFrame] = []
    for _, row in intervals.iterrows():
        chrom = str(row['CHROM'])
        lo_bp, hi_bp = cm_to_bp(genetic_map, chrom, [row['LOW_POS'], row['HIGH_POS']])
        lo_bp, hi_bp = min(lo_bp, hi_bp), max(lo_bp, hi_bp)
        on_chrom = genes[genes['chr'] == chrom]
        hits = on_chrom[(on_chrom['start'] <= hi_bp) & (on_chrom['end'] >= lo_bp)]
        if hits.empty:
            continue
        hits = hits.drop(columns=['chr']).copy()
        hits.insert(0, 'HIGH_BP', hi_bp)
        hits.insert(0, 'LOW_BP', lo_bp)
        hits.insert(0, 'HIGH_POS', float(row['HIGH_POS']))
        hits.insert(0, 'LOW_POS', float(row['LOW_POS']))
        hits.insert(0, 'CHROM', chrom)
        hits.insert(0, 'TRAIT', row['TRAIT'] if 'TRAIT' in intervals.columns else None)
        pieces.append(hits)

    if not pieces:
        return pd.DataFrame(columns=columns)
    return pd.concat(pieces, ignore_index=True)[columns]
