"""
Data loading utilities for crosses, maps, phenotypes and marker matrices
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Union, Optional, Dict, List, Sequence
import warnings

from ..core.cross import Cross
from ..utils.data_types import GeneticMap, GenotypeMatrix
from ..utils.errors import ValidationError
from ..utils.stats import check_cross_type

NA_VALUES = [
    '', 'NA', 'NaN', 'nan', 'NAN', 'na', 'N/A', 'n/a', 'Null', 'NULL',
    '.', '-', '--'
]

GENOTYPE_DOSAGE = {
    'bc': {'A': 0, 'H': 1},
    'dh': {'A': 0, 'B': 2},
    'riself': {'A': 0, 'B': 2},
    'risib': {'A': 0, 'B': 2},
    'f2': {'A': 0, 'H': 1, 'B': 2},
}

MAP_COLUMN_NAMES = {
    'marker': 'MARKER', 'Marker': 'MARKER', 'snp': 'MARKER', 'SNP': 'MARKER', 'id': 'MARKER', 'ID': 'MARKER',
    'Chr': 'CHROM', 'chr': 'CHROM', 'chrom': 'CHROM', 'chromosome': 'CHROM', 'lg': 'CHROM', 'LG': 'CHROM',
    'Pos': 'POS', 'pos': 'POS', 'position': 'POS', 'cM': 'POS', 'cm': 'POS',
    'bp': 'PHYS_POS', 'BP': 'PHYS_POS', 'phys_pos': 'PHYS_POS', 'physical_position': 'PHYS_POS',
}


def detect_file_format(filepath: Union[str, Path]) -> str:
    """Detect delimited file format based on extension and content

    Returns:
        'csv', 'tsv' or 'unknown'
    """
    filepath = Path(filepath)
    suffixes = [s.lower() for s in filepath.suffixes]
    if suffixes and suffixes[-1] == '.gz':
        suffixes = suffixes[:-1]
    if suffixes and suffixes[-1] == '.csv':
        return 'csv'
    if suffixes and suffixes[-1] in ('.tsv', '.txt'):
        return 'tsv'

    try:
        with open(filepath, 'r') as f:
            first_line = f.readline().strip()
    except (OSError, UnicodeDecodeError):
        return 'unknown'
    if '\t' in first_line and ',' not in first_line:
        return 'tsv'
    if ',' in first_line:
        return 'csv'
    return 'unknown'


def read_table(filepath: Union[str, Path], **kwargs) -> pd.DataFrame:
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    sep = '\t' if detect_file_format(filepath) == 'tsv' else ','
    return pd.read_csv(filepath, sep=sep, **kwargs)


def load_map_file(filepath: Union[str, Path]) -> GeneticMap:
    """Load genetic map file

    Args:
        filepath: Path to a CSV/TSV map with marker, chromosome and cM position
            columns (optionally a physical position column)

    Returns:
        GeneticMap object
    """
    df = read_table(filepath)
    for old_name, new_name in MAP_COLUMN_NAMES.items():
        if old_name in df.columns and new_name not in df.columns:
            df = df.rename(columns={old_name: new_name})
    return GeneticMap(df, metadata={'source': str(filepath)})


def load_phenotype_file(filepath: Union[str, Path],
                        trait_columns: Optional[List[str]] = None,
                        id_column: str = 'ID') -> pd.DataFrame:
    """Load phenotype file

    Args:
        filepath: Path to phenotype file
        trait_columns: Trait columns to keep (default: every numeric column)
        id_column: Name of ID column; the first column is used when absent

    Returns:
        DataFrame with ID and trait columns
    """
    df = read_table(filepath, na_values=NA_VALUES, keep_default_na=True)
    if id_column not in df.columns:
        first_col = df.columns[0]
        warnings.warn(f"No '{id_column}' column found; using first column '{first_col}' as ID.")
        id_column = first_col
    df = df.rename(columns={id_column: 'ID'})
    df['ID'] = df['ID'].astype(str)

    if trait_columns is None:
        trait_columns = [c for c in df.columns
                         if c != 'ID' and pd.api.types.is_numeric_dtype(df[c])]
    else:
        missing = [c for c in trait_columns if c not in df.columns]
        if missing:
            raise ValidationError(f"Trait columns not found in phenotype file: {missing}")
    return df[['ID'] + list(trait_columns)].copy()


def load_marker_matrix(filepath: Union[str, Path], id_column: str = 'ID') -> pd.DataFrame:
    """Load a numeric genotype matrix (individuals × new markers) for placement

    Returns:
        DataFrame indexed by individual ID with one column per marker
    """
    df = read_table(filepath, na_values=NA_VALUES, keep_default_na=True)
    if id_column not in df.columns:
        id_column = df.columns[0]
    df[id_column] = df[id_column].astype(str)
    df = df.set_index(id_column)
    df.index.name = 'ID'
    return df.apply(pd.to_numeric, errors='coerce').replace(-9, np.nan)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, float) and np.isnan(value)) or str(value).strip() == ''


def load_cross_csv(filepath: Union[str, Path],
                   cross_type: str = 'f2',
                   genotypes: Sequence[str] = ('A', 'H', 'B'),
                   na_strings: Sequence[str] = ('-', 'NA'),
                   id_column: Optional[str] = 'id') -> Cross:
    """Load a cross stored in the comma-delimited R/qtl layout

    Row 1 holds phenotype and marker names, row 2 the chromosome of each
    marker (blank for phenotypes) and, optionally, row 3 the marker positions
    in cM (blank for phenotypes). Remaining rows are individuals.

    Args:
        filepath: Path to the CSV file
        cross_type: Cross type of the population
        genotypes: Codes for the AA, AB and BB genotypes in the file
        na_strings: Codes for missing genotypes (in addition to blank cells)
        id_column: Phenotype column holding individual IDs (case-insensitive);
            IDs are generated when the column is absent

    Returns:
        Cross with genotypes, map and phenotypes
    """
    cross_type = check_cross_type(cross_type)
    raw = read_table(filepath, header=None, dtype=str, keep_default_na=False)
    if raw.shape[0] < 3:
        raise ValidationError("Cross file needs a header row, a chromosome row and at least one individual")

    names = [str(v).strip() for v in raw.iloc[0]]
    chrom_row = raw.iloc[1].tolist()
    is_marker = np.array([not _is_blank(v) for v in chrom_row])
    if not is_marker.any():
        raise ValidationError("Cross file has no marker columns (chromosome row is empty)")
    pheno_cols = np.flatnonzero(~is_marker)
    marker_cols = np.flatnonzero(is_marker)

    has_positions = all(_is_blank(raw.iat[2, j]) for j in pheno_cols) and \
        not all(_is_blank(raw.iat[2, j]) for j in marker_cols)
    body = raw.iloc[3:] if has_positions else raw.iloc[2:]

    marker_names = [names[j] for j in marker_cols]
    chroms = [str(chrom_row[j]).strip() for j in marker_cols]
    if has_positions:
        positions = pd.to_numeric(raw.iloc[2, marker_cols], errors='raise').to_numpy(dtype=np.float64)
    else:
        warnings.warn("Cross file has no marker positions; assigning 10 cM spacing")
        positions = np.zeros(len(marker_cols))
        counts: Dict[str, int] = {}
        for k, chrom in enumerate(chroms):
            positions[k] = 10.0 * counts.get(chrom, 0)
            counts[chrom] = counts.get(chrom, 0) + 1

    codes = dict(zip(('A', 'H', 'B'), genotypes))
    dosage = {codes[label]: value for label, value in GENOTYPE_DOSAGE[cross_type].items()}
    missing_codes = set(na_strings) | {''}
    calls = body.iloc[:, marker_cols].apply(lambda col: col.str.strip())
    unknown = set(np.unique(calls.to_numpy().astype(str))) - set(dosage) - missing_codes
    if unknown:
        raise ValidationError(
            f"Unrecognized genotype codes for a {cross_type} cross: {sorted(unknown)[:5]}"
        )
    values = calls.apply(lambda col: col.map(dosage)).to_numpy(dtype=np.float64)

    pheno = body.iloc[:, pheno_cols].copy()
    pheno.columns = [names[j] for j in pheno_cols]
    id_match = [c for c in pheno.columns if id_column is not None and c.lower() == id_column.lower()]
    if id_match:
        ids = pheno[id_match[0]].astype(str).str.strip().tolist()
        pheno = pheno.drop(columns=id_match[0])
    else:
        ids = [f"ind{i + 1}" for i in range(len(body))]
    pheno = pheno.replace(list(missing_codes) + NA_VALUES, np.nan).apply(pd.to_numeric, errors='coerce')
    pheno.index = ids

    genetic_map = GeneticMap(pd.DataFrame({'MARKER': marker_names, 'CHROM': chroms, 'POS': positions}),
                             metadata={'source': str(filepath)})
    geno = GenotypeMatrix(values, individual_ids=ids, marker_names=marker_names)
    return Cross(geno, genetic_map, cross_type=cross_type,
                 pheno=pheno if pheno.shape[1] else None)


def write_cross_csv(cross: Cross, filepath: Union[str, Path], genotypes: Sequence[str] = ('A', 'H', 'B')) -> Path:
    """Write a cross in the R/qtl comma-delimited layout read by ``load_cross_csv``"""
    filepath = Path(filepath)
    codes = dict(zip(('A', 'H', 'B'), genotypes))
    labels = {value: codes[label] for label, value in GENOTYPE_DOSAGE[cross.cross_type].items()}

    pheno = cross.pheno
    pheno_names = ['id'] + ([] if pheno is None else [str(c) for c in pheno.columns])
    gmap = cross.genetic_map.to_dataframe()
    header = pheno_names + gmap['MARKER'].tolist()
    chrom_row = [''] * len(pheno_names) + gmap['CHROM'].tolist()
    pos_row = [''] * len(pheno_names) + [f"{p:g}" for p in gmap['POS']]

    geno = cross.geno.to_numpy()
    rows = [header, chrom_row, pos_row]
    for i, ind in enumerate(cross.individual_ids):
        pheno_values = [] if pheno is None else ['NA' if pd.isna(v) else f"{v:g}" for v in pheno.iloc[i]]
        calls = ['-' if np.isnan(g) else labels[int(g)] for g in geno[i]]
        rows.append([ind] + pheno_values + calls)
    pd.DataFrame(rows).to_csv(filepath, header=False, index=False)
    return filepath
