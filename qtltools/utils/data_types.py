"""
Core data structures for qtltools package
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Optional, Union, Tuple, Dict, Any, List, Sequence
from pathlib import Path

from .errors import ValidationError
from .stats import MISSING_CODE, calculate_missing_rate


class GeneticMap:
    """Linkage map with markers grouped by chromosome

    Expected columns: [MARKER, CHROM, POS] with optional PHYS_POS.
    POS is in centiMorgans. Chromosome order is the order in which each
    chromosome first appears; marker order within a chromosome is row order.
    """

    REQUIRED_COLUMNS = ('MARKER', 'CHROM', 'POS')

    def __init__(self, data: Union[pd.DataFrame, str, Path], metadata: Optional[Dict[str, Any]] = None):
        if isinstance(data, (str, Path)):
            self.data = pd.read_csv(data)
        elif isinstance(data, pd.DataFrame):
            self.data = data.copy()
        else:
            raise ValidationError("Data must be DataFrame or file path")

        self.metadata: Dict[str, Any] = dict(metadata) if metadata else {}

        for col in self.REQUIRED_COLUMNS:
            if col not in self.data.columns:
                raise ValidationError(f"Missing required column: {col}")

        self.data = self.data.reset_index(drop=True)
        self.data['MARKER'] = self.data['MARKER'].astype(str)
        self.data['CHROM'] = self.data['CHROM'].astype(str)
        self.data['POS'] = pd.to_numeric(self.data['POS'], errors='raise').astype(np.float64)

        if self.data['MARKER'].duplicated().any():
            dups = self.data.loc[self.data['MARKER'].duplicated(), 'MARKER'].tolist()
            raise ValidationError(f"Duplicated marker names in map: {dups[:5]}")

    @property
    def marker_names(self) -> List[str]:
        """Marker names in map order"""
        return self.data['MARKER'].tolist()

    @property
    def chromosomes(self) -> pd.Series:
        """Chromosome label of every marker"""
        return self.data['CHROM']

    @property
    def positions(self) -> pd.Series:
        """Linkage positions (cM)"""
        return self.data['POS']

    @property
    def chrom_names(self) -> List[str]:
        """Chromosome labels in order of first appearance"""
        return [str(c) for c in pd.unique(self.data['CHROM'])]

    @property
    def n_markers(self) -> int:
        """Number of markers"""
        return len(self.data)

    @property
    def has_physical_positions(self) -> bool:
        return 'PHYS_POS' in self.data.columns

    def chrom_frame(self, chrom: Union[str, int]) -> pd.DataFrame:
        """Rows of a single chromosome in map order"""
        chrom = str(chrom)
        if chrom not in self.chrom_names:
            raise ValidationError(f"Chromosome {chrom} not found in map")
        return self.data[self.data['CHROM'] == chrom]

    def chrom_markers(self, chrom: Union[str, int]) -> List[str]:
        return self.chrom_frame(chrom)['MARKER'].tolist()

    def chrom_positions(self, chrom: Union[str, int]) -> np.ndarray:
        return self.chrom_frame(chrom)['POS'].to_numpy(dtype=np.float64)

    def chrom_length(self, chrom: Union[str, int]) -> float:
        pos = self.chrom_positions(chrom)
        return float(pos.max() - pos.min()) if len(pos) else 0.0

    def total_length(self) -> float:
        """Summed span of all chromosomes (cM)"""
        return float(sum(self.chrom_length(chrom) for chrom in self.chrom_names))

    def is_sorted(self) -> bool:
        """Whether positions are non-decreasing within every chromosome"""
        for chrom in self.chrom_names:
            if np.any(np.diff(self.chrom_positions(chrom)) < 0):
                return False
        return True

    def subset(self, markers: Sequence[str]) -> "GeneticMap":
        """Return a map restricted to ``markers``, keeping map order"""
        keep = set(str(m) for m in markers)
        unknown = keep - set(self.marker_names)
        if unknown:
            raise ValidationError(f"Markers not found in map: {sorted(unknown)[:5]}")
        return GeneticMap(self.data[self.data['MARKER'].isin(keep)], metadata=self.metadata)

    def with_chrom_order(self,
                         chrom: Union[str, int],
                         markers: Sequence[str],
                         positions: Optional[Sequence[float]] = None) -> "GeneticMap":
        """Return a new map where one chromosome is reordered (and optionally repositioned)

        Args:
            chrom: Chromosome to rewrite
            markers: Every marker of the chromosome, in the new order
            positions: New positions aligned to ``markers``; keeps the current
                positions of each marker when omitted
        """
        chrom = str(chrom)
        current = self.chrom_frame(chrom).set_index('MARKER')
        markers = [str(m) for m in markers]
        if sorted(markers) != sorted(current.index):
            raise ValidationError(f"New order for chromosome {chrom} must contain exactly its markers")
        block = current.loc[markers].reset_index()
        if positions is not None:
            if len(positions) != len(markers):
                raise ValidationError("positions must align with markers")
            block['POS'] = np.asarray(positions, dtype=np.float64)

        pieces = []
        for name in self.chrom_names:
            pieces.append(block if name == chrom else self.chrom_frame(name))
        return GeneticMap(pd.concat(pieces, ignore_index=True)[self.data.columns], metadata=self.metadata)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to pandas DataFrame"""
        return self.data.copy()

    def with_metadata(self, **metadata: Any) -> "GeneticMap":
        """Return a new GeneticMap with merged metadata dictionary."""
        merged = dict(self.metadata)
        merged.update(metadata)
        return GeneticMap(self.data.copy(), metadata=merged)

    def __repr__(self) -> str:
        return f"GeneticMap(n_chrom={len(self.chrom_names)}, n_markers={self.n_markers})"


class GenotypeMatrix:
    """Genotype calls indexed by individual ID and marker name

    Calls are the dosage of the B allele; -9 and NaN are stored as NaN.
    """

    def __init__(self, data: Union[np.ndarray, pd.DataFrame],
                 individual_ids: Optional[Sequence[Any]] = None,
                 marker_names: Optional[Sequence[Any]] = None):

        if isinstance(data, pd.DataFrame):
            if individual_ids is None:
                individual_ids = data.index.tolist()
            if marker_names is None:
                marker_names = data.columns.tolist()
            values = data.to_numpy(dtype=np.float64)
        elif isinstance(data, np.ndarray):
            values = np.asarray(data, dtype=np.float64)
        else:
            raise ValidationError("Data must be array or DataFrame")

        if values.ndim != 2:
            raise ValidationError("Genotype matrix must be 2-dimensional")

        n_individuals, n_markers = values.shape
        if individual_ids is None:
            individual_ids = [f"ind{i + 1}" for i in range(n_individuals)]
        if marker_names is None:
            marker_names = [f"m{j + 1}" for j in range(n_markers)]

        self._ids = [str(i) for i in individual_ids]
        self._markers = [str(m) for m in marker_names]
        if len(self._ids) != n_individuals:
            raise ValidationError(
                f"Got {len(self._ids)} individual IDs for {n_individuals} genotype rows"
            )
        if len(self._markers) != n_markers:
            raise ValidationError(
                f"Got {len(self._markers)} marker names for {n_markers} genotype columns"
            )
        if len(set(self._ids)) != len(self._ids):
            raise ValidationError("Individual IDs must be unique")
        if len(set(self._markers)) != len(self._markers):
            raise ValidationError("Marker names must be unique")

        values = values.copy()
        values[values == MISSING_CODE] = np.nan
        self._data = values
        self._marker_index = {name: j for j, name in enumerate(self._markers)}

    @property
    def shape(self) -> Tuple[int, int]:
        """Matrix shape (n_individuals, n_markers)"""
        return self._data.shape

    @property
    def n_individuals(self) -> int:
        return self.shape[0]

    @property
    def n_markers(self) -> int:
        return self.shape[1]

    @property
    def individual_ids(self) -> List[str]:
        return list(self._ids)

    @property
    def marker_names(self) -> List[str]:
        return list(self._markers)

    def __getitem__(self, key):
        """Support array indexing"""
        return self._data[key]

    def marker_index(self, name: str) -> int:
        try:
            return self._marker_index[str(name)]
        except KeyError:
            raise ValidationError(f"Marker {name} not found in genotype matrix") from None

    def get_marker(self, marker: Union[str, int]) -> np.ndarray:
        """Get genotypes for a specific marker (by name or column index)"""
        idx = marker if isinstance(marker, (int, np.integer)) else self.marker_index(marker)
        return self._data[:, idx].copy()

    def get_markers(self, markers: Sequence[str]) -> np.ndarray:
        """Get genotypes for several markers as an (n_individuals × k) array"""
        idx = [self.marker_index(m) for m in markers]
        return self._data[:, idx].copy()

    def subset_markers(self, markers: Sequence[str]) -> "GenotypeMatrix":
        """Return a GenotypeMatrix restricted to (and ordered by) ``markers``"""
        markers = [str(m) for m in markers]
        return GenotypeMatrix(self.get_markers(markers), self._ids, markers)

    def subset_individuals(self, indices: Union[np.ndarray, list]) -> "GenotypeMatrix":
        """Return a GenotypeMatrix restricted to a subset of individuals."""
        indices = np.asarray(indices)
        if indices.dtype != bool:
            indices = indices.astype(int)
        ids = np.asarray(self._ids, dtype=object)[indices].tolist()
        return GenotypeMatrix(self._data[indices, :], ids, self._markers)

    def missing_rate(self) -> np.ndarray:
        """Missing-call rate per marker"""
        return calculate_missing_rate(self._data)

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self._data, index=pd.Index(self._ids, name='ID'), columns=self._markers)


@dataclass
class ChromGenoProb:
    """Genotype probabilities for one chromosome

    ``probs`` has shape (n_individuals, n_positions, n_states).
    """

    chrom: str
    positions: np.ndarray
    loci: List[str]
    is_marker: np.ndarray
    probs: np.ndarray

    @property
    def n_positions(self) -> int:
        return len(self.positions)


class GenoProb:
    """Genotype probabilities for every chromosome of a cross"""

    def __init__(self,
                 chromosomes: Dict[str, ChromGenoProb],
                 step: float,
                 off_end: float,
                 error_prob: float,
                 map_function: str):
        self._chroms = dict(chromosomes)
        self.step = float(step)
        self.off_end = float(off_end)
        self.error_prob = float(error_prob)
        self.map_function = map_function

    @property
    def chromosomes(self) -> List[str]:
        return list(self._chroms)

    def __getitem__(self, chrom: Union[str, int]) -> ChromGenoProb:
        chrom = str(chrom)
        if chrom not in self._chroms:
            raise KeyError(f"Chromosome {chrom} not found in genotype probabilities")
        return self._chroms[chrom]

    def __contains__(self, chrom) -> bool:
        return str(chrom) in self._chroms

    @property
    def n_positions(self) -> int:
        return int(sum(cg.n_positions for cg in self._chroms.values()))

    def settings(self) -> Dict[str, Any]:
        """Parameters needed to recompute probabilities on another map"""
        return {
            'off_end': self.off_end,
            'error_prob': self.error_prob,
            'map_function': self.map_function,
        }


class ScanResult:
    """Genome scan results structure

    Standard format: [CHROM, POS, LOCUS] followed by one LOD column per
    scanned trait, one row per tested position.
    """

    KEY_COLUMNS = ('CHROM', 'POS', 'LOCUS')

    def __init__(self, data: pd.DataFrame, lod_columns: Sequence[str],
                 is_marker: Optional[np.ndarray] = None, method: str = 'hk'):
        for col in self.KEY_COLUMNS:
            if col not in data.columns:
                raise ValidationError(f"Missing required column: {col}")
        self.lod_columns = [str(c) for c in lod_columns]
        missing = [c for c in self.lod_columns if c not in data.columns]
        if missing:
            raise ValidationError(f"LOD columns not present in scan data: {missing}")
        self._data = data.reset_index(drop=True).copy()
        self._data['CHROM'] = self._data['CHROM'].astype(str)
        if is_marker is None:
            is_marker = np.ones(len(self._data), dtype=bool)
        self.is_marker = np.asarray(is_marker, dtype=bool)
        self.method = method

    @property
    def n_positions(self) -> int:
        return len(self._data)

    @property
    def chromosomes(self) -> List[str]:
        return [str(c) for c in pd.unique(self._data['CHROM'])]

    def chrom_rows(self, chrom: Union[str, int]) -> np.ndarray:
        """Row indices of one chromosome"""
        rows = np.flatnonzero(self._data['CHROM'].to_numpy() == str(chrom))
        if rows.size == 0:
            raise ValidationError(f"Chromosome {chrom} not present in scan result")
        return rows

    def column_name(self, column: Optional[str]) -> str:
        if column is None:
            if len(self.lod_columns) != 1:
                raise ValidationError("A LOD column must be named when several traits were scanned")
            return self.lod_columns[0]
        column = str(column)
        if column not in self.lod_columns:
            raise ValidationError(f"Unknown LOD column: {column}")
        return column

    def lod(self, column: Optional[str] = None) -> np.ndarray:
        return self._data[self.column_name(column)].to_numpy(dtype=np.float64)

    def peak(self, column: Optional[str] = None, chrom: Optional[Union[str, int]] = None) -> Tuple[str, float, float, int]:
        """Position of the maximum statistic

        Returns:
            Tuple of (chromosome, position, lod, row index)
        """
        lods = self.lod(column)
        rows = np.arange(len(lods)) if chrom is None else self.chrom_rows(chrom)
        values = np.where(np.isnan(lods[rows]), -np.inf, lods[rows])
        best = int(rows[int(np.argmax(values))])
        return (str(self._data['CHROM'].iat[best]), float(self._data['POS'].iat[best]),
                float(lods[best]), best)

    def max_by_chrom(self, column: Optional[str] = None) -> pd.Series:
        """Maximum statistic per chromosome, in scan order"""
        column = self.column_name(column)
        values = self._data[column].fillna(-np.inf)
        out = values.groupby(self._data['CHROM'], sort=False).max()
        return out.reindex(self.chromosomes)

    def subset(self, chromosomes: Sequence[Union[str, int]]) -> "ScanResult":
        keep = self._data['CHROM'].isin([str(c) for c in chromosomes]).to_numpy()
        return ScanResult(self._data[keep], self.lod_columns, self.is_marker[keep], self.method)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to pandas DataFrame"""
        return self._data.copy()


@dataclass
class MapEstimate:
    """Map re-estimated for one ordered set of markers"""

    markers: List[str]
    distances: np.ndarray
    loglik: float
    n_iter: int = 0
    converged: bool = True
    chrom: Optional[str] = None
    rf: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def total_length(self) -> float:
        return float(np.sum(self.distances))

    def positions(self, start: float = 0.0) -> np.ndarray:
        """Cumulative positions (cM) starting at ``start``"""
        return start + np.concatenate([[0.0], np.cumsum(self.distances)])

    def is_valid(self) -> bool:
        """Converged, with finite non-negative distances and a finite log-likelihood"""
        return bool(
            self.converged
            and np.all(np.isfinite(self.distances))
            and np.all(self.distances >= 0)
            and np.isfinite(self.loglik)
        )


class MarkerSubset:
    """Per-chromosome marker selections tagged with the spacing used to build them"""

    def __init__(self, markers: Dict[str, List[str]], min_distance: float):
        self._markers = {str(chrom): [str(m) for m in names] for chrom, names in markers.items()}
        self.min_distance = float(min_distance)

    @property
    def chromosomes(self) -> List[str]:
        return list(self._markers)

    def __getitem__(self, chrom: Union[str, int]) -> List[str]:
        return list(self._markers[str(chrom)])

    def __len__(self) -> int:
        return sum(len(names) for names in self._markers.values())

    def __iter__(self):
        return iter(self.marker_names)

    @property
    def marker_names(self) -> List[str]:
        """All selected markers, chromosome by chromosome"""
        return [m for names in self._markers.values() for m in names]

    def to_dict(self) -> Dict[str, List[str]]:
        return {chrom: list(names) for chrom, names in self._markers.items()}

    def __repr__(self) -> str:
        return f"MarkerSubset(n_markers={len(self)}, min_distance={self.min_distance:g})"


@dataclass(frozen=True)
class InferredPosition:
    """Placement of one queried marker on the reference map"""

    marker_name: str
    chrom: str
    pos: float
    lod: float
    low_ci: Optional[float] = None
    high_ci: Optional[float] = None
    coarse_chrom: Optional[str] = None
    coarse_pos: Optional[float] = None
    coarse_lod: Optional[float] = None
    chrom_margin: Optional[float] = None

    def to_row(self, include_ci: bool = False) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            'MARKER': self.marker_name,
            'CHROM': self.chrom,
            'POS': self.pos,
            'LOD': self.lod,
        }
        if include_ci:
            row['LOW_CI'] = self.low_ci
            row['HIGH_CI'] = self.high_ci
        row['COARSE_CHROM'] = self.coarse_chrom
        row['COARSE_POS'] = self.coarse_pos
        row['COARSE_LOD'] = self.coarse_lod
        row['CHROM_MARGIN'] = self.chrom_margin
        return row


class InferredPositions:
    """Collection of inferred marker positions"""

    def __init__(self, entries: Sequence[InferredPosition], chrom_order: Sequence[str], est_ci: bool = False):
        self._entries = list(entries)
        self._by_name = {e.marker_name: e for e in self._entries}
        self.chrom_order = [str(c) for c in chrom_order]
        self.est_ci = est_ci

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def get(self, marker_name: str) -> InferredPosition:
        try:
            return self._by_name[str(marker_name)]
        except KeyError:
            raise ValidationError(f"No inferred position for marker {marker_name}") from None

    def to_dataframe(self) -> pd.DataFrame:
        """Table sorted by chromosome (map order) then position"""
        columns = ['MARKER', 'CHROM', 'POS', 'LOD']
        if self.est_ci:
            columns += ['LOW_CI', 'HIGH_CI']
        columns += ['COARSE_CHROM', 'COARSE_POS', 'COARSE_LOD', 'CHROM_MARGIN']
        frame = pd.DataFrame([e.to_row(self.est_ci) for e in self._entries], columns=columns)
        if frame.empty:
            return frame
        rank = {chrom: i for i, chrom in enumerate(self.chrom_order)}
        frame['_rank'] = frame['CHROM'].map(rank).fillna(len(rank))
        frame = frame.sort_values(['_rank', 'POS'], kind='mergesort').drop(columns='_rank')
        return frame.reset_index(drop=True)
