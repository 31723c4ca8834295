"""
Cross object: genotypes, genetic map, phenotypes and genotype probabilities
of one experimental population
"""

import numpy as np
import pandas as pd
from typing import Optional, List, Dict, Union, Any, Sequence

from ..utils.data_types import GeneticMap, GenotypeMatrix, GenoProb
from ..utils.errors import ValidationError
from ..utils.stats import check_cross_type, genotype_states, missing_mask


class Cross:
    """Experimental cross (population) used by every scan and map operation

    Instances are treated as immutable: every method that changes the map,
    markers, phenotypes or genotype probabilities returns a new Cross.

    Args:
        geno: Genotype calls (individuals × markers); columns are reordered to
            follow the map
        genetic_map: Linkage map covering exactly the genotyped markers
        cross_type: One of 'bc', 'dh', 'riself', 'risib', 'f2'
        pheno: Optional phenotype table indexed by individual ID
        genoprob: Optional genotype probabilities computed on ``genetic_map``
    """

    def __init__(self,
                 geno: Union[GenotypeMatrix, pd.DataFrame],
                 genetic_map: Union[GeneticMap, pd.DataFrame],
                 cross_type: str = 'f2',
                 pheno: Optional[pd.DataFrame] = None,
                 genoprob: Optional[GenoProb] = None):
        if isinstance(geno, pd.DataFrame):
            geno = GenotypeMatrix(geno)
        elif not isinstance(geno, GenotypeMatrix):
            raise ValidationError("geno must be a GenotypeMatrix or DataFrame")
        if isinstance(genetic_map, pd.DataFrame):
            genetic_map = GeneticMap(genetic_map)
        elif not isinstance(genetic_map, GeneticMap):
            raise ValidationError("genetic_map must be a GeneticMap or DataFrame")

        self._cross_type = check_cross_type(cross_type)

        map_markers = genetic_map.marker_names
        if genetic_map.n_markers == 0:
            raise ValidationError("Genetic map contains no markers")
        missing_geno = set(map_markers) - set(geno.marker_names)
        if missing_geno:
            raise ValidationError(
                f"{len(missing_geno)} map markers have no genotype column, e.g. {sorted(missing_geno)[:5]}"
            )
        extra_geno = set(geno.marker_names) - set(map_markers)
        if extra_geno:
            raise ValidationError(
                f"{len(extra_geno)} genotype columns are not on the map, e.g. {sorted(extra_geno)[:5]}"
            )
        if geno.marker_names != map_markers:
            geno = geno.subset_markers(map_markers)

        values = geno.to_numpy()
        observed = ~missing_mask(values)
        states = genotype_states(self._cross_type)
        invalid = observed & ~np.isin(values, states)
        if invalid.any():
            bad = sorted(set(np.unique(values[invalid]).tolist()))
            raise ValidationError(
                f"Genotype codes {bad[:5]} are not valid for a {self._cross_type} cross "
                f"(expected {states.astype(int).tolist()})"
            )

        self._geno = geno
        self._map = genetic_map
        self._pheno = self._align_pheno(pheno, geno.individual_ids)
        self._genoprob = genoprob

    @staticmethod
    def _align_pheno(pheno: Optional[pd.DataFrame], ids: List[str]) -> Optional[pd.DataFrame]:
        if pheno is None:
            return None
        pheno = pheno.copy()
        if 'ID' in pheno.columns:
            pheno = pheno.set_index('ID')
        pheno.index = pheno.index.astype(str)
        if set(pheno.index) != set(ids):
            raise ValidationError("Phenotype IDs must match the genotyped individuals")
        return pheno.loc[ids]

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #
    @property
    def cross_type(self) -> str:
        return self._cross_type

    @property
    def geno(self) -> GenotypeMatrix:
        return self._geno

    @property
    def genetic_map(self) -> GeneticMap:
        return self._map

    @property
    def pheno(self) -> Optional[pd.DataFrame]:
        return None if self._pheno is None else self._pheno.copy()

    @property
    def genoprob(self) -> Optional[GenoProb]:
        return self._genoprob

    @property
    def has_genoprob(self) -> bool:
        return self._genoprob is not None

    @property
    def states(self) -> np.ndarray:
        return genotype_states(self._cross_type)

    @property
    def n_individuals(self) -> int:
        return self._geno.n_individuals

    @property
    def n_markers(self) -> int:
        return self._geno.n_markers

    @property
    def individual_ids(self) -> List[str]:
        return self._geno.individual_ids

    @property
    def marker_names(self) -> List[str]:
        return self._map.marker_names

    @property
    def chromosomes(self) -> List[str]:
        return self._map.chrom_names

    def chrom_genotypes(self, chrom: Union[str, int]) -> np.ndarray:
        """Genotype calls of one chromosome (individuals × markers, map order)"""
        return self._geno.get_markers(self._map.chrom_markers(chrom))

    # ------------------------------------------------------------------ #
    # Derivations (all return new objects)
    # ------------------------------------------------------------------ #
    def _replace(self, **changes: Any) -> "Cross":
        params: Dict[str, Any] = {
            'geno': self._geno,
            'genetic_map': self._map,
            'cross_type': self._cross_type,
            'pheno': self._pheno,
            'genoprob': self._genoprob,
        }
        params.update(changes)
        return Cross(**params)

    def subset_markers(self, markers: Sequence[str]) -> "Cross":
        """Keep only ``markers``; genotype probabilities are dropped"""
        markers = [str(m) for m in markers]
        if len(markers) == 0:
            raise ValidationError("Cannot subset a cross to zero markers")
        new_map = self._map.subset(markers)
        return self._replace(geno=self._geno.subset_markers(new_map.marker_names),
                             genetic_map=new_map, genoprob=None)

    def drop_markers(self, markers: Sequence[str]) -> "Cross":
        drop = set(str(m) for m in markers)
        return self.subset_markers([m for m in self.marker_names if m not in drop])

    def with_map(self, genetic_map: GeneticMap) -> "Cross":
        """Replace the map (same marker set); genotype probabilities are dropped"""
        if sorted(genetic_map.marker_names) != sorted(self.marker_names):
            raise ValidationError("Replacement map must contain exactly the cross markers")
        return self._replace(genetic_map=genetic_map, genoprob=None)

    def with_pheno(self, pheno: Optional[pd.DataFrame]) -> "Cross":
        return self._replace(pheno=pheno)

    def with_genoprob(self, genoprob: GenoProb) -> "Cross":
        return self._replace(genoprob=genoprob)

    def clean(self) -> "Cross":
        """Return a copy without derived genotype probabilities"""
        return self._replace(genoprob=None)

    def summary(self) -> Dict[str, Any]:
        """Basic counts describing the cross"""
        return {
            'cross_type': self._cross_type,
            'n_individuals': self.n_individuals,
            'n_markers': self.n_markers,
            'n_chromosomes': len(self.chromosomes),
            'markers_per_chrom': {c: len(self._map.chrom_markers(c)) for c in self.chromosomes},
            'missing_rate': float(np.mean(self._geno.missing_rate())),
            'n_phenotypes': 0 if self._pheno is None else self._pheno.shape[1],
            'has_genoprob': self.has_genoprob,
        }

    def __repr__(self) -> str:
        return (f"Cross(type={self._cross_type}, n_ind={self.n_individuals}, "
                f"n_markers={self.n_markers}, n_chrom={len(self.chromosomes)})")
