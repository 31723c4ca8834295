import numpy as np
import pandas as pd
import pytest

from qtltools.core.cross import Cross
from qtltools.data.simulate import sim_cross, sim_map
from qtltools.matrix.genoprob import calc_genoprob
from qtltools.utils.errors import ValidationError


@pytest.fixture
def small_bc():
    geno = pd.DataFrame(
        {'m2': [1, 0, 1], 'm1': [0, 0, -9], 'm3': [1, 1, 0]},
        index=['a', 'b', 'c'],
    )
    gmap = pd.DataFrame({'MARKER': ['m1', 'm2', 'm3'], 'CHROM': ['1', '1', '2'], 'POS': [0.0, 10.0, 0.0]})
    pheno = pd.DataFrame({'ID': ['c', 'a', 'b'], 'y': [3.0, 1.0, 2.0]})
    return Cross(geno, gmap, cross_type='bc', pheno=pheno)


def test_cross_orders_genotypes_by_map_and_aligns_phenotypes(small_bc) -> None:
    assert small_bc.geno.marker_names == ['m1', 'm2', 'm3']
    np.testing.assert_array_equal(small_bc.chrom_genotypes('1')[:2], [[0, 1], [0, 0]])
    assert np.isnan(small_bc.chrom_genotypes('1')[2, 0])
    assert small_bc.pheno['y'].tolist() == [1.0, 2.0, 3.0]
    assert small_bc.chromosomes == ['1', '2']


def test_cross_rejects_codes_outside_cross_type() -> None:
    geno = pd.DataFrame({'m1': [0, 2]}, index=['a', 'b'])
    gmap = pd.DataFrame({'MARKER': ['m1'], 'CHROM': ['1'], 'POS': [0.0]})

    with pytest.raises(ValidationError):
        Cross(geno, gmap, cross_type='bc')
    assert Cross(geno, gmap, cross_type='riself').n_markers == 1


def test_cross_requires_map_and_genotypes_to_match() -> None:
    geno = pd.DataFrame({'m1': [0, 1], 'm2': [1, 1]}, index=['a', 'b'])
    gmap = pd.DataFrame({'MARKER': ['m1'], 'CHROM': ['1'], 'POS': [0.0]})

    with pytest.raises(ValidationError):
        Cross(geno, gmap, cross_type='bc')


def test_cross_rejects_phenotypes_for_other_individuals(small_bc) -> None:
    with pytest.raises(ValidationError):
        small_bc.with_pheno(pd.DataFrame({'y': [1.0]}, index=['zz']))


def test_derived_crosses_drop_stale_genotype_probabilities() -> None:
    cross = calc_genoprob(sim_cross(sim_map(1, 50.0, 6), n_ind=20, cross_type='bc', seed=1))
    assert cross.has_genoprob

    assert not cross.subset_markers(['C1M1', 'C1M3']).has_genoprob
    assert not cross.drop_markers(['C1M2']).has_genoprob
    assert not cross.clean().has_genoprob
    assert cross.with_pheno(None).has_genoprob

    shifted = cross.genetic_map.with_chrom_order('1', cross.marker_names, np.arange(6) * 2.0)
    assert not cross.with_map(shifted).has_genoprob


def test_summary_counts(small_bc) -> None:
    summary = small_bc.summary()

    assert summary['cross_type'] == 'bc'
    assert summary['n_individuals'] == 3
    assert summary['markers_per_chrom'] == {'1': 2, '2': 1}
    assert summary['missing_rate'] == pytest.approx(1.0 / 9.0)
    assert summary['n_phenotypes'] == 1
