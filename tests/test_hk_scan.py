from unittest import mock

import numpy as np
import pandas as pd
import pytest

from qtltools.association.hk import haley_knott_scan, scanone
from qtltools.data.simulate import sim_cross, sim_map
from qtltools.matrix.genoprob import calc_genoprob
from qtltools.utils.errors import PrecomputationError, ValidationError


@pytest.fixture
def bc_cross():
    cross = sim_cross(sim_map(2, 60.0, 7), n_ind=60, cross_type='bc',
                      qtl=[('C1M4', 1.5)], seed=11)
    return calc_genoprob(cross, step=0.0, error_prob=0.0)


def _direct_lod(g: np.ndarray, y: np.ndarray) -> float:
    X = np.column_stack([np.ones(len(g)), g])
    beta = np.linalg.lstsq(X, y, rcond=None)[0]
    rss1 = np.sum((y - X @ beta) ** 2)
    rss0 = np.sum((y - y.mean()) ** 2)
    return len(y) / 2.0 * np.log10(rss0 / rss1)


def test_hk_lod_matches_regression_at_fully_typed_markers(bc_cross) -> None:
    scan = scanone(bc_cross)
    y = bc_cross.pheno['pheno'].to_numpy()
    geno = bc_cross.geno.to_numpy()

    lods = scan.lod('pheno')
    expected = [_direct_lod(geno[:, j], y) for j in range(bc_cross.n_markers)]

    np.testing.assert_allclose(lods, expected, rtol=1e-8, atol=1e-10)
    assert scan.peak()[0] == '1'
    assert scan.to_dataframe()['LOCUS'].tolist() == bc_cross.marker_names


def test_missing_phenotypes_are_dropped_per_column(bc_cross) -> None:
    y = bc_cross.pheno['pheno'].to_numpy()
    y_na = y.copy()
    y_na[:10] = np.nan
    pheno = pd.DataFrame({'full': y, 'partial': y_na}, index=bc_cross.individual_ids)

    scan = haley_knott_scan(bc_cross.genoprob, pheno)

    g = bc_cross.geno.get_marker('C1M4')
    row = bc_cross.marker_names.index('C1M4')
    assert scan.lod('full')[row] == pytest.approx(_direct_lod(g, y))
    assert scan.lod('partial')[row] == pytest.approx(_direct_lod(g[10:], y[10:]))


def test_perfectly_explained_phenotype_gives_infinite_lod(bc_cross) -> None:
    g = bc_cross.geno.get_marker('C2M3')

    scan = scanone(bc_cross, pd.DataFrame({'code': g}, index=bc_cross.individual_ids))

    chrom, pos, lod, _ = scan.peak('code')
    assert np.isposinf(lod)
    assert (chrom, pos) == ('2', 20.0)
    assert np.all(scan.lod('code') >= 0)


def test_constant_phenotype_scores_zero(bc_cross) -> None:
    scan = scanone(bc_cross, np.ones(bc_cross.n_individuals))

    assert scan.lod_columns == ['pheno1']
    np.testing.assert_array_equal(scan.lod(), 0.0)


def test_scanone_phenotype_selection_and_chromosomes(bc_cross) -> None:
    scan = scanone(bc_cross, ['pheno'], chromosomes=['2'])

    assert scan.chromosomes == ['2']
    assert scan.n_positions == 7


def test_scan_requires_genotype_probabilities_and_hk() -> None:
    cross = sim_cross(sim_map(1, 20.0, 3), n_ind=10, cross_type='bc', qtl=[('C1M1', 1.0)], seed=1)

    with pytest.raises(PrecomputationError):
        scanone(cross)
    with pytest.raises(ValidationError):
        scanone(calc_genoprob(cross), method='em')
    with pytest.raises(ValidationError):
        scanone(calc_genoprob(cross.with_pheno(None)))


def test_scanone_delegates_to_supplied_backend(bc_cross) -> None:
    backend = mock.Mock()
    backend.scan.return_value = 'result'

    out = scanone(bc_cross, backend=backend, chromosomes=['1'])

    assert out == 'result'
    backend.scan.assert_called_once()
    assert backend.scan.call_args.kwargs == {'chromosomes': ['1'], 'method': 'hk'}
