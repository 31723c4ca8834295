import dataclasses

import numpy as np
import pandas as pd
import pytest

from qtltools.utils.data_types import (
    GeneticMap,
    GenotypeMatrix,
    InferredPosition,
    InferredPositions,
    MapEstimate,
    MarkerSubset,
    ScanResult,
)
from qtltools.utils.errors import ValidationError


def _map() -> GeneticMap:
    return GeneticMap(pd.DataFrame({
        'MARKER': ['a', 'b', 'c', 'd', 'e'],
        'CHROM': [2, 2, 1, 1, 1],
        'POS': [0.0, 15.0, 0.0, 5.0, 20.0],
    }))


def test_genetic_map_requires_columns_and_unique_markers() -> None:
    with pytest.raises(ValidationError):
        GeneticMap(pd.DataFrame({'MARKER': ['a'], 'POS': [0.0]}))
    with pytest.raises(ValidationError):
        GeneticMap(pd.DataFrame({'MARKER': ['a', 'a'], 'CHROM': [1, 1], 'POS': [0.0, 1.0]}))


def test_genetic_map_chromosome_order_and_lengths() -> None:
    gmap = _map()

    assert gmap.chrom_names == ['2', '1']
    assert gmap.chrom_markers(1) == ['c', 'd', 'e']
    assert gmap.chrom_length('1') == pytest.approx(20.0)
    assert gmap.total_length() == pytest.approx(35.0)
    assert gmap.is_sorted()
    with pytest.raises(ValidationError):
        gmap.chrom_frame('X')


def test_genetic_map_with_chrom_order_only_touches_one_chromosome() -> None:
    gmap = _map()

    reordered = gmap.with_chrom_order('1', ['d', 'c', 'e'], [0.0, 4.0, 19.0])

    assert reordered.chrom_markers('1') == ['d', 'c', 'e']
    np.testing.assert_allclose(reordered.chrom_positions('1'), [0.0, 4.0, 19.0])
    assert reordered.chrom_markers('2') == ['a', 'b']
    assert reordered.chrom_names == ['2', '1']
    # input untouched
    assert gmap.chrom_markers('1') == ['c', 'd', 'e']
    with pytest.raises(ValidationError):
        gmap.with_chrom_order('1', ['c', 'd'])


def test_genetic_map_subset_keeps_map_order() -> None:
    subset = _map().subset(['e', 'a', 'c'])

    assert subset.marker_names == ['a', 'c', 'e']
    with pytest.raises(ValidationError):
        _map().subset(['zzz'])


def test_genotype_matrix_codes_missing_and_names() -> None:
    geno = GenotypeMatrix(np.array([[0, -9], [1, 1]]), individual_ids=['i1', 'i2'], marker_names=['m1', 'm2'])

    assert np.isnan(geno.get_marker('m2')[0])
    np.testing.assert_allclose(geno.missing_rate(), [0.0, 0.5])
    frame = geno.to_dataframe()
    assert frame.index.name == 'ID'
    assert list(frame.columns) == ['m1', 'm2']
    assert geno.subset_markers(['m2', 'm1']).marker_names == ['m2', 'm1']
    with pytest.raises(ValidationError):
        GenotypeMatrix(np.zeros((2, 2)), individual_ids=['x', 'x'])
    with pytest.raises(ValidationError):
        geno.get_marker('m9')


def test_scan_result_peak_uses_first_maximum_and_ignores_nan() -> None:
    data = pd.DataFrame({
        'CHROM': ['1', '1', '1', '2', '2'],
        'POS': [0.0, 5.0, 10.0, 0.0, 5.0],
        'LOCUS': ['a', 'b', 'c', 'd', 'e'],
        'lod': [1.0, np.nan, 4.0, 4.0, 2.0],
    })
    scan = ScanResult(data, ['lod'])

    assert scan.peak() == ('1', 10.0, 4.0, 2)
    assert scan.peak('lod', chrom='2')[1] == 0.0
    maxima = scan.max_by_chrom()
    assert list(maxima.index) == ['1', '2']
    np.testing.assert_allclose(maxima.to_numpy(), [4.0, 4.0])
    assert scan.subset(['2']).n_positions == 2
    with pytest.raises(ValidationError):
        scan.lod('missing')


def test_map_estimate_positions_and_validity() -> None:
    est = MapEstimate(markers=['a', 'b', 'c'], distances=np.array([5.0, 2.5]), loglik=-10.0)

    np.testing.assert_allclose(est.positions(), [0.0, 5.0, 7.5])
    assert est.total_length == pytest.approx(7.5)
    assert est.is_valid()
    assert not MapEstimate(['a', 'b'], np.array([np.inf]), -1.0).is_valid()
    assert not MapEstimate(['a', 'b'], np.array([1.0]), -1.0, converged=False).is_valid()


def test_marker_subset_container() -> None:
    subset = MarkerSubset({'1': ['a', 'b'], '2': ['c']}, min_distance=10)

    assert len(subset) == 3
    assert list(subset) == ['a', 'b', 'c']
    assert subset['1'] == ['a', 'b']
    assert subset.min_distance == 10.0


def test_inferred_positions_sorted_by_map_order_then_position() -> None:
    entries = [
        InferredPosition('q1', '1', 5.0, 3.0),
        InferredPosition('q2', '2', 30.0, 4.0),
        InferredPosition('q3', '2', 10.0, 5.0, low_ci=8.0, high_ci=12.0),
    ]

    frame = InferredPositions(entries, chrom_order=['2', '1'], est_ci=True).to_dataframe()

    assert frame['MARKER'].tolist() == ['q3', 'q2', 'q1']
    assert {'LOW_CI', 'HIGH_CI'} <= set(frame.columns)
    with pytest.raises(dataclasses.FrozenInstanceError):
        entries[0].pos = 1.0
