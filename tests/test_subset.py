import numpy as np
import pandas as pd
import pytest

from qtltools.core.cross import Cross
from qtltools.data.simulate import sim_map
from qtltools.mapping.subset import pick_marker_subset
from qtltools.utils.data_types import GeneticMap
from qtltools.utils.errors import ValidationError


def _assert_spaced(genetic_map: GeneticMap, subset, min_distance: float) -> None:
    for chrom in subset.chromosomes:
        pos = genetic_map.subset(subset[chrom]).chrom_positions(chrom)
        assert np.all(np.diff(np.sort(pos)) >= min_distance - 1e-12)


def test_subset_respects_spacing_and_maximizes_count() -> None:
    gmap = GeneticMap(pd.DataFrame({
        'MARKER': [f"m{i}" for i in range(7)],
        'CHROM': ['1'] * 6 + ['2'],
        'POS': [0.0, 5.0, 10.0, 25.0, 30.0, 50.0, 7.0],
    }))

    subset = pick_marker_subset(gmap, min_distance=20.0, seed=1)

    assert len(subset['1']) == 3
    assert subset['2'] == ['m6']
    assert subset.min_distance == 20.0
    _assert_spaced(gmap, subset, 20.0)


def test_subset_spacing_on_random_map() -> None:
    gmap = sim_map(3, [80.0, 120.0, 40.0], 40, equally_spaced=False, seed=3)

    subset = pick_marker_subset(gmap, min_distance=7.5, seed=3)

    _assert_spaced(gmap, subset, 7.5)
    # the chromosome ends are both present and 40 cM apart
    assert len(subset['3']) >= 2


def test_subset_prefers_complete_markers() -> None:
    geno = pd.DataFrame({
        'm1': [0, 1, 0, 1, -9, -9, -9, -9],
        'm2': [0, 1, 0, 1, 0, 1, 0, 1],
        'm3': [1, 1, 0, 0, 1, 1, 0, 0],
    }, index=[f"i{k}" for k in range(8)])
    gmap = pd.DataFrame({'MARKER': ['m1', 'm2', 'm3'], 'CHROM': ['1'] * 3, 'POS': [0.0, 1.0, 30.0]})

    subset = pick_marker_subset(Cross(geno, gmap, cross_type='bc'), min_distance=20.0, seed=0)

    assert subset['1'] == ['m2', 'm3']


def test_subset_is_reproducible_with_seed() -> None:
    gmap = sim_map(1, 100.0, 101)

    first = pick_marker_subset(gmap, min_distance=10.0, seed=42)
    second = pick_marker_subset(gmap, min_distance=10.0, seed=42)

    assert first.to_dict() == second.to_dict()
    assert len(first) == 11


def test_subset_validation() -> None:
    gmap = sim_map(1, 10.0, 3)

    with pytest.raises(ValidationError):
        pick_marker_subset(gmap, min_distance=0)
    with pytest.raises(ValidationError):
        pick_marker_subset(gmap, geno=object())
    with pytest.raises(ValidationError):
        pick_marker_subset(gmap.to_dataframe())


def test_subset_of_25_markers_over_100_cm() -> None:
    gmap = sim_map(2, 100.0, 25, equally_spaced=False, seed=12)

    subset = pick_marker_subset(gmap, min_distance=20.0, seed=12)

    for chrom in subset.chromosomes:
        assert len(subset[chrom]) <= 6
    _assert_spaced(gmap, subset, 20.0)
