import pandas as pd
import pytest

from qtltools.mapping.gaps import GAP_COLUMNS, fill_gaps_in_map
from qtltools.utils.data_types import GeneticMap, InferredPosition, InferredPositions
from qtltools.utils.errors import ValidationError


@pytest.fixture
def genetic_map():
    return GeneticMap(pd.DataFrame({
        'MARKER': ['a', 'b', 'c', 'd', 'e', 'f', 'g'],
        'CHROM': ['1'] * 5 + ['2'] * 2,
        'POS': [0.0, 5.0, 30.0, 32.0, 60.0, 0.0, 50.0],
    }))


@pytest.fixture
def placed():
    return pd.DataFrame({
        'MARKER': ['q1', 'q2', 'q3', 'q4', 'q5'],
        'CHROM': ['1', '1', '1', '2', '1'],
        'POS': [17.5, 25.0, 40.0, 10.0, 31.0],
        'LOD': [5.0, 8.0, 2.0, 4.0, 9.0],
    })


def test_candidates_ranked_by_split_score(genetic_map, placed) -> None:
    gaps = fill_gaps_in_map(genetic_map, placed, min_gap=10.0, min_lod=3.0)

    assert list(gaps.columns) == GAP_COLUMNS
    assert gaps['MARKER'].tolist() == ['q1', 'q2', 'q4']
    assert gaps['SPLIT_SCORE'].tolist() == pytest.approx([1.0, 0.4, 0.4])
    first = gaps.iloc[0]
    assert (first['LEFT_MARKER'], first['RIGHT_MARKER'], first['GAP_SIZE']) == ('b', 'c', 25.0)


def test_max_per_gap_and_inferred_positions_input(genetic_map) -> None:
    inferred = InferredPositions([
        InferredPosition('q1', '1', 17.5, 5.0),
        InferredPosition('q2', '1', 25.0, 8.0),
    ], chrom_order=['1', '2'])

    gaps = fill_gaps_in_map(genetic_map, inferred, max_per_gap=1)

    assert gaps['MARKER'].tolist() == ['q1']


def test_no_candidates(genetic_map, placed) -> None:
    gaps = fill_gaps_in_map(genetic_map, placed, min_gap=100.0)

    assert gaps.empty
    assert list(gaps.columns) == GAP_COLUMNS


def test_gap_validation(genetic_map, placed) -> None:
    with pytest.raises(ValidationError):
        fill_gaps_in_map(genetic_map, placed, min_gap=0)
    with pytest.raises(ValidationError):
        fill_gaps_in_map(genetic_map, placed.drop(columns='LOD'))
