import numpy as np
import pandas as pd
import pytest

from qtltools.core.cross import Cross
from qtltools.data.simulate import sim_cross, sim_map
from qtltools.matrix import hmm
from qtltools.matrix.genoprob import calc_genoprob, compute_genoprob, make_grid, pseudomarker_name
from qtltools.utils.errors import ValidationError


@pytest.mark.parametrize("cross_type", ['bc', 'dh', 'riself', 'risib', 'f2'])
def test_transition_rows_sum_to_one(cross_type) -> None:
    trans = hmm.transition_matrices(cross_type, np.array([0.0, 0.1, 0.5]))

    np.testing.assert_allclose(trans.sum(axis=2), 1.0)


def test_emission_probs_missing_and_errors() -> None:
    emit = hmm.emission_probs(np.array([[0.0, np.nan, 2.0]]), 'f2', error_prob=0.02)

    np.testing.assert_allclose(emit[0, 0], [0.98, 0.01, 0.01])
    np.testing.assert_allclose(emit[0, 1], [1.0, 1.0, 1.0])
    np.testing.assert_allclose(emit[0, 2], [0.01, 0.01, 0.98])
    with pytest.raises(ValidationError):
        hmm.emission_probs(np.zeros((1, 1)), 'bc', error_prob=1.0)


def test_make_grid_merges_markers_and_pseudomarkers() -> None:
    positions, index = make_grid(np.array([0.0, 10.0]), step=5.0, off_end=0.0)

    np.testing.assert_allclose(positions, [0.0, 5.0, 10.0])
    np.testing.assert_array_equal(index, [0, -1, 1])

    positions, index = make_grid(np.array([0.0, 10.0]), step=0.0, off_end=2.0)
    np.testing.assert_allclose(positions, [-2.0, 0.0, 10.0, 12.0])
    np.testing.assert_array_equal(index, [-1, 0, 1, -1])
    assert pseudomarker_name('1', 12.5) == 'c1.loc12.5'


def test_genoprob_is_certain_at_observed_markers_without_errors() -> None:
    cross = sim_cross(sim_map(1, 40.0, 5), n_ind=15, cross_type='f2', missing_prob=0.2, seed=4)

    gp = compute_genoprob(cross, step=2.5, error_prob=0.0)
    chrom = gp['1']

    np.testing.assert_allclose(chrom.probs.sum(axis=2), 1.0)
    geno = cross.chrom_genotypes('1')
    marker_cols = np.flatnonzero(chrom.is_marker)
    for j, col in enumerate(marker_cols):
        observed = ~np.isnan(geno[:, j])
        states = (geno[observed, j]).astype(int)
        np.testing.assert_allclose(chrom.probs[observed, col, states], 1.0)
    assert chrom.loci[0] == 'C1M1'
    assert chrom.n_positions == 17


def test_genoprob_rejects_unsorted_map() -> None:
    geno = pd.DataFrame({'m1': [0, 1], 'm2': [1, 1]}, index=['a', 'b'])
    gmap = pd.DataFrame({'MARKER': ['m1', 'm2'], 'CHROM': ['1', '1'], 'POS': [10.0, 0.0]})

    with pytest.raises(ValidationError):
        compute_genoprob(Cross(geno, gmap, cross_type='bc'))


def test_calc_genoprob_attaches_settings() -> None:
    cross = calc_genoprob(sim_cross(sim_map(2, 30.0, 4), n_ind=10, cross_type='bc', seed=2),
                          step=1.0, error_prob=0.01, map_function='kosambi')

    assert cross.has_genoprob
    assert cross.genoprob.chromosomes == ['1', '2']
    assert cross.genoprob.settings() == {'off_end': 0.0, 'error_prob': 0.01, 'map_function': 'kosambi'}


def test_em_estimate_rf_recovers_recombinant_fraction() -> None:
    # 100 backcross individuals, 10 recombinants between the two markers
    first = np.array([0] * 50 + [1] * 50, dtype=float)
    second = first.copy()
    second[:5] = 1
    second[50:55] = 0
    geno = np.column_stack([first, second])

    rf, loglik, n_iter, converged = hmm.em_estimate_rf(geno, 'bc', error_prob=0.0)

    assert converged
    assert rf[0] == pytest.approx(0.1, abs=1e-4)
    assert np.isfinite(loglik)
    assert n_iter >= 1


def test_em_estimate_rf_single_marker_and_validation() -> None:
    rf, loglik, n_iter, converged = hmm.em_estimate_rf(np.array([[0.0], [1.0]]), 'bc')

    assert rf.size == 0
    assert n_iter == 0 and converged
    assert np.isfinite(loglik)
    with pytest.raises(ValidationError):
        hmm.em_estimate_rf(np.zeros((2, 2)), 'bc', maxit=0)
