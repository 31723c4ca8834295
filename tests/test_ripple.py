import numpy as np
import pytest

from qtltools.backend import HMMBackend
from qtltools.data.simulate import sim_cross, sim_map
from qtltools.mapping.ripple import RippleDegradation, _candidate_orders, ripple
from qtltools.utils.data_types import MapEstimate
from qtltools.utils.errors import ConvergenceWarning, ValidationError

TRUE_ORDER = ['C1M1', 'C1M2', 'C1M3', 'C1M4', 'C1M5']


class RankBackend(HMMBackend):
    """Scores an order by how far it strays from a known marker ranking"""

    def __init__(self, truth, fail_when=None):
        self.rank = {m: i for i, m in enumerate(truth)}
        self.fail_when = fail_when
        self.calls = 0

    def estimate_order(self, genotypes, cross_type, error_prob=1e-4, map_function='haldane',
                       maxit=1000, tol=1e-6, chrom=None, markers=None):
        self.calls += 1
        if self.fail_when is not None and self.fail_when(list(markers)):
            raise FloatingPointError("overflow in likelihood")
        distances = np.abs(np.diff([self.rank[m] for m in markers])).astype(float)
        return MapEstimate(list(markers), distances, loglik=-distances.sum(), chrom=chrom)


class NeverConverges(HMMBackend):
    def estimate_order(self, genotypes, cross_type, error_prob=1e-4, map_function='haldane',
                       maxit=1000, tol=1e-6, chrom=None, markers=None):
        return MapEstimate(list(markers), np.ones(len(markers) - 1), loglik=-1.0,
                           n_iter=maxit, converged=False)


@pytest.fixture
def cross():
    return sim_cross(sim_map(1, 40.0, 5), n_ind=30, cross_type='bc', seed=5)


def _scrambled(cross, order):
    pos = cross.genetic_map.chrom_positions('1')
    return cross.with_map(cross.genetic_map.with_chrom_order('1', order, pos))


def test_candidate_orders_exclude_identity() -> None:
    rng = np.random.default_rng(0)

    exhaustive = _candidate_orders(3, 7, 100, rng)
    sampled = _candidate_orders(9, 7, 20, rng)

    assert len(exhaustive) == 5
    assert (0, 1, 2) not in exhaustive
    assert 0 < len(sampled) <= 20
    assert len(set(sampled)) == len(sampled)
    assert tuple(range(9)) not in sampled


def test_ripple_call_count_for_one_pass(cross) -> None:
    backend = RankBackend(TRUE_ORDER)

    result = ripple(cross, window=3, max_passes=1, reestimate=False, backend=backend)

    # 3 windows, each scoring the current order plus 5 permutations
    assert backend.calls == 18
    assert result.windows_per_pass == {'1': [3]}
    assert result.n_candidates == {'1': 6}
    assert result.passes == {'1': 1}
    assert result.changed == {'1': False}
    np.testing.assert_allclose(result.cross.genetic_map.chrom_positions('1'), [0, 10, 20, 30, 40])


def test_ripple_recovers_order(cross) -> None:
    scrambled = _scrambled(cross, ['C1M1', 'C1M3', 'C1M2', 'C1M5', 'C1M4'])

    result = ripple(scrambled, window=3, backend=RankBackend(TRUE_ORDER))

    assert result.orders['1'] == TRUE_ORDER
    assert result.changed == {'1': True}
    assert result.input_orders['1'] == ['C1M1', 'C1M3', 'C1M2', 'C1M5', 'C1M4']
    assert result.passes['1'] >= 2
    assert result.cross.marker_names == TRUE_ORDER
    np.testing.assert_allclose(result.cross.genetic_map.chrom_positions('1'), [0, 1, 2, 3, 4])
    assert not result.cross.has_genoprob


def test_ripple_length_criterion(cross) -> None:
    scrambled = _scrambled(cross, ['C1M2', 'C1M1', 'C1M3', 'C1M4', 'C1M5'])

    result = ripple(scrambled, window=2, method='length', backend=RankBackend(TRUE_ORDER))

    assert result.orders['1'] == TRUE_ORDER


def test_ripple_records_rejected_candidates(cross) -> None:
    def c1m3_before_c1m2(markers):
        return 'C1M3' in markers and 'C1M2' in markers and markers.index('C1M3') < markers.index('C1M2')

    backend = RankBackend(TRUE_ORDER, fail_when=c1m3_before_c1m2)

    with pytest.warns(ConvergenceWarning):
        result = ripple(cross, window=3, max_passes=1, backend=backend)

    assert result.orders['1'] == TRUE_ORDER
    assert result.degradations
    assert all(isinstance(d, RippleDegradation) for d in result.degradations)
    assert all('FloatingPointError' in d.reason for d in result.degradations)
    table = result.to_dataframe()
    assert list(table.columns) == ['CHROM', 'WINDOW_START', 'MARKERS', 'REASON']
    assert len(table) == len(result.degradations)


def test_ripple_keeps_order_when_oracle_never_converges(cross) -> None:
    scrambled = _scrambled(cross, ['C1M2', 'C1M1', 'C1M3', 'C1M4', 'C1M5'])

    with pytest.warns(ConvergenceWarning):
        result = ripple(scrambled, window=3, backend=NeverConverges())

    assert result.orders['1'] == ['C1M2', 'C1M1', 'C1M3', 'C1M4', 'C1M5']
    # three windows on the current order plus the final map
    assert len(result.degradations) == 4
    assert result.degradations[-1].window_start == -1
    assert result.estimates == {}
    np.testing.assert_allclose(result.cross.genetic_map.chrom_positions('1'), [0, 10, 20, 30, 40])


def test_ripple_with_default_backend_keeps_simulated_order() -> None:
    cross = sim_cross(sim_map(1, 60.0, 5), n_ind=150, cross_type='f2', seed=8)

    result = ripple(cross, window=3)

    assert result.orders['1'] == cross.marker_names
    assert result.estimates['1'].is_valid()


def test_ripple_validation(cross) -> None:
    with pytest.raises(ValidationError):
        ripple(cross, window=1)
    with pytest.raises(ValidationError):
        ripple(cross, max_passes=0)
    with pytest.raises(ValidationError):
        ripple(cross, method='anneal')


def test_ripple_is_idempotent_at_a_local_optimum(cross) -> None:
    scrambled = _scrambled(cross, ['C1M3', 'C1M1', 'C1M2', 'C1M5', 'C1M4'])
    backend = RankBackend(TRUE_ORDER)

    first = ripple(scrambled, window=3, backend=backend)
    second = ripple(first.cross, window=3, backend=backend)

    assert second.orders == first.orders
    assert second.changed == {'1': False}
    assert second.passes == {'1': 1}
