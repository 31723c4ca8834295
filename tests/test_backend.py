import numpy as np
import pytest

from qtltools.backend import (
    HMMBackend,
    MapEstimationOracle,
    QTLBackend,
    get_backend,
)
from qtltools.data.simulate import sim_cross, sim_map
from qtltools.mapping.est_map import est_map


def test_get_backend_default_and_override() -> None:
    default = get_backend()
    custom = HMMBackend()

    assert isinstance(default, HMMBackend)
    assert get_backend() is default
    assert get_backend(custom) is custom


def test_oracles_are_abstract() -> None:
    with pytest.raises(TypeError):
        QTLBackend()
    with pytest.raises(TypeError):
        MapEstimationOracle()


def test_estimate_order_names_and_single_marker() -> None:
    backend = HMMBackend()
    geno = np.array([[0.0, 0.0], [1.0, 1.0], [0.0, 1.0], [1.0, 1.0]])

    two = backend.estimate_order(geno, 'bc', error_prob=0.0, chrom=3)
    one = backend.estimate_order(geno[:, :1], 'bc')

    assert two.markers == ['m1', 'm2']
    assert two.chrom == '3'
    assert two.distances.shape == (1,)
    assert two.rf[0] == pytest.approx(0.25, abs=1e-4)
    assert one.distances.size == 0
    assert one.total_length == 0.0


def test_engines_use_the_supplied_map_oracle() -> None:
    class FixedLength(HMMBackend):
        def estimate_order(self, genotypes, cross_type, error_prob=1e-4, map_function='haldane',
                           maxit=1000, tol=1e-6, chrom=None, markers=None):
            estimate = super().estimate_order(genotypes, cross_type, error_prob, map_function,
                                              maxit, tol, chrom, markers)
            estimate.distances = np.full(len(markers) - 1, 7.0)
            return estimate

    cross = sim_cross(sim_map(1, 30.0, 4), n_ind=20, cross_type='bc', seed=0)

    new_cross, _ = est_map(cross, backend=FixedLength())

    np.testing.assert_allclose(new_cross.genetic_map.chrom_positions('1'), [0.0, 7.0, 14.0, 21.0])
