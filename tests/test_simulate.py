import numpy as np
import pytest

from qtltools.data.simulate import sim_cross, sim_map
from qtltools.utils.errors import ValidationError


def test_sim_map_layout() -> None:
    gmap = sim_map(3, [50.0, 80.0, 20.0], [6, 9, 2])

    assert gmap.chrom_names == ['1', '2', '3']
    assert gmap.chrom_markers('3') == ['C3M1', 'C3M2']
    np.testing.assert_allclose(gmap.chrom_positions('1'), np.linspace(0, 50, 6))
    assert gmap.chrom_length('2') == pytest.approx(80.0)


def test_sim_map_random_positions_keep_ends() -> None:
    gmap = sim_map(1, 100.0, 10, equally_spaced=False, seed=2)

    pos = gmap.chrom_positions('1')
    assert pos[0] == 0.0 and pos[-1] == 100.0
    assert np.all(np.diff(pos) >= 0)


@pytest.mark.parametrize("cross_type,codes", [
    ('bc', {0, 1}),
    ('dh', {0, 2}),
    ('riself', {0, 2}),
    ('f2', {0, 1, 2}),
])
def test_sim_cross_codes(cross_type, codes) -> None:
    cross = sim_cross(sim_map(1, 100.0, 5), n_ind=200, cross_type=cross_type, seed=1)

    assert set(np.unique(cross.geno.to_numpy()).astype(int)) == codes
    assert cross.individual_ids[0] == 'ind1'


def test_sim_cross_linkage_follows_distance() -> None:
    cross = sim_cross(sim_map(1, 100.0, 11), n_ind=2000, cross_type='bc', seed=3)
    geno = cross.geno.to_numpy()

    close = np.mean(geno[:, 0] != geno[:, 1])
    far = np.mean(geno[:, 0] != geno[:, 10])
    assert close == pytest.approx(0.5 * (1 - np.exp(-0.2)), abs=0.03)
    assert far == pytest.approx(0.5 * (1 - np.exp(-2.0)), abs=0.04)


def test_sim_cross_missing_and_phenotype() -> None:
    cross = sim_cross(sim_map(2, 50.0, 6), n_ind=300, cross_type='f2', missing_prob=0.2,
                      qtl=[('C2M3', 2.0)], noise_sd=0.5, seed=4)

    assert np.mean(np.isnan(cross.geno.to_numpy())) == pytest.approx(0.2, abs=0.03)
    assert list(cross.pheno.columns) == ['pheno']
    with pytest.raises(ValidationError):
        sim_cross(sim_map(1, 10.0, 2), qtl=[('nope', 1.0)])
    with pytest.raises(ValidationError):
        sim_cross(sim_map(1, 10.0, 2), missing_prob=1.0)
