import numpy as np
import pytest

from hexatic_post_processing import (
    bonded_pairs,
    find_clusters,
    make_clusters_from_ids,
    compute_cluster_coms,
    decorate_with_clusters,
    generate_triangular_lattice,
    minimum_image,
    PeriodicBox,
)


def _brute_force_components(pos, lbond, box=None):
    d = pos[None, :, :] - pos[:, None, :]
    if box is not None:
        d = minimum_image(d, PeriodicBox(*box))
    adj = (d ** 2).sum(axis=-1) <= lbond ** 2
    # every particle takes the smallest label among its neighbours until stable
    labels = np.arange(len(pos))
    while True:
        nxt = np.where(adj, labels[None, :], len(pos)).min(axis=1)
        if np.array_equal(nxt, labels):
            return labels
        labels = nxt


def _same_partition(a, b):
    return np.array_equal(a[:, None] == a[None, :], b[:, None] == b[None, :])


def test_chain_merges_into_one_cluster():
    # 0-1-4-3 is a chain of bonds; particle 2 sits alone
    pos = np.array([[0.0, 0.0], [0.9, 0.0], [5.0, 5.0], [2.7, 0.0], [1.8, 0.0]])
    cid, n = find_clusters(pos, 1.0)
    assert n == 2
    assert cid.tolist() == [0, 0, 1, 0, 0]
    cid, n = find_clusters(np.array([[1.0, 2.0]]), 1.0)
    assert n == 1 and cid.tolist() == [0]


def test_ids_are_compact_and_first_seen():
    pos = np.array([[0.0, 0.0], [5.0, 5.0], [0.5, 0.0], [9.0, 1.0], [5.4, 5.0]])
    cid, n = find_clusters(pos, 1.0)
    assert n == 3
    assert cid.tolist() == [0, 1, 0, 2, 1]


def test_cutoff_is_inclusive():
    pos = np.array([[0.0, 0.0], [1.0, 0.0]])
    assert find_clusters(pos, 1.0)[1] == 1
    assert find_clusters(pos, 0.999)[1] == 2


def test_clusters_join_across_periodic_boundary():
    pos = np.array([[0.1, 5.0], [9.9, 5.0], [5.0, 5.0]])
    cid, n = find_clusters(pos, 0.5, box=(10.0, 10.0))
    assert n == 2
    assert cid[0] == cid[1] != cid[2]
    # without PBC they are far apart
    assert find_clusters(pos, 0.5)[1] == 3


def test_three_dimensional_input_uses_xy():
    pos = np.array([[0.0, 0.0, 100.0], [0.5, 0.0, -100.0]])
    assert find_clusters(pos, 1.0)[1] == 1


@pytest.mark.parametrize("box", [None, (12.0, 9.0)])
def test_matches_brute_force_connectivity(box):
    rng = np.random.default_rng(42)
    pos = rng.random((300, 2)) * np.array([12.0, 9.0])
    cid, n = find_clusters(pos, 0.45, box=box)
    ref = _brute_force_components(pos, 0.45, box)
    assert n == len(np.unique(ref))
    assert _same_partition(cid, ref)
    assert sorted(np.unique(cid).tolist()) == list(range(n))


def test_bonded_pairs_are_ordered():
    pos = np.array([[0.0, 0.0], [0.3, 0.0], [3.0, 3.0]])
    pairs = bonded_pairs(pos, 0.5)
    assert pairs.tolist() == [[0, 1]]
    assert bonded_pairs(pos[:1], 0.5).shape == (0, 2)


def test_empty_and_invalid_input():
    assert find_clusters(np.zeros((0, 2)), 1.0) is None
    with pytest.raises(ValueError):
        find_clusters(np.zeros((3, 2)), 0.0)
    with pytest.raises(ValueError):
        find_clusters(np.zeros((3, 2)), 1.0, box=(0.0, 10.0))


def test_make_clusters_from_ids():
    clusters = make_clusters_from_ids(np.array([1, 0, 1, 2, 0]), 3)
    assert [c.tolist() for c in clusters] == [[1, 4], [0, 2], [3]]
    assert make_clusters_from_ids(np.array([]), 0) is None
    # out-of-range ids are dropped
    clusters = make_clusters_from_ids(np.array([0, 5, 1, -1]), 2)
    assert [c.tolist() for c in clusters] == [[0], [2]]


def test_com_without_pbc_is_plain_mean():
    pos = np.array([[0.0, 0.0], [2.0, 0.0], [1.0, 3.0], [7.0, 7.0]])
    coms = compute_cluster_coms(pos, [[0, 1, 2], [3]])
    assert np.allclose(coms, [[1.0, 1.0], [7.0, 7.0]])


def test_com_of_cluster_straddling_boundary():
    pos = np.array([[0.1, 5.0], [9.9, 5.0]])
    com = compute_cluster_coms(pos, [[0, 1]], box=(10.0, 10.0))[0]
    assert min(abs(com[0]), abs(com[0] - 10.0)) < 1e-9
    assert com[1] == pytest.approx(5.0)

    pos = np.array([[9.6, 0.2], [0.2, 9.8], [9.8, 9.6]])
    com = compute_cluster_coms(pos, [[0, 1, 2]], box=(10.0, 10.0))[0]
    assert 0.0 <= com[0] < 10.0 and 0.0 <= com[1] < 10.0
    assert com == pytest.approx([9.8666666667, 9.8666666667])


def test_com_is_wrapped_and_empty_cluster_is_origin():
    pos = np.array([[12.0, -1.0]])
    coms = compute_cluster_coms(pos, [[0], []], box=(10.0, 10.0))
    assert np.allclose(coms, [[2.0, 9.0], [0.0, 0.0]])


def test_com_invalid_input():
    with pytest.raises(ValueError):
        compute_cluster_coms(np.zeros((2, 2)), None)
    with pytest.raises(ValueError):
        compute_cluster_coms(np.zeros((2, 2)), [[0, 2]])


def test_decorated_lattice_recovers_sites():
    centers, box = generate_triangular_lattice(lattice_constant=1.0, nx=6, ny=6)
    pos = decorate_with_clusters(centers, n_per_cluster=3, radius=0.1, box=box, seed=3)
    cid, n = find_clusters(pos, 0.3, box=box)
    assert n == len(centers)
    coms = compute_cluster_coms(pos, make_clusters_from_ids(cid, n), box=box)
    d = minimum_image(coms - centers, PeriodicBox(*box))
    assert np.abs(d).max() < 1e-9
