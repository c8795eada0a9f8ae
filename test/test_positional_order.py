import numpy as np
import pytest

from hexatic_post_processing import (
    GrAccumulator,
    GtAccumulator,
    generate_random_particles,
    load_report,
)


def test_reciprocal_vectors():
    acc = GtAccumulator(dr=0.5, a_lattice=2.0)
    G = acc.reciprocal_vectors(0.0)
    assert G.shape == (6, 2)
    assert np.allclose(np.hypot(G[:, 0], G[:, 1]), 4.0 * np.pi / (2.0 * np.sqrt(3.0)))
    assert np.allclose(G[0], [4.0 * np.pi / (2.0 * np.sqrt(3.0)), 0.0])
    angles = np.arctan2(G[:, 1], G[:, 0]) % (2 * np.pi)
    assert np.allclose(np.sort(angles), np.arange(6) * np.pi / 3.0)
    rot = acc.reciprocal_vectors(0.2)
    assert np.arctan2(rot[0, 1], rot[0, 0]) == pytest.approx(0.2)


def test_single_pair_by_hand():
    a = 1.0
    coms = np.array([[0.0, 0.0], [a * np.sqrt(3.0) / 2.0, 0.0]])
    acc = GtAccumulator(dr=0.5, a_lattice=a)
    assert acc.accumulate(coms, theta_g=0.0)
    table = acc.result()
    # G . dr = 2 pi cos(n pi / 3): cosines 1, -1, -1, 1, -1, -1
    assert table["gT"].iloc[1] == pytest.approx(-1.0 / 3.0)
    assert table["pair_count"].tolist() == [0, 1]
    # empty bin reads 0
    assert table["gT"].iloc[0] == 0.0


def test_matches_direct_sum():
    pos, box = generate_random_particles(num_particles=40, box_size=(8.0, 6.0), seed=9)
    a, theta, dr = 1.1, 0.13, 0.4
    acc = GtAccumulator(dr, a)
    acc.accumulate(pos, theta, box=box)
    table = acc.result()

    g = 4.0 * np.pi / (a * np.sqrt(3.0))
    sums = np.zeros(len(table))
    counts = np.zeros(len(table), dtype=int)
    for i in range(len(pos)):
        for j in range(i + 1, len(pos)):
            d = pos[j] - pos[i]
            d -= np.array(box) * np.ceil(d / np.array(box) - 0.5)
            r = np.hypot(*d)
            if r > 3.0:
                continue
            b = int(np.floor(r / dr))
            sums[b] += np.mean([np.cos(g * (np.cos(theta + n * np.pi / 3) * d[0]
                                            + np.sin(theta + n * np.pi / 3) * d[1]))
                                for n in range(6)])
            counts[b] += 1
    assert table["pair_count"].tolist() == counts.tolist()
    expected = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)
    assert np.allclose(table["gT"], expected)


def test_pair_counts_agree_with_g_r():
    rng = np.random.default_rng(4)
    frames = [rng.random((50, 2)) * 10.0 for _ in range(3)]
    gt, gr = GtAccumulator(0.3, 1.0), GrAccumulator(0.3)
    for f in frames:
        gt.accumulate(f, 0.05, box=(10.0, 10.0))
        gr.accumulate(f, box=(10.0, 10.0))
    n = gt.nbins
    assert np.array_equal(gt.pair_count, gr.pair_count[:n])
    assert not gr.pair_count[n:].any()
    assert gt.nframes == gr.nframes == 3


def test_values_are_bounded():
    pos, box = generate_random_particles(num_particles=100, box_size=(10.0, 10.0), seed=1)
    acc = GtAccumulator(0.2, 1.0)
    acc.accumulate(pos, 0.4, box=box)
    gT = acc.result()["gT"]
    assert (gT.abs() <= 1.0 + 1e-12).all()


def test_invalid_construction_and_small_input():
    with pytest.raises(ValueError):
        GtAccumulator(0.5, 0.0)
    with pytest.raises(ValueError):
        GtAccumulator(0.0, 1.0)
    acc = GtAccumulator(0.5, 1.0)
    assert not acc.accumulate(np.array([[0.0, 0.0]]), 0.0)
    assert acc.nframes == 0


def test_write_report(tmp_path):
    acc = GtAccumulator(0.5, 1.25)
    acc.accumulate(np.array([[0.0, 0.0], [1.0, 0.0]]), 0.0)
    out = tmp_path / "gt.dat"
    acc.write(out, 0, 10)
    lines = out.read_text().splitlines()
    assert lines[0] == "# gT(r) average over time_0..time_10"
    assert "a_lattice=1.25" in lines[2]
    assert "use_pbc=false" in lines[2]
    table = load_report(out)
    assert list(table.columns) == ["r_center", "gT", "pair_count"]
    assert table["pair_count"].tolist() == [0, 0, 1]
    with pytest.raises(RuntimeError):
        acc.accumulate(np.array([[0.0, 0.0], [1.0, 0.0]]), 0.0)
