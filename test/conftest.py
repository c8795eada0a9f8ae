import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from hexatic_post_processing import (
    decorate_with_clusters,
    generate_triangular_lattice,
    write_snapshot_xy,
)


@pytest.fixture
def hexagon():
    """Center plus six points at unit distance, bonds at 0, 60, ..., 300 degrees."""
    ang = np.deg2rad(np.arange(0, 360, 60))
    ring = np.column_stack([np.cos(ang), np.sin(ang)])
    return np.vstack([[0.0, 0.0], ring])


@pytest.fixture
def triangular_crystal():
    """Perfect periodic triangular lattice: (positions, (Lx, Ly), a)."""
    a = 1.03
    pos, box = generate_triangular_lattice(lattice_constant=a, nx=10, ny=10)
    return pos, box, a


@pytest.fixture
def snapshot_dir(tmp_path, triangular_crystal):
    """Directory with time_<idx>.dat files of 3-particle clusters on a triangular lattice."""
    centers, box, a = triangular_crystal
    d = tmp_path / "snapshots"
    d.mkdir()
    for k, t in enumerate((100, 110, 120)):
        pos = decorate_with_clusters(centers, n_per_cluster=3, radius=0.1, box=box, seed=k)
        write_snapshot_xy(d / f"time_{t}.dat", pos, comment=f"t={t}")
    return d, box, a
