# =============================================================================
# utils.py
# Periodic-boundary primitives and synthetic 2D configurations.
# =============================================================================
import logging
from typing import Optional, Tuple, Union

import numpy as np

from .config import PeriodicBox

logger = logging.getLogger(__name__)

BoxLike = Union[None, float, int, Tuple[float, float], PeriodicBox]


# =============================================================================
# Minimum image + wrapping
# =============================================================================

def minimum_image_delta(d, L):
    """
    Shortest signed displacement equivalent to ``d`` modulo ``L``.

    The result lies in (-L/2, L/2]. ``L <= 0`` means "not periodic" and returns
    ``d`` unchanged. Works on scalars and numpy arrays.
    """
    if L <= 0.0:
        return d
    d_arr = np.asarray(d, dtype=np.float64)
    # ceil(x - 1/2) picks the upper image on ties, keeping +L/2 and dropping -L/2
    out = d_arr - L * np.ceil(d_arr / L - 0.5)
    return float(out) if out.ndim == 0 else out


def wrap_position(x, L):
    """
    Fold ``x`` into the primary cell [0, L). ``L <= 0`` returns ``x`` unchanged.
    """
    if L <= 0.0:
        return x
    y = np.mod(np.asarray(x, dtype=np.float64), L)
    # np.mod(-tiny, L) rounds to exactly L
    y = np.where(y >= L, y - L, y)
    return float(y) if y.ndim == 0 else y


def _ensure_box(box: BoxLike) -> Optional[PeriodicBox]:
    """Return a PeriodicBox (or None when PBC is off) from a scalar, pair or box."""
    if box is None:
        return None
    if isinstance(box, PeriodicBox):
        return box
    if isinstance(box, (float, int, np.floating, np.integer)):
        return PeriodicBox(float(box), float(box))
    Lx, Ly = box
    return PeriodicBox(float(Lx), float(Ly))


def _as_xy(positions) -> np.ndarray:
    """Return an (N,2) float64 view of (N,2) or (N,3) positions."""
    p = np.asarray(positions, dtype=np.float64)
    if p.ndim != 2 or p.shape[1] not in (2, 3):
        if p.size == 0:
            return np.zeros((0, 2), dtype=np.float64)
        raise ValueError("positions must be (N,2) or (N,3).")
    return p[:, :2]


def minimum_image(displacements: np.ndarray, box: Optional[PeriodicBox]) -> np.ndarray:
    """Apply the minimum-image convention column-wise to (..., 2) displacements."""
    if box is None:
        return displacements
    out = np.array(displacements, dtype=np.float64, copy=True)
    out[..., 0] = minimum_image_delta(out[..., 0], box.Lx)
    out[..., 1] = minimum_image_delta(out[..., 1], box.Ly)
    return out


def wrap_positions(positions: np.ndarray, box: Optional[PeriodicBox]) -> np.ndarray:
    """Fold (N,2) positions into the primary cell of ``box``."""
    xy = _as_xy(positions)
    if box is None:
        return xy.copy()
    out = np.empty_like(xy)
    out[:, 0] = wrap_position(xy[:, 0], box.Lx)
    out[:, 1] = wrap_position(xy[:, 1], box.Ly)
    return out


# =============================================================================
# Synthetic configurations
# =============================================================================

def generate_triangular_lattice(lattice_constant=1.0, nx=10, ny=10, jitter=0.0,
                                seed=None, output_file=None):
    """
    Triangular lattice that tiles a periodic box.

    Parameters
    ----------
    lattice_constant : float
        Nearest-neighbour distance a.
    nx, ny : int
        Sites per row and number of rows. ``ny`` should be even for the
        lattice to be periodic in y.
    jitter : float
        Standard deviation of a Gaussian displacement added to every site,
        in units of ``lattice_constant``.
    seed : int or None
    output_file : str or None
        If given, the configuration is also written as a snapshot file.

    Returns
    -------
    positions : (nx*ny, 2) ndarray, wrapped into the box
    box : (Lx, Ly)
    """
    a = float(lattice_constant)
    i, j = np.indices((nx, ny))
    x = a * (i + 0.5 * (j & 1))
    y = (np.sqrt(3.0) / 2.0) * a * j
    pos = np.column_stack([x.ravel(), y.ravel()]).astype(np.float64)
    Lx, Ly = nx * a, ny * (np.sqrt(3.0) / 2.0) * a
    if jitter > 0.0:
        rng = np.random.default_rng(seed)
        pos += jitter * a * rng.standard_normal(pos.shape)
    pos[:, 0] = wrap_position(pos[:, 0], Lx)
    pos[:, 1] = wrap_position(pos[:, 1], Ly)
    if output_file is not None:
        _write(output_file, pos, "triangular lattice")
    return pos, (Lx, Ly)


def generate_square_lattice(lattice_constant=1.0, nx=10, ny=10, output_file=None):
    """Square lattice of nx*ny sites with box (nx*a, ny*a)."""
    a = float(lattice_constant)
    i, j = np.indices((nx, ny))
    pos = np.column_stack([(a * i).ravel(), (a * j).ravel()]).astype(np.float64)
    if output_file is not None:
        _write(output_file, pos, "square lattice")
    return pos, (nx * a, ny * a)


def generate_random_particles(num_particles=100, box_size=(10.0, 10.0), seed=None, output_file=None):
    """Uniformly distributed particles inside [0, Lx) x [0, Ly)."""
    rng = np.random.default_rng(seed)
    Lx, Ly = float(box_size[0]), float(box_size[1])
    pos = rng.random((num_particles, 2)) * np.array([Lx, Ly])
    if output_file is not None:
        _write(output_file, pos, "random particles")
    return pos, (Lx, Ly)


def decorate_with_clusters(centers, n_per_cluster=3, radius=0.1, box=None, seed=None):
    """
    Replace every site by a tight group of ``n_per_cluster`` particles.

    Members are placed on a ring of ``radius`` around the site with a random
    phase, so the group centroid is the site itself. Positions are wrapped
    into ``box`` when it is given.

    Returns
    -------
    positions : (len(centers) * n_per_cluster, 2) ndarray
    """
    rng = np.random.default_rng(seed)
    c = _as_xy(centers)
    phases = rng.uniform(0.0, 2.0 * np.pi, size=len(c))
    k = np.arange(n_per_cluster)
    ang = phases[:, None] + 2.0 * np.pi * k[None, :] / n_per_cluster
    px = c[:, 0:1] + radius * np.cos(ang)
    py = c[:, 1:2] + radius * np.sin(ang)
    pos = np.column_stack([px.ravel(), py.ravel()])
    return wrap_positions(pos, _ensure_box(box))


def _write(output_file, positions, what):
    from .data_loader import write_snapshot_xy
    write_snapshot_xy(output_file, positions)
    logger.info("Fake %s written to %s", what, output_file)
