# =============================================================================
# neighbors.py
# Neighbor graph over cluster COMs from a planar triangulation, with the
# 3x3 periodic-image trick for PBC.
# =============================================================================
import logging
from typing import Callable, List, Optional

import numpy as np
from scipy.spatial import Delaunay, QhullError

from .utils import _as_xy, _ensure_box, minimum_image

logger = logging.getLogger(__name__)

# Order of the 8 periodic images appended after the central block.
IMAGE_SHIFTS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))

EDGE_TOL = 1e-9

Triangulator = Callable[[np.ndarray], np.ndarray]


def delaunay_edges(points) -> np.ndarray:
    """
    Undirected edges of the Delaunay triangulation of ``points``.

    Degenerate sets that Qhull refuses (two points, collinear points) are
    connected as a chain along their common line.

    Returns
    -------
    (E, 2) int ndarray with edges[:, 0] < edges[:, 1]
    """
    pts = _as_xy(points)
    if len(pts) < 2:
        return np.zeros((0, 2), dtype=np.int64)
    if len(pts) >= 3:
        try:
            tri = Delaunay(pts)
        except QhullError as exc:
            logger.debug("delaunay_edges: Qhull failed (%s), trying collinear chain", exc)
        else:
            s = tri.simplices
            edges = np.concatenate([s[:, [0, 1]], s[:, [1, 2]], s[:, [2, 0]]])
            edges.sort(axis=1)
            return np.unique(edges, axis=0).astype(np.int64)
    return _chain_edges(pts)


def _chain_edges(pts: np.ndarray) -> np.ndarray:
    """Edges between consecutive points of a collinear set; empty otherwise."""
    centered = pts - pts.mean(axis=0)
    _, sv, vt = np.linalg.svd(centered, full_matrices=False)
    scale = max(sv[0], 1.0) if sv.size else 1.0
    if sv.size == 0 or sv[0] <= 1e-12 * scale:
        return np.zeros((0, 2), dtype=np.int64)
    if sv.size > 1 and sv[1] > 1e-9 * scale:
        logger.warning("delaunay_edges: non-collinear point set could not be triangulated")
        return np.zeros((0, 2), dtype=np.int64)
    order = np.argsort(centered @ vt[0], kind='stable')
    edges = np.column_stack([order[:-1], order[1:]])
    edges.sort(axis=1)
    return edges.astype(np.int64)


def tile_periodic_images(points, box) -> np.ndarray:
    """Original M points followed by their 8 periodic images (9M points)."""
    box = _ensure_box(box)
    pts = _as_xy(points)
    blocks = [pts]
    for sx, sy in IMAGE_SHIFTS:
        blocks.append(pts + np.array([sx * box.Lx, sy * box.Ly]))
    return np.concatenate(blocks, axis=0)


def triangulate_get_neighbors(points, box=None,
                              triangulator: Triangulator = delaunay_edges) -> Optional[List[List[int]]]:
    """
    Symmetric, deduplicated neighbor lists for M points.

    Without PBC the triangulation edges are the neighbor relation. With PBC the
    points are tiled with their 8 images before triangulating; an edge is kept
    only if it touches the central block, joins two distinct originals, and
    reproduces the minimum-image displacement between them to within
    ``EDGE_TOL`` per axis.

    Parameters
    ----------
    points : (M,2) array
    box : None, float, (Lx, Ly) or PeriodicBox
    triangulator : callable
        points -> (E,2) edge index array. Any planar triangulation works.

    Returns
    -------
    neighbors : list of M sorted lists of int, or None if M == 0 or the
        triangulation produced no edges.
    """
    box = _ensure_box(box)
    pts = _as_xy(points)
    M = len(pts)
    if M == 0:
        return None

    tiled = pts if box is None else tile_periodic_images(pts, box)
    edges = np.asarray(triangulator(tiled), dtype=np.int64).reshape(-1, 2)
    if len(edges) == 0:
        logger.warning("triangulate_get_neighbors: no edges produced for %d points", M)
        return None

    p1, p2 = edges[:, 0], edges[:, 1]
    keep = np.ones(len(edges), dtype=bool)
    if box is not None:
        # edges between two image copies fold back into spurious long bonds
        keep &= (p1 < M) | (p2 < M)
    o1, o2 = p1 % M, p2 % M
    keep &= o1 != o2
    if box is not None:
        e = tiled[p2] - tiled[p1]
        m = minimum_image(pts[o2] - pts[o1], box)
        keep &= np.all(np.abs(e - m) <= EDGE_TOL, axis=1)

    nbr_sets = [set() for _ in range(M)]
    for a, b in zip(o1[keep].tolist(), o2[keep].tolist()):
        nbr_sets[a].add(b)
        nbr_sets[b].add(a)
    return [sorted(s) for s in nbr_sets]


def neighbor_counts(neighbors: List[List[int]]) -> np.ndarray:
    """Coordination number of every point."""
    return np.array([len(n) for n in neighbors], dtype=np.int64)
