# =============================================================================
# clusters.py
# Bond-graph cluster search on 2D positions and periodic-aware cluster COMs.
# =============================================================================
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from .utils import _as_xy, _ensure_box, minimum_image, wrap_position, wrap_positions

logger = logging.getLogger(__name__)


# =============================================================================
# Bond graph
# =============================================================================

def bonded_pairs(positions, lbond, box=None) -> np.ndarray:
    """
    All unordered pairs (i, j), i < j, closer than ``lbond`` (minimum image
    under PBC). Uses a k-d tree; the set of pairs is the same as a full
    O(N^2) scan with ``d^2 <= lbond^2``.

    Returns
    -------
    (P, 2) int ndarray
    """
    box = _ensure_box(box)
    xy = _as_xy(positions)
    if len(xy) < 2:
        return np.zeros((0, 2), dtype=np.int64)
    if box is None:
        tree = cKDTree(xy)
    else:
        tree = cKDTree(wrap_positions(xy, box), boxsize=box.lengths)
    pairs = tree.query_pairs(r=float(lbond), output_type='ndarray')
    return np.asarray(pairs, dtype=np.int64).reshape(-1, 2)


def find_clusters(positions, lbond, box=None) -> Optional[Tuple[np.ndarray, int]]:
    """
    Group particles into clusters: the transitive closure of "within lbond".

    Parameters
    ----------
    positions : (N,2) or (N,3) array
    lbond : float
        Bond cutoff (> 0).
    box : None, float, (Lx, Ly) or PeriodicBox
        Periodic box; None disables PBC.

    Returns
    -------
    (cluster_id, nclusters) or None when there are no particles.
        cluster_id[i] is a compact id in [0, nclusters), numbered in order of
        first appearance over particle index.
    """
    if not float(lbond) > 0.0:
        raise ValueError(f"lbond must be > 0, got {lbond}")
    box = _ensure_box(box)
    xy = _as_xy(positions)
    N = len(xy)
    if N == 0:
        return None

    pairs = bonded_pairs(xy, lbond, box)
    adj = coo_matrix((np.ones(len(pairs), dtype=np.int8), (pairs[:, 0], pairs[:, 1])), shape=(N, N))
    nclusters, labels = connected_components(adj, directed=False)

    # renumber by the lowest particle index of each component
    _, first = np.unique(labels, return_index=True)
    rank = np.empty(nclusters, dtype=np.int64)
    rank[np.argsort(first)] = np.arange(nclusters)
    return rank[labels], int(nclusters)


def make_clusters_from_ids(cluster_id, nclusters) -> Optional[List[np.ndarray]]:
    """
    Member lists per cluster id (ascending particle index).

    Ids outside [0, nclusters) are skipped with a warning.
    """
    if nclusters <= 0:
        return None
    cid = np.asarray(cluster_id, dtype=np.int64)
    bad = (cid < 0) | (cid >= nclusters)
    if np.any(bad):
        logger.warning("make_clusters_from_ids: %d invalid cluster ids skipped", int(bad.sum()))
    idx = np.arange(len(cid))[~bad]
    order = np.argsort(cid[~bad], kind='stable')
    counts = np.bincount(cid[~bad], minlength=nclusters)
    return np.split(idx[order], np.cumsum(counts)[:-1])


# =============================================================================
# Centers of mass
# =============================================================================

def compute_cluster_coms(positions, clusters: Sequence[Sequence[int]], box=None) -> np.ndarray:
    """
    One center of mass per cluster, index-aligned with the cluster id.

    Under PBC each member is unwrapped relative to the cluster's first member
    before averaging, and the mean is wrapped back into the primary cell, so a
    cluster straddling a boundary gets a center next to that boundary.
    An empty cluster gets (0, 0).

    Returns
    -------
    coms : (nclusters, 2) ndarray
    """
    if clusters is None:
        raise ValueError("compute_cluster_coms: clusters is None")
    box = _ensure_box(box)
    xy = _as_xy(positions)
    N = len(xy)
    coms = np.zeros((len(clusters), 2), dtype=np.float64)
    for c, members in enumerate(clusters):
        m = np.asarray(members, dtype=np.int64)
        if m.size == 0:
            continue
        if m.min() < 0 or m.max() >= N:
            raise ValueError(f"compute_cluster_coms: member index out of range in cluster {c}")
        ref = xy[m[0]]
        d = minimum_image(xy[m] - ref, box)
        com = ref + d.mean(axis=0)
        if box is not None:
            com = np.array([wrap_position(com[0], box.Lx), wrap_position(com[1], box.Ly)])
        coms[c] = com
    return coms
