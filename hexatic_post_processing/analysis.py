# =============================================================================
# analysis.py
# Hexatic order at cluster COMs and the radial accumulators g6(r), g(r), gT(r).
# Dependencies: numpy, pandas, scipy.
# =============================================================================
import logging
from itertools import chain
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from .utils import _as_xy, _ensure_box, minimum_image, wrap_positions

logger = logging.getLogger(__name__)


# =============================================================================
# Hexatic order: local psi6 and global orientation
# =============================================================================

def compute_psi6(coms, neighbors: Sequence[Sequence[int]], box=None, order_k=6) -> np.ndarray:
    """
    Local bond-orientational order psi_k at every COM.

        psi_k(i) = (1/n_i) sum_j exp(i k theta_ij)

    theta_ij is the angle of the (minimum-image) bond i->j. A point without
    neighbors gets 0.

    Parameters
    ----------
    coms : (M,2) array
    neighbors : list of M index lists
    box : None, float, (Lx, Ly) or PeriodicBox
    order_k : int

    Returns
    -------
    psi : (M,) complex128
    """
    box = _ensure_box(box)
    xy = _as_xy(coms)
    M = len(xy)
    if neighbors is None or len(neighbors) != M:
        raise ValueError("compute_psi6: need one neighbor list per COM")
    psi = np.zeros(M, dtype=np.complex128)
    for i, nbrs in enumerate(neighbors):
        if len(nbrs) == 0:
            continue
        j = np.asarray(nbrs, dtype=np.int64)
        if j.min() < 0 or j.max() >= M:
            raise ValueError(f"compute_psi6: neighbor index out of range at COM {i}")
        d = minimum_image(xy[j] - xy[i], box)
        theta = np.arctan2(d[:, 1], d[:, 0])
        psi[i] = np.mean(np.exp(1j * order_k * theta))
    return psi


def compute_global_orientation_angle(psi6, order_k=6) -> float:
    """
    Mean lattice orientation theta_G = arg(<psi6>) / 6 over all COMs.

    Returns 0.0 for an empty input.
    """
    psi = np.asarray(psi6, dtype=np.complex128)
    if psi.size == 0:
        logger.warning("compute_global_orientation_angle: empty psi6 array")
        return 0.0
    m = psi.mean()
    return float(np.arctan2(m.imag, m.real) / order_k)


# =============================================================================
# Pair geometry shared by the accumulators
# =============================================================================

# Rows of i handled at once; peak memory is O(PAIR_BLOCK * M) per snapshot.
PAIR_BLOCK = 512


def _dense_pair_blocks(xy, box, block_size):
    M = len(xy)
    cols = np.arange(M)
    for start in range(0, M - 1, block_size):
        rows = np.arange(start, min(start + block_size, M - 1))
        keep = cols[None, :] > rows[:, None]
        a, j = np.nonzero(keep)
        i = rows[a]
        d = minimum_image(xy[j] - xy[i], box)
        r = np.hypot(d[:, 0], d[:, 1])
        if box is not None:
            ok = r <= box.max_radius
            i, j, d, r = i[ok], j[ok], d[ok], r[ok]
        yield i, j, d, r


def _tree_pair_blocks(xy, box, block_size):
    M = len(xy)
    wrapped = wrap_positions(xy, box)
    tree = cKDTree(wrapped, boxsize=box.lengths)
    for start in range(0, M - 1, block_size):
        rows = np.arange(start, min(start + block_size, M - 1))
        hits = tree.query_ball_point(wrapped[rows], r=box.max_radius)
        counts = np.fromiter((len(h) for h in hits), dtype=np.int64, count=len(rows))
        j = np.fromiter(chain.from_iterable(hits), dtype=np.int64, count=int(counts.sum()))
        i = np.repeat(rows, counts)
        upper = j > i
        i, j = i[upper], j[upper]
        d = minimum_image(xy[j] - xy[i], box)
        r = np.hypot(d[:, 0], d[:, 1])
        # the tree and the minimum image can disagree by an ulp at the cutoff
        ok = r <= box.max_radius
        yield i[ok], j[ok], d[ok], r[ok]


def iter_pair_blocks(coms, box=None, block_size=PAIR_BLOCK, use_tree=None):
    """
    Stream the unordered COM pairs i < j in blocks of rows.

    Under PBC the minimum image is used and pairs farther than half the
    smaller box side are dropped; candidates then come from a periodic
    k-d tree. Without PBC every pair is visited, ``block_size`` rows at a time.

    Parameters
    ----------
    coms : (M,2) array
    box : None, float, (Lx, Ly) or PeriodicBox
    block_size : int
        Rows of i per yielded block.
    use_tree : bool or None
        Force (True) or skip (False) the k-d tree under PBC; None picks the
        tree whenever a box is given.

    Yields
    ------
    i, j : (P,) int arrays
    d    : (P,2) displacement r_j - r_i
    r    : (P,) distances
    """
    box = _ensure_box(box)
    xy = _as_xy(coms)
    if block_size < 1:
        raise ValueError(f"block_size must be >= 1, got {block_size}")
    if use_tree is None:
        use_tree = box is not None
    if use_tree and box is not None:
        yield from _tree_pair_blocks(xy, box, block_size)
    else:
        yield from _dense_pair_blocks(xy, box, block_size)


def estimate_first_peak(r, g) -> float:
    """
    Position of the first g(r) peak.

    Scans interior bins for the first local maximum above 1.0 (strictly above
    the left bin, not below the right bin); falls back to the global maximum.
    Returns -1.0 with fewer than 3 bins or when g has no positive value.
    """
    r = np.asarray(r, dtype=np.float64)
    g = np.asarray(g, dtype=np.float64)
    if len(g) < 3:
        return -1.0
    global_peak, global_val = -1, 0.0
    for b in range(1, len(g) - 1):
        if g[b] > global_val:
            global_peak, global_val = b, g[b]
        if g[b] > 1.0 and g[b] > g[b - 1] and g[b] >= g[b + 1]:
            return float(r[b])
    if global_peak < 0:
        return -1.0
    return float(r[global_peak])


# =============================================================================
# Radial accumulators
# =============================================================================

def _grow(a: np.ndarray, n: int) -> np.ndarray:
    if len(a) >= n:
        return a
    return np.concatenate([a, np.zeros(n - len(a), dtype=a.dtype)])


class RadialAccumulator:
    """
    Growable array of radial bins [b*dr, (b+1)*dr) with per-bin running sums.

    Subclasses list their per-bin fields in ``_fields`` and implement
    ``accumulate`` (one call per snapshot) and ``_table``. Calling ``result``
    or ``write`` finalizes the accumulator; further ``accumulate`` calls raise.
    """
    _fields: Tuple[Tuple[str, type], ...] = ()
    columns: Tuple[str, ...] = ()
    title = ""

    def __init__(self, dr):
        dr = float(dr)
        if not dr > 0.0:
            raise ValueError(f"dr must be > 0, got {dr}")
        self.dr = dr
        self.nbins = 0
        self.nframes = 0
        self._finalized = False
        for name, dtype in self._fields:
            setattr(self, name, np.zeros(0, dtype=dtype))

    def __repr__(self):
        state = "finalized" if self._finalized else "accumulating"
        return f"{type(self).__name__}(dr={self.dr}, nbins={self.nbins}, nframes={self.nframes}, {state})"

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def r_centers(self) -> np.ndarray:
        return (np.arange(self.nbins) + 0.5) * self.dr

    def _check_open(self):
        if self._finalized:
            raise RuntimeError(f"{type(self).__name__} is finalized; no more snapshots accepted")

    def _ensure_bins(self, bmax: int):
        """Materialize bins 0..bmax (inclusive)."""
        if bmax < self.nbins:
            return
        extra = bmax + 1 - self.nbins
        for name, dtype in self._fields:
            setattr(self, name, np.concatenate([getattr(self, name), np.zeros(extra, dtype=dtype)]))
        logger.debug("%s: grew to %d bins", type(self).__name__, bmax + 1)
        self.nbins = bmax + 1

    def _bin_index(self, r: np.ndarray) -> np.ndarray:
        return np.floor(r / self.dr).astype(np.int64)

    def _pair_histogram(self, xy, box, weigh=None):
        """
        Per-bin pair counts of one snapshot, streamed over pair blocks.

        ``weigh(i, j, d)`` returns a tuple of per-pair weights; their per-bin
        sums are returned alongside the counts. Nothing is stored on ``self``.
        """
        counts = np.zeros(0, dtype=np.int64)
        sums = []
        for i, j, d, r in iter_pair_blocks(xy, box):
            if r.size == 0:
                continue
            b = self._bin_index(r)
            n = max(len(counts), int(b.max()) + 1)
            counts = _grow(counts, n) + np.bincount(b, minlength=n)
            if weigh is None:
                continue
            for k, w in enumerate(weigh(i, j, d)):
                if k == len(sums):
                    sums.append(np.zeros(0, dtype=np.float64))
                sums[k] = _grow(sums[k], n) + np.bincount(b, weights=w, minlength=n)
        sums = [_grow(s, len(counts)) for s in sums]
        return counts, sums

    def _table(self) -> pd.DataFrame:
        raise NotImplementedError

    def result(self) -> pd.DataFrame:
        """Finalized per-bin table. Running sums are left untouched."""
        self._finalized = True
        return self._table()

    def _header(self, t0, t1, box, extra) -> List[str]:
        box = _ensure_box(box)
        params = f"dr={self.dr:.8g} use_pbc={'true' if box is not None else 'false'} frames={self.nframes}"
        for key, val in extra:
            params += f" {key}={val:.8g}"
        lines = [
            f"# {self.title} over time_{t0}..time_{t1}",
            "# columns: " + " ".join(self.columns),
            "# " + params,
        ]
        if box is not None:
            lines.append(f"# box: {box.Lx:.8g} {box.Ly:.8g}")
        return lines

    def _write(self, path, t0, t1, box, extra=()):
        table = self.result()
        with open(path, 'w') as fh:
            fh.write("\n".join(self._header(t0, t1, box, extra)) + "\n")
            table.to_csv(fh, sep=" ", header=False, index=False, float_format="%.10g")
        logger.info("%s written to %s (%d rows)", self.title, path, len(table))
        return path


class G6Accumulator(RadialAccumulator):
    """
    Hexatic correlation g6(r) = < psi6(i) psi6(j)* >.

    Each snapshot contributes its per-bin mean over pairs; the final value is
    the mean of those snapshot means, so frames with many pairs in a bin do
    not outweigh the others.
    """
    _fields = (("re_sum", np.float64), ("im_sum", np.float64),
               ("sample_count", np.int64), ("pair_count", np.int64))
    columns = ("r_center", "re_g6", "im_g6", "abs_g6", "sample_count", "pair_count")
    title = "Averaged g6(r)"

    def accumulate(self, coms, psi6, box=None) -> bool:
        """Add one snapshot. Returns False if it had fewer than two COMs."""
        self._check_open()
        box = _ensure_box(box)
        xy = _as_xy(coms)
        psi = np.asarray(psi6, dtype=np.complex128)
        if psi.shape != (len(xy),):
            raise ValueError("G6Accumulator.accumulate: psi6 must have one value per COM")
        if len(xy) < 2:
            return False

        def weigh(i, j, _):
            prod = psi[i] * np.conj(psi[j])
            return prod.real, prod.imag

        counts, sums = self._pair_histogram(xy, box, weigh)
        self.nframes += 1
        if counts.size == 0:
            return True
        self._ensure_bins(len(counts) - 1)
        counts = _grow(counts, self.nbins)
        re, im = (_grow(s, self.nbins) for s in sums)
        hit = counts > 0
        self.re_sum[hit] += re[hit] / counts[hit]
        self.im_sum[hit] += im[hit] / counts[hit]
        self.sample_count[hit] += 1
        self.pair_count += counts
        return True

    def _table(self) -> pd.DataFrame:
        hit = self.sample_count > 0
        n = self.sample_count[hit].astype(np.float64)
        re = self.re_sum[hit] / n
        im = self.im_sum[hit] / n
        return pd.DataFrame({
            "r_center": self.r_centers[hit],
            "re_g6": re,
            "im_g6": im,
            "abs_g6": np.hypot(re, im),
            "sample_count": self.sample_count[hit].copy(),
            "pair_count": self.pair_count[hit].copy(),
        }, columns=list(self.columns))

    def write(self, path, t0, t1, lbond, box=None):
        """Write the averaged g6(r) table; bins without samples are omitted."""
        return self._write(path, t0, t1, box, extra=(("lbond", float(lbond)),))


class GrAccumulator(RadialAccumulator):
    """
    Pair distribution g(r) = pair counts / ideal-gas pair counts.

    The ideal-gas reference 0.5 * M * rho * shell_area is only available under
    PBC (known area). There every snapshot adds its reference to all shells up
    to half the smaller box side, so g(r) does not depend on which snapshots
    happened to reach a given r. Without PBC the accumulator only counts pairs
    and g(r) reads 0.
    """
    _fields = (("pair_count", np.int64), ("shell_area_sum", np.float64),
               ("ideal_pairs_sum", np.float64))
    columns = ("r_center", "pair_count", "shell_area", "pair_density", "ideal_pairs", "g_r")
    title = "g(r) average"

    def accumulate(self, coms, box=None) -> bool:
        """Add one snapshot. Returns False if it had fewer than two COMs."""
        self._check_open()
        box = _ensure_box(box)
        xy = _as_xy(coms)
        M = len(xy)
        if M < 2:
            return False

        counts, _ = self._pair_histogram(xy, box)
        self.nframes += 1
        if box is not None:
            # every snapshot normalizes the whole range 0..max_radius; the
            # last shell is cut at max_radius like the pairs are
            bmax = max(int(np.ceil(box.max_radius / self.dr)) - 1, 0)
            outer = box.max_radius
        elif counts.size == 0:
            return True
        else:
            bmax = len(counts) - 1
            outer = np.inf
        self._ensure_bins(max(bmax, len(counts) - 1))
        self.pair_count += _grow(counts, self.nbins)

        edges = np.minimum(np.arange(bmax + 2) * self.dr, outer)
        da = np.pi * (edges[1:] ** 2 - edges[:-1] ** 2)
        self.shell_area_sum[:bmax + 1] += da
        if box is not None:
            rho = M / box.area
            self.ideal_pairs_sum[:bmax + 1] += 0.5 * M * rho * da
        return True

    def g_values(self) -> np.ndarray:
        pairs = self.pair_count.astype(np.float64)
        return np.divide(pairs, self.ideal_pairs_sum, out=np.zeros(self.nbins),
                         where=self.ideal_pairs_sum > 0.0)

    def _table(self) -> pd.DataFrame:
        pairs = self.pair_count.astype(np.float64)
        density = np.divide(pairs, self.shell_area_sum, out=np.zeros(self.nbins),
                            where=self.shell_area_sum > 0.0)
        return pd.DataFrame({
            "r_center": self.r_centers,
            "pair_count": self.pair_count.copy(),
            "shell_area": self.shell_area_sum.copy(),
            "pair_density": density,
            "ideal_pairs": self.ideal_pairs_sum.copy(),
            "g_r": self.g_values(),
        }, columns=list(self.columns))

    def estimate_lattice_constant(self) -> float:
        """First-peak position of the finalized g(r); -1.0 when undetermined."""
        if self.nbins < 3:
            return -1.0
        table = self.result()
        return estimate_first_peak(table["r_center"].to_numpy(), table["g_r"].to_numpy())

    def write(self, path, t0, t1, box=None):
        return self._write(path, t0, t1, box)


class GtAccumulator(RadialAccumulator):
    """
    Translational correlation gT(r) against a triangular reference lattice.

    For every pair the six cosines cos(G_n . dr) are averaged, with
    |G_n| = 4 pi / (a sqrt 3) at angles theta_G + n pi/3; bins keep a plain
    pair-weighted mean.
    """
    _fields = (("ct_sum", np.float64), ("pair_count", np.int64))
    columns = ("r_center", "gT", "pair_count")
    title = "gT(r) average"

    def __init__(self, dr, a_lattice):
        a_lattice = float(a_lattice)
        if not a_lattice > 0.0:
            raise ValueError(f"a_lattice must be > 0, got {a_lattice}")
        super().__init__(dr)
        self.a_lattice = a_lattice

    def reciprocal_vectors(self, theta_g) -> np.ndarray:
        """The six (Gx, Gy) vectors for orientation ``theta_g``."""
        g_mag = 4.0 * np.pi / (self.a_lattice * np.sqrt(3.0))
        ang = theta_g + np.arange(6) * (np.pi / 3.0)
        return g_mag * np.column_stack([np.cos(ang), np.sin(ang)])

    def accumulate(self, coms, theta_g, box=None) -> bool:
        """Add one snapshot. Returns False if it had fewer than two COMs."""
        self._check_open()
        box = _ensure_box(box)
        xy = _as_xy(coms)
        if len(xy) < 2:
            return False

        G = self.reciprocal_vectors(float(theta_g))
        counts, sums = self._pair_histogram(
            xy, box, lambda i, j, d: (np.cos(d @ G.T).mean(axis=1),))
        self.nframes += 1
        if counts.size == 0:
            return True
        self._ensure_bins(len(counts) - 1)
        self.ct_sum += _grow(sums[0], self.nbins)
        self.pair_count += _grow(counts, self.nbins)
        return True

    def _table(self) -> pd.DataFrame:
        gt = np.divide(self.ct_sum, self.pair_count, out=np.zeros(self.nbins),
                       where=self.pair_count > 0)
        return pd.DataFrame({
            "r_center": self.r_centers,
            "gT": gt,
            "pair_count": self.pair_count.copy(),
        }, columns=list(self.columns))

    def write(self, path, t0, t1, box=None):
        return self._write(path, t0, t1, box, extra=(("a_lattice", self.a_lattice),))
