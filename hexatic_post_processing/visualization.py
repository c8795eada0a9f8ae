import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection

from .utils import _as_xy, _ensure_box, minimum_image

# Step 1: Set Global Visualization Settings
plt.rcParams.update({
    'font.family': 'serif',
    'axes.labelsize': 14,
    'axes.titlesize': 16,
    'xtick.labelsize': 12,
    'ytick.labelsize': 12,
    'legend.fontsize': 12,
    'figure.figsize': (10, 6),
    'figure.dpi': 100,
    'savefig.dpi': 300,
    'savefig.format': 'png',
    'grid.linestyle': '--',
    'grid.color': 'gray',
    'grid.alpha': 0.2,
})


def _curve(x, y, xlabel, ylabel, title, ax=None, logy=False):
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure
    ax.plot(np.asarray(x), np.asarray(y), "-o", lw=1, ms=3)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    if logy:
        ax.set_yscale("log")
    ax.grid(True, alpha=0.3)
    return fig, ax


def plot_g6_curve(table, ax=None, logy=False,
                  title=r"Bond-orientational correlation $g_6(r)$"):
    """
    Quick-look |g6(r)| from a finalized G6Accumulator table.
    """
    return _curve(table["r_center"], table["abs_g6"], "r", r"$|g_6(r)|$", title, ax=ax, logy=logy)


def plot_gr_curve(table, ax=None, title="Radial Distribution Function (RDF)"):
    """
    Quick-look g(r) from a finalized GrAccumulator table.
    """
    return _curve(table["r_center"], table["g_r"], "r", "g(r)", title, ax=ax)


def plot_gt_curve(table, ax=None, title=r"Translational correlation $g_T(r)$"):
    return _curve(table["r_center"], table["gT"], "r", r"$g_T(r)$", title, ax=ax)


def plot_neighbor_graph(coms, neighbors, box=None, psi6=None, ax=None):
    """
    Plots COMs with their triangulation neighbors.

    Parameters
    ----------
    coms : np.ndarray
        (M, 2) centers of mass.
    neighbors : list of lists
        Neighbor indices per COM.
    box : None, float, (Lx, Ly) or PeriodicBox
        Bonds are drawn along the minimum image when given.
    psi6 : np.ndarray, optional
        Per-COM complex order parameter; points are colored by |psi6|.

    Returns
    -------
    fig, ax
    """
    box = _ensure_box(box)
    xy = _as_xy(coms)
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    segments = []
    for i, nbrs in enumerate(neighbors):
        for j in nbrs:
            if j <= i:
                continue
            d = minimum_image(xy[j] - xy[i], box)
            segments.append([xy[i], xy[i] + d])
    ax.add_collection(LineCollection(segments, colors="gray", linewidths=0.5))

    if psi6 is not None:
        sc = ax.scatter(xy[:, 0], xy[:, 1], c=np.abs(np.asarray(psi6)), cmap="viridis",
                        vmin=0.0, vmax=1.0, s=12, zorder=3)
        fig.colorbar(sc, ax=ax, label=r"$|\psi_6|$")
    else:
        ax.scatter(xy[:, 0], xy[:, 1], s=12, zorder=3)

    if box is not None:
        ax.set_xlim(0.0, box.Lx)
        ax.set_ylim(0.0, box.Ly)
    ax.set_aspect("equal")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title("COM neighbor graph")
    return fig, ax
