# =============================================================================
# pipeline.py
# Batch runs over time_<idx>.dat snapshots:
#   positions -> clusters -> COMs -> neighbor graph -> psi6 -> accumulators
# =============================================================================
import logging
import os
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .analysis import (
    G6Accumulator,
    GrAccumulator,
    GtAccumulator,
    compute_global_orientation_angle,
    compute_psi6,
)
from .clusters import compute_cluster_coms, find_clusters, make_clusters_from_ids
from .config import AnalysisParams
from .data_loader import extract_time_index, get_snapshot_files, read_snapshot_xy
from .neighbors import triangulate_get_neighbors
from .utils import _ensure_box

logger = logging.getLogger(__name__)


@dataclass
class SnapshotResult:
    """Per-snapshot transients consumed by the accumulators."""
    coms: np.ndarray
    neighbors: List[List[int]]
    psi6: np.ndarray
    theta_g: float
    n_particles: int
    n_clusters: int


@dataclass
class RunReport:
    """What a batch run did and where it wrote."""
    n_files: int = 0
    n_used: int = 0
    skipped: List[str] = field(default_factory=list)
    outputs: Dict[str, str] = field(default_factory=dict)
    a_lattice: Optional[float] = None


def process_snapshot(positions, lbond, box=None) -> Optional[SnapshotResult]:
    """
    Run the per-snapshot chain on one set of particle positions.

    Returns None when the snapshot carries no usable geometry (no particles,
    fewer than two clusters, or a triangulation without edges).
    """
    box = _ensure_box(box)
    found = find_clusters(positions, lbond, box)
    if found is None:
        return None
    cluster_id, nclusters = found
    if nclusters < 2:
        logger.info("  less than 2 clusters (%d)", nclusters)
        return None
    clusters = make_clusters_from_ids(cluster_id, nclusters)
    coms = compute_cluster_coms(positions, clusters, box)
    neighbors = triangulate_get_neighbors(coms, box)
    if neighbors is None:
        return None
    psi6 = compute_psi6(coms, neighbors, box)
    return SnapshotResult(
        coms=coms,
        neighbors=neighbors,
        psi6=psi6,
        theta_g=compute_global_orientation_angle(psi6),
        n_particles=len(positions),
        n_clusters=nclusters,
    )


def _load_and_process(path, lbond, box):
    positions = read_snapshot_xy(path)
    if len(positions) == 0:
        logger.warning("  ! empty snapshot %s (skipping)", path)
        return None
    return process_snapshot(positions, lbond, box)


def iter_snapshot_results(paths: Sequence[str], lbond, box=None,
                          workers: int = 1) -> Iterator[Tuple[str, Optional[SnapshotResult]]]:
    """
    Yield ``(path, result)`` in input order; ``result`` is None for skipped snapshots.

    With ``workers > 1`` snapshots are processed in a process pool and the
    results are still consumed here, in order, by a single reducer.
    """
    box = _ensure_box(box)
    if workers <= 1:
        for path in paths:
            try:
                yield path, _load_and_process(path, lbond, box)
            except (ValueError, OSError) as exc:
                logger.warning("  ! failed on %s: %s (skipping)", path, exc)
                yield path, None
        return

    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_load_and_process, p, lbond, box) for p in paths]
        for path, fut in zip(paths, futures):
            try:
                yield path, fut.result()
            except (ValueError, OSError) as exc:
                logger.warning("  ! failed on %s: %s (skipping)", path, exc)
                yield path, None


def _select_files(data_dir, params: AnalysisParams) -> List[str]:
    paths = get_snapshot_files(data_dir, params.start_idx, params.end_idx)
    if not paths:
        raise FileNotFoundError(
            f"No files in range [{params.start_idx}, {params.end_idx}] under {data_dir}")
    logger.info("Found %d files in range [%d, %d]", len(paths), params.start_idx, params.end_idx)
    return paths


def _log_used(path, res: SnapshotResult):
    logger.info("Processing %s (t=%d): %d particles, %d clusters",
                path, extract_time_index(path), res.n_particles, res.n_clusters)


def run_g6_analysis(data_dir, out_dir, params: AnalysisParams) -> RunReport:
    """
    Hexatic correlation g6(r) of cluster COMs over a snapshot range.

    Writes ``g6_avg_time_<start>_<end>.dat`` into ``out_dir``.
    """
    paths = _select_files(data_dir, params)
    os.makedirs(out_dir, exist_ok=True)
    report = RunReport(n_files=len(paths))
    acc = G6Accumulator(params.dr)

    for path, res in iter_snapshot_results(paths, params.lbond, params.box, params.workers):
        if res is None:
            report.skipped.append(path)
            continue
        _log_used(path, res)
        acc.accumulate(res.coms, res.psi6, params.box)
        report.n_used += 1

    out = os.path.join(out_dir, f"g6_avg_time_{params.start_idx}_{params.end_idx}.dat")
    acc.write(out, params.start_idx, params.end_idx, params.lbond, params.box)
    report.outputs["g6"] = out
    return report


def run_translational_analysis(data_dir, out_dir, params: AnalysisParams,
                               reread: bool = False) -> RunReport:
    """
    g(r) and translational correlation gT(r) of cluster COMs.

    Pass 1 accumulates g(r) and, unless ``params.a_lattice`` is set, takes the
    lattice constant from its first peak. Pass 2 accumulates gT(r) with that
    lattice constant and each snapshot's own theta_G. Writes
    ``gr_avg_time_<s>_<e>.dat`` and ``gt_avg_time_<s>_<e>.dat``.

    By default pass 1 keeps every used snapshot's COMs and theta_G in memory
    for pass 2, i.e. O(total COMs over the range). With ``reread=True`` only
    the used paths are kept and pass 2 loads and clusters them again, which
    costs a second round of I/O and clustering instead.
    """
    paths = _select_files(data_dir, params)
    os.makedirs(out_dir, exist_ok=True)
    report = RunReport(n_files=len(paths))
    gr = GrAccumulator(params.dr)

    used: List[str] = []
    kept: List[Tuple[np.ndarray, float]] = []
    for path, res in iter_snapshot_results(paths, params.lbond, params.box, params.workers):
        if res is None:
            report.skipped.append(path)
            continue
        _log_used(path, res)
        gr.accumulate(res.coms, params.box)
        used.append(path)
        if not reread:
            kept.append((res.coms, res.theta_g))
    report.n_used = len(used)

    out_gr = os.path.join(out_dir, f"gr_avg_time_{params.start_idx}_{params.end_idx}.dat")
    gr.write(out_gr, params.start_idx, params.end_idx, params.box)
    report.outputs["gr"] = out_gr

    if params.a_lattice is not None:
        a_lattice = float(params.a_lattice)
    else:
        a_lattice = gr.estimate_lattice_constant()
        logger.info("Estimated lattice constant from g(r) first peak: %.6g", a_lattice)
    if not a_lattice > 0.0:
        raise RuntimeError("Could not determine a lattice constant from g(r)")
    report.a_lattice = a_lattice

    gt = GtAccumulator(params.dr, a_lattice)
    if reread:
        for path, res in iter_snapshot_results(used, params.lbond, params.box, params.workers):
            if res is None:
                logger.warning("  ! %s could not be read again; left out of gT(r)", path)
                continue
            gt.accumulate(res.coms, res.theta_g, params.box)
    else:
        for coms, theta_g in kept:
            gt.accumulate(coms, theta_g, params.box)

    out_gt = os.path.join(out_dir, f"gt_avg_time_{params.start_idx}_{params.end_idx}.dat")
    gt.write(out_gt, params.start_idx, params.end_idx, params.box)
    report.outputs["gt"] = out_gt
    return report
