"""
hexatic_post_processing — package init
"""

# -----------------------------------------------------------------------------
# configuration
# -----------------------------------------------------------------------------
from .config import PeriodicBox, AnalysisParams

# -----------------------------------------------------------------------------
# periodic helpers + synthetic configurations
# -----------------------------------------------------------------------------
from .utils import (
    minimum_image_delta,
    wrap_position,
    minimum_image,
    wrap_positions,
    generate_triangular_lattice,
    generate_square_lattice,
    generate_random_particles,
    decorate_with_clusters,
)

# -----------------------------------------------------------------------------
# data loading
# -----------------------------------------------------------------------------
from .data_loader import (
    extract_time_index,
    get_snapshot_files,
    read_snapshot_xy,
    write_snapshot_xy,
    load_report,
)

# -----------------------------------------------------------------------------
# clusters, COMs, neighbor graph
# -----------------------------------------------------------------------------
from .clusters import (
    bonded_pairs,
    find_clusters,
    make_clusters_from_ids,
    compute_cluster_coms,
)
from .neighbors import (
    delaunay_edges,
    tile_periodic_images,
    triangulate_get_neighbors,
    neighbor_counts,
)

# -----------------------------------------------------------------------------
# analysis (orientational order + radial accumulators)
# -----------------------------------------------------------------------------
from .analysis import (
    compute_psi6,
    compute_global_orientation_angle,
    iter_pair_blocks,
    estimate_first_peak,
    RadialAccumulator,
    G6Accumulator,                  # hexatic correlation g6(r)
    GrAccumulator,                  # pair distribution g(r)
    GtAccumulator,                  # translational correlation gT(r)
)

# -----------------------------------------------------------------------------
# visualization
# -----------------------------------------------------------------------------
from .visualization import (
    plot_g6_curve,
    plot_gr_curve,
    plot_gt_curve,
    plot_neighbor_graph,
)

# -----------------------------------------------------------------------------
# batch pipeline
# -----------------------------------------------------------------------------
from .pipeline import (
    SnapshotResult,
    RunReport,
    process_snapshot,
    iter_snapshot_results,
    run_g6_analysis,
    run_translational_analysis,
)

# -----------------------------------------------------------------------------
# public api
# -----------------------------------------------------------------------------
__all__ = [
    # config
    "PeriodicBox",
    "AnalysisParams",

    # utils
    "minimum_image_delta",
    "wrap_position",
    "minimum_image",
    "wrap_positions",
    "generate_triangular_lattice",
    "generate_square_lattice",
    "generate_random_particles",
    "decorate_with_clusters",

    # data_loader
    "extract_time_index",
    "get_snapshot_files",
    "read_snapshot_xy",
    "write_snapshot_xy",
    "load_report",

    # clusters + neighbors
    "bonded_pairs",
    "find_clusters",
    "make_clusters_from_ids",
    "compute_cluster_coms",
    "delaunay_edges",
    "tile_periodic_images",
    "triangulate_get_neighbors",
    "neighbor_counts",

    # analysis
    "compute_psi6",
    "compute_global_orientation_angle",
    "iter_pair_blocks",
    "estimate_first_peak",
    "RadialAccumulator",
    "G6Accumulator",
    "GrAccumulator",
    "GtAccumulator",

    # visualization
    "plot_g6_curve",
    "plot_gr_curve",
    "plot_gt_curve",
    "plot_neighbor_graph",

    # pipeline
    "SnapshotResult",
    "RunReport",
    "process_snapshot",
    "iter_snapshot_results",
    "run_g6_analysis",
    "run_translational_analysis",
]
