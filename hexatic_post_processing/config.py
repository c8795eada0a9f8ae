"""
Run configuration: periodic box and per-run analysis parameters.

Both objects are immutable and validated on construction, so the analysis
layer never sees a half-valid box or a non-positive bin width.
"""
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class PeriodicBox:
    """Rectangular 2D periodic cell [0, Lx) x [0, Ly)."""
    Lx: float
    Ly: float

    def __post_init__(self):
        Lx, Ly = float(self.Lx), float(self.Ly)
        if not (Lx > 0.0 and Ly > 0.0):
            raise ValueError(f"PeriodicBox dimensions must be > 0, got ({Lx}, {Ly})")
        object.__setattr__(self, "Lx", Lx)
        object.__setattr__(self, "Ly", Ly)

    @property
    def lengths(self) -> Tuple[float, float]:
        return self.Lx, self.Ly

    @property
    def area(self) -> float:
        return self.Lx * self.Ly

    @property
    def max_radius(self) -> float:
        """Largest pair distance that is still isotropic under the minimum image."""
        return 0.5 * min(self.Lx, self.Ly)


@dataclass(frozen=True)
class AnalysisParams:
    """
    Parameters of one batch run over snapshots time_<start_idx> .. time_<end_idx>.

    Parameters
    ----------
    lbond : float
        Bond cutoff used by the cluster search.
    dr : float
        Radial bin width shared by every accumulator of the run.
    box : PeriodicBox or None
        None disables periodic boundaries.
    start_idx, end_idx : int
        Inclusive snapshot index range.
    a_lattice : float or None
        Lattice spacing for gT(r). None means "estimate from the g(r) first peak".
    workers : int
        Number of processes used for per-snapshot work (1 = serial).
    """
    lbond: float
    dr: float
    box: Optional[PeriodicBox] = None
    start_idx: int = 0
    end_idx: int = 0
    a_lattice: Optional[float] = None
    workers: int = 1

    def __post_init__(self):
        if not float(self.lbond) > 0.0:
            raise ValueError(f"lbond must be > 0, got {self.lbond}")
        if not float(self.dr) > 0.0:
            raise ValueError(f"dr must be > 0, got {self.dr}")
        if self.a_lattice is not None and not float(self.a_lattice) > 0.0:
            raise ValueError(f"a_lattice must be > 0, got {self.a_lattice}")
        if int(self.start_idx) > int(self.end_idx):
            raise ValueError(f"start index ({self.start_idx}) > end index ({self.end_idx})")
        if int(self.workers) < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.box is not None and not isinstance(self.box, PeriodicBox):
            raise ValueError("box must be a PeriodicBox or None")

    @property
    def use_pbc(self) -> bool:
        return self.box is not None
