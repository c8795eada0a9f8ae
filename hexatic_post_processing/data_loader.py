'''
Snapshot files: time_<idx>.dat readers/writers, discovery, and report loading.
'''
import glob
import logging
import os
import re

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^time_(-?\d+)\.dat")


def extract_time_index(path):
    """
    Time index embedded in a file name of the form time_<idx>.dat.

    Parameters:
    - path: File path; only the basename is inspected.

    Returns:
    - The integer index, or -1 when the name does not match.
    """
    m = _TIME_RE.match(os.path.basename(str(path)))
    return int(m.group(1)) if m else -1


def get_snapshot_files(directory, start_idx, end_idx, pattern="time_*.dat"):
    """
    Retrieve the snapshot files of a directory whose time index is in range.

    Parameters:
    - directory: The directory to search in.
    - start_idx, end_idx: Inclusive time-index range.
    - pattern: Glob pattern for snapshot names.

    Returns:
    - List of file paths ordered by time index (ties broken lexically).
    """
    search_pattern = os.path.join(str(directory), pattern)
    selected = []
    for path in glob.glob(search_pattern):
        ti = extract_time_index(path)
        if ti < 0:
            logger.debug("get_snapshot_files: no time index in %s", path)
            continue
        if start_idx <= ti <= end_idx:
            selected.append(path)
    selected.sort(key=lambda p: (extract_time_index(p), p))
    return selected


def read_snapshot_xy(filename):
    """
    Loads particle positions from one snapshot file.

    Lines starting with '#' and blank lines are skipped. Every data line must
    start with three numeric columns ``x y z``; only (x, y) is kept. Lines
    that do not parse are ignored.

    Parameters
    ----------
    filename : str
        The path to the snapshot file.

    Returns
    -------
    positions : np.ndarray
        (N, 2) float64 array, possibly empty.
    """
    xs = []
    with open(filename, 'r') as file:
        for line in file:
            if line.startswith('#') or not line.strip():
                continue
            parts = line.split()
            try:
                x, y, _ = (float(p) for p in parts[:3])
            except ValueError:
                continue
            xs.append((x, y))
    if not xs:
        return np.zeros((0, 2), dtype=np.float64)
    return np.array(xs, dtype=np.float64)


def write_snapshot_xy(filename, positions, comment=None):
    """Write (N,2) or (N,3) positions as ``x y z`` lines (z = 0 for 2D input)."""
    p = np.asarray(positions, dtype=np.float64)
    with open(filename, 'w') as file:
        if comment:
            file.write(f"# {comment}\n")
        for row in p:
            z = row[2] if row.shape[0] > 2 else 0.0
            file.write(f"{row[0]:.10f} {row[1]:.10f} {z:.10f}\n")


def load_report(filename):
    """
    Read a correlation table written by one of the accumulators.

    Column names are taken from the ``# columns:`` header line.

    Returns
    -------
    pandas.DataFrame
    """
    columns = None
    with open(filename, 'r') as file:
        for line in file:
            if not line.startswith('#'):
                break
            body = line[1:].strip()
            if body.lower().startswith('columns:'):
                columns = body.split(':', 1)[1].split()
    if columns is None:
        raise ValueError(f"{filename}: missing '# columns:' header line")
    try:
        return pd.read_csv(filename, sep=r"\s+", comment='#', header=None, names=columns)
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=columns)
