""" Partitions of the futility and toxicity probability axes.

Each axis of [0, 1] is cut into contiguous intervals of width twice the
tolerance, anchored on the equivalence interval
``[target - tolerance, target + tolerance)``. The rule threshold (eta for
futility, zeta for toxicity) is always an interval boundary.
"""

import logging
from collections import OrderedDict

import numpy as np

from mpitrials.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Smallest tolerance that gives a stable partition
MIN_TOLERANCE = 1e-5
# Boundaries are rounded to this many decimals so that accumulated floating
# error cannot leave a sliver of an interval next to 1.
_DECIMALS = 10


class IntervalPartition:
    """An ordered partition of [0, 1] into contiguous intervals.

    Attributes:
        starts: Start point of each interval.
        ends: End point of each interval; ``ends[i] == starts[i + 1]``.
        target: The target probability.
        tolerance: Half-width of the equivalence interval.
        equivalence_index: Index of the interval that starts at
            ``target - tolerance`` (or 0 when that is negative).

    Examples:
        >>> pf = make_partition(0.2, 0.05, 0.8)
        >>> tuple(round(x, 2) for x in pf[pf.equivalence_index])
        (0.15, 0.25)
        >>> len(pf)
        11
    """

    def __init__(self, starts, target, tolerance):
        starts = np.asarray(starts, dtype=float)
        if len(starts) == 0 or starts[0] != 0:
            raise ConfigurationError("A partition must start at 0.")
        if np.any(np.diff(starts) <= 0):
            raise ConfigurationError("Interval starts must be strictly increasing.")

        self.starts = starts
        self.ends = np.append(starts[1:], 1.0)
        self.starts.setflags(write=False)
        self.ends.setflags(write=False)
        self.target = target
        self.tolerance = tolerance

        equivalence_start = max(target - tolerance, 0.0)
        nearest = int(np.argmin(np.abs(self.starts - equivalence_start)))
        if not np.isclose(self.starts[nearest], equivalence_start):
            raise ConfigurationError(f"No interval starts at {equivalence_start}.")
        self.equivalence_index = nearest

    @property
    def bounds(self):
        """A ``k x 2`` array of (start, end) rows."""
        return np.column_stack([self.starts, self.ends])

    def index_of(self, p):
        """Gets the index of the interval that contains probability `p`."""
        i = np.searchsorted(self.starts, p, side="right") - 1
        return int(np.clip(i, 0, len(self) - 1))

    def __len__(self):
        return len(self.starts)

    def __getitem__(self, i):
        return float(self.starts[i]), float(self.ends[i])

    def __iter__(self):
        for i in range(len(self)):
            yield self[i]

    def __eq__(self, other):
        if not isinstance(other, IntervalPartition):
            return NotImplemented
        return (
            np.array_equal(self.starts, other.starts)
            and self.equivalence_index == other.equivalence_index
        )

    def __hash__(self):
        return hash((tuple(self.starts), self.equivalence_index))

    def __repr__(self):
        return (
            f"IntervalPartition(target={self.target}, tolerance={self.tolerance}, "
            f"intervals={len(self)})"
        )

    def to_dataframe(self):
        """The partition as a pandas DataFrame of start and end points."""
        import pandas as pd

        df = pd.DataFrame(OrderedDict([("Start", self.starts), ("End", self.ends)]))
        df["Equivalence"] = df.index == self.equivalence_index
        return df


def make_partition(target, tolerance, threshold):
    """Partitions [0, 1] around the equivalence interval of `target`.

    Intervals of width ``2 * tolerance`` are tiled downwards from
    ``target - tolerance`` until 0 is reached (the lowest start is clamped
    to 0), and upwards from ``target + tolerance`` until 1 is reached. A
    boundary that would step over `threshold` is moved onto it.

    Args:
        target: The target probability.
        tolerance: Half-width of the equivalence interval.
        threshold: The rule threshold; always an interval boundary when
            below 1.

    Returns:
        An `IntervalPartition`.

    Examples:
        >>> [round(float(s), 2) for s in make_partition(0.2, 0.05, 0.8).starts]
        [0.0, 0.05, 0.15, 0.25, 0.35, 0.45, 0.55, 0.65, 0.75, 0.8, 0.9]
    """
    width = 2 * tolerance

    starts = []
    low = round(target - tolerance, _DECIMALS)
    while True:
        if low <= 0:
            starts.insert(0, 0.0)
            break
        starts.insert(0, low)
        low = round(low - width, _DECIMALS)

    high = round(target + tolerance, _DECIMALS)
    while True:
        if starts[-1] < threshold < high:
            high = threshold
        if high >= 1:
            break
        starts.append(high)
        high = round(high + width, _DECIMALS)

    return IntervalPartition(starts, target, tolerance)


def make_intervals(PF, PF_tolerance, eta, PT, PT_tolerance, zeta):
    """Makes the futility and toxicity interval partitions.

    Args:
        PF: Target tolerable futility probability.
        PF_tolerance: Half-width of the futility equivalence interval.
        eta: Futility threshold above which the futility rule is invoked.
        PT: Target tolerable toxicity probability.
        PT_tolerance: Half-width of the toxicity equivalence interval.
        zeta: Toxicity threshold above which the safety rule is invoked.

    Returns:
        A 2-tuple of `IntervalPartition`, futility first, then toxicity.

    Raises:
        ConfigurationError: If a tolerance is below 1e-5, a target is
            negative, a threshold exceeds 1, or a threshold is below its
            target.
    """
    if PF_tolerance < MIN_TOLERANCE:
        raise ConfigurationError("PF_tolerance too small, estimates may be unstable.")
    if PT_tolerance < MIN_TOLERANCE:
        raise ConfigurationError("PT_tolerance too small, estimates may be unstable.")
    if PF < 0 or PT < 0 or eta > 1 or zeta > 1:
        raise ConfigurationError("Parameter out of acceptable bounds.")
    if eta < PF:
        raise ConfigurationError("eta cannot be smaller than PF.")
    if zeta < PT:
        raise ConfigurationError("zeta cannot be smaller than PT.")

    pf_partition = make_partition(PF, PF_tolerance, eta)
    pt_partition = make_partition(PT, PT_tolerance, zeta)
    logger.debug(
        "Made %s futility and %s toxicity intervals",
        len(pf_partition),
        len(pt_partition),
    )
    return pf_partition, pt_partition
