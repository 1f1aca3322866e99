"""
P-value lookup for comparison scores.

Scores are mapped to log-scale p-values through a precomputed table of
distribution parameters addressed by the pair (narrower width, wider width).
Distance metrics use the lower tail, similarity metrics the upper tail.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from comotif.models import UNSCORED, Metric

TABLE_COLUMNS = ["subject", "target", "distribution", "paramA", "paramB"]
CHECK_INTERVAL = 1000

LogTail = Callable[[float, float, float, bool], float]


class DistributionRegistry:
    """Registry of distribution families using decorator pattern."""

    def __init__(self):
        """Initialize registry state."""
        self._families: Dict[str, LogTail] = {}

    def register(self, key: str):
        """Decorator to register a log-tail function for a distribution family."""

        def decorator(func):
            """Store a callable in the registry."""
            self._families[key] = func
            return func

        return decorator

    def get(self, key: str) -> LogTail:
        """Get log-tail function by family name."""
        if key not in self._families:
            available = list(self._families.keys())
            raise ValueError(f"Distribution '{key}' not found. Available: {available}")
        return self._families[key]

    def __contains__(self, key: str) -> bool:
        return key in self._families


registry = DistributionRegistry()


@registry.register("normal")
def log_tail_normal(score: float, mean: float, sd: float, lower_tail: bool) -> float:
    """Log tail probability of a normal distribution."""
    if lower_tail:
        return float(stats.norm.logcdf(score, loc=mean, scale=sd))
    return float(stats.norm.logsf(score, loc=mean, scale=sd))


@registry.register("logistic")
def log_tail_logistic(score: float, location: float, scale: float, lower_tail: bool) -> float:
    """Log tail probability of a logistic distribution."""
    if lower_tail:
        return float(stats.logistic.logcdf(score, loc=location, scale=scale))
    return float(stats.logistic.logsf(score, loc=location, scale=scale))


@registry.register("weibull")
def log_tail_weibull(score: float, shape: float, scale: float, lower_tail: bool) -> float:
    """Log tail probability of a Weibull distribution."""
    if lower_tail:
        return float(stats.weibull_min.logcdf(score, shape, scale=scale))
    return float(stats.weibull_min.logsf(score, shape, scale=scale))


@dataclass(frozen=True)
class PValueTable:
    """Read-only table of distribution parameters per width pair.

    Attributes
    ----------
    frame : pd.DataFrame
        Columns ``subject``, ``target``, ``distribution``, ``paramA``, ``paramB``
    """

    frame: pd.DataFrame = dc_field(hash=False)
    rows: Dict[Tuple[int, int], int] = dc_field(hash=False, repr=False)

    def __hash__(self):
        return hash(len(self.frame))

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "PValueTable":
        """Validate a parameter frame and index its rows by width pair."""
        missing = [c for c in TABLE_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"p-value table is missing columns: {missing}")
        if frame.empty:
            raise ValueError("p-value table is empty")

        frame = frame[TABLE_COLUMNS].reset_index(drop=True).copy()
        frame["subject"] = frame["subject"].astype(np.int64)
        frame["target"] = frame["target"].astype(np.int64)
        frame["paramA"] = frame["paramA"].astype(np.float64)
        frame["paramB"] = frame["paramB"].astype(np.float64)
        frame["distribution"] = frame["distribution"].astype(str)

        for family in frame["distribution"].unique():
            registry.get(family)

        rows: Dict[Tuple[int, int], int] = {}
        for row, (subject, target) in enumerate(zip(frame["subject"], frame["target"])):
            rows.setdefault((int(subject), int(target)), row)

        return cls(frame=frame, rows=rows)

    @property
    def subject_range(self) -> Tuple[int, int]:
        return int(self.frame["subject"].min()), int(self.frame["subject"].max())

    @property
    def target_range(self) -> Tuple[int, int]:
        return int(self.frame["target"].min()), int(self.frame["target"].max())

    def find_row(self, width_1: int, width_2: int) -> Optional[int]:
        """
        Resolve the parameter row for two motif widths.

        Widths are ordered and clamped into the table range; on a miss both
        are incremented until a row is found or either leaves the range.
        """
        s_min, s_max = self.subject_range
        t_min, t_max = self.target_range
        n1 = min(max(min(width_1, width_2), s_min), s_max)
        n2 = min(max(max(width_1, width_2), t_min), t_max)

        while n1 <= s_max and n2 <= t_max:
            row = self.rows.get((n1, n2))
            if row is not None:
                return row
            n1 += 1
            n2 += 1
        return None


def extract_pvalues(
    scores: Sequence[float],
    widths: Sequence[int],
    index1: Sequence[int],
    index2: Sequence[int],
    metric: str | Metric,
    table: PValueTable,
    cancel_event: Optional[threading.Event] = None,
) -> np.ndarray:
    """
    Convert comparison scores into log p-values.

    Parameters
    ----------
    scores : sequence of float
        Raw comparison scores.
    widths : sequence of int
        Width of every motif in the compared collection.
    index1, index2 : sequence of int
        Motif indices each score was computed from.
    metric : str or Metric
        Metric the scores were computed with; selects the tail.
    table : PValueTable
        Distribution parameters.
    cancel_event : threading.Event, optional
        Checked every 1000 scores; when set the pass is abandoned.

    Returns
    -------
    np.ndarray
        Natural-log p-values; 0 for unscored pairs and unresolved widths.
    """
    logger = logging.getLogger(__name__)
    metric = Metric.from_name(metric)
    scores = np.asarray(scores, dtype=np.float64)
    widths = np.asarray(widths, dtype=np.int64)
    index1 = np.asarray(index1, dtype=np.int64)
    index2 = np.asarray(index2, dtype=np.int64)
    if not (scores.size == index1.size == index2.size):
        raise ValueError("lengths of scores and indices do not match")
    if index1.size and (min(index1.min(), index2.min()) < 0 or max(index1.max(), index2.max()) >= widths.size):
        raise ValueError(f"motif indices must lie in [0, {widths.size})")

    lower_tail = not metric.higher_is_better
    frame = table.frame
    pvals = np.zeros(scores.size, dtype=np.float64)
    unresolved = 0

    for i in range(scores.size):
        if i % CHECK_INTERVAL == 0 and cancel_event is not None and cancel_event.is_set():
            raise InterruptedError(f"p-value extraction cancelled after {i} of {scores.size} scores")

        score = scores[i]
        if not np.isfinite(score) or abs(score) == UNSCORED:
            continue

        row = table.find_row(int(widths[index1[i]]), int(widths[index2[i]]))
        if row is None:
            unresolved += 1
            continue

        log_tail = registry.get(frame.at[row, "distribution"])
        pvals[i] = log_tail(score, frame.at[row, "paramA"], frame.at[row, "paramB"], lower_tail)

    if unresolved:
        logger.warning(f"{unresolved} scores had no matching width pair in the p-value table")

    return pvals
