"""
comparison
==========

Pairwise motif comparison.  Comparing motifs is useful for identifying
similar patterns discovered in different datasets or by different tools.
A :class:`MotifComparator` holds one validated :class:`ComparisonConfig`
and scores single pairs, explicit index pairs or all pairs of a
collection.  Batches are split into contiguous chunks, one per worker,
and each chunk is scored by a compiled loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, cpu_count, delayed

from comotif import functions as fn
from comotif.alignment import compare_pairs_jit, compare_pairs_serial, find_alignment, offset_to_shift, padding_widths
from comotif.models import Metric, Motif, PreparedMotifs, ScoreStrategy, prepare_motifs

_IC_TYPES = {"ic": fn.IC_BITS, "total": fn.IC_TOTAL}


@dataclass(frozen=True)
class ComparisonConfig:
    """Validated comparison settings.

    Attributes
    ----------
    metric : Metric
        Distance or similarity metric.
    strategy : ScoreStrategy
        Reduction of per-column scores.
    min_overlap : float
        Minimum overlap, in columns when >= 1 or as a fraction of each
        motif's width when below 1.
    try_rc : bool
        Also try the reverse complement of the second motif.
    min_mean_ic : float
        Alignments whose window mean IC falls below this are not scored.
    min_position_ic : float
        Positions with IC below this are treated as padding.
    normalise_scores : bool
        Scale scores by the aligned length.
    relative_entropy : bool
        Compute IC relative to the motif background.
    ic_type : str
        ``"ic"`` or ``"total"``.
    n_jobs : int
        Number of parallel jobs, -1 for all cores.
    backend : str
        joblib backend.
    """

    metric: Metric = Metric.PCC
    strategy: ScoreStrategy = ScoreStrategy.A_MEAN
    min_overlap: float = 6
    try_rc: bool = True
    min_mean_ic: float = 0.25
    min_position_ic: float = 0.0
    normalise_scores: bool = False
    relative_entropy: bool = False
    ic_type: str = "ic"
    n_jobs: int = 1
    backend: str = "loky"


def create_comparison_config(
    metric: str | Metric = "PCC",
    strategy: str | ScoreStrategy = "a.mean",
    min_overlap: float = 6,
    try_rc: bool = True,
    min_mean_ic: float = 0.25,
    min_position_ic: float = 0.0,
    normalise_scores: bool = False,
    relative_entropy: bool = False,
    ic_type: str = "ic",
    n_jobs: int = 1,
    backend: str = "loky",
) -> ComparisonConfig:
    """Build a validated comparison config from string selectors."""

    if min_mean_ic < 0:
        raise ValueError(f"min_mean_ic must be non-negative, got {min_mean_ic}")
    if min_position_ic < 0:
        raise ValueError(f"min_position_ic must be non-negative, got {min_position_ic}")
    if ic_type not in _IC_TYPES:
        raise ValueError(f"ic_type '{ic_type}' not found. Available: {list(_IC_TYPES)}")
    if n_jobs == 0:
        raise ValueError("n_jobs must be a positive integer or -1")
    if min_overlap < 0:
        min_overlap = 1

    return ComparisonConfig(
        metric=Metric.from_name(metric),
        strategy=ScoreStrategy.from_name(strategy),
        min_overlap=float(min_overlap),
        try_rc=bool(try_rc),
        min_mean_ic=float(min_mean_ic),
        min_position_ic=float(min_position_ic),
        normalise_scores=bool(normalise_scores),
        relative_entropy=bool(relative_entropy),
        ic_type=ic_type,
        n_jobs=int(n_jobs),
        backend=backend,
    )


def all_pair_indices(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """Upper-triangular index pairs (i <= j) of an n-motif collection."""
    index1, index2 = np.triu_indices(n)
    return index1.astype(np.int64), index2.astype(np.int64)


def comparison_matrix(
    scores: Sequence[float], index1: Sequence[int], index2: Sequence[int], names: Sequence[str]
) -> pd.DataFrame:
    """Assemble pairwise scores into a named symmetric matrix; unset cells are 0."""
    index1 = np.asarray(index1, dtype=np.int64)
    index2 = np.asarray(index2, dtype=np.int64)
    scores = np.asarray(scores, dtype=np.float64)
    if not (scores.size == index1.size == index2.size):
        raise ValueError("lengths of scores and indices do not match")

    out = np.zeros((len(names), len(names)), dtype=np.float64)
    out[index1, index2] = scores
    out[index2, index1] = scores
    return pd.DataFrame(out, index=list(names), columns=list(names))


def _check_indices(index1: np.ndarray, index2: np.ndarray, n: int) -> None:
    """Validate pair indices against a collection size."""
    if index1.shape != index2.shape:
        raise ValueError("lengths of indices do not match")
    if index1.size and (index1.min() < 0 or index2.min() < 0 or index1.max() >= n or index2.max() >= n):
        raise ValueError(f"pair indices must lie in [0, {n})")


def _compare_chunk(
    prepared: PreparedMotifs,
    index1: np.ndarray,
    index2: np.ndarray,
    config: ComparisonConfig,
    threaded: bool = True,
) -> np.ndarray:
    """
    Score one contiguous chunk of pairs; unscoreable pairs get the metric's sentinel.

    Chunks dispatched to joblib workers run single-threaded so that ``n_jobs``
    bounds the number of busy cores.
    """
    kernel = compare_pairs_jit if threaded else compare_pairs_serial
    scores, found = kernel(
        prepared.columns.data,
        prepared.columns.offsets,
        prepared.ic.data,
        prepared.backgrounds,
        prepared.nsites,
        index1,
        index2,
        int(config.metric),
        int(config.strategy),
        float(config.min_overlap),
        config.try_rc,
        config.min_mean_ic,
        config.min_position_ic,
        config.normalise_scores,
    )
    scores[~found] = config.metric.unscored_value
    return scores


class MotifComparator:
    """
    Comparator for motifs under one of the distance or similarity metrics.

    The best alignment over all admissible offsets, and optionally over the
    reverse complement of the second motif, defines the score of a pair.
    """

    def __init__(self, config: Optional[ComparisonConfig] = None, name: str = "MotifComparator") -> None:
        """
        Initialize the comparator.

        Parameters
        ----------
        config : ComparisonConfig, optional
            Comparison settings; defaults from :func:`create_comparison_config`.
        name : str
            Name of the comparator instance.
        """
        self.config = config or create_comparison_config()
        self.name = name

    @property
    def metric(self) -> Metric:
        return self.config.metric

    def prepare(self, motifs: Sequence[Motif]) -> PreparedMotifs:
        """Validate and flatten motifs for this comparator's metric."""
        return prepare_motifs(
            motifs,
            self.config.metric,
            ic_type=_IC_TYPES[self.config.ic_type],
            relative=self.config.relative_entropy,
        )

    def compare(self, motif_1: Motif, motif_2: Motif) -> dict:
        """
        Compare two motifs.

        Returns
        -------
        dict
            ``query``, ``target``, ``score``, ``offset`` (start of the second
            motif relative to the first, in columns), ``orientation`` and
            ``metric``.
        """
        cfg = self.config
        prepared = self.prepare([motif_1, motif_2])
        cols1, cols2 = prepared.get_columns(0), prepared.get_columns(1)

        found, score, index, use_rc = find_alignment(
            cols1,
            prepared.get_ic(0),
            cols2,
            prepared.get_ic(1),
            int(cfg.metric),
            int(cfg.strategy),
            prepared.backgrounds[0],
            prepared.backgrounds[1],
            prepared.nsites[0],
            prepared.nsites[1],
            float(cfg.min_overlap),
            cfg.try_rc,
            cfg.min_mean_ic,
            cfg.min_position_ic,
            cfg.normalise_scores,
        )

        if not found:
            logger = logging.getLogger(__name__)
            logger.warning(f"No alignment of {motif_1.name} and {motif_2.name} passed the IC filters")
            score = cfg.metric.unscored_value

        return {
            "query": motif_1.name,
            "target": motif_2.name,
            "score": float(score),
            "offset": self._relative_offset(cols1.shape[0], cols2.shape[0], int(index)) if found else 0,
            "orientation": "+-" if use_rc else "++",
            "metric": cfg.metric.name,
        }

    def _relative_offset(self, width_1: int, width_2: int, index: int) -> int:
        """Start column of motif 2 relative to motif 1 for a flat alignment index."""
        add1, add2 = padding_widths(width_1, width_2, float(self.config.min_overlap))
        padded_1 = width_1 + 2 * add1
        padded_2 = width_2 + 2 * add2
        if padded_1 > padded_2:
            return offset_to_shift(index, padded_1) - add1 + add2
        if padded_2 > padded_1:
            return -(offset_to_shift(index, padded_2) - add2 + add1)
        return add2 - add1

    def compare_pairs(
        self, motifs: Sequence[Motif] | PreparedMotifs, index1: Sequence[int], index2: Sequence[int]
    ) -> np.ndarray:
        """
        Compare motifs by index pairs, ``motifs[index1[k]]`` against ``motifs[index2[k]]``.

        Results are positionally aligned with the index pairs.  All inputs are
        validated before any worker starts.
        """
        logger = logging.getLogger(__name__)
        prepared = motifs if isinstance(motifs, PreparedMotifs) else self.prepare(motifs)
        index1 = np.ascontiguousarray(index1, dtype=np.int64)
        index2 = np.ascontiguousarray(index2, dtype=np.int64)
        _check_indices(index1, index2, len(prepared))

        if index1.size == 0:
            return np.zeros(0, dtype=np.float64)

        n_chunks = self._n_chunks(index1.size)
        logger.info(
            f"Comparing {index1.size} motif pairs with {self.config.metric.name} "
            f"({self.config.strategy.label}) in {n_chunks} chunk(s)"
        )

        if n_chunks == 1:
            return _compare_chunk(prepared, index1, index2, self.config)

        chunks1 = np.array_split(index1, n_chunks)
        chunks2 = np.array_split(index2, n_chunks)
        logger.debug(f"Chunk sizes: {[c.size for c in chunks1]}")

        results: List[np.ndarray] = Parallel(n_jobs=self.config.n_jobs, backend=self.config.backend)(
            delayed(_compare_chunk)(prepared, c1, c2, self.config, threaded=False)
            for c1, c2 in zip(chunks1, chunks2)
        )
        return np.concatenate(results)

    def compare_all(self, motifs: Sequence[Motif]) -> pd.DataFrame:
        """Compare every motif with every other one, and itself once, as a symmetric matrix."""
        prepared = self.prepare(motifs)
        index1, index2 = all_pair_indices(len(prepared))
        scores = self.compare_pairs(prepared, index1, index2)
        return comparison_matrix(scores, index1, index2, prepared.names)

    def _n_chunks(self, n_pairs: int) -> int:
        """Number of worker chunks for a batch."""
        n_jobs = self.config.n_jobs
        if n_jobs < 0:
            n_jobs = max(cpu_count() + 1 + n_jobs, 1)
        return max(1, min(n_jobs, n_pairs))


def compare_columns(
    p1: Sequence[float],
    p2: Sequence[float],
    b1: Sequence[float] = (),
    b2: Sequence[float] = (),
    n1: float = 100,
    n2: float = 100,
    metric: str | Metric = "PCC",
) -> float:
    """
    Compare two raw columns under the ``sum`` strategy.

    No smoothing is applied.  ALLR metrics need backgrounds of the columns'
    length and nsites above 1.
    """
    metric = Metric.from_name(metric)
    p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64)
    if p1.size < 2:
        raise ValueError("columns should have at least 2 entries")
    if p1.size != p2.size:
        raise ValueError("both columns must be equal in size")

    bkg1 = np.asarray(b1, dtype=np.float64)
    bkg2 = np.asarray(b2, dtype=np.float64)
    if metric.needs_background:
        if bkg1.size != p1.size or bkg2.size != p1.size:
            raise ValueError("incorrect background vector length")
        if n1 <= 1 or n2 <= 1:
            raise ValueError("nsites1/nsites2 should be greater than 1")
    else:
        bkg1 = np.full(p1.size, 1.0 / p1.size)
        bkg2 = bkg1

    valid = np.ones(1, dtype=np.bool_)
    ans, good, n = fn.score_columns(
        int(metric), p1.reshape(1, -1), valid, p2.reshape(1, -1), valid, bkg1, bkg2, float(n1), float(n2)
    )
    return float(fn.aggregate_scores(fn.STRAT_SUM, ans, good, n))
