"""
Motif Models Module
===================

Immutable motif containers and the closed enumerations used to select
comparison behaviour.

Key Features:
- Metric and score strategy enumerations resolved from their string names
- Frozen dataclass for motifs with numpy payloads excluded from hashing
- Preparation of motif collections into flat arrays for compiled kernels
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from enum import IntEnum
from typing import List, Optional, Sequence

import numpy as np

from comotif import functions as fn
from comotif.ragged import RaggedData, ragged_from_list

UNSCORED = float(np.finfo(np.float64).max)
DNA_ALPHABET = "ACGT"


class Metric(IntEnum):
    """Comparison metrics; codes below PCC are distances."""

    EUCL = fn.EUCL
    KL = fn.KL
    HELL = fn.HELL
    IS = fn.IS
    SEUCL = fn.SEUCL
    MAN = fn.MAN
    PCC = fn.PCC
    SW = fn.SW
    ALLR = fn.ALLR
    BHAT = fn.BHAT
    ALLR_LL = fn.ALLR_LL

    @classmethod
    def from_name(cls, name: str | "Metric") -> "Metric":
        """Resolve a metric from its name."""
        if isinstance(name, cls):
            return name
        key = str(name).upper()
        if key not in cls.__members__:
            available = list(cls.__members__.keys())
            raise ValueError(f"Metric '{name}' not found. Available: {available}")
        return cls[key]

    @property
    def higher_is_better(self) -> bool:
        return self >= Metric.PCC

    @property
    def needs_smoothing(self) -> bool:
        """Metrics taking logs of motif and background entries."""
        return self in (Metric.KL, Metric.IS, Metric.ALLR, Metric.ALLR_LL)

    @property
    def needs_background(self) -> bool:
        return self in (Metric.ALLR, Metric.ALLR_LL)

    @property
    def unscored_value(self) -> float:
        """Score reported when no alignment could be scored."""
        return -UNSCORED if self.higher_is_better else UNSCORED


class ScoreStrategy(IntEnum):
    """Reduction of per-column scores to one value."""

    SUM = fn.STRAT_SUM
    A_MEAN = fn.STRAT_AMEAN
    G_MEAN = fn.STRAT_GMEAN
    MEDIAN = fn.STRAT_MEDIAN

    @property
    def label(self) -> str:
        return _STRATEGY_LABELS[self]

    @classmethod
    def from_name(cls, name: str | "ScoreStrategy") -> "ScoreStrategy":
        """Resolve a strategy from its name (``sum``, ``a.mean``, ``g.mean``, ``median``)."""
        if isinstance(name, cls):
            return name
        for strategy, label in _STRATEGY_LABELS.items():
            if label == name:
                return strategy
        available = list(_STRATEGY_LABELS.values())
        raise ValueError(f"Score strategy '{name}' not found. Available: {available}")


_STRATEGY_LABELS = {
    ScoreStrategy.SUM: "sum",
    ScoreStrategy.A_MEAN: "a.mean",
    ScoreStrategy.G_MEAN: "g.mean",
    ScoreStrategy.MEDIAN: "median",
}


@dataclass(frozen=True)
class Motif:
    """Immutable motif container.

    The matrix and background fields are excluded from hashing due to numpy
    array unhashability.

    Attributes
    ----------
    name : str
        Human-readable name
    matrix : np.ndarray
        Frequencies with shape (alphabet size, width)
    background : np.ndarray, optional
        Symbol background; uniform when omitted
    nsites : float
        Number of sites the motif was built from
    alphabet : str
        Symbols labelling the matrix rows
    """

    name: str
    matrix: np.ndarray = dc_field(hash=False)
    background: Optional[np.ndarray] = dc_field(default=None, hash=False)
    nsites: float = 100.0
    alphabet: str = DNA_ALPHABET

    def __hash__(self):
        """Custom hash implementation excluding unhashable fields."""
        return hash((self.name, self.width, self.nsites, self.alphabet))

    @property
    def width(self) -> int:
        return int(np.shape(self.matrix)[1]) if np.ndim(self.matrix) == 2 else 0

    @property
    def alphabet_size(self) -> int:
        return int(np.shape(self.matrix)[0])

    def get_background(self) -> np.ndarray:
        """Return the background, defaulting to a uniform distribution."""
        if self.background is None:
            return np.full(self.alphabet_size, 1.0 / self.alphabet_size)
        return np.asarray(self.background, dtype=np.float64)

    def columns(self) -> np.ndarray:
        """Return the motif as a (width, alphabet) float64 array."""
        return np.ascontiguousarray(np.asarray(self.matrix, dtype=np.float64).T)

    def with_matrix(
        self, matrix: np.ndarray, name: Optional[str] = None, background: Optional[np.ndarray] = None
    ) -> "Motif":
        """Return a copy carrying a different matrix, and optionally a different background."""
        return Motif(
            name=name or self.name,
            matrix=matrix,
            background=self.background if background is None else background,
            nsites=self.nsites,
            alphabet=self.alphabet,
        )


@dataclass(frozen=True)
class PreparedMotifs:
    """Motif collection flattened for the compiled kernels.

    Attributes
    ----------
    columns : RaggedData
        All motif columns, data shape (total width, alphabet size)
    ic : RaggedData
        Per-position information content sharing ``columns.offsets``
    backgrounds : np.ndarray
        Shape (motifs, alphabet size)
    nsites : np.ndarray
        One value per motif
    names : list of str
    """

    columns: RaggedData = dc_field(hash=False)
    ic: RaggedData = dc_field(hash=False)
    backgrounds: np.ndarray = dc_field(hash=False)
    nsites: np.ndarray = dc_field(hash=False)
    names: List[str] = dc_field(hash=False)

    def __hash__(self):
        return hash(tuple(self.names))

    def __len__(self) -> int:
        return len(self.names)

    @property
    def widths(self) -> np.ndarray:
        return self.columns.lengths

    def get_columns(self, i: int) -> np.ndarray:
        return self.columns.get_slice(i)

    def get_ic(self, i: int) -> np.ndarray:
        return self.ic.get_slice(i)


def validate_motifs(motifs: Sequence[Motif]) -> None:
    """Check a motif collection before any comparison starts."""
    if len(motifs) == 0:
        raise ValueError("empty motif list")

    alphabet_size = None
    for motif in motifs:
        matrix = np.asarray(motif.matrix)
        if matrix.ndim != 2:
            raise ValueError(f"Motif '{motif.name}' must be a 2D matrix, got {matrix.ndim}D")
        if matrix.shape[1] == 0:
            raise ValueError(f"encountered an empty motif: '{motif.name}'")
        if np.any(matrix < 0) or not np.all(np.isfinite(matrix)):
            raise ValueError(f"Motif '{motif.name}' contains negative or non-finite entries")
        if alphabet_size is None:
            alphabet_size = matrix.shape[0]
        elif matrix.shape[0] != alphabet_size:
            raise ValueError(
                f"Motif '{motif.name}' has alphabet size {matrix.shape[0]}, expected {alphabet_size}"
            )
        background = motif.get_background()
        if background.shape != (alphabet_size,):
            raise ValueError(
                f"Background of motif '{motif.name}' has length {background.size}, expected {alphabet_size}"
            )
        if np.any(background < 0):
            raise ValueError(f"Background of motif '{motif.name}' contains negative entries")
        nsites = float(motif.nsites)
        if not np.isfinite(nsites) or nsites <= 0:
            raise ValueError(f"Motif '{motif.name}' must have a positive finite nsites, got {motif.nsites}")


def prepare_motifs(
    motifs: Sequence[Motif],
    metric: Metric,
    ic_type: int = fn.IC_BITS,
    relative: bool = False,
) -> PreparedMotifs:
    """
    Validate motifs and flatten them for comparison.

    Smoothing is applied once per motif for metrics that take logarithms,
    before information content is computed.

    Parameters
    ----------
    motifs : sequence of Motif
        Motifs to prepare.
    metric : Metric
        Comparison metric, decides whether smoothing applies.
    ic_type : int
        ``IC_BITS`` for information content, ``IC_TOTAL`` for column sums.
    relative : bool
        Use relative entropy against the background.

    Returns
    -------
    PreparedMotifs
    """
    logger = logging.getLogger(__name__)
    validate_motifs(motifs)

    columns = []
    backgrounds = []
    ics = []
    for motif in motifs:
        cols = motif.columns()
        background = motif.get_background()
        if metric.needs_smoothing:
            cols = fn.smooth_motif(cols)
            background = fn.smooth_background(background)
        columns.append(cols)
        backgrounds.append(background)
        ics.append(fn.motif_ic(cols, background, ic_type, relative))

    if metric.needs_smoothing:
        logger.debug(f"Applied pseudocount {fn.PSEUDOCOUNT} to {len(motifs)} motifs for {metric.name}")

    ragged_cols = ragged_from_list(columns, dtype=np.float64)
    ragged_ic = RaggedData(np.concatenate(ics).astype(np.float64), ragged_cols.offsets)

    return PreparedMotifs(
        columns=ragged_cols,
        ic=ragged_ic,
        backgrounds=np.vstack(backgrounds).astype(np.float64),
        nsites=np.array([float(m.nsites) for m in motifs], dtype=np.float64),
        names=[m.name for m in motifs],
    )
