"""
merge
=====

Merging of aligned motifs into a consensus, and preparation of aligned
motif views for plotting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import List, Optional, Sequence

import numpy as np

from comotif import functions as fn
from comotif.alignment import align_frames, combine_columns, find_alignment, reverse_complement
from comotif.comparison import ComparisonConfig, create_comparison_config
from comotif.models import Motif, validate_motifs


@dataclass(frozen=True)
class MergedMotif:
    """Result of merging motifs.

    Attributes
    ----------
    name : str
    matrix : np.ndarray
        Merged frequencies, shape (alphabet size, width)
    background : np.ndarray
        Merged background
    ic : np.ndarray
        Per-position information content of the merged motif
    nsites : float
        Sum of the inputs' nsites
    """

    name: str
    matrix: np.ndarray = dc_field(hash=False)
    background: np.ndarray = dc_field(hash=False)
    ic: np.ndarray = dc_field(hash=False)
    nsites: float = 0.0

    def __hash__(self):
        return hash((self.name, self.matrix.shape, self.nsites))

    def to_motif(self, alphabet: str = "ACGT") -> Motif:
        """Convert to a plain :class:`Motif`."""
        return Motif(
            name=self.name,
            matrix=self.matrix,
            background=self.background,
            nsites=self.nsites,
            alphabet=alphabet,
        )


@dataclass(frozen=True)
class AlignedMotifs:
    """Motifs placed in a common frame for display.

    Attributes
    ----------
    motifs : list of Motif
        Aligned motifs of equal width; padding is rendered as zeros.
    is_rc : list of bool
        Whether each motif was reverse complemented. The first motif never is.
    offsets : list of int
        Column at which each motif's own data starts.
    """

    motifs: List[Motif] = dc_field(hash=False)
    is_rc: List[bool] = dc_field(hash=False)
    offsets: List[int] = dc_field(hash=False)

    def __hash__(self):
        return hash(tuple(m.name for m in self.motifs))


def _search_arrays(cols: np.ndarray, background: np.ndarray, config: ComparisonConfig):
    """Columns, background and IC as the alignment search sees them."""
    if config.metric.needs_smoothing:
        cols = fn.smooth_motif(cols)
        background = fn.smooth_background(background)
    return cols, background, fn.motif_ic(cols, background, fn.IC_BITS, config.relative_entropy)


def _best_alignment(cols1, bkg1, nsites1, cols2, bkg2, nsites2, config: ComparisonConfig):
    """
    Return (offset, use_rc) of the best alignment of two unsmoothed motifs.

    Smoothing only affects the search; falls back to the forward orientation
    at offset 0 when nothing passes the IC filters.
    """
    s1, b1, ic1 = _search_arrays(cols1, bkg1, config)
    s2, b2, ic2 = _search_arrays(cols2, bkg2, config)
    found, _, offset, use_rc = find_alignment(
        s1,
        ic1,
        s2,
        ic2,
        int(config.metric),
        int(config.strategy),
        b1,
        b2,
        float(nsites1),
        float(nsites2),
        float(config.min_overlap),
        config.try_rc,
        config.min_mean_ic,
        config.min_position_ic,
        config.normalise_scores,
    )
    if not found:
        logger = logging.getLogger(__name__)
        logger.warning("No alignment passed the IC filters; using the forward orientation at offset 0")
        return 0, False
    return int(offset), bool(use_rc)


def merge_motif_pair(
    cols1: np.ndarray,
    bkg1: np.ndarray,
    nsites1: float,
    cols2: np.ndarray,
    bkg2: np.ndarray,
    nsites2: float,
    weight: int,
    config: ComparisonConfig,
):
    """
    Merge two motifs given as column arrays.

    ``weight`` is the number of motifs already folded into the first operand.
    When the reverse complement of the second motif wins, its background is
    reversed along with its columns.

    Returns
    -------
    tuple
        (merged columns, merged background)
    """
    logger = logging.getLogger(__name__)
    offset, use_rc = _best_alignment(cols1, bkg1, nsites1, cols2, bkg2, nsites2, config)

    if use_rc:
        cols2 = reverse_complement(cols2)
        bkg2 = bkg2[::-1].copy()

    f1, v1, f2, v2 = align_frames(
        cols1, np.ones(cols1.shape[0]), cols2, np.ones(cols2.shape[0]), int(offset), config.min_overlap
    )
    merged = combine_columns(f1, v1, f2, v2, weight)
    background = (bkg1 * weight + bkg2) / (weight + 1)
    logger.debug(
        f"Merged widths {cols1.shape[0]} and {cols2.shape[0]} into {merged.shape[0]} "
        f"(offset index {offset}, rc={use_rc}, weight={weight})"
    )
    return merged, background


def merge_motifs(
    motifs: Sequence[Motif], config: Optional[ComparisonConfig] = None, name: Optional[str] = None
) -> MergedMotif:
    """
    Fold a list of motifs into one.

    Motifs are merged in order; each fold increments the weight of the running
    result, sums nsites and recomputes IC from the merged motif and background.
    Pseudocounts used by log-based metrics steer the alignment only and never
    reach the merged matrix.

    Parameters
    ----------
    motifs : sequence of Motif
        Motifs to merge, at least one.
    config : ComparisonConfig, optional
        Alignment settings.
    name : str, optional
        Name of the merged motif; defaults to the input names joined by ``/``.

    Returns
    -------
    MergedMotif
    """
    logger = logging.getLogger(__name__)
    config = config or create_comparison_config()
    validate_motifs(motifs)
    name = name or "/".join(m.name for m in motifs)

    merged = motifs[0].columns()
    background = motifs[0].get_background().copy()
    nsites = float(motifs[0].nsites)

    if len(motifs) > 1:
        logger.info(f"Merging {len(motifs)} motifs with {config.metric.name}")
    for i in range(1, len(motifs)):
        merged, background = merge_motif_pair(
            merged,
            background,
            nsites,
            motifs[i].columns(),
            motifs[i].get_background(),
            motifs[i].nsites,
            weight=i,
            config=config,
        )
        nsites += float(motifs[i].nsites)

    ic = fn.motif_ic(merged, background, fn.IC_BITS, config.relative_entropy)
    return MergedMotif(
        name=name,
        matrix=np.ascontiguousarray(merged.T),
        background=background,
        ic=ic,
        nsites=nsites,
    )


def view_motifs_prep(motifs: Sequence[Motif], config: Optional[ComparisonConfig] = None) -> AlignedMotifs:
    """
    Align every motif to the first one for display.

    Each motif is aligned to the first, reverse complemented (background
    included) when that orientation wins, and padded so that all motifs
    share one frame.  Matrices are the callers' own, without pseudocounts.
    """
    config = config or create_comparison_config()
    validate_motifs(motifs)

    if len(motifs) == 1:
        return AlignedMotifs(motifs=[motifs[0]], is_rc=[False], offsets=[0])

    first = motifs[0]
    cols0 = first.columns()
    framed = []
    lefts = []
    is_rc = [False]
    for motif in motifs[1:]:
        cols = motif.columns()
        offset, use_rc = _best_alignment(
            cols0, first.get_background(), first.nsites, cols, motif.get_background(), motif.nsites, config
        )
        if use_rc:
            cols = reverse_complement(cols)
        _, v1, f2, v2 = align_frames(
            cols0, np.ones(cols0.shape[0]), cols, np.ones(cols.shape[0]), offset, config.min_overlap
        )
        lefts.append(int(np.argmax(v1)))
        framed.append((f2, v2))
        is_rc.append(use_rc)

    maxadd = max(lefts)
    starts = [maxadd]
    blocks = [_shift(cols0, maxadd)]
    for (f2, v2), left in zip(framed, lefts):
        shift = maxadd - left
        blocks.append(_shift(np.where(v2[:, None], f2, 0.0), shift))
        starts.append(shift + int(np.argmax(v2)))

    width = max(b.shape[0] for b in blocks)
    aligned = []
    for motif, block, rc in zip(motifs, blocks, is_rc):
        padded = np.zeros((width, block.shape[1]), dtype=np.float64)
        padded[: block.shape[0]] = block
        background = None
        if rc and motif.background is not None:
            background = np.asarray(motif.background, dtype=np.float64)[::-1].copy()
        aligned.append(motif.with_matrix(np.ascontiguousarray(padded.T), background=background))

    return AlignedMotifs(motifs=aligned, is_rc=is_rc, offsets=starts)


def _shift(cols: np.ndarray, add: int) -> np.ndarray:
    """Prepend ``add`` zero columns."""
    if add <= 0:
        return np.asarray(cols, dtype=np.float64)
    return np.vstack([np.zeros((add, cols.shape[1])), cols])
