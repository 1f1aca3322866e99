"""
alignment
=========

Offset and orientation search between two motifs.

Motifs are handled as column arrays of shape ``(width, alphabet)`` together
with a boolean ``valid`` mask; padding columns hold zeros and are never
comparable.  The narrower motif is padded on both ends so that partial
overlaps down to the configured minimum can be enumerated.  Windows are
enumerated with the first motif's start ``i`` in the outer loop and the
second motif's start ``j`` in the inner loop, so the flat index of an
alignment is ``i * forj + j``.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange

from comotif.functions import aggregate_scores, is_similarity, score_columns


@njit(cache=True)
def reverse_complement(cols):
    """Reverse column order and the symbol order inside each column."""
    ncol, nrow = cols.shape
    out = np.empty_like(cols)
    for i in range(ncol):
        for k in range(nrow):
            out[i, k] = cols[ncol - 1 - i, nrow - 1 - k]
    return out


@njit(cache=True)
def padding_widths(ncol1, ncol2, min_overlap):
    """
    Number of padding columns to add on each end of each motif.

    Only the narrower motif is ever padded; when either side already
    satisfies its overlap target both values are zero.
    """
    if min_overlap < 1.0:
        overlap1 = int(min_overlap * ncol1)
        overlap2 = int(min_overlap * ncol2)
    else:
        overlap1 = int(min_overlap)
        overlap2 = int(min_overlap)

    add1 = 0 if overlap1 > ncol2 else ncol2 - overlap1
    add2 = 0 if overlap2 > ncol1 else ncol1 - overlap2

    if add1 == 0 or add2 == 0:
        return 0, 0
    if ncol2 > ncol1:
        return add1, 0
    return 0, add2


@njit(cache=True)
def pad_columns(cols, ic, add):
    """Pad a column array with ``add`` empty columns on both ends."""
    ncol, nrow = cols.shape
    width = ncol + 2 * add
    out = np.zeros((width, nrow), dtype=np.float64)
    valid = np.zeros(width, dtype=np.bool_)
    out_ic = np.full(width, np.nan)
    for i in range(ncol):
        out[add + i] = cols[i]
        valid[add + i] = True
        out_ic[add + i] = ic[i]
    return out, valid, out_ic


@njit(cache=True)
def score_alignments(
    cols1,
    valid1,
    ic1,
    cols2,
    valid2,
    ic2,
    metric,
    strategy,
    b1,
    b2,
    n1,
    n2,
    min_mean_ic,
    min_position_ic,
    normalise,
    tlen,
):
    """
    Score every admissible offset between two equalized motifs.

    Returns
    -------
    tuple
        (scores, scored) where ``scored`` is False for low-information
        alignments; their score entry is meaningless.
    """
    w1 = cols1.shape[0]
    w2 = cols2.shape[0]
    minw = min(w1, w2)
    fori = 1 + w1 - minw
    forj = 1 + w2 - minw
    higher = is_similarity(metric)

    scores = np.zeros(fori * forj, dtype=np.float64)
    scored = np.zeros(fori * forj, dtype=np.bool_)
    wv1 = np.empty(minw, dtype=np.bool_)
    wv2 = np.empty(minw, dtype=np.bool_)

    for i in range(fori):
        for j in range(forj):
            idx = i * forj + j
            sum1 = 0.0
            sum2 = 0.0
            c1 = 0
            c2 = 0
            for k in range(minw):
                v1 = valid1[i + k]
                if v1 and min_position_ic > 0 and ic1[i + k] < min_position_ic:
                    v1 = False
                v2 = valid2[j + k]
                if v2 and min_position_ic > 0 and ic2[j + k] < min_position_ic:
                    v2 = False
                wv1[k] = v1
                wv2[k] = v2
                if v1:
                    sum1 += ic1[i + k]
                    c1 += 1
                if v2:
                    sum2 += ic2[j + k]
                    c2 += 1

            if c1 == 0 or c2 == 0:
                continue
            if sum1 / c1 < min_mean_ic or sum2 / c2 < min_mean_ic:
                continue

            ans, good, n = score_columns(
                metric, cols1[i : i + minw], wv1, cols2[j : j + minw], wv2, b1, b2, n1, n2
            )
            if n == 0:
                continue

            score = aggregate_scores(strategy, ans, good, n)
            if normalise:
                if higher:
                    score = score * n / tlen
                else:
                    score = score * tlen / n
            scores[idx] = score
            scored[idx] = True

    return scores, scored


@njit(cache=True)
def best_index(scores, scored, higher):
    """Index of the best scored entry, first one on ties; -1 if nothing was scored."""
    best = -1
    for i in range(scores.shape[0]):
        if not scored[i]:
            continue
        if best == -1:
            best = i
        elif higher and scores[i] > scores[best]:
            best = i
        elif not higher and scores[i] < scores[best]:
            best = i
    return best


@njit(cache=True)
def find_alignment(
    cols1,
    ic1,
    cols2,
    ic2,
    metric,
    strategy,
    b1,
    b2,
    n1,
    n2,
    min_overlap,
    try_rc,
    min_mean_ic,
    min_position_ic,
    normalise,
):
    """
    Best alignment of motif 2 against motif 1.

    The forward orientation is evaluated first; when ``try_rc`` is set the
    reverse complement of motif 2 is evaluated once more and wins only if it
    is strictly better.

    Returns
    -------
    tuple
        (found, score, offset, use_rc). ``offset`` is the flat window index
        within the winning orientation's enumeration.
    """
    w1 = cols1.shape[0]
    w2 = cols2.shape[0]
    tlen = max(w1, w2)
    higher = is_similarity(metric)
    add1, add2 = padding_widths(w1, w2, min_overlap)

    p1, v1, pic1 = pad_columns(cols1, ic1, add1)
    p2, v2, pic2 = pad_columns(cols2, ic2, add2)
    scores, scored = score_alignments(
        p1, v1, pic1, p2, v2, pic2, metric, strategy, b1, b2, n1, n2,
        min_mean_ic, min_position_ic, normalise, tlen,
    )
    best = best_index(scores, scored, higher)

    found = best >= 0
    score = scores[best] if found else 0.0
    offset = best if found else 0
    use_rc = False

    if try_rc:
        rc2 = reverse_complement(cols2)
        rc_ic2 = ic2[::-1].copy()
        r2, rv2, ric2 = pad_columns(rc2, rc_ic2, add2)
        rc_scores, rc_scored = score_alignments(
            p1, v1, pic1, r2, rv2, ric2, metric, strategy, b1, b2, n1, n2,
            min_mean_ic, min_position_ic, normalise, tlen,
        )
        rc_best = best_index(rc_scores, rc_scored, higher)
        if rc_best >= 0:
            rc_score = rc_scores[rc_best]
            if not found or (higher and rc_score > score) or (not higher and rc_score < score):
                found = True
                score = rc_score
                offset = rc_best
                use_rc = True

    return found, score, offset, use_rc


@njit(cache=True)
def _compare_pair(
    data, offsets, ic, backgrounds, nsites, a, b, metric, strategy, min_overlap, try_rc, min_mean_ic,
    min_position_ic, normalise,
):
    """Best score of motif ``b`` against motif ``a`` of a ragged collection."""
    ok, score, _offset, _rc = find_alignment(
        data[offsets[a] : offsets[a + 1]],
        ic[offsets[a] : offsets[a + 1]],
        data[offsets[b] : offsets[b + 1]],
        ic[offsets[b] : offsets[b + 1]],
        metric,
        strategy,
        backgrounds[a],
        backgrounds[b],
        nsites[a],
        nsites[b],
        min_overlap,
        try_rc,
        min_mean_ic,
        min_position_ic,
        normalise,
    )
    return score, ok


@njit(parallel=True, cache=True)
def compare_pairs_jit(
    data,
    offsets,
    ic,
    backgrounds,
    nsites,
    index1,
    index2,
    metric,
    strategy,
    min_overlap,
    try_rc,
    min_mean_ic,
    min_position_ic,
    normalise,
):
    """Compare motif pairs given by index arrays over a ragged motif collection, threaded."""
    n_pairs = index1.shape[0]
    scores = np.zeros(n_pairs, dtype=np.float64)
    found = np.zeros(n_pairs, dtype=np.bool_)
    for p in prange(n_pairs):
        score, ok = _compare_pair(
            data, offsets, ic, backgrounds, nsites, index1[p], index2[p], metric, strategy, min_overlap,
            try_rc, min_mean_ic, min_position_ic, normalise,
        )
        scores[p] = score
        found[p] = ok
    return scores, found


@njit(cache=True)
def compare_pairs_serial(
    data,
    offsets,
    ic,
    backgrounds,
    nsites,
    index1,
    index2,
    metric,
    strategy,
    min_overlap,
    try_rc,
    min_mean_ic,
    min_position_ic,
    normalise,
):
    """Single-threaded :func:`compare_pairs_jit`, for chunks already running in a worker process."""
    n_pairs = index1.shape[0]
    scores = np.zeros(n_pairs, dtype=np.float64)
    found = np.zeros(n_pairs, dtype=np.bool_)
    for p in range(n_pairs):
        score, ok = _compare_pair(
            data, offsets, ic, backgrounds, nsites, index1[p], index2[p], metric, strategy, min_overlap,
            try_rc, min_mean_ic, min_position_ic, normalise,
        )
        scores[p] = score
        found[p] = ok
    return scores, found


def offset_to_shift(offset: int, width: int) -> int:
    """Translate a flat alignment index into the start column of the narrower motif."""
    return offset % width - offset // width


def place_columns(cols: np.ndarray, valid: np.ndarray, width: int, shift: int):
    """Place a column array inside an empty frame of ``width`` columns starting at ``shift``."""
    out = np.zeros((width, cols.shape[1]), dtype=np.float64)
    out_valid = np.zeros(width, dtype=bool)
    out[shift : shift + cols.shape[0]] = cols
    out_valid[shift : shift + cols.shape[0]] = valid
    return out, out_valid


def trim_shared_padding(cols1, valid1, cols2, valid2):
    """Drop leading and trailing columns that are padding in both motifs."""
    either = valid1 | valid2
    if not np.any(either):
        return cols1, valid1, cols2, valid2
    keep = np.flatnonzero(either)
    start, stop = keep[0], keep[-1] + 1
    return cols1[start:stop], valid1[start:stop], cols2[start:stop], valid2[start:stop]


def align_frames(cols1, ic1, cols2, ic2, offset: int, min_overlap: float):
    """
    Put two motifs into a shared frame according to an alignment index.

    Both motifs are equalized as during the search, the narrower one is shifted
    into the wider one's frame, and columns empty in both are trimmed.

    Returns
    -------
    tuple
        (cols1, valid1, cols2, valid2) of equal width.
    """
    add1, add2 = padding_widths(cols1.shape[0], cols2.shape[0], float(min_overlap))
    p1, v1, _ = pad_columns(cols1, ic1, add1)
    p2, v2, _ = pad_columns(cols2, ic2, add2)
    w1, w2 = p1.shape[0], p2.shape[0]
    if w1 > w2:
        p2, v2 = place_columns(p2, v2, w1, offset_to_shift(offset, w1))
    elif w2 > w1:
        p1, v1 = place_columns(p1, v1, w2, offset_to_shift(offset, w2))
    return trim_shared_padding(p1, v1, p2, v2)


def combine_columns(cols1, valid1, cols2, valid2, weight: int) -> np.ndarray:
    """
    Weighted running average of two framed motifs.

    Positions with data on one side only keep that side; positions empty on
    both sides are dropped.
    """
    merged = []
    for i in range(cols1.shape[0]):
        if valid1[i] and valid2[i]:
            merged.append((cols1[i] * weight + cols2[i]) / (weight + 1))
        elif valid1[i]:
            merged.append(cols1[i])
        elif valid2[i]:
            merged.append(cols2[i])
    return np.array(merged, dtype=np.float64)
