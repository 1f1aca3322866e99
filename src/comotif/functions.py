import numpy as np
from numba import njit

# Metric codes. Codes below PCC are distances (lower is better).
EUCL = 1
KL = 2
HELL = 3
IS = 4
SEUCL = 5
MAN = 6
PCC = 7
SW = 8
ALLR = 9
BHAT = 10
ALLR_LL = 11

# Aggregation strategy codes.
STRAT_SUM = 1
STRAT_AMEAN = 2
STRAT_GMEAN = 3
STRAT_MEDIAN = 4

# IC modes.
IC_BITS = 1
IC_TOTAL = 2

PSEUDOCOUNT = 0.01
ALLR_FLOOR = -2.0


def smooth_motif(cols: np.ndarray) -> np.ndarray:
    """Add the pseudocount to every cell of a motif."""
    return cols + PSEUDOCOUNT


def smooth_background(background: np.ndarray) -> np.ndarray:
    """Perturb a background by a uniform epsilon, only if it contains an exact zero."""
    if np.any(background == 0):
        return background + PSEUDOCOUNT / background.size
    return background.copy()


@njit(cache=True)
def is_similarity(metric):
    """Return True when higher scores are better for the metric."""
    return metric >= PCC


@njit(cache=True, error_model="numpy")
def column_score(metric, p, q, b1, b2, n1, n2):
    """Score a single pair of comparable columns."""
    nrow = p.shape[0]
    out = 0.0

    if metric == EUCL or metric == SEUCL or metric == SW:
        for k in range(nrow):
            d = p[k] - q[k]
            out += d * d
        if metric == EUCL:
            out = np.sqrt(out)
        elif metric == SW:
            out = 2.0 - out

    elif metric == MAN:
        for k in range(nrow):
            out += abs(p[k] - q[k])

    elif metric == HELL:
        for k in range(nrow):
            d = np.sqrt(p[k]) - np.sqrt(q[k])
            out += d * d
        out = np.sqrt(out) / np.sqrt(2.0)

    elif metric == IS:
        for k in range(nrow):
            r = p[k] / q[k]
            out += r - np.log(r) - 1.0

    elif metric == KL:
        for k in range(nrow):
            out += p[k] * np.log(p[k] / q[k])
            out += q[k] * np.log(q[k] / p[k])
        out *= 0.5

    elif metric == PCC:
        sp = 0.0
        sq = 0.0
        spq = 0.0
        sp2 = 0.0
        sq2 = 0.0
        for k in range(nrow):
            sp += p[k]
            sq += q[k]
            spq += p[k] * q[k]
            sp2 += p[k] * p[k]
            sq2 += q[k] * q[k]
        top = nrow * spq - sp * sq
        var1 = nrow * sp2 - sp * sp
        var2 = nrow * sq2 - sq * sq
        # uniform columns have no defined correlation
        out = 0.0 if var1 <= 0.0 or var2 <= 0.0 else top / np.sqrt(var1 * var2)

    elif metric == BHAT:
        for k in range(nrow):
            out += np.sqrt(p[k] * q[k])

    elif metric == ALLR or metric == ALLR_LL:
        for k in range(nrow):
            out += q[k] * n2 * np.log(p[k] / b1[k])
            out += p[k] * n1 * np.log(q[k] / b2[k])
        out /= n1 + n2
        if metric == ALLR_LL and out < ALLR_FLOOR:
            out = ALLR_FLOOR

    return out


@njit(cache=True)
def score_columns(metric, cols1, valid1, cols2, valid2, b1, b2, n1, n2):
    """
    Score two equal-width column arrays position by position.

    Only positions that are real data in both motifs are scored; every other
    entry of the result stays at zero.

    Returns
    -------
    tuple
        (scores, good, n) where ``good`` marks comparable positions and ``n``
        counts them.
    """
    ncol = cols1.shape[0]
    ans = np.zeros(ncol, dtype=np.float64)
    good = np.zeros(ncol, dtype=np.bool_)
    n = 0
    for i in range(ncol):
        if valid1[i] and valid2[i]:
            good[i] = True
            n += 1
            ans[i] = column_score(metric, cols1[i], cols2[i], b1, b2, n1, n2)
    return ans, good, n


@njit(cache=True)
def aggregate_scores(strategy, ans, good, n):
    """Reduce a per-column score array to a scalar."""
    if strategy == STRAT_SUM:
        return ans.sum()

    if strategy == STRAT_AMEAN:
        if n == 0:
            return 0.0
        return ans.sum() / n

    kept = np.empty(n, dtype=np.float64)
    c = 0
    for i in range(ans.shape[0]):
        if good[i]:
            kept[c] = ans[i]
            c += 1

    if strategy == STRAT_GMEAN:
        total = 0.0
        positive = 0
        for i in range(c):
            if kept[i] > 0:
                total += np.log(kept[i])
                positive += 1
        if positive == 0:
            return 0.0
        return np.exp(total / c)

    # median
    if c == 0:
        return 0.0
    kept.sort()
    if c % 2 == 0:
        return (kept[c // 2 - 1] + kept[c // 2]) / 2.0
    return kept[c // 2]


@njit(cache=True)
def position_ic(col, bkg, ic_type, relative):
    """Information content of one column, or its raw total."""
    nrow = col.shape[0]
    out = 0.0
    if ic_type == IC_TOTAL:
        for k in range(nrow):
            out += col[k]
        return out

    if relative:
        for k in range(nrow):
            if col[k] > 0 and bkg[k] > 0:
                v = col[k] * np.log2(col[k] / bkg[k])
                if v > 0:
                    out += v
        return out

    for k in range(nrow):
        if col[k] > 0:
            out -= col[k] * np.log2(col[k])
    return np.log2(nrow) - out


@njit(cache=True)
def motif_ic(cols, bkg, ic_type, relative):
    """Per-position information content of a motif given as a column array."""
    ncol = cols.shape[0]
    out = np.empty(ncol, dtype=np.float64)
    for i in range(ncol):
        out[i] = position_ic(cols[i], bkg, ic_type, relative)
    return out
