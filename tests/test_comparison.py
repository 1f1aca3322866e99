"""
Tests for pairwise motif comparison in comotif/comparison.py and comotif/api.py.
"""

import numpy as np
import pandas as pd
import pytest

from comotif import api
from comotif import functions as fn
from comotif.alignment import reverse_complement
from comotif.comparison import (
    MotifComparator,
    _compare_chunk,
    all_pair_indices,
    compare_columns,
    comparison_matrix,
    create_comparison_config,
)
from comotif.models import UNSCORED, Metric, Motif, ScoreStrategy


def exact_config(**kwargs):
    params = {"metric": "EUCL", "strategy": "sum", "try_rc": False, "min_mean_ic": 0.0}
    params.update(kwargs)
    return create_comparison_config(**params)


def test_create_comparison_config_defaults():
    """Defaults resolve to enumerations"""
    config = create_comparison_config()
    assert config.metric is Metric.PCC
    assert config.strategy is ScoreStrategy.A_MEAN
    assert config.min_overlap == 6.0
    assert config.try_rc is True
    assert config.min_mean_ic == 0.25


def test_create_comparison_config_validation():
    """Bad selectors are rejected, a negative overlap falls back to one column"""
    assert create_comparison_config(min_overlap=-3).min_overlap == 1.0
    with pytest.raises(ValueError, match="not found"):
        create_comparison_config(metric="JACCARD")
    with pytest.raises(ValueError, match="not found"):
        create_comparison_config(ic_type="entropy")
    with pytest.raises(ValueError, match="n_jobs"):
        create_comparison_config(n_jobs=0)
    with pytest.raises(ValueError, match="min_mean_ic"):
        create_comparison_config(min_mean_ic=-1.0)


def test_identical_motifs_align_at_zero(peaked_motif):
    """Identical motifs score 0 under EUCL at offset 0 even with maximal padding"""
    comparator = MotifComparator(exact_config(min_overlap=1))
    result = comparator.compare(peaked_motif, peaked_motif)
    assert result["score"] == pytest.approx(0.0, abs=1e-12)
    assert result["offset"] == 0
    assert result["orientation"] == "++"
    assert result["metric"] == "EUCL"
    assert result["query"] == result["target"] == "peaked"


def test_identical_motifs_pcc(peaked_motif):
    """Forward orientation wins ties with the reverse complement"""
    comparator = MotifComparator(create_comparison_config(metric="PCC", min_mean_ic=0.0))
    result = comparator.compare(peaked_motif, peaked_motif)
    assert result["score"] == pytest.approx(1.0)
    assert result["orientation"] == "++"


@pytest.mark.parametrize("min_overlap", [4, 2])
def test_submotif_offset(peaked_motif, min_overlap):
    """A sub-motif cut at column 2 is found at offset 2, and at -2 from its side"""
    sub = Motif(name="sub", matrix=peaked_motif.matrix[:, 2:6].copy())
    comparator = MotifComparator(exact_config(min_overlap=min_overlap, strategy="a.mean"))

    forward = comparator.compare(peaked_motif, sub)
    assert forward["score"] == pytest.approx(0.0, abs=1e-12)
    assert forward["offset"] == 2

    backward = comparator.compare(sub, peaked_motif)
    assert backward["score"] == pytest.approx(0.0, abs=1e-12)
    assert backward["offset"] == -2


def test_reverse_complement_is_found(peaked_motif):
    """The reverse complement of a motif matches it in the +- orientation"""
    rc = Motif(name="rc", matrix=reverse_complement(peaked_motif.columns()).T.copy())
    result = MotifComparator(exact_config(try_rc=True)).compare(peaked_motif, rc)
    assert result["orientation"] == "+-"
    assert result["score"] == pytest.approx(0.0, abs=1e-12)

    forward_only = MotifComparator(exact_config(try_rc=False)).compare(peaked_motif, rc)
    assert forward_only["orientation"] == "++"
    assert forward_only["score"] > 0


def test_normalised_similarity(peaked_motif):
    """Similarity scores are scaled by aligned over total length"""
    sub = Motif(name="sub", matrix=peaked_motif.matrix[:, 2:6].copy())
    config = create_comparison_config(
        metric="PCC", min_overlap=4, try_rc=False, min_mean_ic=0.0, normalise_scores=True
    )
    result = MotifComparator(config).compare(peaked_motif, sub)
    assert result["score"] == pytest.approx(4 / 6)
    assert result["offset"] == 2


@pytest.mark.parametrize(
    "metric, expected", [("EUCL", UNSCORED), ("PCC", -UNSCORED)]
)
def test_low_information_pairs_get_sentinel(peaked_motif, metric, expected):
    """Pairs without any admissible window report the worst representable score"""
    comparator = MotifComparator(create_comparison_config(metric=metric, min_mean_ic=5.0))
    assert comparator.compare(peaked_motif, peaked_motif)["score"] == expected

    scores = comparator.compare_pairs([peaked_motif, peaked_motif], [0], [1])
    assert scores[0] == expected


def test_min_position_ic_masks_columns(peaked_motif):
    """Positions below the IC threshold are never comparable"""
    comparator = MotifComparator(exact_config(min_position_ic=10.0))
    assert comparator.compare(peaked_motif, peaked_motif)["score"] == UNSCORED


def test_compare_all_symmetric(random_motifs):
    """All-pairs matrix is symmetric with self-similarity on the diagonal"""
    config = create_comparison_config(metric="PCC", min_mean_ic=0.0)
    matrix = MotifComparator(config).compare_all(random_motifs)

    assert isinstance(matrix, pd.DataFrame)
    assert list(matrix.index) == [m.name for m in random_motifs]
    np.testing.assert_allclose(matrix.values, matrix.values.T)
    np.testing.assert_allclose(np.diag(matrix.values), 1.0)
    assert np.all(matrix.values <= 1.0 + 1e-12)


def test_compare_pairs_order_and_parallel(random_motifs):
    """Results follow index pair order regardless of the number of workers"""
    index1, index2 = all_pair_indices(len(random_motifs))
    assert index1.size == 10

    serial = MotifComparator(create_comparison_config(min_mean_ic=0.0)).compare_pairs(
        random_motifs, index1, index2
    )
    parallel = MotifComparator(create_comparison_config(min_mean_ic=0.0, n_jobs=2)).compare_pairs(
        random_motifs, index1, index2
    )
    np.testing.assert_allclose(serial, parallel)

    reversed_pairs = MotifComparator(create_comparison_config(min_mean_ic=0.0)).compare_pairs(
        random_motifs, index1[::-1], index2[::-1]
    )
    np.testing.assert_allclose(reversed_pairs, serial[::-1])


def test_compare_pairs_matches_single_compare(random_motifs):
    """Batch and single comparisons agree"""
    comparator = MotifComparator(create_comparison_config(metric="HELL", min_overlap=0.5, min_mean_ic=0.0))
    scores = comparator.compare_pairs(random_motifs, [0, 1, 2], [3, 3, 1])
    for score, (a, b) in zip(scores, [(0, 3), (1, 3), (2, 1)]):
        single = comparator.compare(random_motifs[a], random_motifs[b])
        assert score == pytest.approx(single["score"])


def test_compare_pairs_validation(random_motifs):
    """Index errors are raised before any worker starts"""
    comparator = MotifComparator()
    with pytest.raises(ValueError, match="lengths"):
        comparator.compare_pairs(random_motifs, [0, 1], [1])
    with pytest.raises(ValueError, match="pair indices"):
        comparator.compare_pairs(random_motifs, [0], [7])
    assert comparator.compare_pairs(random_motifs, [], []).size == 0


def test_comparison_matrix_fills_both_triangles():
    """Scores are mirrored and unset cells stay zero"""
    matrix = comparison_matrix([0.5, 0.2], [0, 0], [1, 2], ["a", "b", "c"])
    assert matrix.loc["a", "b"] == matrix.loc["b", "a"] == 0.5
    assert matrix.loc["c", "a"] == 0.2
    assert matrix.loc["b", "c"] == 0.0
    with pytest.raises(ValueError):
        comparison_matrix([0.5], [0, 1], [1, 2], ["a", "b", "c"])


def test_compare_columns():
    """Raw column comparison with validation"""
    p = [0.1, 0.2, 0.3, 0.4]
    assert compare_columns(p, p, metric="PCC") == pytest.approx(1.0)
    assert compare_columns(p, p, metric="eucl") == pytest.approx(0.0)
    assert compare_columns(p, p[::-1], metric="MAN") == pytest.approx(0.8)

    bkg = [0.25] * 4
    allr = compare_columns(p, p, bkg, bkg, 50, 50, metric="ALLR")
    assert allr == pytest.approx(sum(x * np.log(x / 0.25) for x in p))

    with pytest.raises(ValueError, match="equal in size"):
        compare_columns(p, p[:3])
    with pytest.raises(ValueError, match="at least 2"):
        compare_columns([1.0], [1.0])
    with pytest.raises(ValueError, match="background"):
        compare_columns(p, p, metric="ALLR")
    with pytest.raises(ValueError, match="nsites"):
        compare_columns(p, p, bkg, bkg, 1, 50, metric="ALLR_LL")


def test_api_compare_motifs(peaked_motif):
    """High level entry points accept motifs, matrices and keyword selectors"""
    result = api.compare_motifs(peaked_motif, peaked_motif.matrix, metric="EUCL", min_mean_ic=0.0)
    assert result["target"] == "motif_1"
    assert result["score"] == pytest.approx(0.0, abs=1e-12)

    with pytest.raises(ValueError, match="either"):
        api.compare_motifs(peaked_motif, peaked_motif, config=create_comparison_config(), metric="EUCL")


def test_api_resolve_motifs_errors(temp_dir):
    with pytest.raises(FileNotFoundError):
        api.resolve_motifs(temp_dir / "missing.meme")
    with pytest.raises(TypeError):
        api.resolve_motifs([42])


def test_api_compare_all_long(random_motifs):
    """Long format lists every upper-triangular pair once"""
    table = api.compare_all_long(random_motifs, min_mean_ic=0.0)
    assert list(table.columns) == ["query", "target", "score"]
    assert len(table) == 10
    assert table.iloc[0]["query"] == table.iloc[0]["target"] == "random_1"


SYMMETRIC_METRICS = ["EUCL", "SEUCL", "MAN", "HELL", "KL", "PCC", "SW", "BHAT", "ALLR", "ALLR_LL"]


@pytest.mark.parametrize("metric", SYMMETRIC_METRICS)
def test_symmetric_metrics_give_symmetric_scores(random_motifs, metric):
    """compare(A, B) == compare(B, A) for motifs of unequal width"""
    first, second = random_motifs[0], random_motifs[1]
    assert first.width != second.width
    comparator = MotifComparator(create_comparison_config(metric=metric, min_overlap=0.5, min_mean_ic=0.0))
    forward = comparator.compare(first, second)
    backward = comparator.compare(second, first)
    assert forward["score"] == pytest.approx(backward["score"])


@pytest.mark.parametrize("metric", ["ALLR", "ALLR_LL"])
def test_allr_with_zero_cells_is_finite(peaked_motif, metric):
    """Zero cells in the matrix and the background are smoothed before scoring"""
    matrix = peaked_motif.matrix.copy()
    matrix[:, 0] = [0.75, 0.10, 0.15, 0.0]
    background = np.array([0.5, 0.0, 0.25, 0.25])
    motif = Motif(name="sparse", matrix=matrix, background=background, nsites=20)

    config = create_comparison_config(metric=metric, try_rc=False, min_mean_ic=0.0)
    result = MotifComparator(config).compare(motif, motif)
    assert np.isfinite(result["score"])

    # self-ALLR with equal nsites reduces to the relative entropy of each column
    smoothed = matrix.T + 0.01
    smoothed_bkg = background + 0.0025
    expected = np.mean([np.sum(col * np.log(col / smoothed_bkg)) for col in smoothed])
    assert result["score"] == pytest.approx(expected)

    raw = fn.column_score(int(Metric[metric]), matrix[:, 0], matrix[:, 0], background, background, 20.0, 20.0)
    assert not np.isfinite(raw)


def test_serial_and_threaded_kernels_agree(random_motifs):
    """Worker chunks use the single-threaded kernel with identical results"""
    config = create_comparison_config(metric="SW", min_overlap=0.5, min_mean_ic=0.0)
    prepared = MotifComparator(config).prepare(random_motifs)
    index1, index2 = all_pair_indices(len(prepared))
    threaded = _compare_chunk(prepared, index1, index2, config)
    serial = _compare_chunk(prepared, index1, index2, config, threaded=False)
    np.testing.assert_allclose(serial, threaded)


def test_compare_pairs_rejects_bad_nsites(random_motifs):
    """Site counts are validated before any worker starts"""
    broken = random_motifs[:1] + [Motif(name="broken", matrix=random_motifs[1].matrix, nsites=0)]
    with pytest.raises(ValueError, match="nsites"):
        MotifComparator(create_comparison_config(metric="ALLR")).compare_pairs(broken, [0], [1])
