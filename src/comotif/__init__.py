"""
comotif
=======

This package compares quantitative sequence motifs (position frequency
matrices) under a choice of distance and similarity metrics, finds the best
alignment between two motifs, merges motifs into consensus representations
and converts raw comparison scores into log p-values through a precomputed
parameter table.

The top level modules expose the following key components:

``models``
    The :class:`Motif` container and the :class:`Metric` and
    :class:`ScoreStrategy` enumerations.

``functions``
    Compiled per-column metrics, score aggregation and information content.

``alignment``
    Width equalization, offset and orientation search, and column placement.

``comparison``
    :class:`MotifComparator` for single pairs, index pairs and all pairs.

``merge``
    Pairwise and N-way merging and aligned views for plotting.

``pvalues``
    Distribution registry and p-value lookup.

``io``
    Readers and writers for MEME and PFM motif files and p-value tables.

``cli``
    Command line interface.
"""

from comotif.comparison import ComparisonConfig, MotifComparator, create_comparison_config
from comotif.merge import AlignedMotifs, MergedMotif, merge_motifs, view_motifs_prep
from comotif.models import Metric, Motif, ScoreStrategy
from comotif.pvalues import PValueTable, extract_pvalues

__all__ = [
    "AlignedMotifs",
    "ComparisonConfig",
    "MergedMotif",
    "Metric",
    "Motif",
    "MotifComparator",
    "PValueTable",
    "ScoreStrategy",
    "create_comparison_config",
    "extract_pvalues",
    "merge_motifs",
    "view_motifs_prep",
]
