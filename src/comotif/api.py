"""High-level public API for motif comparison, merging and p-values."""

from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from comotif.comparison import (
    ComparisonConfig,
    MotifComparator,
    all_pair_indices,
    create_comparison_config,
)
from comotif.comparison import compare_columns as _compare_columns
from comotif.io import read_motifs, read_pvalue_table
from comotif.merge import AlignedMotifs, MergedMotif
from comotif.merge import merge_motifs as _merge_motifs
from comotif.merge import view_motifs_prep as _view_motifs_prep
from comotif.models import Metric, Motif
from comotif.pvalues import PValueTable, extract_pvalues

MotifRef = Union[Motif, np.ndarray, str, Path]
TableRef = Union[PValueTable, pd.DataFrame, str, Path]


def resolve_motifs(motifs: Union[MotifRef, Sequence[MotifRef]]) -> List[Motif]:
    """Convert motif references (objects, matrices or file paths) to a flat list of Motif."""
    if isinstance(motifs, (Motif, str, Path)) or (isinstance(motifs, np.ndarray) and motifs.ndim == 2):
        motifs = [motifs]

    resolved: List[Motif] = []
    for i, ref in enumerate(motifs):
        if isinstance(ref, Motif):
            resolved.append(ref)
        elif isinstance(ref, np.ndarray):
            resolved.append(Motif(name=f"motif_{i + 1}", matrix=ref))
        elif isinstance(ref, (str, Path)):
            path = Path(ref)
            if not path.exists():
                raise FileNotFoundError(f"Motif file not found: {path}")
            resolved.extend(read_motifs(path))
        else:
            raise TypeError(f"Unsupported motif reference type: {type(ref)!r}")
    return resolved


def _resolve_config(config: Optional[ComparisonConfig], kwargs: dict) -> ComparisonConfig:
    """Use the given config or build one from keyword selectors."""
    if config is not None and kwargs:
        raise ValueError("Use either 'config' or comparison kwargs, not both.")
    return config or create_comparison_config(**kwargs)


def _resolve_table(table: TableRef) -> PValueTable:
    """Convert a table reference to PValueTable."""
    if isinstance(table, PValueTable):
        return table
    if isinstance(table, pd.DataFrame):
        return PValueTable.from_frame(table)
    if isinstance(table, (str, Path)):
        return read_pvalue_table(table)
    raise TypeError(f"Unsupported p-value table type: {type(table)!r}")


def compare_motifs(
    motif1: MotifRef, motif2: MotifRef, config: Optional[ComparisonConfig] = None, **comparison_kwargs
) -> dict:
    """Single-call entry point for comparing two motifs."""
    cfg = _resolve_config(config, comparison_kwargs)
    first = resolve_motifs(motif1)[0]
    second = resolve_motifs(motif2)[0]
    return MotifComparator(cfg).compare(first, second)


def compare_pairs(
    motifs: Sequence[MotifRef],
    index1: Sequence[int],
    index2: Sequence[int],
    config: Optional[ComparisonConfig] = None,
    **comparison_kwargs,
) -> np.ndarray:
    """Compare ``motifs[index1[k]]`` with ``motifs[index2[k]]`` for every k."""
    cfg = _resolve_config(config, comparison_kwargs)
    return MotifComparator(cfg).compare_pairs(resolve_motifs(motifs), index1, index2)


def compare_all(
    motifs: Sequence[MotifRef], config: Optional[ComparisonConfig] = None, **comparison_kwargs
) -> pd.DataFrame:
    """All-pairs comparison as a named symmetric matrix."""
    cfg = _resolve_config(config, comparison_kwargs)
    return MotifComparator(cfg).compare_all(resolve_motifs(motifs))


def compare_all_long(
    motifs: Sequence[MotifRef],
    config: Optional[ComparisonConfig] = None,
    pvalue_table: Optional[TableRef] = None,
    **comparison_kwargs,
) -> pd.DataFrame:
    """All-pairs comparison as a long table, with log p-values when a table is given."""
    cfg = _resolve_config(config, comparison_kwargs)
    resolved = resolve_motifs(motifs)
    comparator = MotifComparator(cfg)
    prepared = comparator.prepare(resolved)
    index1, index2 = all_pair_indices(len(prepared))
    scores = comparator.compare_pairs(prepared, index1, index2)

    result = pd.DataFrame(
        {
            "query": [prepared.names[i] for i in index1],
            "target": [prepared.names[j] for j in index2],
            "score": scores,
        }
    )
    if pvalue_table is not None:
        result["logPval"] = extract_pvalues(
            scores, prepared.widths, index1, index2, cfg.metric, _resolve_table(pvalue_table)
        )
    return result


def merge_motifs(
    motifs: Sequence[MotifRef],
    config: Optional[ComparisonConfig] = None,
    name: Optional[str] = None,
    **comparison_kwargs,
) -> MergedMotif:
    """Merge motifs into one consensus motif."""
    cfg = _resolve_config(config, comparison_kwargs)
    return _merge_motifs(resolve_motifs(motifs), cfg, name=name)


def view_motifs_prep(
    motifs: Sequence[MotifRef], config: Optional[ComparisonConfig] = None, **comparison_kwargs
) -> AlignedMotifs:
    """Align motifs to the first one for display."""
    cfg = _resolve_config(config, comparison_kwargs)
    return _view_motifs_prep(resolve_motifs(motifs), cfg)


def compare_columns(
    p1: Sequence[float],
    p2: Sequence[float],
    b1: Sequence[float] = (),
    b2: Sequence[float] = (),
    n1: float = 100,
    n2: float = 100,
    metric: Union[str, Metric] = "PCC",
) -> float:
    """Compare two raw columns."""
    return _compare_columns(p1, p2, b1, b2, n1, n2, metric)


def motif_pvalues(
    scores: Sequence[float],
    motifs: Sequence[MotifRef],
    index1: Sequence[int],
    index2: Sequence[int],
    metric: Union[str, Metric],
    table: TableRef,
) -> np.ndarray:
    """Log p-values for scores computed over ``motifs`` by index pairs."""
    widths = [m.width for m in resolve_motifs(motifs)]
    return extract_pvalues(scores, widths, index1, index2, metric, _resolve_table(table))
