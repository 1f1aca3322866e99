# %%


import sys
from pathlib import Path

import logomaker
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from comotif import Motif, create_comparison_config, merge_motifs, view_motifs_prep
from comotif.api import compare_all, resolve_motifs

# %%


def random_motifs(n_motifs=4, min_width=6, max_width=12, seed=111):
    """Generate peaked random motifs for a quick demo."""
    rng = np.random.default_rng(seed)
    motifs = []
    for i in range(n_motifs):
        width = int(rng.integers(min_width, max_width + 1))
        matrix = rng.dirichlet(np.full(4, 0.3), size=width).T
        motifs.append(Motif(name=f"random_{i + 1}", matrix=matrix))
    return motifs


def _to_info_frame(motif):
    columns = np.asarray(motif.matrix, dtype=float).T
    totals = columns.sum(axis=1, keepdims=True)
    empty = totals[:, 0] == 0
    totals[empty] = 1.0
    probs = columns / totals
    probs[empty] = 0.25
    df = pd.DataFrame({base: probs[:, i] for i, base in enumerate(motif.alphabet)})
    info = logomaker.transform_matrix(df, from_type="probability", to_type="information")
    info.loc[empty] = 0.0
    return info


def plot_aligned_logos(aligned, merged=None):
    rows = len(aligned.motifs) + (1 if merged is not None else 0)
    fig, axes = plt.subplots(rows, 1, figsize=(8, 1.8 * rows), sharex=True, constrained_layout=True)
    axes = np.atleast_1d(axes)

    for ax, motif, is_rc in zip(axes, aligned.motifs, aligned.is_rc):
        logomaker.Logo(_to_info_frame(motif), ax=ax, color_scheme="classic")
        ax.set_title(f"{motif.name}{' (reverse complement)' if is_rc else ''}")
        ax.set_ylabel("bits")

    if merged is not None:
        logomaker.Logo(_to_info_frame(merged.to_motif()), ax=axes[-1], color_scheme="classic")
        axes[-1].set_title(f"merged: {merged.name}")
        axes[-1].set_ylabel("bits")

    axes[-1].set_xlabel("aligned position")
    for ax in axes:
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)

    return fig, axes


# %%

if len(sys.argv) > 1 and Path(sys.argv[1]).exists():
    motifs = resolve_motifs(sys.argv[1:])
else:
    motifs = random_motifs()

config = create_comparison_config(metric="PCC", strategy="a.mean", min_overlap=0.5, min_mean_ic=0.0)

print(compare_all(motifs, config=config).round(3))

# %%

aligned = view_motifs_prep(motifs, config=config)
merged = merge_motifs(motifs, config=config, name="consensus")

fig, axes = plot_aligned_logos(aligned, merged)
plt.show()
