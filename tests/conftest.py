"""
Pytest configuration and common fixtures for comotif tests.
"""
import tempfile
from pathlib import Path

import numpy as np
import pytest

from comotif.models import Motif

# Distinct, informative columns; no column equals another one reversed.
PEAKED_COLUMNS = np.array(
    [
        [0.70, 0.10, 0.15, 0.05],
        [0.05, 0.80, 0.10, 0.05],
        [0.10, 0.05, 0.75, 0.10],
        [0.60, 0.20, 0.05, 0.15],
        [0.05, 0.15, 0.20, 0.60],
        [0.85, 0.05, 0.05, 0.05],
    ]
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def peaked_motif():
    """A 4 x 6 motif with high information content."""
    return Motif(name="peaked", matrix=PEAKED_COLUMNS.T.copy(), nsites=20)


@pytest.fixture
def random_motifs():
    """A few reproducible random motifs of varying width."""
    rng = np.random.default_rng(127)
    motifs = []
    for i, width in enumerate([6, 8, 7, 10]):
        matrix = rng.dirichlet(np.full(4, 0.3), size=width).T
        motifs.append(Motif(name=f"random_{i + 1}", matrix=matrix))
    return motifs
