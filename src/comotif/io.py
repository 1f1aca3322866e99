from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from comotif.models import DNA_ALPHABET, Motif
from comotif.pvalues import TABLE_COLUMNS, PValueTable


def _header_value(header: List[str], key: str) -> Optional[str]:
    """Return the token following ``key`` in a MEME matrix header."""
    try:
        return header[header.index(key) + 1]
    except (ValueError, IndexError):
        return None


def _read_background(handle, alphabet: str) -> Optional[np.ndarray]:
    """Read the line(s) after ``Background letter frequencies``."""
    values = {}
    while len(values) < len(alphabet):
        line = handle.readline()
        if not line:
            break
        parts = line.strip().split()
        if not parts:
            if values:
                break
            continue
        for symbol, value in zip(parts[::2], parts[1::2]):
            values[symbol] = float(value)
    if len(values) != len(alphabet):
        return None
    return np.array([values.get(s, 0.0) for s in alphabet], dtype=np.float64)


def read_meme(path: str | Path) -> List[Motif]:
    """Read all motifs from a MEME formatted file."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File {path} not found")

    motifs: List[Motif] = []
    alphabet = DNA_ALPHABET
    background = None

    with open(path) as handle:
        line = handle.readline()
        name = None
        while line:
            if line.startswith("ALPHABET="):
                alphabet = line.split("=", 1)[1].strip() or DNA_ALPHABET
            elif line.startswith("Background letter frequencies"):
                background = _read_background(handle, alphabet)
            elif line.startswith("MOTIF"):
                parts = line.strip().split()
                name = parts[1] if len(parts) > 1 else f"motif_{len(motifs) + 1}"
            elif line.startswith("letter-probability matrix") and name is not None:
                header = line.replace("=", "= ").split()
                length_token = _header_value(header, "w=")
                nsites_token = _header_value(header, "nsites=")
                if length_token is None:
                    raise ValueError(f"Motif {name} in {path}: matrix header has no w= field")
                length = int(length_token)

                matrix = []
                while len(matrix) < length:
                    row_line = handle.readline()
                    if not row_line:
                        break
                    row = row_line.strip().split()
                    if not row:
                        continue
                    matrix.append(list(map(float, row)))

                if len(matrix) != length:
                    raise ValueError(f"Motif {name} in {path}: expected {length} rows, found {len(matrix)}")

                motifs.append(
                    Motif(
                        name=name,
                        matrix=np.array(matrix, dtype=np.float64).T,
                        background=background,
                        nsites=float(nsites_token) if nsites_token is not None else 100.0,
                        alphabet=alphabet,
                    )
                )
                name = None

            line = handle.readline()

    if not motifs:
        raise ValueError(f"No motifs found in {path}")

    logger = logging.getLogger(__name__)
    logger.debug(f"Read {len(motifs)} motifs from {path}")
    return motifs


def read_meme_motif(path: str | Path, index: int = 0) -> Motif:
    """Read a specific motif from a MEME formatted file."""
    motifs = read_meme(path)
    if index < 0 or index >= len(motifs):
        raise IndexError(f"Motif index {index} out of range. File contains {len(motifs)} motifs.")
    return motifs[index]


def write_meme(motifs: Sequence[Motif], path: str | Path) -> None:
    """Write a list of motifs to a MEME formatted file."""
    alphabet = motifs[0].alphabet if motifs else DNA_ALPHABET
    background = motifs[0].get_background() if motifs else np.full(4, 0.25)
    with open(path, "w") as out:
        out.write("MEME version 4\n\n")
        out.write(f"ALPHABET= {alphabet}\n\n")
        out.write("strands: + -\n\n")
        out.write("Background letter frequencies\n")
        out.write(" ".join(f"{s} {v:.6f}" for s, v in zip(alphabet, background)) + "\n\n")
        for motif in motifs:
            matrix = np.asarray(motif.matrix)
            out.write(f"MOTIF {motif.name}\n")
            out.write(
                f"letter-probability matrix: alength= {matrix.shape[0]} w= {matrix.shape[1]} "
                f"nsites= {motif.nsites:g}\n"
            )
            for row in matrix.T:
                out.write(" " + " ".join(f"{val:.6f}" for val in row) + "\n")
            out.write("\n")


def read_pfm(path: str | Path) -> Motif:
    """Read a ``>name`` headed frequency matrix with one position per line."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File {path} not found")

    with open(path) as handle:
        name = Path(path).stem
        rows = []
        for line in handle:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                name = line[1:].strip() or name
                continue
            rows.append([float(x) for x in line.split()])

    if not rows:
        raise ValueError(f"No matrix found in {path}")

    matrix = np.array(rows, dtype=np.float64).T
    totals = matrix.sum(axis=0)
    if np.all(totals > 0):
        matrix = matrix / totals
    return Motif(name=name, matrix=matrix)


def write_pfm(motif: Motif, path: str | Path) -> None:
    """Write a motif as a ``>name`` headed frequency matrix."""
    with open(path, "w") as out:
        out.write(f">{motif.name}\n")
        for row in np.asarray(motif.matrix).T:
            out.write("\t".join(f"{val:.6f}" for val in row) + "\n")


def read_motifs(path: str | Path) -> List[Motif]:
    """Read motifs from a MEME or PFM file, chosen by extension."""
    suffix = Path(path).suffix.lower()
    if suffix in (".pfm", ".txt", ".mat"):
        return [read_pfm(path)]
    return read_meme(path)


def read_pvalue_table(path: str | Path) -> PValueTable:
    """Read a tab-separated p-value parameter table."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File {path} not found")
    frame = pd.read_csv(path, sep="\t")
    return PValueTable.from_frame(frame)


def write_pvalue_table(table: PValueTable, path: str | Path) -> None:
    """Write a p-value parameter table as TSV."""
    table.frame[TABLE_COLUMNS].to_csv(path, sep="\t", index=False)
