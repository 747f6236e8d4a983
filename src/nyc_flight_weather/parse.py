"""Readers and writers for the raw and processed CSV files.

This module provides helpers to:

- Read every raw file of one kind in a directory as all-text columns
  (:func:`read_raw_files`).
- Write any result table with the pipeline's fixed text encoding
  (:func:`write_table`).

Raw files are read in lexical filename order so that "first occurrence"
during deduplication is reproducible from one run to the next. Input files
are never moved or modified.
"""
import logging
from pathlib import Path
from typing import List, Tuple

import polars as pl

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def list_raw_files(directory: str | Path, pattern: str) -> List[Path]:
    """Files in ``directory`` matching ``pattern``, sorted by name."""
    return sorted(Path(directory).glob(pattern), key=lambda p: p.name)


def read_raw_files(
    directory: str | Path,
    pattern: str,
) -> Tuple[pl.DataFrame, List[dict]]:
    """Read and stack every raw CSV in ``directory`` matching ``pattern``.

    Every column is read as ``String``; interpreting values is the
    normalizer's job. Files whose column sets differ are stacked diagonally
    (columns missing from one file are null for its rows).

    Parameters
    ----------
    directory
        Directory holding the extraction batches.
    pattern
        Glob pattern, e.g. ``"bts_*.csv"``.

    Returns
    -------
    tuple[polars.DataFrame, list[dict]]
        ``(rows, invalid_files)`` where ``invalid_files`` holds one
        diagnostic dict ``{"file": str, "row": None, "errors": list[dict]}``
        per file that could not be read.
    """
    frames: List[pl.DataFrame] = []
    invalid: List[dict] = []

    for file_path in list_raw_files(directory, pattern):
        try:
            frame = pl.read_csv(file_path, infer_schema=False)
        except (pl.exceptions.PolarsError, OSError) as e:
            logger.warning("Could not read %s: %s", file_path, e)
            invalid.append({
                "file": str(file_path),
                "row": None,
                "errors": [{"type": "read_error", "msg": str(e)}],
            })
            continue
        logger.info("Loaded %s (%d rows)", file_path.name, frame.height)
        frames.append(frame)

    if not frames:
        return pl.DataFrame(), invalid

    return pl.concat(frames, how="diagonal"), invalid


def write_table(df: pl.DataFrame, path: str | Path) -> Path:
    """Write ``df`` as CSV with booleans as ``0``/``1``.

    Booleans are written in the same numeric encoding the raw files use, so
    a written table can be read back through the normalizer unchanged.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    out = df.with_columns(pl.col(pl.Boolean).cast(pl.Int8))
    out.write_csv(path, date_format=DATE_FORMAT, datetime_format=DATETIME_FORMAT)
    return path
