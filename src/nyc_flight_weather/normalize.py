"""Schema normalizer: raw text columns to typed polars columns.

The normalizer never raises on a bad value. Anything that cannot be read as
its declared kind becomes null and is left for the validators to count.
"""
import logging
from typing import Mapping, Optional

import polars as pl

from .schema import NULL_TOKENS, DatasetSchema, FieldKind, FieldSpec

logger = logging.getLogger(__name__)

_DTYPES = {
    FieldKind.NUMERIC: pl.Float64,
    FieldKind.BOOLEAN: pl.Boolean,
    FieldKind.STRING: pl.String,
    FieldKind.DATE: pl.Date,
    FieldKind.DATETIME: pl.Datetime("us"),
}


def _text(name: str) -> pl.Expr:
    s = pl.col(name).cast(pl.String).str.strip_chars()
    return pl.when(s.is_in(list(NULL_TOKENS))).then(pl.lit(None, dtype=pl.String)).otherwise(s)


def _numeric(name: str) -> pl.Expr:
    return _text(name).cast(pl.Float64, strict=False)


def field_expr(spec: FieldSpec) -> pl.Expr:
    """Build the coercion expression for one declared field."""
    if spec.kind == FieldKind.STRING:
        expr = _text(spec.name)
    elif spec.kind == FieldKind.NUMERIC:
        expr = _numeric(spec.name)
    elif spec.kind == FieldKind.BOOLEAN:
        n = _numeric(spec.name)
        expr = (
            pl.when(n == 1).then(pl.lit(True))
            .when(n == 0).then(pl.lit(False))
            .otherwise(pl.lit(None, dtype=pl.Boolean))
        )
    else:
        dtype = _DTYPES[spec.kind]
        s = _text(spec.name)
        attempts = [s.str.strptime(dtype, fmt, strict=False) for fmt in spec.formats]
        expr = pl.coalesce(attempts) if attempts else pl.lit(None, dtype=dtype)
    return expr.cast(_DTYPES[spec.kind]).alias(spec.name)


def normalize_frame(df: pl.DataFrame, schema: DatasetSchema) -> pl.DataFrame:
    """Coerce every declared field of ``df`` to its typed representation.

    Parameters
    ----------
    df
        Raw dataset, normally all ``String`` columns.
    schema
        Declared field kinds.

    Returns
    -------
    polars.DataFrame
        New frame with the same row order. Declared fields missing from
        ``df`` are added as all-null typed columns; undeclared columns are
        passed through unchanged.
    """
    missing = [f.name for f in schema.fields if f.name not in df.columns]
    if missing:
        logger.warning("[%s] columns missing from input, filled with nulls: %s", schema.name, missing)
        df = df.with_columns([pl.lit(None, dtype=pl.String).alias(name) for name in missing])

    return df.with_columns([field_expr(spec) for spec in schema.fields])


def normalize_record(raw: Mapping[str, Optional[str]], schema: DatasetSchema) -> dict:
    """Normalize a single raw mapping; same rules as :func:`normalize_frame`."""
    values = {f.name: raw.get(f.name) for f in schema.fields}
    values.update(raw)
    frame = pl.DataFrame(
        {k: [None if v is None else str(v)] for k, v in values.items()},
        schema={k: pl.String for k in values},
    )
    return normalize_frame(frame, schema).row(0, named=True)
