"""Quality checks and report tables shared by the flight and weather stages.

Every check takes a typed frame and returns a small summary frame. None of
them modify their input. :class:`QualityReport` collects the tables of one
dataset so they can be logged and written out together.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

import polars as pl
from pydantic import BaseModel, ValidationError

from .models import OutlierBounds
from .parse import write_table

logger = logging.getLogger(__name__)


@dataclass
class QualityReport:
    """Named report tables for one dataset (``bts`` or ``weather``).

    Tables are written as ``<dataset>_<name>.csv``.
    """
    dataset: str
    tables: Dict[str, pl.DataFrame] = field(default_factory=dict)

    def add(self, name: str, table: pl.DataFrame) -> None:
        self.tables[name] = table

    def __getitem__(self, name: str) -> pl.DataFrame:
        return self.tables[name]

    def __contains__(self, name: str) -> bool:
        return name in self.tables

    def write(self, output_dir: str | Path) -> List[Path]:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for name, table in self.tables.items():
            path = output_dir / f"{self.dataset}_{name}.csv"
            write_table(table, path)
            written.append(path)
        logger.info("[%s] wrote %d report table(s) to %s", self.dataset, len(written), output_dir)
        return written


# ---------- Completeness ----------

def missing_summary(df: pl.DataFrame) -> pl.DataFrame:
    """Null count and percentage (2 dp) for every column."""
    n = df.height
    counts = [df[c].null_count() for c in df.columns]
    return pl.DataFrame(
        {
            "Field": df.columns,
            "Missing_Count": counts,
            "Missing_Percent": [round(c / n * 100, 2) if n else 0.0 for c in counts],
        },
        schema={"Field": pl.String, "Missing_Count": pl.Int64, "Missing_Percent": pl.Float64},
    )


# ---------- Consistency ----------

def duplicate_groups(df: pl.DataFrame, keys: Sequence[str]) -> pl.DataFrame:
    """Key combinations that occur more than once, with their ``Count``."""
    return (
        df.group_by(list(keys), maintain_order=True)
        .len(name="Count")
        .filter(pl.col("Count") > 1)
    )


def duplicate_members(df: pl.DataFrame, keys: Sequence[str]) -> pl.DataFrame:
    """Every row of every duplicate group.

    The first row of each group (in dataset order) is the one deduplication
    keeps and is flagged ``kept=True``.
    """
    keys = list(keys)
    return (
        df.filter(pl.len().over(keys) > 1)
        .with_columns(
            (pl.int_range(pl.len()).over(keys) == 0).alias("kept"),
            pl.lit("DuplicateKey").alias("removal_reason"),
        )
    )


def crosstab(df: pl.DataFrame, row: str, col: str) -> pl.DataFrame:
    """Counts of each ``(row, col)`` value pair, nulls included as a level."""
    return (
        df.group_by([row, col])
        .len(name="Count")
        .sort([row, col], nulls_last=True)
    )


def frequency(df: pl.DataFrame, column: str) -> pl.DataFrame:
    return df.group_by(column).len(name="Count").sort(column, nulls_last=True)


def pattern_violations(df: pl.DataFrame, rules: Iterable[Tuple[str, str]]) -> pl.DataFrame:
    """Count non-null values failing a full-match regex, per field.

    ``Null_Count`` is reported alongside so callers that treat nulls as
    violations can add the two.
    """
    rows = []
    for name, pattern in rules:
        s = df[name]
        rows.append({
            "Field": name,
            "Rule": pattern,
            "Invalid_Count": int((~s.str.contains(pattern)).sum() or 0),
            "Null_Count": s.null_count(),
        })
    return pl.DataFrame(
        rows,
        schema={"Field": pl.String, "Rule": pl.String, "Invalid_Count": pl.Int64, "Null_Count": pl.Int64},
    )


# ---------- Validity ----------

def numeric_ranges(df: pl.DataFrame, columns: Sequence[str]) -> pl.DataFrame:
    """Observed min/max of each numeric column (nulls ignored)."""
    return pl.DataFrame(
        {
            "Field": list(columns),
            "Min": [df[c].min() for c in columns],
            "Max": [df[c].max() for c in columns],
        },
        schema={"Field": pl.String, "Min": pl.Float64, "Max": pl.Float64},
    )


def boolean_violations(df: pl.DataFrame, columns: Sequence[str]) -> pl.DataFrame:
    """Values that are neither true, false nor null."""
    return pl.DataFrame(
        {
            "Field": list(columns),
            "Invalid_Count": [
                int((df[c].is_not_null() & ~df[c].is_in([True, False])).sum()) for c in columns
            ],
        },
        schema={"Field": pl.String, "Invalid_Count": pl.Int64},
    )


def value_violations(df: pl.DataFrame, column: str, allowed: Sequence[str]) -> int:
    """Non-null values of ``column`` outside ``allowed``."""
    s = df[column]
    return int((s.is_not_null() & ~s.is_in(list(allowed))).sum())


def in_window(column: str, start: date, end: date, is_datetime: bool = False) -> pl.Expr:
    """True when the date (or the date part of a timestamp) lies in ``[start, end]``.

    Null dates give null, which ``filter`` treats as false.
    """
    d = pl.col(column).dt.date() if is_datetime else pl.col(column)
    return d.is_between(pl.lit(start), pl.lit(end), closed="both")


def date_violations(df: pl.DataFrame, column: str, start: date, end: date, is_datetime: bool = False) -> int:
    """Rows with a null date or a date outside ``[start, end]``."""
    outside_window = ~in_window(column, start, end, is_datetime).fill_null(False)
    return int(df.select(outside_window.sum()).item())


# ---------- Outliers ----------

def iqr_bounds(df: pl.DataFrame, column: str, floor: Optional[float] = None) -> OutlierBounds:
    """1.5 x IQR fence of ``column`` over ``df`` as it stands now.

    Quartiles use linear interpolation. ``floor`` raises the lower bound
    (e.g. ``0`` for delays that cannot be negative). A column with no
    values gives open bounds.
    """
    s = df[column].drop_nulls()
    if s.len() == 0:
        return OutlierBounds(field=column, lower=floor, rows=0)
    q1 = float(s.quantile(0.25, interpolation="linear"))
    q3 = float(s.quantile(0.75, interpolation="linear"))
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    if floor is not None:
        lower = max(lower, floor)
    return OutlierBounds(field=column, lower=lower, upper=q3 + 1.5 * iqr, q1=q1, q3=q3, iqr=iqr, rows=s.len())


def outside(bounds: OutlierBounds) -> pl.Expr:
    """True where the field lies outside ``bounds``; null stays null."""
    c = pl.col(bounds.field)
    expr = pl.lit(False)
    if bounds.lower is not None:
        expr = expr | (c < bounds.lower)
    if bounds.upper is not None:
        expr = expr | (c > bounds.upper)
    return expr


def clamp(bounds: OutlierBounds) -> pl.Expr:
    c = pl.col(bounds.field)
    if bounds.lower is None and bounds.upper is None:
        return c
    return c.clip(bounds.lower, bounds.upper).alias(bounds.field)


def bounds_table(bounds: Iterable[OutlierBounds], stage: str) -> pl.DataFrame:
    return pl.DataFrame(
        [{"Stage": stage, **b.model_dump()} for b in bounds],
        schema={
            "Stage": pl.String, "field": pl.String, "lower": pl.Float64, "upper": pl.Float64,
            "q1": pl.Float64, "q3": pl.Float64, "iqr": pl.Float64, "rows": pl.Int64,
        },
    )


# ---------- Final validation ----------

def yearly_totals(df: pl.DataFrame, column: str, count_name: str) -> pl.DataFrame:
    year = pl.col(column).dt.year().alias("Year")
    return (
        df.group_by(year)
        .agg(pl.len().cast(pl.Int64).alias(count_name))
        .sort("Year", nulls_last=True)
    )


def validate_rows(df: pl.DataFrame, model: Type[BaseModel], dataset: str) -> Tuple[List[BaseModel], List[dict]]:
    """Validate each row of ``df`` against ``model``.

    Returns
    -------
    tuple[list[BaseModel], list[dict]]
        ``(valid_rows, invalid_rows)``; invalid entries look like
        ``{"file": dataset, "row": dict, "errors": list[dict]}``.
    """
    valid: List[BaseModel] = []
    invalid: List[dict] = []
    for row in df.iter_rows(named=True):
        try:
            valid.append(model(**row))
        except ValidationError as e:
            invalid.append({"file": dataset, "row": row, "errors": e.errors()})
    return valid, invalid


def violations_table(invalid: List[dict]) -> pl.DataFrame:
    """Flatten :func:`validate_rows` failures into one row per failing record."""
    return pl.DataFrame(
        [
            {
                **{k: (None if v is None else str(v)) for k, v in item["row"].items()},
                "errors": "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in item["errors"]),
            }
            for item in invalid
        ],
        infer_schema_length=None,
    )
