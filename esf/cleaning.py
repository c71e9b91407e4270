"""
Cleaning module: parse spreadsheet tables into typed numeric tables.
"""

import re

import numpy as np
import pandas as pd

from .errors import ParseError

# how many failures to spell out in the error message
MAX_REPORTED_FAILURES = 10


def normalize_columns(df):
    """Strip and collapse whitespace in column names (returns a copy)."""
    df = df.copy()
    df.columns = [re.sub(r"\s+", " ", str(col)).strip() for col in df.columns]
    return df


def parse_numeric_series(s: pd.Series) -> pd.Series:
    """
    Robustly parse a series of numeric strings.

    Handles thousands separators ('1,234'), currency and percent signs,
    spaces and NBSP. Comma is always treated as a thousands separator:
    the source spreadsheets use '.' as decimal point.

    Args:
        s: pd.Series of strings or numbers

    Returns:
        pd.Series of float values (NaN for missing or unparseable)
    """
    def parse_single(val):
        if val is None or pd.isna(val):
            return np.nan
        if isinstance(val, (int, float, np.integer, np.floating)):
            return float(val)

        val_str = str(val).strip()

        # Remove currency/percent symbols, spaces, NBSP and thousands separators
        val_str = re.sub(r"[$€£%\s\xa0,]", "", val_str)

        if not val_str or val_str == "-":
            return np.nan

        try:
            return float(val_str)
        except ValueError:
            return np.nan

    return s.apply(parse_single).astype("float64")


def _is_blank(val):
    return val is None or (not isinstance(val, str) and pd.isna(val)) or str(val).strip() == ""


def parse_numeric_table(df, id_col, numeric_cols=None, text_cols=(), allow_missing=False):
    """
    Parse a raw string table into a new typed table.

    The identifier becomes int64, every other selected column float64. The
    input frame is left untouched. All bad cells are collected before a single
    ParseError is raised.

    Args:
        df: Raw DataFrame (e.g. from io.load_spreadsheet)
        id_col: Identifier column name
        numeric_cols: Columns to parse (default: all except id_col and text_cols)
        text_cols: Columns kept as stripped strings (e.g. neighbourhood names)
        allow_missing: If False, blank cells count as failures

    Returns:
        Typed DataFrame and log info
    """
    log = []
    df_raw = normalize_columns(df)

    if id_col not in df_raw.columns:
        raise ParseError(f"'{id_col}' column not found (columns: {list(df_raw.columns)})")

    if numeric_cols is None:
        numeric_cols = [c for c in df_raw.columns if c != id_col and c not in text_cols]
    else:
        missing_cols = [c for c in list(numeric_cols) + list(text_cols) if c not in df_raw.columns]
        if missing_cols:
            raise ParseError(f"Columns not found: {missing_cols}")

    failures = []
    typed = {}

    for col in [id_col] + list(numeric_cols):
        raw_col = df_raw[col]
        parsed = parse_numeric_series(raw_col)
        blank = raw_col.apply(_is_blank)
        bad = parsed.isna() & ~blank
        if col == id_col or not allow_missing:
            bad = bad | blank
        for idx in raw_col.index[bad]:
            failures.append((idx, col, raw_col.loc[idx]))
        typed[col] = parsed

    # ids must be whole numbers
    ids = typed[id_col]
    fractional = ids.notna() & (ids != np.floor(ids))
    for idx in ids.index[fractional]:
        failures.append((idx, id_col, df_raw.loc[idx, id_col]))

    if failures:
        shown = ", ".join(f"row {r} '{c}'={v!r}" for r, c, v in failures[:MAX_REPORTED_FAILURES])
        more = len(failures) - MAX_REPORTED_FAILURES
        suffix = f" (+{more} more)" if more > 0 else ""
        raise ParseError(f"{len(failures)} unparseable cells: {shown}{suffix}", failures=failures)

    df_clean = pd.DataFrame(typed, index=df_raw.index)
    df_clean[id_col] = df_clean[id_col].astype("int64")
    for col in text_cols:
        df_clean[col] = df_raw[col].astype(str).str.strip()

    dup = df_clean[id_col].duplicated()
    if dup.any():
        dup_ids = df_clean.loc[dup, id_col].tolist()
        raise ParseError(f"Duplicate {id_col} values: {dup_ids}")

    log.append(f"✓ {id_col} converted to int64 ({len(df_clean)} unique ids)")
    log.append(f"✓ {len(numeric_cols)} numeric columns parsed to float64")

    n_missing = int(df_clean[list(numeric_cols)].isna().sum().sum())
    if n_missing > 0:
        log.append(f"⚠️  {n_missing} missing numeric cells kept as NaN")

    return df_clean.reset_index(drop=True), log
