"""
Quality Control (QC) module: Assertions and data quality checks.
"""

import numpy as np

from . import config


def check_unique_ids(df, id_col=None):
    """Assert IDs are unique (no duplicates)."""
    id_col = id_col or config.ID_COL
    assert df[id_col].duplicated().sum() == 0, f"Duplicate {id_col} values found!"
    assert df[id_col].isnull().sum() == 0, f"Null {id_col} values found!"
    return f"✓ {id_col} is unique (n={len(df)})"


def check_geometry_validity(gdf):
    """Assert all geometries are valid."""
    assert (~gdf.geometry.is_valid).sum() == 0, "Found invalid geometries!"
    assert gdf.geometry.is_empty.sum() == 0, "Found empty geometries!"
    return f"✓ All {len(gdf)} geometries are valid"


def check_crs(gdf, expected_crs='EPSG:4326'):
    """Assert CRS matches expected."""
    assert gdf.crs == expected_crs, f"CRS mismatch: {gdf.crs} != {expected_crs}"
    return f"✓ CRS is {expected_crs}"


def check_no_missing(df, columns):
    """Assert model columns have no missing values."""
    missing = {c: int(df[c].isnull().sum()) for c in columns if df[c].isnull().any()}
    assert not missing, f"Missing values in model columns: {missing}"
    return f"✓ No missing values in {len(columns)} model columns"


def check_join_coverage(gdf_joined, columns, min_coverage=None):
    """Assert the share of neighbourhoods with joined attributes meets the threshold."""
    if min_coverage is None:
        min_coverage = config.MIN_JOIN_COVERAGE

    total = len(gdf_joined)
    matched = int(gdf_joined[list(columns)].notna().all(axis=1).sum())
    coverage = matched / total if total > 0 else 0

    assert coverage >= min_coverage, f"Join coverage {coverage:.1%} < {min_coverage:.1%}"
    return f"✓ Join coverage: {coverage:.1%} ({matched}/{total})"


def check_eigenbasis_orthogonal(basis, atol=1e-8):
    """Assert eigenvector columns are orthonormal and centred."""
    E = basis.to_numpy(dtype=float)
    gram = E.T @ E
    assert np.allclose(gram, np.eye(E.shape[1]), atol=atol), "Eigenvectors are not orthonormal!"
    assert np.allclose(E.mean(axis=0), 0, atol=atol), "Eigenvectors are not centred!"
    return f"✓ {E.shape[1]} eigenvectors orthonormal over {E.shape[0]} units"


def print_log(log, verbose=None):
    """Print a processing log (list of ✓/⚠️ lines)."""
    if verbose is None:
        verbose = config.VERBOSE
    if not verbose:
        return
    for line in log:
        print(f"  {line}")


def print_qc_report(checks):
    """
    Print formatted QC report.

    Args:
        checks: List of (name, check_func, kwargs) tuples

    Returns:
        Number of failed checks
    """
    print("\n" + "=" * 80)
    print("QUALITY CONTROL REPORT")
    print("=" * 80)

    n_failed = 0
    for name, check_func, kwargs in checks:
        try:
            result = check_func(**kwargs)
            print(f"\n{name}")
            print(f"  {result}")
        except AssertionError as e:
            n_failed += 1
            print(f"\n❌ {name}")
            print(f"  ERROR: {e}")
        except (KeyError, ValueError) as e:
            n_failed += 1
            print(f"\n⚠️  {name}")
            print(f"  WARNING: {e}")

    print("\n" + "=" * 80)
    return n_failed
