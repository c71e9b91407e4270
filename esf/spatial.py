"""
Spatial module: neighbourhood cleaning, table joins, contiguity weights, Moran eigenvector maps.
"""

import numpy as np
import pandas as pd
import geopandas as gpd
from libpysal.weights import Queen

from . import config
from .cleaning import parse_numeric_series
from .errors import JoinMismatchError, ParseError


def clean_neighbourhoods(gdf_neighbourhoods, id_col=None, source_id_col=None):
    """
    Validate and clean neighbourhood geometries and their identifier.

    Args:
        gdf_neighbourhoods: Neighbourhood GeoDataFrame
        id_col: Name of the identifier column in the output (default: config.ID_COL)
        source_id_col: Identifier column in the shapefile (default: config.SHAPEFILE_ID_COL)

    Returns:
        Cleaned GeoDataFrame and log info
    """
    log = []
    id_col = id_col or config.ID_COL
    source_id_col = source_id_col or config.SHAPEFILE_ID_COL
    gdf_clean = gdf_neighbourhoods.copy()

    # 1. Check CRS
    if gdf_clean.crs is None:
        log.append(f"⚠️  CRS missing; assuming EPSG:4326")
        gdf_clean = gdf_clean.set_crs('EPSG:4326')
    else:
        log.append(f"✓ CRS: {gdf_clean.crs}")

    # 2. Validate geometries
    invalid_before = (~gdf_clean.geometry.is_valid).sum()
    if invalid_before > 0:
        log.append(f"⚠️  Found {invalid_before} invalid geometries; repairing...")
        gdf_clean.geometry = gdf_clean.geometry.buffer(0)
        invalid_after = (~gdf_clean.geometry.is_valid).sum()
        log.append(f"   → After repair: {invalid_after} invalid (target: 0)")
        assert invalid_after == 0, "Failed to repair geometries!"
    else:
        log.append(f"✓ All geometries are valid")

    # 3. Identifier: shapefile codes are zero-padded strings ('097')
    if source_id_col not in gdf_clean.columns:
        raise ValueError(f"'{source_id_col}' column not found in neighbourhoods")

    ids = parse_numeric_series(gdf_clean[source_id_col])
    bad = ids.isna() | (ids != np.floor(ids))
    if bad.any():
        failures = [(idx, source_id_col, gdf_clean.loc[idx, source_id_col]) for idx in gdf_clean.index[bad]]
        raise ParseError(f"{len(failures)} non-integer neighbourhood ids in '{source_id_col}'", failures=failures)

    if source_id_col != id_col:
        gdf_clean = gdf_clean.drop(columns=[source_id_col])
    gdf_clean[id_col] = ids.astype('int64')

    dup = gdf_clean[id_col].duplicated()
    if dup.any():
        raise ParseError(f"Duplicate {id_col} values in neighbourhoods: {gdf_clean.loc[dup, id_col].tolist()}")

    gdf_clean = gdf_clean.reset_index(drop=True)
    log.append(f"✓ {id_col} converted to int64 ({len(gdf_clean)} neighbourhoods)")
    log.append(f"✓ Neighbourhood cleaning complete")

    return gdf_clean, log


def join_tables(gdf_neighbourhoods, tables, id_col=None, strict=True):
    """
    Left-join attribute tables onto the neighbourhood layer by identifier.

    The layer's row set and order are preserved. Identifiers present on one
    side only raise JoinMismatchError when strict, and are logged otherwise.

    Args:
        gdf_neighbourhoods: Cleaned neighbourhood GeoDataFrame (with id_col)
        tables: Dict of {name: typed DataFrame with id_col}
        id_col: Join key (default: config.ID_COL)
        strict: Raise on mismatched identifiers

    Returns:
        Joined GeoDataFrame and log info
    """
    log = []
    id_col = id_col or config.ID_COL

    if id_col not in gdf_neighbourhoods.columns:
        raise ValueError(f"'{id_col}' column not found in neighbourhoods")

    layer_ids = pd.Index(gdf_neighbourhoods[id_col])
    mismatches = {}

    gdf_joined = gdf_neighbourhoods.copy().reset_index(drop=True)

    for name, df in tables.items():
        if id_col not in df.columns:
            raise ValueError(f"'{id_col}' column not found in table '{name}'")

        table_ids = pd.Index(df[id_col])
        missing_in_table = sorted(layer_ids.difference(table_ids).tolist())
        missing_in_layer = sorted(table_ids.difference(layer_ids).tolist())

        if missing_in_table or missing_in_layer:
            mismatches[name] = {
                'missing_in_table': missing_in_table,
                'missing_in_layer': missing_in_layer,
            }
            log.append(
                f"⚠️  '{name}': {len(missing_in_table)} layer ids without rows, "
                f"{len(missing_in_layer)} rows without polygons"
            )

        # suffix overlapping attribute names with the table name
        overlap = [c for c in df.columns if c != id_col and c in gdf_joined.columns]
        df_right = df.rename(columns={c: f"{c}_{name}" for c in overlap})

        gdf_joined = gdf_joined.merge(df_right, on=id_col, how='left', validate='one_to_one')
        log.append(f"✓ Joined '{name}' ({len(df.columns) - 1} columns, {len(df)} rows)")

    if mismatches and strict:
        detail = "; ".join(
            f"{name}: missing in table {m['missing_in_table'][:10]}, missing in layer {m['missing_in_layer'][:10]}"
            for name, m in mismatches.items()
        )
        raise JoinMismatchError(f"Identifier mismatch on '{id_col}': {detail}", missing=mismatches)

    # merge on a column keeps left order; make sure of it
    assert gdf_joined[id_col].tolist() == layer_ids.tolist(), "Join changed the row order!"

    gdf_joined = gpd.GeoDataFrame(gdf_joined, geometry=gdf_neighbourhoods.geometry.name, crs=gdf_neighbourhoods.crs)
    log.append(f"✓ Join complete: {len(gdf_joined)} neighbourhoods, {gdf_joined.shape[1]} columns")

    return gdf_joined, log


def build_weights(gdf, id_col=None):
    """
    Build row-standardized Queen contiguity weights over neighbourhood polygons.

    Args:
        gdf: Neighbourhood GeoDataFrame
        id_col: Identifier column used as weights ids (default: config.ID_COL)

    Returns:
        libpysal.weights.W (transform 'r') and log info
    """
    log = []
    id_col = id_col or config.ID_COL

    gdf_indexed = gdf.set_index(id_col, drop=False)
    w = Queen.from_dataframe(gdf_indexed, use_index=True)
    w.transform = 'r'  # Row-standardize

    n_islands = len(w.islands)
    log.append(f"✓ Queen weights: {w.n} neighbourhoods, mean {w.mean_neighbors:.2f} neighbours")
    if n_islands > 0:
        log.append(f"⚠️  {n_islands} islands detected (no contiguous neighbours): {w.islands}")

    return w, log


def build_eigenbasis(w, positive_only=None, n_vectors=None):
    """
    Compute Moran's Eigenvector Maps from a spatial weights object.

    The eigenvectors of M A M, with A the symmetrized binary adjacency and
    M = I - 11'/n the centring projector, are mutually orthogonal, have zero
    mean, and are ordered by descending eigenvalue (strongest positive
    spatial pattern first). Near-zero eigenvalues are dropped; their space
    contains the constant vector, which would duplicate the intercept.

    Args:
        w: libpysal.weights.W
        positive_only: Keep only positive-eigenvalue maps (default: config.POSITIVE_MEMS_ONLY)
        n_vectors: Keep at most this many leading maps

    Returns:
        (DataFrame of MEM columns 'mem_1'..'mem_K' indexed by w.id_order,
         Series of eigenvalues indexed by the same labels)
    """
    if positive_only is None:
        positive_only = config.POSITIVE_MEMS_ONLY

    # binary, symmetric adjacency
    A = (w.sparse > 0).astype(float).toarray()
    A = (A + A.T) / 2.0

    n = A.shape[0]
    M = np.eye(n) - np.ones((n, n)) / n
    eigval, eigvec = np.linalg.eigh(M @ A @ M)

    order = np.argsort(eigval)[::-1]
    eigval, eigvec = eigval[order], eigvec[:, order]

    tol = config.EIGENVALUE_TOL * max(1.0, np.abs(eigval).max())
    keep = eigval > tol if positive_only else np.abs(eigval) > tol
    eigval, eigvec = eigval[keep], eigvec[:, keep]

    if n_vectors is not None:
        eigval, eigvec = eigval[:n_vectors], eigvec[:, :n_vectors]

    labels = [f"mem_{k}" for k in range(1, len(eigval) + 1)]
    basis = pd.DataFrame(eigvec, index=pd.Index(w.id_order, name='unit_id'), columns=labels)
    eigenvalues = pd.Series(eigval, index=labels, name='eigenvalue')

    return basis, eigenvalues
