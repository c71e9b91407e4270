"""
Pipeline module: load → parse → join → weights → eigenbasis → spatial filter selection.
"""

from pathlib import Path

import numpy as np
import pandas as pd

from . import config
from .cleaning import normalize_columns, parse_numeric_table
from .io import load_shapefile, load_spreadsheet
from .regression import fit_ols, moran_test
from .selection import FILTER_TERM, select_spatial_filter
from .spatial import build_eigenbasis, build_weights, clean_neighbourhoods, join_tables


def load_inputs(files=None, id_col=None, source_id_col=None, header_row=None, strict=True):
    """
    Load both spreadsheets and the neighbourhood shapefile, parse and join them.

    Args:
        files: Dict with 'neighbourhoods' plus one entry per spreadsheet
            (default: config.INPUT_FILES)
        id_col: Neighbourhood identifier in the spreadsheets (default: config.ID_COL)
        source_id_col: Identifier in the shapefile (default: config.SHAPEFILE_ID_COL)
        header_row: Spreadsheet row holding column names (default: config.SPREADSHEET_HEADER_ROW)
        strict: Raise JoinMismatchError on unmatched identifiers

    Returns:
        Joined GeoDataFrame and log info
    """
    log = []
    files = dict(files or config.INPUT_FILES)
    id_col = id_col or config.ID_COL
    if header_row is None:
        header_row = config.SPREADSHEET_HEADER_ROW

    shapefile = files.pop('neighbourhoods')
    gdf_raw = load_shapefile(shapefile)
    log.append(f"✓ Loaded {len(gdf_raw)} polygons from {Path(shapefile).name}")

    gdf_neigh, neigh_log = clean_neighbourhoods(gdf_raw, id_col=id_col, source_id_col=source_id_col)
    log.extend(neigh_log)

    tables = {}
    for name, path in files.items():
        df_raw = normalize_columns(load_spreadsheet(path, header_row=header_row))
        text_cols = [c for c in config.TEXT_COLS if c in df_raw.columns]
        df_typed, parse_log = parse_numeric_table(df_raw, id_col, text_cols=text_cols)
        log.append(f"✓ Parsed '{name}': {len(df_typed)} rows, {df_typed.shape[1]} columns")
        log.extend(parse_log)
        tables[name] = df_typed

    gdf_joined, join_log = join_tables(gdf_neigh, tables, id_col=id_col, strict=strict)
    log.extend(join_log)

    return gdf_joined, log


def prepare_model_data(gdf, response_col=None, predictor_cols=None, id_col=None):
    """
    Select model columns, dropping neighbourhoods with missing values.

    Returns:
        (GeoDataFrame of complete rows, y Series, X DataFrame) indexed by id, and log info
    """
    log = []
    response_col = response_col or config.RESPONSE_COL
    predictor_cols = list(predictor_cols or config.PREDICTOR_COLS)
    id_col = id_col or config.ID_COL

    missing_cols = [c for c in [response_col] + predictor_cols if c not in gdf.columns]
    if missing_cols:
        raise ValueError(f"Model columns not found: {missing_cols}")

    complete = gdf[[response_col] + predictor_cols].notna().all(axis=1)
    n_dropped = int((~complete).sum())
    if n_dropped > 0:
        dropped_ids = gdf.loc[~complete, id_col].tolist()
        log.append(f"⚠️  Dropped {n_dropped} neighbourhoods with missing model values: {dropped_ids[:10]}")

    gdf_model = gdf.loc[complete].reset_index(drop=True)
    y = pd.Series(gdf_model[response_col].astype(float).values, index=gdf_model[id_col], name=response_col)
    X = gdf_model[predictor_cols].astype(float).set_index(gdf_model[id_col])

    log.append(f"✓ Model data: {len(y)} neighbourhoods, response '{response_col}', {len(predictor_cols)} predictors")
    return gdf_model, y, X, log


def run_spatial_filtering(gdf, response_col=None, predictor_cols=None, id_col=None,
                          significance_threshold=None, tolerance=None,
                          max_iterations=None, n_vectors=None):
    """
    Build weights and MEMs for the neighbourhoods in gdf and select a spatial filter.

    Returns:
        Dict with 'data', 'weights', 'eigenbasis', 'eigenvalues', 'result', and log info
    """
    log = []
    id_col = id_col or config.ID_COL

    gdf_model, y, X, prep_log = prepare_model_data(gdf, response_col, predictor_cols, id_col)
    log.extend(prep_log)

    w, w_log = build_weights(gdf_model, id_col=id_col)
    log.extend(w_log)

    basis, eigenvalues = build_eigenbasis(w, n_vectors=n_vectors)
    log.append(f"✓ Eigenbasis: {basis.shape[1]} Moran eigenvectors (λ₁ = {eigenvalues.iloc[0]:.4f})"
               if len(eigenvalues) else "⚠️  Eigenbasis is empty")

    # align model rows with the weights id order
    order = list(w.id_order)
    y, X = y.loc[order], X.loc[order]

    result, sel_log = select_spatial_filter(
        y, X, basis, w,
        significance_threshold=significance_threshold,
        tolerance=tolerance,
        max_iterations=max_iterations,
        fit=fit_ols,
        moran=moran_test,
    )
    log.extend(sel_log)

    outputs = {
        'data': gdf_model,
        'weights': w,
        'eigenbasis': basis,
        'eigenvalues': eigenvalues,
        'result': result,
    }
    return outputs, log


def summary_table(result):
    """Baseline vs spatially filtered model comparison."""
    rows = []
    for label, fit, mi, n_vec in [
        ('baseline OLS', result.baseline_fit, result.baseline_moran, 0),
        ('OLS + spatial filter', result.fit, result.moran, len(result.accepted)),
    ]:
        model = fit.model
        rows.append({
            'model': label,
            'n': int(model.nobs),
            'r_squared': model.rsquared,
            'adj_r_squared': model.rsquared_adj,
            'aic': model.aic,
            'residual_std_err': np.sqrt(model.mse_resid),
            'n_eigenvectors': n_vec,
            'morans_I': mi.statistic,
            'morans_p_norm': mi.p_value,
            'morans_z_norm': mi.z_score,
        })
    return pd.DataFrame(rows)


def attach_filter(gdf_model, result, id_col=None):
    """Return a copy of gdf_model with the spatial filter and model residuals as columns."""
    id_col = id_col or config.ID_COL
    gdf_out = gdf_model.copy()

    if result.unit_ids:
        sf = result.filter_series()
        gdf_out[FILTER_TERM] = gdf_out[id_col].map(sf).astype(float)
        resid_base = pd.Series(result.baseline_fit.residuals, index=list(result.unit_ids))
        resid_final = pd.Series(result.fit.residuals, index=list(result.unit_ids))
        gdf_out['resid_baseline'] = gdf_out[id_col].map(resid_base).astype(float)
        gdf_out['resid_filtered'] = gdf_out[id_col].map(resid_final).astype(float)
    else:
        gdf_out[FILTER_TERM] = result.filter
        gdf_out['resid_baseline'] = result.baseline_fit.residuals
        gdf_out['resid_filtered'] = result.fit.residuals

    return gdf_out
