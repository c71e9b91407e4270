"""
I/O module: Load and save data in various formats (spreadsheets, shapefiles, CSV, Parquet, GeoJSON).
"""

import pandas as pd
import geopandas as gpd
from pathlib import Path
import warnings

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


def load_spreadsheet(filepath, header_row=1, **kwargs):
    """
    Load a spreadsheet whose true column names sit below a title row.

    Every cell is read as a string; numeric coercion happens in
    `cleaning.parse_numeric_table`.

    Args:
        filepath: Path to .xlsx/.xls or .csv file
        header_row: 0-based row holding the column names; rows above it are discarded
        **kwargs: Additional arguments for pd.read_excel() / pd.read_csv()

    Returns:
        pd.DataFrame with string cells
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {filepath}")

    if filepath.suffix.lower() in EXCEL_SUFFIXES:
        raw = pd.read_excel(filepath, header=None, dtype=str, **kwargs)
    else:
        raw = pd.read_csv(filepath, header=None, dtype=str, **kwargs)

    if len(raw) <= header_row:
        raise ValueError(f"{filepath.name}: expected a header at row {header_row}, got {len(raw)} rows")

    columns = [str(c).strip() for c in raw.iloc[header_row]]
    df = raw.iloc[header_row + 1:].copy()
    df.columns = columns

    # drop fully blank trailing rows (common in exported sheets)
    df = df.dropna(how="all").reset_index(drop=True)

    return df


def load_shapefile(filepath, **kwargs):
    """
    Load a polygon shapefile with CRS validation.

    Args:
        filepath: Path to .shp (or any format geopandas can read)
        **kwargs: Additional arguments for gpd.read_file()

    Returns:
        geopandas.GeoDataFrame
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Shapefile not found: {filepath}")

    gdf = gpd.read_file(filepath, **kwargs)

    if gdf.crs is None:
        warnings.warn(f"⚠️  CRS missing in {filepath.name}. Assuming EPSG:4326")
        gdf = gdf.set_crs("EPSG:4326")

    return gdf


def load_parquet(filepath, **kwargs):
    """
    Load (Geo)Parquet file.

    Returns:
        pd.DataFrame or geopandas.GeoDataFrame
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Parquet file not found: {filepath}")

    try:
        return gpd.read_parquet(filepath, **kwargs)
    except ValueError:
        # no geometry metadata: plain table
        return pd.read_parquet(filepath, **kwargs)


def save_parquet(df, filepath, **kwargs):
    """
    Save DataFrame to Parquet with validation.

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # Preserve geometry for GeoDataFrames
    if isinstance(df, gpd.GeoDataFrame):
        df.to_parquet(filepath, **kwargs)
    else:
        df.to_parquet(filepath, index=False, **kwargs)

    return filepath


def save_geojson(gdf, filepath, **kwargs):
    """
    Save GeoDataFrame to GeoJSON.

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # Ensure EPSG:4326 for web compatibility
    if gdf.crs != "EPSG:4326":
        gdf = gdf.to_crs("EPSG:4326")

    gdf.to_file(filepath, driver="GeoJSON", **kwargs)

    return filepath


def save_csv(df, filepath, index=False, **kwargs):
    """
    Save DataFrame to CSV.

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(filepath, index=index, **kwargs)

    return filepath
