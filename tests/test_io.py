"""
Tests for spreadsheet, shapefile and parquet I/O.
"""

import geopandas as gpd
import pandas as pd
import pytest

from conftest import make_grid
from esf.cleaning import parse_numeric_table
from esf.io import load_parquet, load_shapefile, load_spreadsheet, save_csv, save_parquet

ID = 'Neighbourhood Id'


class TestLoadSpreadsheet:

    def test_csv_title_row_discarded(self, tmp_path):
        path = tmp_path / "donors.csv"
        path.write_text(
            "Wellbeing Toronto - Donors,,\n"
            "Neighbourhood Id,Neighbourhood,Donors\n"
            "1,West Humber,10\n"
            '2,Rexdale,"1,200"\n'
        )

        df = load_spreadsheet(path)

        assert list(df.columns) == [ID, 'Neighbourhood', 'Donors']
        assert len(df) == 2
        assert df['Donors'].tolist() == ['10', '1,200']

    def test_xlsx(self, tmp_path):
        path = tmp_path / "demographics.xlsx"
        rows = [
            ['Wellbeing Toronto - Demographics', None, None],
            [ID, 'Neighbourhood', 'Total Population'],
            [1, 'West Humber', 34805],
            [2, 'Rexdale', 9550],
        ]
        pd.DataFrame(rows).to_excel(path, header=False, index=False)

        df = load_spreadsheet(path)
        typed, _ = parse_numeric_table(df, ID, text_cols=['Neighbourhood'])

        assert typed[ID].tolist() == [1, 2]
        assert typed['Total Population'].tolist() == [34805.0, 9550.0]

    def test_blank_rows_dropped(self, tmp_path):
        path = tmp_path / "t.csv"
        path.write_text("title,\nNeighbourhood Id,Donors\n1,5\n,\n")
        assert len(load_spreadsheet(path)) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_spreadsheet(tmp_path / "nope.xlsx")

    def test_header_row_out_of_range(self, tmp_path):
        path = tmp_path / "short.csv"
        path.write_text("only one row\n")
        with pytest.raises(ValueError, match="expected a header"):
            load_spreadsheet(path)


class TestGeoIO:

    def test_shapefile_without_crs_defaults_to_wgs84(self, tmp_path):
        gdf = make_grid(2, 2, crs=None)
        path = tmp_path / "grid.shp"
        gdf.to_file(path)

        with pytest.warns(UserWarning, match="CRS missing"):
            loaded = load_shapefile(path)

        assert loaded.crs == "EPSG:4326"
        assert loaded['AREA_S_CD'].tolist() == ['001', '002', '003', '004']

    def test_missing_shapefile(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_shapefile(tmp_path / "missing.shp")

    def test_parquet_keeps_geometry(self, tmp_path):
        gdf = make_grid(2, 3)
        path = save_parquet(gdf, tmp_path / "out" / "grid.parquet")

        loaded = load_parquet(path)

        assert isinstance(loaded, gpd.GeoDataFrame)
        assert len(loaded) == 6
        assert loaded.crs == gdf.crs

    def test_plain_parquet(self, tmp_path):
        path = save_parquet(pd.DataFrame({'a': [1, 2]}), tmp_path / "plain.parquet")
        loaded = load_parquet(path)
        assert not isinstance(loaded, gpd.GeoDataFrame)
        assert loaded['a'].tolist() == [1, 2]

    def test_save_csv_creates_parent(self, tmp_path):
        path = save_csv(pd.DataFrame({'a': [1]}), tmp_path / "nested" / "t.csv")
        assert path.exists()
