"""
End-to-end tests: spreadsheets + shapefile on disk → joined layer → spatial filter.
"""

import numpy as np
import pandas as pd
import pytest

from conftest import make_grid
from esf.errors import JoinMismatchError
from esf.pipeline import attach_filter, load_inputs, prepare_model_data, run_spatial_filtering, summary_table
from esf.selection import FILTER_TERM
from esf.spatial import build_eigenbasis, build_weights, clean_neighbourhoods

ID = 'Neighbourhood Id'


def write_sheet(path, title, df):
    path.write_text(f"{title}{',' * (df.shape[1] - 1)}\n" + df.to_csv(index=False))
    return path


@pytest.fixture
def input_files(tmp_path):
    """6x6 grid whose donor counts follow the grid's leading Moran eigenvector."""
    raw = make_grid(6, 6)
    shp = tmp_path / "neighbourhoods.shp"
    raw.to_file(shp)

    gdf, _ = clean_neighbourhoods(raw, id_col=ID, source_id_col='AREA_S_CD')
    w, _ = build_weights(gdf, id_col=ID)
    basis, _ = build_eigenbasis(w)

    rng = np.random.default_rng(11)
    ids = gdf[ID].to_numpy()
    population = rng.uniform(5000, 30000, size=len(ids))
    donors = 50.0 + 0.01 * population + 20.0 * basis.loc[ids, 'mem_1'].to_numpy() + rng.normal(scale=0.01, size=len(ids))

    demographics = pd.DataFrame({ID: ids, 'Neighbourhood': [f"N{k}" for k in ids],
                                 'Total Population': [f"{p:,.0f}" for p in population]})
    donor_table = pd.DataFrame({ID: ids, 'Neighbourhood': [f"N{k}" for k in ids],
                                'Donors': [f"{d:.6f}" for d in donors]})

    return {
        'neighbourhoods': shp,
        'demographics': write_sheet(tmp_path / "demographics.csv", "Wellbeing Toronto - Demographics", demographics),
        'donors': write_sheet(tmp_path / "donors.csv", "Wellbeing Toronto - Donors", donor_table.iloc[::-1]),
    }


class TestLoadInputs:

    def test_joined_layer(self, input_files):
        gdf, log = load_inputs(input_files, id_col=ID, source_id_col='AREA_S_CD', header_row=1)

        assert len(gdf) == 36
        assert gdf[ID].tolist() == list(range(1, 37))
        assert gdf['Donors'].notna().all()
        assert gdf['Total Population'].dtype == 'float64'
        assert 'Neighbourhood_donors' in gdf.columns

    def test_missing_row_raises(self, input_files, tmp_path):
        df = pd.read_csv(input_files['donors'], skiprows=1)
        input_files['donors'] = write_sheet(tmp_path / "donors_short.csv", "Donors", df[df[ID] != 7])

        with pytest.raises(JoinMismatchError) as exc_info:
            load_inputs(input_files, id_col=ID, source_id_col='AREA_S_CD', header_row=1)
        assert exc_info.value.missing['donors']['missing_in_table'] == [7]

    def test_missing_row_dropped_when_not_strict(self, input_files, tmp_path):
        df = pd.read_csv(input_files['donors'], skiprows=1)
        input_files['donors'] = write_sheet(tmp_path / "donors_short.csv", "Donors", df[df[ID] != 7])

        gdf, _ = load_inputs(input_files, id_col=ID, source_id_col='AREA_S_CD', header_row=1, strict=False)
        gdf_model, y, X, log = prepare_model_data(gdf, 'Donors', ['Total Population'], ID)

        assert len(gdf_model) == 35
        assert 7 not in y.index
        assert any('Dropped 1' in line for line in log)


class TestRunSpatialFiltering:

    def test_end_to_end(self, input_files):
        gdf, _ = load_inputs(input_files, id_col=ID, source_id_col='AREA_S_CD', header_row=1)

        outputs, log = run_spatial_filtering(gdf, 'Donors', ['Total Population'], ID, tolerance=0.5)
        result = outputs['result']

        assert result.baseline_moran.statistic >= 0.5
        assert result.accepted == ('mem_1',)
        assert result.statistic < 0.5
        assert result.unit_ids == tuple(range(1, 37))

        summary = summary_table(result)
        assert summary['n_eigenvectors'].tolist() == [0, 1]
        assert summary.loc[1, 'r_squared'] > summary.loc[0, 'r_squared']

        mapped = attach_filter(outputs['data'], result, ID)
        sf = result.filter_series()
        assert mapped.loc[0, FILTER_TERM] == pytest.approx(sf.loc[1])
        assert mapped['resid_filtered'].abs().max() < mapped['resid_baseline'].abs().max()
