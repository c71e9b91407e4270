"""
Shared fixtures: synthetic lattices, polygon grids, and scripted test doubles.
"""

import numpy as np
import pandas as pd
import geopandas as gpd
import pytest
from libpysal.weights import lat2W
from shapely.geometry import box

from esf import config
from esf.regression import MoranResult, fit_ols


def make_grid(nrows, ncols, id_col='AREA_S_CD', zero_pad=True, crs=config.CRS_WEB):
    """Square polygons on an nrows x ncols grid, ids 1..n (as zero-padded strings)."""
    cells, ids = [], []
    for r in range(nrows):
        for c in range(ncols):
            cells.append(box(c, r, c + 1, r + 1))
            k = r * ncols + c + 1
            ids.append(f"{k:03d}" if zero_pad else k)
    return gpd.GeoDataFrame({id_col: ids}, geometry=cells, crs=crs)


def orthonormal_columns(n, k, fixed=(), seed=0):
    """k columns orthonormal to each other and to the columns in `fixed`."""
    rng = np.random.default_rng(seed)
    base = [np.asarray(f, dtype=float) for f in fixed]
    M = np.column_stack(base + [rng.normal(size=n) for _ in range(k)])
    Q, _ = np.linalg.qr(M)
    return Q[:, len(base):len(base) + k]


class ScriptedMoran:
    """Stand-in for moran_test returning a scripted sequence of statistics."""

    def __init__(self, statistics):
        self.statistics = list(statistics)
        self.calls = 0

    def __call__(self, residuals, w):
        value = self.statistics[min(self.calls, len(self.statistics) - 1)]
        self.calls += 1
        return MoranResult(statistic=value, p_value=0.0, z_score=0.0)


class CountingFit:
    """Wraps fit_ols, recording every design it is asked to fit."""

    def __init__(self):
        self.designs = []

    @property
    def calls(self):
        return len(self.designs)

    def __call__(self, response, design):
        self.designs.append(list(design.columns))
        return fit_ols(response, design)


@pytest.fixture
def lattice_w():
    w = lat2W(10, 10)
    w.transform = 'r'
    return w


@pytest.fixture
def counting_fit():
    return CountingFit()


@pytest.fixture
def five_units():
    """Five-unit example: response, one predictor, two orthogonal eigenvectors."""
    response = pd.Series([10.0, 12.0, 9.0, 15.0, 20.0])
    predictors = pd.DataFrame({'x': [1.0, 2.0, 1.0, 3.0, 4.0]})
    e1 = np.array([1.0, -1.0, 1.0, -1.0, 0.0]) / 2.0
    e2 = np.array([-1.0, 1.0, 1.0, -1.0, 0.0]) / 2.0
    basis = pd.DataFrame({'mem_1': e1, 'mem_2': e2})
    w = lat2W(5, 1)
    w.transform = 'r'
    return response, predictors, basis, w


@pytest.fixture
def signal_data():
    """
    30 units: y = 1 + 2x + 3*e1 + 2*e2 + noise, with e1, e2, e_null orthonormal
    to each other and to (1, x). Noise has no component along e_null.
    """
    n = 30
    rng = np.random.default_rng(42)
    x = rng.normal(size=n)
    E = orthonormal_columns(n, 3, fixed=(np.ones(n), x), seed=1)
    e1, e2, e_null = E[:, 0], E[:, 1], E[:, 2]

    noise = rng.normal(scale=0.01, size=n)
    noise = noise - (noise @ e_null) * e_null

    y = 1.0 + 2.0 * x + 3.0 * e1 + 2.0 * e2 + noise
    w = lat2W(5, 6)
    w.transform = 'r'
    return {
        'y': pd.Series(y),
        'X': pd.DataFrame({'x': x}),
        'e1': e1, 'e2': e2, 'e_null': e_null,
        'w': w,
    }
