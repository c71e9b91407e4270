"""
Regression module: OLS fitting (statsmodels) and residual Moran's I (esda).
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.tools.tools import add_constant
from esda import Moran

from . import config
from .errors import FitError, SingularFitError


@dataclass(frozen=True)
class FitResult:
    """Coefficients and p-values keyed by term name, plus residuals in unit order."""
    coefficients: dict
    p_values: dict
    residuals: np.ndarray
    model: object = None

    @property
    def terms(self):
        return list(self.coefficients)


@dataclass(frozen=True)
class MoranResult:
    """Moran's I of a residual vector. p_value is the analytical (normality) one."""
    statistic: float
    p_value: float
    z_score: float
    p_sim: float = float('nan')
    moran: object = None


def _as_design(design, index):
    if isinstance(design, pd.Series):
        design = design.to_frame()
    if not isinstance(design, pd.DataFrame):
        design = pd.DataFrame(np.asarray(design, dtype=float), index=index)
        design.columns = [f"x{i + 1}" for i in range(design.shape[1])]
    return design.astype(float)


def fit_ols(response, design, cov_type=None):
    """
    Fit response ~ const + design by OLS.

    Args:
        response: Per-unit response (Series or array)
        design: Per-unit covariates (DataFrame; an empty frame fits the intercept only)
        cov_type: statsmodels covariance type (default: config.COV_TYPE)

    Returns:
        FitResult

    Raises:
        SingularFitError: design (with intercept) is rank-deficient
        FitError: missing/non-finite values, too few units, or non-finite estimates
    """
    cov_type = cov_type or config.COV_TYPE

    y = pd.Series(np.asarray(response, dtype=float), name='response')
    X = _as_design(design, y.index).reset_index(drop=True)

    if len(X) != len(y):
        raise FitError(f"Response has {len(y)} units but design has {len(X)}")
    if not np.isfinite(y.values).all():
        raise FitError("Response contains missing or non-finite values")
    if not np.isfinite(X.values).all():
        bad_cols = [c for c in X.columns if not np.isfinite(X[c].values).all()]
        raise FitError(f"Design contains missing or non-finite values in {bad_cols}")

    X_const = add_constant(X, has_constant='add')
    n, k = X_const.shape

    if n <= k:
        raise FitError(f"Not enough units to fit {k} parameters (n={n})")

    rank = np.linalg.matrix_rank(X_const.values)
    if rank < k:
        raise SingularFitError(f"Design matrix is rank-deficient (rank {rank} < {k} columns: {list(X_const.columns)})")

    try:
        model = sm.OLS(y, X_const).fit(cov_type=cov_type)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise FitError(f"OLS fit failed: {e}") from e

    params = model.params
    pvalues = model.pvalues
    if not np.isfinite(params.values).all():
        raise FitError("OLS produced non-finite coefficients")

    return FitResult(
        coefficients={term: float(v) for term, v in params.items()},
        p_values={term: float(v) for term, v in pvalues.items()},
        residuals=np.asarray(model.resid, dtype=float),
        model=model,
    )


def moran_test(residuals, w, permutations=None):
    """
    Global Moran's I of residuals under spatial weights w.

    Residuals must follow w.id_order.

    Returns:
        MoranResult
    """
    if permutations is None:
        permutations = config.MORAN_PERMUTATIONS

    residuals = np.asarray(residuals, dtype=float)
    if residuals.shape[0] != w.n:
        raise ValueError(f"Residuals have {residuals.shape[0]} values but weights cover {w.n} units")

    # esda draws permutations from the global numpy RNG; seed it for this
    # call only and hand the caller's state back afterwards
    rng_state = np.random.get_state()
    try:
        if permutations:
            np.random.seed(config.RANDOM_SEED)
        mi = Moran(residuals, w, permutations=permutations)
    finally:
        np.random.set_state(rng_state)

    return MoranResult(
        statistic=float(mi.I),
        p_value=float(mi.p_norm),
        z_score=float(mi.z_norm),
        p_sim=float(mi.p_sim) if permutations else float('nan'),
        moran=mi,
    )


def coefficient_table(fit):
    """Coefficient table in the layout of the OLS analysis scripts."""
    model = fit.model
    return pd.DataFrame({
        'variable': model.params.index,
        'coefficient': model.params.values,
        'std_err': model.bse.values,
        't_stat': model.tvalues.values,
        'p_value': model.pvalues.values,
    }).reset_index(drop=True)
