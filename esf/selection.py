"""
Selection module: greedy forward selection of Moran eigenvectors into a spatial filter.

Procedure:
1.  Fit the baseline OLS (response ~ predictors) and take Moran's I of its residuals.
2.  Walk the eigenbasis in its given order (strongest spatial pattern first) while
    Moran's I >= tolerance. For each candidate, fit response ~ predictors + filter +
    candidate (all-zero columns dropped).
3.  If the candidate's p-value is <= significance threshold, fold it into the filter
    through the trial coefficients (filter = b_f * filter + b_k * candidate), refit
    response ~ predictors + filter and recompute Moran's I on the new residuals.
4.  Stop once Moran's I < tolerance. Running out of candidates first raises
    ExhaustedCandidatesError with the partial accepted set. An undefined (NaN)
    Moran's I never meets tolerance.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from . import config
from .errors import DegenerateColumnError, ESFError, ExhaustedCandidatesError
from .regression import fit_ols, moran_test

FILTER_TERM = 'spatial_filter'


@dataclass
class SelectionState:
    """Working memory of one selection run."""
    filter: np.ndarray
    statistic: float = float('inf')
    iteration: int = 0
    accepted: list = field(default_factory=list)


@dataclass(frozen=True)
class SelectionResult:
    accepted: tuple
    filter: np.ndarray
    fit: object
    moran: object
    baseline_fit: object
    baseline_moran: object
    iterations: int
    history: tuple
    unit_ids: tuple = ()

    @property
    def statistic(self):
        """Moran's I of the final model's residuals."""
        return self.moran.statistic

    def filter_series(self):
        index = list(self.unit_ids) if self.unit_ids else None
        return pd.Series(self.filter, index=index, name=FILTER_TERM)

    def history_frame(self):
        columns = ['iteration', 'rank', 'candidate', 'p_value', 'accepted', 'morans_I', 'note']
        return pd.DataFrame(list(self.history), columns=columns)


def check_candidate(values, label):
    """Raise DegenerateColumnError if a candidate is identically zero."""
    if not np.isfinite(values).all():
        raise ValueError(f"Candidate '{label}' contains non-finite values")
    if not np.any(values):
        raise DegenerateColumnError(f"Candidate '{label}' is zero for every unit")


def drop_zero_columns(design):
    """Return design without columns that are zero for every unit."""
    nonzero = (design != 0).any(axis=0)
    return design.loc[:, nonzero]


def tolerance_met(statistic, tolerance):
    """True only for a finite statistic below tolerance; NaN never satisfies it."""
    return bool(np.isfinite(statistic) and statistic < tolerance)


def _as_basis(eigenbasis, n):
    if isinstance(eigenbasis, pd.DataFrame):
        basis = eigenbasis.astype(float)
    else:
        vectors = [np.asarray(v, dtype=float) for v in eigenbasis]
        basis = pd.DataFrame(
            np.column_stack(vectors) if vectors else np.empty((n, 0)),
            columns=[f"mem_{k}" for k in range(1, len(vectors) + 1)],
        )
    return basis


def select_spatial_filter(response, predictors, eigenbasis, weights,
                          significance_threshold=None, tolerance=None,
                          max_iterations=None, fit=fit_ols, moran=moran_test):
    """
    Build a spatial filter that brings residual Moran's I below tolerance.

    Args:
        response: Per-unit response, no missing values, in weights id order
        predictors: DataFrame of per-unit covariates, same order
        eigenbasis: DataFrame of candidate eigenvectors (columns in scan order)
            or a sequence of per-unit vectors
        weights: Spatial weights passed to `moran`
        significance_threshold: p-value cutoff for accepting a candidate
            (default: config.SIGNIFICANCE_THRESHOLD)
        tolerance: Iterate while Moran's I >= tolerance (default: config.TOLERANCE)
        max_iterations: Cap on candidates examined (default: config.MAX_ITERATIONS,
            None means every candidate)
        fit: callable(response, design) -> FitResult
        moran: callable(residuals, weights) -> MoranResult

    Returns:
        SelectionResult and log info

    Raises:
        SingularFitError: a design is rank-deficient (carries partial state)
        ExhaustedCandidatesError: candidates ran out before tolerance was met
    """
    log = []
    if significance_threshold is None:
        significance_threshold = config.SIGNIFICANCE_THRESHOLD
    if tolerance is None:
        tolerance = config.TOLERANCE
    if max_iterations is None:
        max_iterations = config.MAX_ITERATIONS

    y = np.asarray(response, dtype=float)
    n = y.shape[0]

    if isinstance(predictors, pd.Series):
        predictors = predictors.to_frame()
    X = pd.DataFrame(predictors).astype(float).reset_index(drop=True)
    basis = _as_basis(eigenbasis, n)

    if len(X) != n or len(basis) != n:
        raise ValueError(f"Unit count mismatch: response {n}, predictors {len(X)}, eigenbasis {len(basis)}")
    clash = {FILTER_TERM, 'const'}.union(X.columns).intersection(basis.columns)
    if clash:
        raise ValueError(f"Eigenbasis labels clash with design terms: {sorted(clash)}")
    if FILTER_TERM in X.columns:
        raise ValueError(f"'{FILTER_TERM}' is reserved for the spatial filter term")

    unit_ids = tuple(basis.index) if not isinstance(basis.index, pd.RangeIndex) else ()
    basis = basis.reset_index(drop=True)

    state = SelectionState(filter=np.zeros(n))
    history = []

    # 1. Baseline
    try:
        baseline_fit = fit(y, X)
    except ESFError as e:
        raise e.with_state(state.accepted, None)
    baseline_moran = moran(baseline_fit.residuals, weights)
    state.statistic = baseline_moran.statistic
    log.append(f"✓ Baseline OLS: residual Moran's I = {state.statistic:.4f} (tolerance {tolerance})")
    if not np.isfinite(state.statistic):
        log.append("⚠️  Baseline Moran's I is undefined (constant residuals?)")

    final_fit, final_moran = baseline_fit, baseline_moran

    candidates = list(basis.columns)
    if max_iterations is not None:
        candidates = candidates[:max_iterations]

    # 2. Greedy scan over the fixed candidate order
    for rank, label in enumerate(candidates, start=1):
        if tolerance_met(state.statistic, tolerance):
            break
        state.iteration += 1
        values = basis[label].to_numpy()

        try:
            check_candidate(values, label)
        except DegenerateColumnError as e:
            history.append((state.iteration, rank, label, np.nan, False, state.statistic, str(e)))
            log.append(f"⚠️  {label}: all-zero column skipped")
            continue

        trial = X.copy()
        trial[FILTER_TERM] = state.filter
        trial[label] = values
        trial = drop_zero_columns(trial)

        try:
            trial_fit = fit(y, trial)
        except ESFError as e:
            raise e.with_state(state.accepted, state.statistic)

        p_value = trial_fit.p_values[label]
        if not p_value <= significance_threshold:
            history.append((state.iteration, rank, label, p_value, False, state.statistic, ''))
            continue

        # 3. Accept: re-project the filter through the trial coefficients
        b_filter = trial_fit.coefficients.get(FILTER_TERM, 0.0)
        state.filter = b_filter * state.filter + trial_fit.coefficients[label] * values
        state.accepted.append(label)

        refit_design = drop_zero_columns(X.assign(**{FILTER_TERM: state.filter}))
        try:
            final_fit = fit(y, refit_design)
        except ESFError as e:
            raise e.with_state(state.accepted, state.statistic)
        final_moran = moran(final_fit.residuals, weights)
        state.statistic = final_moran.statistic

        history.append((state.iteration, rank, label, p_value, True, state.statistic, ''))
        log.append(f"✓ {label} accepted (p={p_value:.4f}): Moran's I → {state.statistic:.4f}")

    # 4. Stopping condition
    if not tolerance_met(state.statistic, tolerance):
        if len(candidates) < basis.shape[1]:
            reason = f"iteration cap {max_iterations} reached"
        else:
            reason = f"all {basis.shape[1]} candidates tried"
        raise ExhaustedCandidatesError(
            f"{reason}; Moran's I {state.statistic:.4f} not below tolerance {tolerance} "
            f"({len(state.accepted)} eigenvectors accepted)",
            accepted=state.accepted,
            statistic=state.statistic,
        )

    frozen = state.filter.copy()
    frozen.setflags(write=False)

    log.append(
        f"✓ Spatial filter: {len(state.accepted)} eigenvectors after {state.iteration} iterations, "
        f"Moran's I {baseline_moran.statistic:.4f} → {final_moran.statistic:.4f}"
    )

    result = SelectionResult(
        accepted=tuple(state.accepted),
        filter=frozen,
        fit=final_fit,
        moran=final_moran,
        baseline_fit=baseline_fit,
        baseline_moran=baseline_moran,
        iterations=state.iteration,
        history=tuple(history),
        unit_ids=unit_ids,
    )
    return result, log
