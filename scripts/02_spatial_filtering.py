#!/usr/bin/env python
"""
Eigenvector Spatial Filtering on OLS residuals

Baseline: response ~ predictors (OLS, HC1 errors)
Filtered: response ~ predictors + spatial filter built from Moran eigenvectors
          (Queen contiguity, row-standardized), added greedily until residual
          Moran's I < tolerance

Output:
- outputs/tables/ols_coeffs_baseline.csv
- outputs/tables/ols_coeffs_spatial_filter.csv
- outputs/tables/esf_selection_history.csv
- outputs/tables/esf_model_summary.csv
- outputs/tables/spatial_filter.csv
- data/processed/mem_eigenbasis.csv
"""

from pathlib import Path
import sys

# ensure repo root on path for `esf` imports
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

from esf import config
from esf.errors import ExhaustedCandidatesError, SingularFitError
from esf.io import load_parquet, save_csv
from esf.pipeline import attach_filter, load_inputs, run_spatial_filtering, summary_table
from esf.qc import check_eigenbasis_orthogonal, check_no_missing, print_log, print_qc_report
from esf.regression import coefficient_table
from esf.selection import FILTER_TERM


def main():
    config.ensure_dirs()

    print("=" * 80)
    print("EIGENVECTOR SPATIAL FILTERING: OLS RESIDUAL AUTOCORRELATION")
    print("=" * 80)

    # ========================================================================
    # 1. LOAD DATA
    # ========================================================================
    print("\n[STEP 1] Loading joined neighbourhoods...")
    joined_path = config.OUTPUT_FILES["neighbourhoods_joined"]
    if joined_path.exists():
        gdf = load_parquet(joined_path)
        print(f"  → Loaded {joined_path.name} with {len(gdf)} neighbourhoods")
    else:
        gdf, log = load_inputs()
        print_log(log)
        print(f"  → Built joined layer with {len(gdf)} neighbourhoods")

    # ========================================================================
    # 2. SELECT SPATIAL FILTER
    # ========================================================================
    print("\n[STEP 2] Selecting Moran eigenvectors...")
    print(f"  Response: {config.RESPONSE_COL}")
    print(f"  Predictors: {config.PREDICTOR_COLS}")
    print(f"  p-value threshold: {config.SIGNIFICANCE_THRESHOLD}, Moran's I tolerance: {config.TOLERANCE}")

    try:
        outputs, log = run_spatial_filtering(gdf)
    except ExhaustedCandidatesError as e:
        print(f"\n❌ {e}")
        print(f"   Accepted so far: {list(e.accepted)}")
        print(f"   Last Moran's I: {e.statistic:.4f}")
        raise
    except SingularFitError as e:
        print(f"\n❌ Singular design: {e}")
        print(f"   Accepted so far: {list(e.accepted)}")
        raise
    print_log(log)

    result = outputs['result']
    basis = outputs['eigenbasis']

    model_cols = [config.RESPONSE_COL] + config.PREDICTOR_COLS
    print_qc_report([
        ("No missing model values", check_no_missing, {'df': outputs['data'], 'columns': model_cols}),
        ("Eigenbasis orthonormality", check_eigenbasis_orthogonal, {'basis': basis}),
    ])

    # ========================================================================
    # 3. RESULTS
    # ========================================================================
    print("\n" + "=" * 80)
    print("MODEL COMPARISON")
    print("=" * 80)

    summary = summary_table(result)
    print(summary.to_string(index=False))

    print(f"\nAccepted eigenvectors ({len(result.accepted)}): {list(result.accepted)}")
    print("\n" + result.fit.model.summary().as_text())

    # ========================================================================
    # 4. SAVE
    # ========================================================================
    print("\n" + "=" * 80)
    print("SAVING RESULTS")
    print("=" * 80)

    saved = [
        save_csv(summary, config.OUTPUT_FILES["model_summary"]),
        save_csv(result.history_frame(), config.OUTPUT_FILES["selection_history"]),
        save_csv(coefficient_table(result.baseline_fit), config.OUTPUT_FILES["coeffs_baseline"]),
        save_csv(coefficient_table(result.fit), config.OUTPUT_FILES["coeffs_filtered"]),
        save_csv(basis, config.OUTPUT_FILES["eigenbasis"], index=True),
    ]

    gdf_out = attach_filter(outputs['data'], result)
    filter_cols = [config.ID_COL, FILTER_TERM, 'resid_baseline', 'resid_filtered']
    saved.append(save_csv(gdf_out[filter_cols], config.OUTPUT_FILES["spatial_filter"]))

    for path in saved:
        print(f"  ✓ Saved: {path}")

    # ========================================================================
    # 5. INTERPRETATION
    # ========================================================================
    print("\n" + "=" * 80)
    print("INTERPRETATION")
    print("=" * 80)

    for label, mi in [('BASELINE', result.baseline_moran), ('SPATIAL FILTER', result.moran)]:
        print(f"\n[{label}]")
        print(f"  Moran's I = {mi.statistic:.6f}, p-value (normal) = {mi.p_value:.6f}")
        if mi.p_value < 0.05:
            direction = "positive" if mi.statistic > 0 else "negative"
            print(f"  ✓ SIGNIFICANT {direction.upper()} spatial autocorrelation (p < 0.05)")
        else:
            print(f"  ✗ No significant spatial autocorrelation detected (p ≥ 0.05)")

    print("\n" + "=" * 80)
    print("✓ SPATIAL FILTERING COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()
