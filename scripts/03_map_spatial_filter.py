#!/usr/bin/env python
"""
Maps of the selected spatial filter and Moran scatterplots before/after filtering

Output:
- outputs/figures/map_spatial_filter.png
- outputs/figures/map_residuals_baseline_vs_filtered.png
- outputs/figures/morans_scatter_baseline_vs_filtered.png
"""

from pathlib import Path
import sys
import warnings

# ensure repo root on path for `esf` imports
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from splot.esda import moran_scatterplot

from esf import config
from esf.io import load_parquet
from esf.pipeline import attach_filter, load_inputs, run_spatial_filtering
from esf.qc import print_log
from esf.selection import FILTER_TERM

warnings.filterwarnings('ignore')

DPI = 300


def main():
    config.ensure_dirs()

    print("\n" + "=" * 80)
    print("SPATIAL FILTER MAPS")
    print("=" * 80)

    print("\n[1/4] Loading data...")
    joined_path = config.OUTPUT_FILES["neighbourhoods_joined"]
    if joined_path.exists():
        gdf = load_parquet(joined_path)
    else:
        gdf, log = load_inputs()
        print_log(log)
    print(f"  ✓ Loaded neighbourhoods: {len(gdf):,} polygons")

    print("\n[2/4] Selecting spatial filter...")
    outputs, log = run_spatial_filtering(gdf)
    print_log(log)
    result = outputs['result']
    gdf_map = attach_filter(outputs['data'], result)

    if gdf_map.crs != config.CRS_METRIC:
        gdf_map = gdf_map.to_crs(config.CRS_METRIC)

    print("\n[3/4] Drawing maps...")
    fig, ax = plt.subplots(figsize=(10, 9))
    gdf_map.plot(column=FILTER_TERM, cmap='RdBu_r', legend=True, edgecolor='white', linewidth=0.3, ax=ax,
                 legend_kwds={'label': 'Spatial filter', 'shrink': 0.6})
    ax.set_title(f"Spatial filter ({len(result.accepted)} Moran eigenvectors)", fontsize=12, fontweight='bold')
    ax.set_axis_off()
    plt.tight_layout()
    out = config.FIGURES_DIR / "map_spatial_filter.png"
    plt.savefig(out, dpi=DPI, bbox_inches='tight')
    plt.close()
    print(f"  ✓ Saved: {out.name}")

    # shared colour scale for both residual maps
    vmax = gdf_map[['resid_baseline', 'resid_filtered']].abs().max().max()
    fig, axes = plt.subplots(1, 2, figsize=(16, 8))
    for ax, col, label, mi in [
        (axes[0], 'resid_baseline', 'Baseline OLS', result.baseline_moran),
        (axes[1], 'resid_filtered', 'OLS + spatial filter', result.moran),
    ]:
        gdf_map.plot(column=col, cmap='RdBu_r', vmin=-vmax, vmax=vmax, legend=True,
                     edgecolor='white', linewidth=0.3, ax=ax, legend_kwds={'shrink': 0.6})
        ax.set_title(f"Residuals: {label}\nMoran's I = {mi.statistic:.3f}", fontsize=12, fontweight='bold')
        ax.set_axis_off()
    plt.tight_layout()
    out = config.FIGURES_DIR / "map_residuals_baseline_vs_filtered.png"
    plt.savefig(out, dpi=DPI, bbox_inches='tight')
    plt.close()
    print(f"  ✓ Saved: {out.name}")

    print("\n[4/4] Moran scatterplots...")
    fig, axes = plt.subplots(1, 2, figsize=(14, 7))
    for ax, label, mi in [
        (axes[0], 'Baseline OLS', result.baseline_moran),
        (axes[1], 'OLS + spatial filter', result.moran),
    ]:
        moran_scatterplot(mi.moran, ax=ax)
        ax.set_title(f"Moran Scatterplot: {label}", fontsize=12, fontweight='bold')
    plt.tight_layout()
    out = config.FIGURES_DIR / "morans_scatter_baseline_vs_filtered.png"
    plt.savefig(out, dpi=DPI, bbox_inches='tight')
    plt.close()
    print(f"  ✓ Saved: {out.name}")

    print("\n" + "=" * 80)
    print("✓ MAPS COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()
