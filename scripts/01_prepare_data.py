#!/usr/bin/env python
"""
01_prepare_data.py
- Load the two Wellbeing Toronto spreadsheets and the neighbourhood shapefile
- Parse numeric columns (all bad cells reported at once)
- Join both tables onto the polygons by neighbourhood id
- QC + save the joined layer into data/processed/
"""

from pathlib import Path
import sys

# ensure repo root on path for `esf` imports
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

from esf import config
from esf.errors import JoinMismatchError, ParseError
from esf.io import save_geojson, save_parquet
from esf.pipeline import load_inputs
from esf.qc import (check_crs, check_geometry_validity, check_join_coverage,
                    check_unique_ids, print_log, print_qc_report)


def main():
    config.ensure_dirs()
    config.print_config()

    print("=" * 80)
    print("DATA PREPARATION: SPREADSHEETS + NEIGHBOURHOOD POLYGONS")
    print("=" * 80)

    print("\n[STEP 1] Loading, parsing and joining...")
    try:
        gdf, log = load_inputs()
    except ParseError as e:
        print(f"\n❌ Parse failed: {e}")
        for row, col, value in e.failures:
            print(f"   row {row:>4}  {col:30s} {value!r}")
        raise
    except JoinMismatchError as e:
        print(f"\n❌ Join failed: {e}")
        for name, m in e.missing.items():
            print(f"   {name}: missing in table {m['missing_in_table']}")
            print(f"   {name}: missing in layer {m['missing_in_layer']}")
        raise
    print_log(log)

    print("\n[STEP 2] Quality checks...")
    model_cols = [config.RESPONSE_COL] + config.PREDICTOR_COLS
    print_qc_report([
        ("Unique neighbourhood ids", check_unique_ids, {'df': gdf}),
        ("Geometry validity", check_geometry_validity, {'gdf': gdf}),
        ("CRS", check_crs, {'gdf': gdf, 'expected_crs': config.CRS_WEB}),
        ("Join coverage (model columns)", check_join_coverage, {'gdf_joined': gdf, 'columns': model_cols}),
    ])

    print("\n[STEP 3] Saving...")
    out_parquet = save_parquet(gdf, config.OUTPUT_FILES["neighbourhoods_joined"])
    out_geojson = save_geojson(gdf, config.OUTPUT_FILES["neighbourhoods_joined_geojson"])
    print(f"  ✓ Saved: {out_parquet}")
    print(f"  ✓ Saved: {out_geojson}")

    print("\n" + "=" * 80)
    print("✓ DATA PREPARATION COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()
