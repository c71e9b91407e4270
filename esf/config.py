"""
Configuration module: paths, CRS constants, join keys, and selection settings.
"""

from pathlib import Path

# ============================================================================
# PROJECT PATHS (zero hardcoding - all relative to PROJECT_ROOT)
# ============================================================================

# Detect PROJECT_ROOT: either cwd or parent if in notebooks/scripts
def get_project_root():
    """Auto-detect project root by checking for data/ and esf/ folders."""
    cwd = Path.cwd()

    # If already in project root
    if (cwd / "data").exists() and (cwd / "esf").exists():
        return cwd

    # If in notebooks/ or scripts/
    if cwd.name in ["notebooks", "scripts"] and (cwd.parent / "data").exists():
        return cwd.parent

    # Fallback: use parent if esf exists there
    if (cwd.parent / "esf").exists() and (cwd.parent / "data").exists():
        return cwd.parent

    # Last resort: the directory holding the package
    return Path(__file__).resolve().parent.parent

PROJECT_ROOT = get_project_root()

# Core data paths
DATA_DIR = PROJECT_ROOT / "data"
ORIGINAL_DIR = DATA_DIR / "original"
PROCESSED_DIR = DATA_DIR / "processed"
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
TABLES_DIR = OUTPUTS_DIR / "tables"
FIGURES_DIR = OUTPUTS_DIR / "figures"


def ensure_dirs():
    """Create output directories if missing."""
    for d in (PROCESSED_DIR, TABLES_DIR, FIGURES_DIR):
        d.mkdir(parents=True, exist_ok=True)


# Input files (raw data)
INPUT_FILES = {
    "demographics": ORIGINAL_DIR / "wellbeing_toronto_demographics.xlsx",
    "donors": ORIGINAL_DIR / "wellbeing_toronto_donors.xlsx",
    "neighbourhoods": ORIGINAL_DIR / "NEIGHBORHOODS_WGS84.shp",
}

# Output files (processed)
OUTPUT_FILES = {
    "neighbourhoods_joined": PROCESSED_DIR / "neighbourhoods_joined.parquet",
    "neighbourhoods_joined_geojson": PROCESSED_DIR / "neighbourhoods_joined.geojson",
    "eigenbasis": PROCESSED_DIR / "mem_eigenbasis.csv",
    "selection_history": TABLES_DIR / "esf_selection_history.csv",
    "coeffs_baseline": TABLES_DIR / "ols_coeffs_baseline.csv",
    "coeffs_filtered": TABLES_DIR / "ols_coeffs_spatial_filter.csv",
    "model_summary": TABLES_DIR / "esf_model_summary.csv",
    "spatial_filter": TABLES_DIR / "spatial_filter.csv",
}

# ============================================================================
# TABLE LAYOUT
# ============================================================================

# Spreadsheets carry a title row above the real header
SPREADSHEET_HEADER_ROW = 1

# Neighbourhood identifier in the spreadsheets and in the shapefile
ID_COL = "Neighbourhood Id"
SHAPEFILE_ID_COL = "AREA_S_CD"

# Non-numeric spreadsheet columns kept as text (when present)
TEXT_COLS = ["Neighbourhood"]

# Regression variables (after join)
RESPONSE_COL = "Donors"
PREDICTOR_COLS = ["Total Population"]

# ============================================================================
# GEOSPATIAL & CRS CONSTANTS
# ============================================================================

# Web mapping CRS (WGS84 - standard for all web outputs)
CRS_WEB = "EPSG:4326"

# Metric CRS for Toronto (NAD83 / UTM Zone 17N - for area/distance calculations)
CRS_METRIC = "EPSG:26917"

# Join coverage below this is reported as a QC failure
MIN_JOIN_COVERAGE = 1.0

# ============================================================================
# SPATIAL FILTER SELECTION
# ============================================================================

SIGNIFICANCE_THRESHOLD = 0.10   # p-value cutoff for accepting an eigenvector
TOLERANCE = 0.5                 # keep iterating while residual Moran's I >= this
MAX_ITERATIONS = None           # None = bounded by the number of candidates
POSITIVE_MEMS_ONLY = True       # only eigenvectors with positive eigenvalues
EIGENVALUE_TOL = 1e-8           # |eigenvalue| below this counts as zero

# Regression
COV_TYPE = "HC1"                # robust errors, as in the OLS analysis scripts

# Moran's I
MORAN_PERMUTATIONS = 999
RANDOM_SEED = 42

# ============================================================================
# LOGGING & VERBOSITY
# ============================================================================

VERBOSE = True

def print_config():
    """Print all configuration settings."""
    print("\n" + "=" * 80)
    print("PIPELINE CONFIGURATION")
    print("=" * 80)
    print(f"\n📁 PROJECT ROOT: {PROJECT_ROOT}")
    print(f"📂 DATA DIR: {DATA_DIR}")
    print(f"📂 PROCESSED DIR: {PROCESSED_DIR}")
    print(f"📂 OUTPUTS DIR: {OUTPUTS_DIR}")
    print(f"\n🗺️  CRS Settings:")
    print(f"   Web (output): {CRS_WEB}")
    print(f"   Metric (calculations): {CRS_METRIC}")
    print(f"\n📈 Model:")
    print(f"   Response: {RESPONSE_COL}")
    print(f"   Predictors: {PREDICTOR_COLS}")
    print(f"   Significance threshold: {SIGNIFICANCE_THRESHOLD}")
    print(f"   Moran's I tolerance: {TOLERANCE}")
    print(f"\n✓ Configuration loaded successfully")
    print("=" * 80 + "\n")
