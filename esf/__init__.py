"""
Eigenvector Spatial Filtering
Package for Toronto neighbourhood data loading, spatial weights, and
Moran's Eigenvector Map selection for OLS residual autocorrelation.
"""

__version__ = "1.0.0"
__author__ = "Virginia Di Mauro"

# Lazy imports to avoid circular dependencies and long startup times
# Import as needed in code

__all__ = ["config", "io", "cleaning", "spatial", "regression", "selection", "pipeline", "qc", "errors"]
