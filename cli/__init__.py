"""
Raster COG Catalog CLI Package

Command-line interface for the WRI raster pipeline: inventory and
validation, COG conversion and STAC catalog emission.

Usage:
    rcat inventory --data-dir data/ --stats sample
    rcat inspect data/water/water_domain_score.tif
    rcat convert --layout flat
    rcat catalog --hosting hybrid
    rcat run
"""

__version__ = "0.1.0"

from cli.main import app

__all__ = ["app", "__version__"]
