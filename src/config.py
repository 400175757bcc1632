"""Configuration module for relief-pyramid project.

Centralizes data paths and default settings.
"""
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
DEM_DIR = DATA_DIR / "dem"
OUTPUT_DIR = DATA_DIR / "output"

# Logging
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Pyramid construction
PYRAMID_MIN_SIDE_LENGTH = 2
PYRAMID_MAX_LEVELS = 9999

# Streaming reader
READER_QUEUE_CAPACITY = 64
READER_POLL_INTERVAL = 0.05  # seconds between cooperative stop checks

# Shading
DEFAULT_AZIMUTH = 315
DEFAULT_ZENITH = 45
EARTH_RADIUS_M = 6371000.0
GEOGRAPHIC_CELL_SIZE_LIMIT = 0.1  # cell sizes below this are taken as degrees

# Local contrast (local hypsometric tints)
DEFAULT_LOW_PASS_STD = 11.0
DEFAULT_STD_DEV_LEVELS = 3
STD_DEV_FILTER_SIZE_SCALE = 16

# Contours
DEFAULT_CONTOUR_INTERVAL = 200.0
