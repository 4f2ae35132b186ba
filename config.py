# Configuration for the ridesharing API
# Single source of truth for environment settings and search-ranking knobs

import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Object storage (S3-compatible bucket)
STORAGE_ENDPOINT = os.environ.get("STORAGE_ENDPOINT")
STORAGE_PUBLIC_ENDPOINT = os.environ.get("STORAGE_PUBLIC_ENDPOINT", STORAGE_ENDPOINT)
STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET")
STORAGE_ACCESS_KEY_ID = os.environ.get("STORAGE_ACCESS_KEY_ID")
STORAGE_SECRET_ACCESS_KEY = os.environ.get("STORAGE_SECRET_ACCESS_KEY")
UPLOAD_URL_EXPIRY_SECONDS = 5 * 60
MAX_UPLOAD_BYTES = 2 * 1024 * 1024
ALLOWED_UPLOAD_TYPES = [
    "image/jpeg", "image/jpg", "image/png", "image/webp",
    "application/pdf", "image/bmp",
]

# Geocoding / directions provider
MAPBOX_TOKEN = os.environ.get("MAPBOX_TOKEN")
MAPBOX_BASE_URL = os.environ.get("MAPBOX_BASE_URL", "https://api.mapbox.com")
GEOCODING_COUNTRY = "IN"
GEOCODING_BBOX = "68.176,6.754,97.395,35.67"  # India
GEOCODING_CENTER = "78.9629,20.5937"
GEOCODING_CACHE_SECONDS = 5 * 60
GEOCODING_CACHE_MAX_ENTRIES = 500

# Search
DEFAULT_SEARCH_RADIUS_M = int(os.environ.get("DEFAULT_SEARCH_RADIUS_M", "30000"))
MAX_RESULTS = 50
LISTING_LIMIT = 10

# Composite score weights, must sum to 1.0
LOCATION_WEIGHT = 0.6
DATE_WEIGHT = 0.3
VEHICLE_WEIGHT = 0.1

# Score for a ride departing N days away from the requested date
DATE_OFFSET_SCORES = {0: 100, 1: 80, 2: 60, 3: 40}

VEHICLE_EXACT_SCORE = 100
VEHICLE_SIMILAR_SCORE = 70
VEHICLE_OTHER_SCORE = 30

DIRECT_MATCH_THRESHOLD = 70
INTERMEDIATE_MATCH_THRESHOLD = 40
MIN_CONFIDENCE = 20

# Ranker tie-break cascade
LOCATION_DECISIVE_GAP = 10
DATE_DECISIVE_GAP_DAYS = 1


def configure_logging():
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
