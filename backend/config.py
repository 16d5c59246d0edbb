import os
from dotenv import load_dotenv

load_dotenv()

# --- Providers ---
OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org")
OPENAI_URL = os.getenv("OPENAI_URL", "https://api.openai.com/v1/chat/completions")
WIKIPEDIA_URL = os.getenv("WIKIPEDIA_URL", "https://{language}.wikipedia.org/w/api.php")

# Nominatim usage policy requires an identifying User-Agent
USER_AGENT = os.getenv("USER_AGENT", "NearbyDiscovery/1.0")
ACCEPT_LANGUAGE = os.getenv("ACCEPT_LANGUAGE", "de")
LANGUAGE = os.getenv("LANGUAGE", "de")

# --- Scoring collaborator ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
SCORING_MAX_TOKENS = 1500
SCORING_TEMPERATURE = 0.3
DEFAULT_INTEREST_SCORE = 5.0
DESCRIPTION_MAX_TOKENS = 500
DESCRIPTION_TEMPERATURE = 0.7

# Interest ids -> labels used in the description prompt
INTEREST_LABELS = {
    "de": {
        "history": "Geschichte", "nature": "Natur", "architecture": "Architektur",
        "art": "Kunst", "food": "Essen & Trinken", "shopping": "Shopping",
        "nightlife": "Nachtleben", "sports": "Sport", "beaches": "Strände", "museums": "Museen",
    },
    "en": {
        "history": "History", "nature": "Nature", "architecture": "Architecture",
        "art": "Art", "food": "Food & Drink", "shopping": "Shopping",
        "nightlife": "Nightlife", "sports": "Sports", "beaches": "Beaches", "museums": "Museums",
    },
}

# --- Timeouts (seconds) ---
SEARCH_TIMEOUT_S = float(os.getenv("SEARCH_TIMEOUT_S", "10"))
REVERSE_TIMEOUT_S = float(os.getenv("REVERSE_TIMEOUT_S", "10"))
OVERPASS_TIMEOUT_S = float(os.getenv("OVERPASS_TIMEOUT_S", "20"))
SCORING_TIMEOUT_S = float(os.getenv("SCORING_TIMEOUT_S", "20"))
WIKI_TIMEOUT_S = float(os.getenv("WIKI_TIMEOUT_S", "20"))
CITY_IMAGE_TIMEOUT_S = float(os.getenv("CITY_IMAGE_TIMEOUT_S", "8"))

# --- Search throttling ---
SEARCH_MIN_INTERVAL_S = 1.0   # 1 request per second for Nominatim
SEARCH_DEBOUNCE_S = 0.3
SEARCH_DEFAULT_LIMIT = 10

# --- Discovery ---
DEFAULT_RADIUS_M = 5000
MAX_ATTRACTIONS = 20
OVERPASS_ELEMENT_LIMIT = 30   # `out center N` cap sent to the interpreter
PLACEHOLDER_RATING = 4.0
MOVEMENT_THRESHOLD_DEG = 0.005

# --- Cache ---
ATTRACTIONS_CACHE_PREFIX = "@travel_guide_attractions_cache"
RAW_ATTRACTIONS_CACHE_PREFIX = "@travel_guide_attractions_raw"
RAW_TTL_MS = 30 * 60 * 1000       # 30 minutes
RANKED_TTL_MS = 30 * 60 * 1000    # 30 minutes
DESCRIPTION_CACHE_PREFIX = "@travel_guide_ai_descriptions"
CITY_IMAGE_CACHE_PREFIX = "@travel_guide_city_images"
DESCRIPTION_TTL_MS = 7 * 24 * 60 * 60 * 1000   # 7 days
CITY_IMAGE_TTL_MS = 7 * 24 * 60 * 60 * 1000    # 7 days
CACHE_BACKEND = os.getenv("CACHE_BACKEND", "libsql")  # "libsql" | "memory"
CACHE_DB_PATH = os.getenv("CACHE_DB_PATH", "cache.db")

# --- Turso Database ---
TURSO_DATABASE_URL = os.getenv("TURSO_DATABASE_URL", "")
TURSO_AUTH_TOKEN = os.getenv("TURSO_AUTH_TOKEN", "")

# --- Error reporting ---
ERROR_DEDUP_WINDOW_S = 5.0

# --- Admin ---
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:8000,http://localhost:3000").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
