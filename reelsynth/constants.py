"""Application constants - centralized configuration values."""

# =============================================================================
# Identity assignment
# =============================================================================
HASH_ID_MIN = 100_000_000
HASH_ID_MAX = 2_000_000_000
MAX_ITEM_ID = 2**31 - 1  # catalog ids live in a 32-bit signed column

# =============================================================================
# Taste profile (how many titles per bucket go into prompts)
# =============================================================================
PROMPT_LIMIT_AMAZING = 20
PROMPT_LIMIT_GOOD = 20
PROMPT_LIMIT_MEH = 10
PROMPT_LIMIT_AWFUL = 10
PROMPT_LIMIT_NOT_SEEN = 10
PROMPT_LIMIT_EXCLUSIONS = 150

# =============================================================================
# Delivery queue
# =============================================================================
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# =============================================================================
# Preference vector store
# =============================================================================
EMBEDDING_DIMENSION = 1536  # text-embedding-3-small
MAX_CONTEXT_PREFERENCES = 10
NEUTRAL_SIMILARITY = 0.5
ANALYZE_RATINGS_LIMIT = 50
ANALYZE_MAX_TOKENS = 4000
PREFERENCE_TYPES = ("genre", "actor", "director", "theme", "style", "era")
PREFERENCE_QUERY = "Recommend titles I would love"

# =============================================================================
# External rate limiting
# =============================================================================
CATALOG_MAX_REQUESTS_PER_WINDOW = 40
CATALOG_WINDOW_SECONDS = 1.0

# =============================================================================
# Enrichment
# =============================================================================
ENRICHMENT_MAX_TOKENS = 1000

# =============================================================================
# API Timeouts (in seconds)
# =============================================================================
API_TIMEOUT_EXTERNAL = 15.0
HTTPX_TIMEOUT = 10.0

# =============================================================================
# External API URLs
# =============================================================================
TMDB_API_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"

# =============================================================================
# Language / cinema descriptions used in prompts
# =============================================================================
LANGUAGE_DESCRIPTIONS = {
    "English": "Hollywood/English",
    "Hindi": "Bollywood/Hindi",
    "Tamil": "Kollywood/Tamil",
    "Telugu": "Tollywood/Telugu",
    "Kannada": "Sandalwood/Kannada",
    "Malayalam": "Mollywood/Malayalam",
    "Korean": "Korean Cinema",
    "Japanese": "Japanese Cinema",
    "Italian": "Italian Cinema",
}

LANGUAGE_CODES = {
    "English": "en",
    "Hindi": "hi",
    "Tamil": "ta",
    "Telugu": "te",
    "Kannada": "kn",
    "Malayalam": "ml",
    "Korean": "ko",
    "Japanese": "ja",
    "Italian": "it",
}
