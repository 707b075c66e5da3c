"""Module-level constants for the Obsidian REST MCP server."""

from pathlib import Path

# Configuration
CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"
CONFIG_PATH_ENV = "OBSIDIAN_REST_CONFIG"

# Obsidian Local REST API
DEFAULT_BASE_URL = "http://127.0.0.1:27123"
REQUEST_TIMEOUT_SECONDS = 60.0
NOTE_JSON_MEDIA_TYPE = "application/vnd.olrapi.note+json"
MARKDOWN_MEDIA_TYPE = "text/markdown"

# Vault cache
DEFAULT_CACHE_REFRESH_INTERVAL_MIN = 10
CACHED_FILE_SUFFIX = ".md"

# Global search
DEFAULT_API_SEARCH_TIMEOUT_MS = 30_000
API_SEARCH_MAX_ATTEMPTS = 3
API_SEARCH_RETRY_DELAY_SECONDS = 0.5
DEFAULT_CONTEXT_LENGTH = 100
DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_MATCHES_PER_FILE = 5

# Retries around reads/writes of a single note
NOTE_RETRY_ATTEMPTS = 3
NOTE_RETRY_DELAY_SECONDS = 0.3

# Formatting
TIMESTAMP_FORMAT = "%I:%M:%S %p | %m-%d-%Y"
MAX_LOGGED_QUERY_CHARS = 200

# Logging
LOG_LEVEL = "INFO"
