from typing import Dict, List
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CHAT_SYSTEM_PROMPT = (
    "Du är en hjälpsam kartassistent för Sverige. "
    "Svara alltid på svenska, kort och konkret. "
    "När du nämner platser MÅSTE du alltid avsluta svaret med ett kodblock "
    "märkt ```places som innehåller en JSON-array med objekt på formen "
    '{"name": "...", "lat": 59.33, "lon": 18.07, "description": "..."}. '
    "Använd decimalgrader (WGS84). Om inga platser är relevanta, returnera en tom array."
)

def is_placeholder_key(api_key: str | None) -> bool:
    """True for an empty key or the template values shipped in .env examples."""
    if not api_key or not api_key.strip():
        return True
    return api_key.strip().lower().startswith(("your-", "your_"))

class Settings(BaseSettings):
    LOGGER: int = 20
    PORT: int = 3000

    # Built frontend served for unmatched routes
    STATIC_DIR: str = "dist"

    # Lantmäteriet OAuth2 + WMTS
    LM_CLIENT_KEY: str = ""
    LM_CLIENT_SECRET: str = ""
    LM_TOKEN_URL: str = "https://apimanager.lantmateriet.se/oauth2/token"
    LM_WMTS_URL: str = "https://maps.lantmateriet.se/open/topowebb-ccby/v1/wmts"
    TOKEN_EXPIRY_MARGIN: int = 300  # seconds

    # Overpass POI lookups
    OVERPASS_URL: str = "https://overpass-api.de/api/interpreter"
    OVERPASS_TIMEOUT: int = 25
    POI_CACHE_TTL: int = 300
    POI_CACHE_MAX_ENTRIES: int = 200

    # LLM Provider Selection
    LLM_PROVIDER: str = "openai"  # Options: mistral, openai, anthropic, groq
    LLM_TIMEOUT: float = 30.0

    # Mistral Configuration
    MISTRAL_API_KEY: str = "your-key-here"
    MISTRAL_MODEL: str = "mistral-small-latest"

    # OpenAI Configuration
    OPENAI_API_KEY: str = "your-key-here"
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Anthropic Configuration
    ANTHROPIC_API_KEY: str = "your-key-here"
    ANTHROPIC_MODEL: str = "claude-3-haiku-20240307"

    # Groq Configuration
    GROQ_API_KEY: str = "your-key-here"
    GROQ_MODEL: str = "llama3-8b-8192"

    # Chat prompt and structured block tag
    CHAT_SYSTEM_PROMPT: str = DEFAULT_CHAT_SYSTEM_PROMPT
    CHAT_PLACES_TAG: str = "places"

    # Nominatim geocoding
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODE_COUNTRY: str = "se"
    GEOCODE_USER_AGENT: str = "KartproxyBot/1.0"
    GEOCODE_TIMEOUT: float = 5.0

    # SCB PxWeb statistics (employed persons per municipality)
    SCB_TABLE_URL: str = "https://api.scb.se/OV0104/v1/doris/sv/ssd/AM/AM0207/AM0207Z/DagSni07KonKN"
    SCB_REGION_VARIABLE: str = "Region"
    SCB_CONTENTS_CODE: str = "00000544"
    SCB_YEAR: str = "2022"
    SCB_FILTERS: Dict[str, List[str]] = {"Kon": ["1+2"]}
    STATS_CACHE_TTL: int = 24 * 60 * 60

    # Municipality boundaries (GeoJSON)
    BOUNDARIES_URL: str = "https://raw.githubusercontent.com/okfse/sweden-geojson/master/swedish_municipalities.geojson"
    BOUNDARY_ADMIN_LEVEL: str = "7"
    BOUNDARY_LEVEL_PROPERTY: str = "admin_level"
    BOUNDARY_NAME_PROPERTY: str = "name"
    BOUNDARY_CACHE_TTL: int = 7 * 24 * 60 * 60

    model_config = SettingsConfigDict(
        # Look for .env in the current folder OR the parent folder
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
