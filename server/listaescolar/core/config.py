from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./listaescolar.db"
    DATABASE_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Nominatim allows ~1 request/sec and requires an identifying User-Agent
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "ListaEscolar/1.0 (https://listaescolar.com.br)"
    GEOCODER_COUNTRY: str = "br"
    GEOCODE_TIMEOUT_SECONDS: float = 8.0

    CEP_SUGGESTIONS_MAX_RESULTS: int = 5
    CEP_SUGGESTIONS_DEBOUNCE_MS: int = 150
    SCHOOL_SEARCH_MAX_DISTANCE_KM: float = 100.0
    CART_OPEN_STAGGER_MS: int = 300

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()
