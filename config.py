import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _parse_ollama_base_url():
    """Build Ollama base URL, handling OLLAMA_HOST with or without port/scheme."""
    raw_host = os.getenv("OLLAMA_HOST", "localhost")
    port = os.getenv("OLLAMA_PORT", "11434")

    # Strip scheme if present (e.g. "http://192.168.1.14:11434")
    if "://" in raw_host:
        raw_host = raw_host.split("://", 1)[1]

    # Strip port if already included in host (e.g. "192.168.1.14:11434")
    if ":" in raw_host:
        host = raw_host.rsplit(":", 1)[0]
    else:
        host = raw_host

    return host, int(port), f"http://{host}:{port}"


class Config:
    # Flask
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"
    HOST = os.getenv("FLASK_HOST", "0.0.0.0")
    PORT = int(os.getenv("FLASK_PORT", "5000"))

    # Ollama
    OLLAMA_HOST, OLLAMA_PORT, OLLAMA_BASE_URL = _parse_ollama_base_url()
    OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "phi4-mini:latest")
    OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "120"))
    OLLAMA_TEMPERATURE = float(os.getenv("OLLAMA_TEMPERATURE", "0.7"))
    OLLAMA_TOP_P = float(os.getenv("OLLAMA_TOP_P", "0.9"))

    # Storage
    DATABASE_PATH = os.getenv("DATABASE_PATH", "data/sinagtala.db")

    # Persona
    PROFILE_PATH = os.getenv("PROFILE_PATH", "profiles/tala.json")

    # Analytics
    TREND_DEFAULT_DAYS = int(os.getenv("TREND_DEFAULT_DAYS", "30"))
    RECENT_MOOD_LIMIT = int(os.getenv("RECENT_MOOD_LIMIT", "5"))
    CHAT_LOG_LIMIT = int(os.getenv("CHAT_LOG_LIMIT", "50"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "")
