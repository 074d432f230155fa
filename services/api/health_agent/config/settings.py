"""Settings for the generation service."""

from pydantic import BaseModel
import os


class Settings(BaseModel):
    app_env: str = os.getenv("APP_ENV", "dev")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", 8000))

    llm_provider: str = os.getenv("LLM_PROVIDER", "none")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.2-vision")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    llm_timeout_s: float = float(os.getenv("LLM_TIMEOUT_S", 60))
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", 0.7))

    data_dir: str = os.getenv("APP_DATA_DIR", "/app/data")

    # Logging settings
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Chat sessions keep at most this many turns in memory
    chat_history_limit: int = int(os.getenv("CHAT_HISTORY_LIMIT", 20))

    # Doctor working window used when computing free slots
    workday_start: str = os.getenv("WORKDAY_START", "09:00")
    workday_end: str = os.getenv("WORKDAY_END", "17:00")
    slot_minutes: int = int(os.getenv("SLOT_MINUTES", 30))

    max_attachment_bytes: int = int(os.getenv("MAX_ATTACHMENT_BYTES", 5_000_000))


settings = Settings()
